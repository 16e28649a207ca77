from typing import Iterable

from . import base
from . import types
from .errors import TraversalError


def iter_ancestry(tip: types.OID | None,
                  exclude: Iterable[types.OID] = ()) -> list[tuple[types.OID, types.Commit]]:
    """Commits reachable from ``tip``, oldest first.

    A commit never comes before any of its parents. Where several commits are
    ready at once, the one listed last by ``iter_commits_and_parents`` goes
    first, so a linear history is simply the native walk reversed.

    Commits reachable from ``exclude`` are left out of the result.
    """
    if not tip:
        return []

    try:
        excluded = set(base.iter_commits_and_parents(set(exclude)))
        native = [oid for oid in base.iter_commits_and_parents({tip})
                  if oid not in excluded]
        commits = {oid: base.get_commit(oid) for oid in native}
    except (OSError, AssertionError, ValueError) as e:
        raise TraversalError(f'Cannot walk history from {tip}: {e}') from e

    position = {oid: i for i, oid in enumerate(native)}
    ordered = []
    emitted = set()
    for start in reversed(native):
        stack = [start]
        while stack:
            oid = stack[-1]
            if oid in emitted:
                stack.pop()
                continue
            pending = [parent for parent in commits[oid].parents
                       if parent in commits and parent not in emitted]
            if pending:
                # the parent furthest along the native walk is visited first
                stack.extend(sorted(pending, key=position.__getitem__))
                continue
            stack.pop()
            emitted.add(oid)
            ordered.append((oid, commits[oid]))

    return ordered
