"""Rewriting the history of the active branch.

``rewrite_history`` runs one of two modes over the commits reachable from
HEAD, oldest first:

``RewriteMode.SINGLE``
    Every commit is rebuilt with a new author and committer timestamp taken
    from ``timeline.anchored``. Parents are mapped through a ``RemapTable`` so
    the new commits form a chain of their own, and the active branch is then
    forced onto the rewritten tip.

``RewriteMode.SPLIT``
    Every file of every commit becomes a commit of its own, timestamped from
    ``timeline.streaming``. The new commits keep the original parents and no
    ref is moved, so they exist in the object store only.

Failures are raised as ``regit.errors.RegitError`` subclasses. Their
``orphans`` attribute holds whatever was inserted before the failure; the
branch ref is never moved unless the whole run succeeded.
"""
import datetime
import logging
from typing import NamedTuple

from typing_extensions import assert_never

from . import base
from . import data
from . import history
from . import timeline
from . import types
from .errors import (MissingObjectError, RefUpdateRejected,
                     RepositoryNotFoundError, RewriteAborted, TraversalError)

SHORT_ID_LENGTH = 7
SHORT_MESSAGE_LENGTH = 50

_LOGGER_NAME = 'regit.rewrite'


class RewriteRequest(NamedTuple):
    repo_path: str
    start: datetime.datetime
    end: datetime.datetime
    mode: types.RewriteMode = types.RewriteMode.SINGLE
    base: str | None = None  # commits reachable from here are kept as they are


class RemapTable:
    """Original commit id to rewritten commit id, filled once per commit."""

    def __init__(self):
        self._new_ids: dict[types.OID, types.OID] = {}

    def __len__(self):
        return len(self._new_ids)

    def __contains__(self, oid):
        return oid in self._new_ids

    def __getitem__(self, oid) -> types.OID:
        return self._new_ids[oid]

    def items(self):
        return self._new_ids.items()

    def record(self, old: types.OID, new: types.OID) -> None:
        assert old not in self._new_ids, f'{old} was already rewritten'
        self._new_ids[old] = new

    def resolve(self, parent: types.OID) -> types.OID:
        if parent in self._new_ids:
            return self._new_ids[parent]
        if not data.object_exists(parent):
            raise MissingObjectError(
                f'Parent {parent} was neither rewritten nor found in the object store',
                orphans=list(self._new_ids.values()))
        return parent


class RewriteResult(NamedTuple):
    mode: types.RewriteMode
    created: list[types.OID]
    remap: RemapTable
    tip: types.OID | None = None
    ref: str | None = None
    ref_result: types.RefUpdateResult | None = None


def rewrite_history(request: RewriteRequest, logger: logging.Logger | None = None) -> RewriteResult:
    logger = logger or logging.getLogger(_LOGGER_NAME)
    if timeline.as_utc(request.end) < timeline.as_utc(request.start):
        raise ValueError(f'End {request.end} is before start {request.start}')

    with data.change_git_dir(request.repo_path):
        if not data.is_repository():
            raise RepositoryNotFoundError(f'No regit repository at {request.repo_path}')

        try:
            exclude = [base.get_oid(request.base)] if request.base else []
        except ValueError as e:
            raise TraversalError(str(e)) from e
        commits = history.iter_ancestry(data.get_ref('HEAD').value, exclude)
        logger.info('Found %d commits to process in %s mode', len(commits), request.mode.value)

        if request.mode is types.RewriteMode.SINGLE:
            return _rewrite_single(commits, request, logger)
        elif request.mode is types.RewriteMode.SPLIT:
            created = split_commits(commits, request.start, request.end, logger)
            return RewriteResult(mode=request.mode, created=created, remap=RemapTable())
        else:
            assert_never(request.mode)


def _rewrite_single(commits, request: RewriteRequest, logger: logging.Logger) -> RewriteResult:
    remap, tip = rewrite_commits(commits, request.start, request.end, logger)
    created = [new for _, new in remap.items()]
    if tip is None:
        return RewriteResult(mode=request.mode, created=created, remap=remap)

    ref, result = update_active_ref(tip, logger, orphans=created)
    return RewriteResult(mode=request.mode, created=created, remap=remap,
                         tip=tip, ref=ref, ref_result=result)


def retimed(identity: types.Identity, instant: datetime.datetime) -> types.Identity:
    return identity._replace(timestamp=timeline.to_epoch(instant))


def rewrite_commits(commits: list[tuple[types.OID, types.Commit]],
                    start: datetime.datetime, end: datetime.datetime,
                    logger: logging.Logger,
                    remap: RemapTable | None = None) -> tuple[RemapTable, types.OID | None]:
    """Rebuild ``commits`` (in ancestry order) with anchored timestamps.

    Returns the filled ``RemapTable`` and the id replacing the last commit.
    """
    remap = remap if remap is not None else RemapTable()
    tip = None
    instants = timeline.anchored(start, end, len(commits))

    for (oid, commit_), instant in zip(commits, instants):
        logger.info('Rewriting commit %s', oid)
        parents = [remap.resolve(parent) for parent in commit_.parents]
        try:
            new_oid = base.write_commit(
                tree=commit_.tree,
                parents=parents,
                message=commit_.message,
                author=retimed(commit_.author, instant),
                committer=retimed(commit_.committer, instant),
            )
        except OSError as e:
            raise RewriteAborted(f'Could not store rewrite of {oid}: {e}',
                                 orphans=[new for _, new in remap.items()]) from e
        remap.record(oid, new_oid)
        tip = new_oid
        logger.info('New commit created: %s', new_oid)

    return remap, tip


def update_active_ref(tip: types.OID, logger: logging.Logger,
                      orphans=()) -> tuple[str, types.RefUpdateResult]:
    """Force the active branch (or a detached HEAD) onto ``tip``."""
    branch = base.get_branch_name()
    ref = f'refs/heads/{branch}' if branch is not None else 'HEAD'
    logger.info('Updating %s to %s', ref, tip)

    try:
        result = data.force_update_ref(ref, tip, deref=branch is not None)
    except OSError as e:
        raise RewriteAborted(f'Could not update {ref}: {e}', orphans=orphans) from e

    logger.info('Update of %s: %s', ref, result.value)
    if result is types.RefUpdateResult.LOCK_FAILURE:
        raise RefUpdateRejected(ref, result, orphans=orphans)
    return ref, result


def split_message(oid: types.OID, path: types.Path, message: str) -> str:
    if len(message) > SHORT_MESSAGE_LENGTH:
        message = message[:SHORT_MESSAGE_LENGTH] + '...'
    return f'{oid[:SHORT_ID_LENGTH]}: Update {path} - {message}'


def split_commits(commits: list[tuple[types.OID, types.Commit]],
                  start: datetime.datetime, end: datetime.datetime,
                  logger: logging.Logger) -> list[types.OID]:
    """One new commit per file of every commit in ``commits``.

    Each file takes the next ``timeline.streaming`` slot. The new commit holds
    a tree with that single file and the original, unmapped parents; nothing
    chains to it and no ref points at it.
    """
    try:
        files = [(oid, commit_, base.get_tree(commit_.tree)) for oid, commit_ in commits]
    except (OSError, AssertionError, ValueError) as e:
        raise TraversalError(f'Cannot read trees to split: {e}') from e
    instants = timeline.streaming(start, end, sum(len(tree) for _, _, tree in files))
    created = []

    for oid, commit_, tree in files:
        logger.info('Splitting commit %s', oid)
        for path, blob in tree.items():
            logger.debug('Processing file %s', path)
            instant = next(instants)
            try:
                new_oid = base.write_commit(
                    tree=base.write_tree_from_map({path: blob}),
                    parents=list(commit_.parents),
                    message=split_message(oid, path, commit_.message),
                    author=retimed(commit_.author, instant),
                    committer=retimed(commit_.committer, instant),
                )
            except OSError as e:
                raise RewriteAborted(f'Could not store split of {oid}: {e}', orphans=created) from e
            created.append(new_oid)
            logger.info('New commit created: %s', new_oid)

    return created
