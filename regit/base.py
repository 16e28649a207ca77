import os
import string
import time

from collections import deque

from . import data
from . import types


def init():
    data.init()
    data.update_ref('HEAD', types.RefValue(symbolic=True, value='refs/heads/master'))


def get_branch_name():
    HEAD = data.get_ref('HEAD', deref=False)
    if not HEAD.symbolic:
        return None
    HEAD = HEAD.value
    assert HEAD.startswith('refs/heads'), f'expected HEAD to start with "refs/heads", found {HEAD}'
    return os.path.relpath(HEAD, 'refs/heads')


def iter_branch_names():
    for refname, _ in data.iter_refs('refs/heads/'):
        yield os.path.relpath(refname, 'refs/heads/')


def create_branch(name, oid):
    data.update_ref(f'refs/heads/{name}', types.RefValue(symbolic=False, value=oid))


def format_identity(identity: types.Identity) -> str:
    return f'{identity.name} <{identity.email}> {identity.timestamp} {identity.tz}'


def parse_identity(value: str) -> types.Identity:
    person, timestamp, tz = value.rsplit(' ', 2)
    name, _, email = person.partition(' <')
    assert email.endswith('>'), f'Malformed identity {value!r}'
    return types.Identity(name=name, email=email[:-1], timestamp=int(timestamp), tz=tz)


def get_commit(oid: types.OID) -> types.Commit:
    parents = []
    tree = None
    author = committer = None
    commit_ = data.get_object(oid, 'commit').decode()
    # an empty line separates the key-value pairs from the message
    headers, _, body = commit_.partition('\n\n')
    for line in headers.split('\n'):
        key, value = line.split(' ', 1)
        if key == 'tree':
            tree = value
        elif key == 'parent':
            parents.append(value)
        elif key == 'author':
            author = parse_identity(value)
        elif key == 'committer':
            committer = parse_identity(value)
        else:
            raise AssertionError(f'Unknown field {key}')

    assert tree is not None, 'Expected tree to be defined'
    assert author is not None and committer is not None, f'Commit {oid} has no author or committer'
    # write_commit terminates the message with one newline
    message = body[:-1] if body.endswith('\n') else body
    return types.Commit(tree=tree, parents=parents, message=message,
                        author=author, committer=committer)


def write_commit(tree: types.OID, parents: list[types.OID], message: str,
                 author: types.Identity, committer: types.Identity) -> types.OID:
    commit_ = f'tree {tree}\n'
    for parent in parents:
        commit_ += f'parent {parent}\n'
    commit_ += f'author {format_identity(author)}\n'
    commit_ += f'committer {format_identity(committer)}\n'
    commit_ += '\n'
    commit_ += f'{message}\n'

    return data.hash_object(commit_.encode(), 'commit')


def get_identity(role: str) -> types.Identity:
    """Identity for a new commit, read from ``REGIT_<ROLE>_NAME/EMAIL/DATE``."""
    prefix = f'REGIT_{role.upper()}'
    timestamp = os.environ.get(f'{prefix}_DATE') or os.environ.get('REGIT_AUTHOR_DATE')
    return types.Identity(
        name=os.environ.get(f'{prefix}_NAME') or os.environ.get('REGIT_AUTHOR_NAME', 'regit'),
        email=os.environ.get(f'{prefix}_EMAIL') or os.environ.get('REGIT_AUTHOR_EMAIL', 'regit@localhost'),
        timestamp=int(timestamp) if timestamp else int(time.time()),
        tz=os.environ.get('REGIT_TZ', '+0000'),
    )


def write_tree():
    with data.get_index() as index:
        return write_tree_from_map(index)


def write_tree_from_map(tree_map: types.TreeMap) -> types.OID:
    index_as_tree = {}
    for path, oid in tree_map.items():
        path = path.split('/')
        dirpath, filename = path[:-1], path[-1]
        current = index_as_tree
        # Find the dict for the dictionary of this file
        for dirname in dirpath:
            current = current.setdefault(dirname, {})
        current[filename] = oid

    def write_tree_recursive(tree_dict):
        entries = []
        for name, value in tree_dict.items():
            if type(value) is dict:
                type_ = 'tree'
                oid = write_tree_recursive(value)
            else:
                type_ = 'blob'
                oid = value
            entries.append((name, oid, type_))

        tree = ''.join(f'{type_} {oid} {name}\n'
                       for name, oid, type_
                       in sorted(entries))
        return data.hash_object(tree.encode(), 'tree')

    return write_tree_recursive(index_as_tree)


def _iter_tree_entries(oid):
    if not oid:
        return
    tree = data.get_object(oid, 'tree')
    for entry in tree.decode().splitlines():
        type_, oid, name = entry.split(' ', 2)
        yield type_, oid, name


def get_tree(oid: types.OID, base_path: types.Path = '') -> types.TreeMap:
    result = {}
    for type_, oid, name in _iter_tree_entries(oid):
        assert '/' not in name
        assert name not in ('..', '.')
        path = base_path + name
        if type_ == 'blob':
            result[path] = oid
        elif type_ == 'tree':
            result.update(get_tree(oid, f'{path}/'))
        else:
            raise AssertionError(f'Unknown tree entry {type_}')
    return result


def commit(message):
    HEAD = data.get_ref('HEAD').value
    parents = [HEAD] if HEAD else []

    oid = write_commit(write_tree(), parents, message,
                       author=get_identity('author'),
                       committer=get_identity('committer'))
    data.update_ref('HEAD', types.RefValue(symbolic=False, value=oid))
    return oid


def get_oid(name):
    if name == '@':
        name = 'HEAD'

    refs_to_try = [
        f'{name}',
        f'refs/{name}',
        f'refs/tags/{name}',
        f'refs/heads/{name}'
    ]
    for ref in refs_to_try:
        if oid := data.get_ref(ref).value:
            return oid

    is_hex = all(c in string.hexdigits for c in name)
    if len(name) == 40 and is_hex:
        return name

    raise ValueError(f'Unknown name {name}')


def iter_commits_and_parents(oids):
    oids = deque(oids)
    visited = set()

    while oids:
        oid = oids.popleft()
        if not oid or oid in visited:
            continue
        visited.add(oid)
        yield oid

        commit_ = get_commit(oid)
        oids.extendleft(commit_.parents[:1])
        oids.extend(commit_.parents[1:])


def iter_objects_in_commits(oids):
    visited = set()

    def iter_objects_in_tree(source_tree_oid):
        visited.add(source_tree_oid)
        yield source_tree_oid
        for type_, oid_, _ in _iter_tree_entries(source_tree_oid):
            if oid_ not in visited:
                if type_ == 'tree':
                    yield from iter_objects_in_tree(oid_)
                else:
                    visited.add(oid_)
                    yield oid_

    for oid in iter_commits_and_parents(oids):
        yield oid
        commit_ = get_commit(oid)
        if commit_.tree not in visited:
            yield from iter_objects_in_tree(commit_.tree)


def add(filenames):
    def add_file(filename):
        # Normalize path
        filename = os.path.relpath(filename).replace('\\', '/')
        with open(filename, 'rb') as f:
            oid = data.hash_object(f.read())
        index[filename] = oid

    def add_directory(dirname):
        for root, _, filenames_inner in os.walk(dirname):
            for filename_inner in filenames_inner:
                path = os.path.relpath(f'{root}/{filename_inner}').replace('\\', '/')
                if is_ignored(path) or not os.path.isfile(path):
                    continue
                add_file(path)

    with data.get_index() as index:
        for name in filenames:
            if os.path.isfile(name):
                add_file(name)
            elif os.path.isdir(name):
                add_directory(name)


def is_ignored(path):
    path = path.replace('\\', '/')
    return (
            ('.regit' in path.split('/')) or
            ('venv' in path.split('/')) or
            ('regit.egg-info' in path.split('/')) or
            ('__pycache__' in path.split('/')) or
            ('.idea' in path.split('/')) or
            ('.git' in path.split('/'))
    )
