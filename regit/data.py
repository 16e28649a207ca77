import os
import json
import hashlib
from contextlib import contextmanager
from typing import Iterable

from regit import types
from regit.types import RefValue, RefUpdateResult

GIT_DIR: str | None = None


@contextmanager
def change_git_dir(new_dir):
    global GIT_DIR
    old_dir = GIT_DIR
    GIT_DIR = f'{new_dir}/.regit'
    try:
        yield
    finally:
        GIT_DIR = old_dir


def init():
    assert GIT_DIR is not None
    os.makedirs(GIT_DIR, exist_ok=True)
    os.makedirs(f'{GIT_DIR}/objects', exist_ok=True)


def is_repository():
    return (GIT_DIR is not None
            and os.path.isdir(f'{GIT_DIR}/objects')
            and os.path.isfile(f'{GIT_DIR}/HEAD'))


def hash_object(data, type_: types.ObjectType = 'blob') -> types.OID:
    obj = type_.encode() + b'\x00' + data
    oid = hashlib.sha1(obj).hexdigest()
    path = f'{GIT_DIR}/objects/{oid}'
    # objects are immutable
    if not os.path.isfile(path):
        with open(path, 'wb') as out:
            out.write(obj)
    return oid


def get_object(oid, expected='blob'):
    with open(f'{GIT_DIR}/objects/{oid}', 'rb') as f:
        obj = f.read()

    type_, _, content = obj.partition(b'\x00')
    type_ = type_.decode()
    if expected is not None:
        assert type_ == expected, f'Expected {expected}, got {type_}'
    return content


def object_exists(oid) -> bool:
    return bool(oid) and os.path.isfile(f'{GIT_DIR}/objects/{oid}')


def iter_object_ids() -> Iterable[types.OID]:
    yield from sorted(os.listdir(f'{GIT_DIR}/objects'))


def update_ref(ref, value: RefValue, deref=True):
    ref = _get_ref_internal(ref, deref)[0]

    assert value.value
    if value.symbolic:
        value = f'ref: {value.value}'
    else:
        value = value.value
    ref_path = f'{GIT_DIR}/{ref}'
    os.makedirs(os.path.dirname(ref_path), exist_ok=True)
    with open(ref_path, 'w') as f:
        f.write(value)


def force_update_ref(ref, oid: types.OID, deref=True) -> RefUpdateResult:
    """Point ``ref`` at ``oid`` regardless of what it designated before.

    The write goes through ``<ref>.lock``, created exclusively, and is moved
    into place once complete. A lock held by someone else rejects the update
    without touching the ref.
    """
    ref, old = _get_ref_internal(ref, deref)
    ref_path = f'{GIT_DIR}/{ref}'
    lock_path = f'{ref_path}.lock'
    os.makedirs(os.path.dirname(ref_path), exist_ok=True)
    try:
        fd = os.open(lock_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL)
    except FileExistsError:
        return RefUpdateResult.LOCK_FAILURE

    try:
        with os.fdopen(fd, 'w') as f:
            f.write(oid)
        os.replace(lock_path, ref_path)
    except BaseException:
        if os.path.exists(lock_path):
            os.remove(lock_path)
        raise

    if old.value is None:
        return RefUpdateResult.NEW
    if old.value == oid:
        return RefUpdateResult.NO_CHANGE
    return RefUpdateResult.FORCED


def get_ref(ref, deref=True) -> RefValue:
    return _get_ref_internal(ref, deref)[1]


def _get_ref_internal(ref: str, deref: bool) -> tuple[str, RefValue]:
    ref_path = f'{GIT_DIR}/{ref}'
    value = None
    if os.path.isfile(ref_path):
        with open(ref_path) as f:
            value = f.read().strip()

    symbolic = bool(value) and value.startswith('ref:')
    if symbolic:
        value = value.split(':', 1)[1].strip()
        if deref:
            return _get_ref_internal(value, deref=True)
    return ref, RefValue(symbolic=symbolic, value=value)


def iter_refs(prefix='', deref=True) -> Iterable[tuple[str, types.RefValue]]:
    refs = ['HEAD']
    for root, _, filenames in os.walk(f'{GIT_DIR}/refs/'):
        root = os.path.relpath(root, GIT_DIR).replace('\\', '/')
        refs.extend(f'{root}/{name}' for name in filenames
                    if not name.endswith('.lock'))

    for refname in refs:
        if not refname.startswith(prefix):
            continue
        ref = get_ref(refname, deref=deref)
        if ref.value:
            yield refname, ref


@contextmanager
def get_index():
    index = {}
    if os.path.isfile(f'{GIT_DIR}/index'):
        with open(f'{GIT_DIR}/index') as f:
            index = json.load(f)

    yield index

    with open(f'{GIT_DIR}/index', 'w') as f:
        json.dump(index, f)
