import enum
from typing import TypeAlias, NamedTuple, Literal

Path: TypeAlias = str  # a path in the filesystem
OID: TypeAlias = str  # hash
TreeMap: TypeAlias = dict[Path, OID]
ObjectType: TypeAlias = Literal['blob', 'tree', 'commit']


class Identity(NamedTuple):
    name: str
    email: str
    timestamp: int  # seconds since the epoch
    tz: str = '+0000'


class Commit(NamedTuple):
    tree: OID
    parents: list[OID]
    message: str
    author: Identity
    committer: Identity


class RefValue(NamedTuple):
    symbolic: bool
    value: OID


class RewriteMode(enum.Enum):
    SINGLE = 'single'
    SPLIT = 'split'


class RefUpdateResult(enum.Enum):
    NEW = 'new'
    FORCED = 'forced'
    NO_CHANGE = 'no_change'
    LOCK_FAILURE = 'lock_failure'
