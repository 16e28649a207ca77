from . import types


class RegitError(Exception):
    """Base class for failures reported by a history rewrite.

    ``orphans`` lists the commits already inserted when the failure happened.
    They stay in the object store, unreachable from any ref. An empty list
    means the repository was left untouched.
    """

    def __init__(self, message: str, orphans: list[types.OID] | None = None):
        super().__init__(message)
        self.orphans = list(orphans or [])


class RepositoryNotFoundError(RegitError):
    pass


class TraversalError(RegitError):
    pass


class MissingObjectError(RegitError):
    pass


class RewriteAborted(RegitError):
    pass


class RefUpdateRejected(RegitError):

    def __init__(self, ref: str, result: types.RefUpdateResult,
                 orphans: list[types.OID] | None = None):
        super().__init__(f'Update of {ref} rejected: {result.value}', orphans)
        self.ref = ref
        self.result = result
