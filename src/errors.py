"""Error taxonomy shared by the API, the gateway and the search box."""


class ValidationError(Exception):
    """A required field is missing or malformed. The caller's fault."""


class StorageError(Exception):
    """The database or the blob store failed."""


class RemoteError(Exception):
    """A third-party service (geocoding) returned a failure."""


class NotFoundError(RemoteError):
    """Retrieve resolved no feature for the given candidate."""
