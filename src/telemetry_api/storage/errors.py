"""Storage exceptions."""


class StorageError(Exception):
    """Raised when the document store cannot complete a call.

    Callers treat it as transient: the same call may succeed when repeated.
    """
