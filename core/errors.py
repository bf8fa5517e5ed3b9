"""Exception types shared by the locker core."""


class LockerError(Exception):
    """Base class for str00py errors."""
    pass


class StorageError(LockerError):
    """Raised when the locked-app or settings store cannot be read or written."""
    pass


class InvalidStateError(LockerError):
    """Raised when a challenge operation does not fit the current state."""
    pass
