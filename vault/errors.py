"""Domain errors raised by the credential store and the object store gateway."""


class VaultError(Exception):
    """Base class for filevault errors."""


class StorageError(VaultError):
    """Database or object store fault."""


class UserExists(VaultError):
    """Username is already taken."""


class UserNotFound(VaultError):
    """No user with the given username."""


class ObjectNotFound(VaultError):
    """Object key could not be located or retrieved."""


class FileTooLarge(VaultError):
    """Declared upload size exceeds the allowed ceiling."""


class InvalidKey(VaultError):
    """Filename does not yield a usable object key."""
