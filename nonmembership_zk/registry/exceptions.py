"""
Exceptions raised by the registry tree, its codec and hash providers.

All of them are fatal to the call that raised them, never to the process.
"""


class RegistryError(Exception):
    """Base exception for registry errors."""

    pass


class IndexOutOfRangeError(RegistryError, IndexError):
    """Leaf index is negative or not below the tree capacity."""

    pass


class NotBuiltError(RegistryError):
    """Root or proof requested before the tree was (re)built."""

    pass


class RegistryFullError(RegistryError):
    """No empty slot is left for a non-membership witness."""

    pass


class CandidateAlreadyRegisteredError(RegistryError):
    """The candidate's hash is already stored in the tree."""

    pass


class EncodingRangeError(RegistryError, ValueError):
    """Value cannot be represented as a fixed-width field element."""

    pass


class HashProviderError(RegistryError):
    """Hash backend could not be started or stopped answering."""

    pass


class RegistryFileError(RegistryError, ValueError):
    """Registry snapshot file is malformed."""

    pass
