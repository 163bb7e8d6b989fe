"""Exceptions raised across the mapping pipeline."""


class AniSyncError(Exception):
    """Base class for all AniSync errors."""


class ProviderFetchError(AniSyncError):
    """One provider's search or lookup failed (network, parse, timeout)."""
    def __init__(self, provider_name: str, message: str):
        self.provider_name = provider_name
        self.message = message
        super().__init__(f"{provider_name}: {message}")


class CanonicalLookupError(AniSyncError):
    """The canonical metadata service could not be reached or answered garbage."""


class StorageError(AniSyncError):
    """The mapping store failed to read or write."""
