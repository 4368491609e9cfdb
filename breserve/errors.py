"""Exception hierarchy shared by the cache, the offline store and the API clients."""


class BReserveError(Exception):
    """Base class for every error raised by this package."""


class StorageQuotaExceeded(BReserveError):
    """A key-value write would exceed the backend's storage quota."""


class OfflineStoreError(BReserveError):
    """The local booking database is unusable; offline durability is not guaranteed."""


class CurrencyConversionError(BReserveError):
    """The upstream currency-conversion API failed or returned an unusable payload."""


class RemoteApiError(BReserveError):
    """The remote bookings API rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
