"""Error taxonomy for fetching and caching."""

from enum import Enum


class FetchErrorKind(Enum):
    """Why a remote fetch failed."""

    NETWORK = "network"
    BAD_STATUS = "bad_status"
    DECODE = "decode"


class StoreErrorKind(Enum):
    """Why a store write failed."""

    WRITE = "write"
    CONSTRAINT = "constraint"


class FriendfaceError(Exception):
    """Base class for all friendface errors."""


class FetchError(FriendfaceError):
    """The remote feed could not be retrieved or decoded."""

    def __init__(
        self,
        message: str,
        kind: FetchErrorKind,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class StoreError(FriendfaceError):
    """The local cache could not be written."""

    def __init__(self, message: str, kind: StoreErrorKind = StoreErrorKind.WRITE) -> None:
        super().__init__(message)
        self.kind = kind
