"""Exception taxonomy shared by providers, the library and the API layer."""

from __future__ import annotations


class AndrateError(Exception):
    """Base class for all domain errors raised by the service."""


class ValidationError(AndrateError, ValueError):
    """Raised when a rating, status or required field is invalid.

    Always raised before any provider or store I/O takes place.
    """


class ProviderError(AndrateError):
    """Base class for catalog provider failures."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message


class ProviderUnavailable(ProviderError):
    """The provider could not be reached or returned an unusable response."""


class ProviderTimeout(ProviderError):
    """The provider did not answer within its configured timeout."""


class StoreUnavailable(AndrateError):
    """The library store rejected or failed a read or write."""


class Unauthenticated(AndrateError):
    """A library operation was attempted without a resolved user id."""


class NotFound(AndrateError, LookupError):
    """A detail lookup referenced an id unknown to the provider."""
