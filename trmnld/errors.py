"""Exception taxonomy shared by the device handlers and the HTTP layer."""

from __future__ import annotations


class TrmnldError(RuntimeError):
    """Base class for failures the device handlers map to structured results."""

    status: int = 500


class MissingIdentifierError(TrmnldError):
    """Raised when a request carries no device identifier."""

    status = 404

    def __init__(self, message: str = 'identifier required') -> None:
        super().__init__(message)


class UnauthorizedCredentialError(TrmnldError):
    """Raised when the supplied access token is absent or does not match."""

    status = 401


class DeviceNotAllowedError(TrmnldError):
    """Raised when an allow-list is configured and the device is not on it."""

    status = 403


class ProvisioningDisabledError(TrmnldError):
    status = 500


class EmptyCatalogError(TrmnldError):
    """Raised when the image catalog has no entries to rotate through."""

    status = 404


class CatalogLoadError(TrmnldError):
    """Raised when the image root cannot be read. Fatal at startup."""


class MalformedLogPayloadError(TrmnldError):
    status = 400
