"""Exception classes for idagio-dl.

Exception hierarchy:
    IdagioError (base)
        ConfigError - invalid configuration or requested quality tier
        TransportError - network/HTTP failure
            NotFoundError - 404 from the API
            UnauthorizedError - 401/403 from the API
        MalformedResponseError - payload shape mismatch
        UnknownFormatError - stream URL matches no known quality profile
        MissingLengthError - response has no Content-Length header
        CipherParamError - malformed ``x-x`` decryption header
        PlanRestrictionError - subscription does not allow the content
        UnsupportedSourceError - video hosted by an unexpected provider
        ManifestNotFoundError - player config missing from the embed page
        NoSuitableAudioError - no AAC rendition in the manifest
        MuxFailedError - ffmpeg exited non-zero
"""

from typing import Optional


class IdagioError(Exception):
    """Base exception for all idagio-dl errors.

    Attributes:
        message: Human-readable error description
        details: Extra context such as the offending URL or HTTP status
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ConfigError(IdagioError):
    """Raised for an unusable configuration, before any network activity."""


class TransportError(IdagioError):
    """Raised when an HTTP request fails or returns a non-2xx status."""


class NotFoundError(TransportError):
    """Raised when the API answers 404."""


class UnauthorizedError(TransportError):
    """Raised when the API answers 401 or 403."""


class MalformedResponseError(IdagioError):
    """Raised when a response body does not have the expected shape."""


class UnknownFormatError(IdagioError):
    """Raised when a stream URL matches no quality profile."""

    def __init__(self, url: str):
        super().__init__(f"the api returned an unknown format: {url}", {"url": url})
        self.url = url


class MissingLengthError(IdagioError):
    """Raised when a download response has no Content-Length header."""


class CipherParamError(IdagioError):
    """Raised when the ``x-x`` header is present but cannot be parsed."""


class PlanRestrictionError(IdagioError):
    """Raised when the subscription plan does not cover the requested content."""


class UnsupportedSourceError(IdagioError):
    """Raised when a concert is hosted by a provider other than Vimeo."""


class ManifestNotFoundError(IdagioError):
    """Raised when the player config script is missing from the embed page."""


class NoSuitableAudioError(IdagioError):
    """Raised when a rendition set has no AAC audio rendition."""


class MuxFailedError(IdagioError):
    """Raised when the external muxer exits with a non-zero status."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message, {"stderr": stderr})
        self.stderr = stderr
