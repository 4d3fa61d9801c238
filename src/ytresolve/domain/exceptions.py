"""Stream resolution exceptions."""

from __future__ import annotations


class ResolutionError(Exception):
    """Base class for all stream-resolution errors."""


class ResolutionBusyError(ResolutionError):
    """Raised when a resolution is started while another one is in flight."""


class ExhaustedStrategiesError(ResolutionError):
    """Raised when every request strategy failed to yield usable video info."""


class TransportError(ResolutionError):
    """Raised by the HTTP collaborator; the message is the transport's own."""


class UnresolvableFormatError(ResolutionError):
    """Raised when neither the requested nor any lower definition is available."""


class UnknownDefinitionError(ResolutionError, ValueError):
    """Raised when a definition label is not part of the definition table."""
