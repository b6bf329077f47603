"""Exceptions raised by the imaging core."""


class ImagingError(Exception):
    """Base class for recoverable imaging failures."""


class DecodeError(ImagingError):
    """Source bytes are empty, unrecognised, truncated or otherwise unreadable."""


class UnsupportedFormatError(ImagingError):
    """No encoder is available for the requested output format."""


class EncodeError(ImagingError):
    """The encoder failed while producing or writing the output."""
