"""
Exception types raised by the crop engine.

Geometry misuse (``InvalidGeometry``) is a programming error and is also a
``ValueError``.  The others describe recoverable, per-call failures: the
session that raised them stays usable.
"""


class CropError(Exception):
    """Base class for all crop tool errors."""


class InvalidGeometry(CropError, ValueError):
    """Geometry was requested with a zero or negative dimension or scale."""


class NotReady(CropError):
    """Export attempted before an image and a viewport exist."""


class SurfaceUnavailable(CropError):
    """A rendering or off-screen surface could not be allocated."""


class DecodeFailure(CropError):
    """The image source could not be opened or decoded."""


class EncodeFailure(CropError):
    """Encoding the cropped image produced no output."""
