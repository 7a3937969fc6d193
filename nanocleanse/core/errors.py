"""
Processing Errors
=================
Every failure of a single removal run surfaces as a ProcessingError.

The subclasses tell the caller which boundary failed:
- DecodeError: input bytes are not a readable image
- SurfaceError: the RGBA pixel surface could not be produced
- EncodeError: the result could not be written as PNG
- ReferenceCaptureError: a bundled overlay capture is missing or broken
"""


class ProcessingError(Exception):
    """Base class for a failed watermark removal."""


class DecodeError(ProcessingError):
    """The input could not be decoded into an image."""


class SurfaceError(ProcessingError):
    """A writable RGBA pixel surface could not be acquired."""


class EncodeError(ProcessingError):
    """The processed pixels could not be encoded."""


class ReferenceCaptureError(ProcessingError):
    """A reference overlay capture is missing, unreadable or mis-sized."""
