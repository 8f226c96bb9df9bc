"""Exception hierarchy for the capture pipeline.

Stage-level errors abort the whole capture.  :class:`FetchError` is the one
exception that never leaves the style inliner: the fetcher converts it into a
:class:`~chatsnap.services.fetcher.FetchFailed` result.
"""


class CaptureError(Exception):
    """Base class for every failure surfaced by :func:`capture`."""


class InputError(CaptureError):
    """The source is empty or is neither a URL nor markup."""


class RenderError(CaptureError):
    """The renderer could not produce markup for a URL."""


class FetchError(CaptureError):
    """A stylesheet or font could not be downloaded."""


class NotFoundError(CaptureError):
    """No conversation nodes matched the primary or fallback selector."""


class SerializationError(CaptureError):
    """The assembled document could not be serialized."""


class CaptureCancelled(CaptureError):
    """The caller cancelled the capture before a record was built."""
