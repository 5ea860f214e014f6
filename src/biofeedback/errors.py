"""Exceptions raised by the biofeedback core.

Insufficient data and empty buffers are not errors here: they are reported
as ``None`` / empty results by the functions that encounter them.
"""

from __future__ import annotations


class BiofeedbackError(Exception):
    """Base class for biofeedback errors."""


class BackendUnavailable(BiofeedbackError):
    """The accelerated compute backend could not be loaded or is not initialized."""


class FrameReleasedError(BiofeedbackError):
    """A frame's data was accessed after its resource was released."""
