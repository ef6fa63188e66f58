"""Error taxonomy for the event detection pipeline.

Each error is handled at the smallest unit it concerns (row, point, track,
device or event) and logged; only exceptions outside this hierarchy reach the
caller.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for recoverable pipeline errors."""


class ParseError(PipelineError):
    """A raw row could not be turned into a fix."""


class MalformedRowError(ParseError):
    """A raw row has an unparsable timestamp or coordinate."""


class ProjectionError(PipelineError):
    """A point falls outside any valid UTM zone."""


class InsufficientDataError(PipelineError):
    """A track is too short in time or points to be analysed."""


class InterpolationFailure(PipelineError):
    """The interpolation capability failed for a whole device."""


class ShapeUndefinedError(PipelineError):
    """An event has too few points to build a convex hull."""


class ClassificationError(PipelineError):
    """The state classifier failed or returned unusable labels for a device."""
