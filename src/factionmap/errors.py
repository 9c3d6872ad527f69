"""Exception hierarchy for the labeling engine."""

from __future__ import annotations


class FactionMapError(Exception):
    """Base class for engine errors."""


class GeometryError(FactionMapError, ValueError):
    """Raised when territory coordinate data is malformed."""


class GeometryMergeError(FactionMapError):
    """Raised when a cluster's polygons cannot be unioned into a usable shape."""


class LabelPlacementError(FactionMapError):
    """Raised when no interior point can be found for a merged geometry."""


class LabelComputationError(FactionMapError):
    """Raised when required inputs are missing entirely.

    ``reason`` is a stable machine-readable code for the calling layer.
    """

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason
