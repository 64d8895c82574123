"""
Error taxonomy for the route assembly pipeline.

Every fatal condition is raised as one of these types and travels up to the
caller of the assembler untouched. Node-resolution problems are not in this
list: they degrade to a coordinate-only point instead of failing.
"""

from typing import Optional


class RoutePipelineError(Exception):
    """Base class for failures that abort an itinerary build."""


class MalformedGeometry(RoutePipelineError):
    """The encoded path cannot be decoded (corrupt input, retrying won't help)."""


class EmptyRoute(RoutePipelineError):
    """The engine returned no usable legs or steps."""


class UpstreamRouteFailure(RoutePipelineError):
    """The routing engine answered with a non-success status."""

    def __init__(self, status: str, message: Optional[str] = None):
        self.status = status
        self.message = message
        detail = f"Routing engine returned '{status}'"
        if message:
            detail = f"{detail}: {message}"
        super().__init__(detail)


class UpstreamTimeout(RoutePipelineError):
    """The routing engine did not answer before the deadline."""


class StorageError(Exception):
    """Generic failure raised by a persistence collaborator."""
