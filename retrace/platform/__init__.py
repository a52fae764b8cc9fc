"""
Platform primitives: session state, services and boundary errors.
"""

from retrace.platform.errors import MissingContext, RetraceError
from retrace.platform.state import StoreSnapshot, TraceStore
from retrace.platform.services import GraphService, InferenceResult, InferenceService

__all__ = [
    "MissingContext",
    "RetraceError",
    "StoreSnapshot",
    "TraceStore",
    "GraphService",
    "InferenceResult",
    "InferenceService",
]
