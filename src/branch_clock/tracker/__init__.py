"""Session tracking: idle detection and periodic sampling."""

from .sampler import ContextResolver, SampleOutcome, Sampler
from .session import ActivityMonitor, SessionState

__all__ = [
    "ActivityMonitor",
    "ContextResolver",
    "SampleOutcome",
    "Sampler",
    "SessionState",
]
