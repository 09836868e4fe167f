"""Session lifecycle: state machine, single-flight renewal, proactive timer, httpx pipeline."""

from .manager import SessionCoordinator, SessionEvent, SessionListener, SessionState
from .pipeline import RequestPipeline
from .renewer import SingleFlightRenewer
from .scheduler import ProactiveScheduler

__all__ = [
    "ProactiveScheduler",
    "RequestPipeline",
    "SessionCoordinator",
    "SessionEvent",
    "SessionListener",
    "SessionState",
    "SingleFlightRenewer",
]
