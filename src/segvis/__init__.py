import logging

# Runtime
from .actor import Actor, ActorStatus, ask
from .bus import Buses, EventBus, Subscription
from .events import Event, EventType, event

# Coordinators
from .api import ApiCoordinator, ApiState
from .raw import ChannelActor, ColorMode, GrayscaleMode, RawDataCoordinator, RawSnapshot
from .selection import SelectionCoordinator, SelectionSnapshot

# Backend and session
from .client import ApiClient, DownloadedFile, filename_from_disposition
from .config import ProjectConfig
from .errors import ActorStoppedError, ApiError, RequestError, SegvisError, TransportError
from .project import Project

# Set up library logging with NullHandler (users opt-in to see logs)
logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Runtime
    "Actor",
    "ActorStatus",
    "ask",
    "Buses",
    "EventBus",
    "Subscription",
    "Event",
    "EventType",
    "event",
    # Coordinators
    "ApiCoordinator",
    "ApiState",
    "ChannelActor",
    "ColorMode",
    "GrayscaleMode",
    "RawDataCoordinator",
    "RawSnapshot",
    "SelectionCoordinator",
    "SelectionSnapshot",
    # Backend and session
    "ApiClient",
    "DownloadedFile",
    "filename_from_disposition",
    "ProjectConfig",
    "Project",
    # Errors
    "SegvisError",
    "ApiError",
    "RequestError",
    "TransportError",
    "ActorStoppedError",
]
