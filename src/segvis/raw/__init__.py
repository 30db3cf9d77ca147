from .channel import ChannelActor, FrameLoader
from .coordinator import RawDataCoordinator, RawSnapshot, RegionConflictError
from .display import ColorMode, DisplayMode, GrayscaleMode
from .regions import DisplayState, FrameState, RawContext

__all__ = [
    "ChannelActor",
    "ColorMode",
    "DisplayMode",
    "DisplayState",
    "FrameLoader",
    "FrameState",
    "GrayscaleMode",
    "RawContext",
    "RawDataCoordinator",
    "RawSnapshot",
    "RegionConflictError",
]
