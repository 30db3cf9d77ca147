"""Event model shared by every actor and bus."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict


class EventType(StrEnum):
    # api
    EDIT = "EDIT"
    BACKEND_UNDO = "BACKEND_UNDO"
    BACKEND_REDO = "BACKEND_REDO"
    UPLOAD = "UPLOAD"
    DOWNLOAD = "DOWNLOAD"
    EDITED = "EDITED"
    ERROR = "ERROR"

    # edit cursor
    FRAME = "FRAME"
    FEATURE = "FEATURE"
    CHANNEL = "CHANNEL"

    # raw data
    LOAD_FRAME = "LOAD_FRAME"
    LOAD_CHANNEL = "LOAD_CHANNEL"
    CHANNEL_LOADED = "CHANNEL_LOADED"
    FRAME_LOADED = "FRAME_LOADED"
    RAW_LOADED = "RAW_LOADED"
    LOAD = "LOAD"
    PRELOAD = "PRELOAD"
    TOGGLE_COLOR_MODE = "TOGGLE_COLOR_MODE"
    TOGGLE_INVERT = "TOGGLE_INVERT"
    ADD_LAYER = "ADD_LAYER"
    RESET = "RESET"
    COLOR = "COLOR"
    GRAYSCALE = "GRAYSCALE"

    # selection
    SHIFT_CLICK = "SHIFT_CLICK"
    HOVERING = "HOVERING"
    LABELS = "LABELS"
    SELECT_FOREGROUND = "SELECT_FOREGROUND"
    SELECT_BACKGROUND = "SELECT_BACKGROUND"
    SET_FOREGROUND = "SET_FOREGROUND"
    SWITCH = "SWITCH"
    NEW_FOREGROUND = "NEW_FOREGROUND"
    RESET_FOREGROUND = "RESET_FOREGROUND"
    RESET_BACKGROUND = "RESET_BACKGROUND"
    PREV_FOREGROUND = "PREV_FOREGROUND"
    NEXT_FOREGROUND = "NEXT_FOREGROUND"
    PREV_BACKGROUND = "PREV_BACKGROUND"
    NEXT_BACKGROUND = "NEXT_BACKGROUND"
    FOREGROUND = "FOREGROUND"
    BACKGROUND = "BACKGROUND"
    SELECTED = "SELECTED"

    # save / restore
    SAVE = "SAVE"
    RESTORE = "RESTORE"
    RESTORED = "RESTORED"

    # invoked task outcomes
    DONE = "done.invoke"
    FAILED = "error.invoke"


class Event(BaseModel):
    """An immutable event: a ``type`` plus arbitrary keyword payload.

    Payload fields are attributes: ``Event(type="FRAME", frame=3).frame == 3``.
    """

    model_config = ConfigDict(extra="allow", frozen=True, arbitrary_types_allowed=True)

    type: str

    @property
    def payload(self) -> dict[str, Any]:
        return dict(self.model_extra or {})

    def get(self, key: str, default: Any = None) -> Any:
        return (self.model_extra or {}).get(key, default)


def event(type_: str, **payload: Any) -> Event:
    return Event(type=type_, **payload)


def as_event(value: "Event | str") -> Event:
    """Accept a bare event name where an event is expected."""
    if isinstance(value, Event):
        return value
    return Event(type=value)
