"""In-process messaging."""

from mapengine.comms.event_bus import EventBus

__all__ = ["EventBus"]
