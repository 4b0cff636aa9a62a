from .models import ProgressEvent, ProgressEventType
from .broadcaster import ProgressBroadcaster, NullProgressBroadcaster
from .memory_broadcaster import MemoryQueueProgressBroadcaster
from .dispatcher import SideEffectDispatcher

__all__ = [
    "ProgressEvent",
    "ProgressEventType",
    "ProgressBroadcaster",
    "NullProgressBroadcaster",
    "MemoryQueueProgressBroadcaster",
    "SideEffectDispatcher",
]
