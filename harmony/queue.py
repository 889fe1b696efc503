from collections import deque
import logging
from typing import Deque, List, Optional

from harmony.metrics import metric_inc
from harmony.tracks import TrackHandle

logger = logging.getLogger("Harmony.Queue")


class TrackQueue:
    """Ordered tracks of one voice call.

    Index 0 is the track playing right now, indexes from 1 up are what plays
    next. The queue only orders handles; the owning call starts the head and
    advances when it ends.
    """
    def __init__(self) -> None:
        self._dq: Deque[TrackHandle] = deque()

    def __len__(self) -> int:
        return len(self._dq)

    def is_empty(self) -> bool:
        return not self._dq

    def current(self) -> Optional[TrackHandle]:
        return self._dq[0] if self._dq else None

    def current_queue(self) -> List[TrackHandle]:
        """Copy of every track, the playing one first."""
        return list(self._dq)

    def upcoming(self, limit: Optional[int] = None) -> List[TrackHandle]:
        """Tracks after the current one; at most `limit` of them if given."""
        items = list(self._dq)[1:]
        if limit is None:
            return items
        if limit <= 0:
            return []
        return items[:limit]

    def add(self, handle: TrackHandle) -> int:
        """Append a track; returns its index."""
        self._dq.append(handle)
        metric_inc("queue_add")
        return len(self._dq) - 1

    def dequeue(self, index: int) -> Optional[TrackHandle]:
        """Remove and return the upcoming track at `index` (1 = next up).

        The playing track can't be dequeued; use skip for that.
        """
        if index < 1 or index >= len(self._dq):
            return None
        handle = self._dq[index]
        del self._dq[index]
        handle.release()
        metric_inc("queue_remove")
        return handle

    def pop_finished(self, handle: TrackHandle) -> bool:
        """Drop `handle` if it is the head. False when it was already removed."""
        if self._dq and self._dq[0] is handle:
            self._dq.popleft()
            return True
        return False

    def skip(self) -> Optional[TrackHandle]:
        """Stop the current track so the next one starts."""
        handle = self.current()
        if handle is not None:
            handle.stop()
        return handle

    def stop(self) -> int:
        """Clear the queue and stop the current track. Returns how many were dropped.

        A started track keeps its file until the voice client reports its end.
        """
        items = list(self._dq)
        self._dq.clear()
        for handle in items:
            was_started = handle.started
            handle.stop()
            if not was_started:
                handle.release()
        logger.debug("Queue stopped, dropped %s tracks", len(items))
        return len(items)
