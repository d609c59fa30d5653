# events.py
"""
Typed event channel between the simulation engine and its collaborators.

The engine owns one EventBus; dashboards, loggers and tests subscribe to
the events they care about. Delivery is fire-and-forget: a subscriber that
raises is logged and counted, and never interrupts the simulation.
"""

import logging
from collections import defaultdict, deque
from datetime import datetime
from enum import Enum
from typing import Callable, Deque, Dict, List, Tuple

logger = logging.getLogger(__name__)


class EngineEvent(Enum):
    PAGE_ALLOCATED = "page_allocated"        # (page, frame)
    PAGE_EVICTED = "page_evicted"            # (page, frame)
    PAGE_SWAPPED_IN = "page_swapped_in"      # (page,)
    PAGE_SWAPPED_OUT = "page_swapped_out"    # (page, block)
    PAGE_ACCESSED = "page_accessed"          # (page, "hit" | "fault")
    PAGE_FAULT = "page_fault"                # (page,)
    THRASHING_CHANGED = "thrashing_changed"  # (is_thrashing,)
    STATS_UPDATED = "stats_updated"          # (stats,)
    PROCESS_ADDED = "process_added"          # (process,)
    SIMULATION_STEP = "simulation_step"      # (stats,)


class EventBus:
    def __init__(self):
        self.subscribers: Dict[EngineEvent, List[Callable]] = defaultdict(list)
        self.handler_errors = 0

    def subscribe(self, event, callback: Callable) -> Callable:
        """Register ``callback`` for ``event``; returns the callback."""
        self.subscribers[EngineEvent(event)].append(callback)
        return callback

    def unsubscribe(self, event, callback: Callable):
        handlers = self.subscribers.get(EngineEvent(event), [])
        if callback in handlers:
            handlers.remove(callback)

    def emit(self, event: EngineEvent, *args):
        for callback in list(self.subscribers.get(event, ())):
            try:
                callback(*args)
            except Exception:
                self.handler_errors += 1
                logger.exception("Subscriber %r failed on %s", callback, event.value)

    def clear(self):
        self.subscribers.clear()


# =============================================================================
# EVENT LOG - timeline collaborator
# =============================================================================

class EventLog:
    """
    Human readable timeline of engine events, newest last.

    Attach it to an engine's bus; entries are (timestamp, level, message)
    tuples capped at ``max_entries``.
    """

    def __init__(self, max_entries: int = 100, log_hits: bool = False):
        self.entries: Deque[Tuple[datetime, str, str]] = deque(maxlen=max_entries)
        self.log_hits = log_hits
        self.policy_name = ""

    def attach(self, bus: EventBus):
        bus.subscribe(EngineEvent.PAGE_FAULT, self._on_fault)
        bus.subscribe(EngineEvent.PAGE_ACCESSED, self._on_access)
        bus.subscribe(EngineEvent.PAGE_EVICTED, self._on_evict)
        bus.subscribe(EngineEvent.PAGE_SWAPPED_IN, self._on_swap_in)
        bus.subscribe(EngineEvent.THRASHING_CHANGED, self._on_thrashing)
        bus.subscribe(EngineEvent.PROCESS_ADDED, self._on_process)
        bus.subscribe(EngineEvent.STATS_UPDATED, self._on_stats)
        return self

    def log(self, message: str, level: str = "info"):
        self.entries.append((datetime.now(), level, message))

    def messages(self) -> List[str]:
        return [message for _, _, message in self.entries]

    def clear(self):
        self.entries.clear()

    def _on_fault(self, page):
        self.log(f"Page Fault: {page.label} ({page.process_name})", "warning")

    def _on_access(self, page, result):
        if self.log_hits and result == "hit":
            self.log(f"Page Hit: {page.label}", "success")

    def _on_evict(self, page, frame):
        policy = f"Policy: {self.policy_name}, " if self.policy_name else ""
        self.log(f"Swap Out: {page.label} from Frame {frame.id} ({policy}-> Disk)")

    def _on_swap_in(self, page):
        self.log(f"Swap In: {page.label} (<- Disk to RAM)")

    def _on_thrashing(self, is_thrashing):
        if is_thrashing:
            self.log("THRASHING DETECTED: system spending more time swapping than executing", "danger")
        else:
            self.log("Thrashing subsided", "success")

    def _on_process(self, process):
        self.log(f"Process Added: {process.name} ({process.page_count} pages, locality: {process.locality})")

    def _on_stats(self, stats):
        self.policy_name = stats.current_policy
