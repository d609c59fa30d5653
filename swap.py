# swap.py

import logging
from collections import deque
from typing import Callable, List, Optional

from errors import SimulationError, SwapExhausted
from memory import DiskBlock, Page

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_MS = 1000


class SlidingWindowCounter:
    """Counts timestamped events that happened within the last ``window_ms``."""

    def __init__(self, clock: Callable[[], float], window_ms: float = DEFAULT_WINDOW_MS):
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")
        self.clock = clock
        self.window_ms = window_ms
        self.events = deque()

    def record(self, timestamp: Optional[float] = None):
        now = self.clock() if timestamp is None else timestamp
        self.events.append(now)
        self._prune(now)

    def count(self) -> int:
        self._prune(self.clock())
        return len(self.events)

    def rate(self) -> float:
        """Events per second over the window."""
        return self.count() / (self.window_ms / 1000.0)

    def clear(self):
        self.events.clear()

    def _prune(self, now):
        while self.events and now - self.events[0] >= self.window_ms:
            self.events.popleft()


class SwapSpace:
    """
    Fixed pool of disk blocks backing evicted pages.

    Every allocate (swap out), free (swap in) and initial placement is an I/O
    operation and is timestamped into a sliding window; get_io_rate() reports ops/second.
    """

    def __init__(self, block_count: int, clock: Callable[[], float], window_ms: float = DEFAULT_WINDOW_MS):
        if block_count <= 0:
            raise ValueError("block_count must be positive")
        self.block_count = block_count
        self.io = SlidingWindowCounter(clock, window_ms)
        self.reset()

    def reset(self):
        self.blocks: List[DiskBlock] = [DiskBlock(i) for i in range(self.block_count)]
        self.free_blocks = deque(self.blocks)
        self.swap_in_count = 0
        self.swap_out_count = 0
        self.io.clear()

    def resize(self, block_count: int):
        if block_count <= 0:
            raise ValueError("block_count must be positive")
        self.block_count = block_count
        self.reset()

    # -----------------------------
    # Allocation
    # -----------------------------
    def has_free_block(self) -> bool:
        return bool(self.free_blocks)

    def allocate_block(self, page: Page) -> DiskBlock:
        if not self.free_blocks:
            logger.warning("Swap space full, cannot place page %s", page.id)
            raise SwapExhausted(page.id, self.block_count)
        block = self.free_blocks.popleft()
        block.allocate(page.id)
        page.move_to_disk(block.id)
        self.swap_out_count += 1
        self.io.record()
        return block

    def free_block(self, block_id: int) -> DiskBlock:
        if not 0 <= block_id < self.block_count:
            raise SimulationError(f"No disk block {block_id}")
        block = self.blocks[block_id]
        if block.is_free:
            raise SimulationError(f"Disk block {block_id} is already free")
        block.free()
        self.free_blocks.append(block)
        self.swap_in_count += 1
        self.io.record()
        return block

    def place(self, page: Page) -> Optional[DiskBlock]:
        """
        Put a page straight on disk at registration time.

        The write is disk I/O and enters the rate window, but it is not an
        eviction, so swap_out_count is left alone.
        """
        if not self.free_blocks:
            return None
        block = self.free_blocks.popleft()
        block.allocate(page.id)
        page.move_to_disk(block.id)
        self.io.record()
        return block

    # -----------------------------
    # Metrics
    # -----------------------------
    def get_io_rate(self) -> float:
        return self.io.rate()

    @property
    def used_count(self) -> int:
        return self.block_count - len(self.free_blocks)

    @property
    def free_count(self) -> int:
        return len(self.free_blocks)

    @property
    def utilization(self) -> float:
        return self.used_count / self.block_count * 100

    def get_block_by_page(self, page_id: int) -> Optional[DiskBlock]:
        return next((b for b in self.blocks if b.page_id == page_id), None)

    def stats(self):
        return {
            "total_blocks": self.block_count,
            "used_blocks": self.used_count,
            "free_blocks": self.free_count,
            "utilization": self.utilization,
            "swap_in_count": self.swap_in_count,
            "swap_out_count": self.swap_out_count,
            "io_rate": self.get_io_rate(),
        }
