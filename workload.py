# workload.py

import math
import random
from collections import deque
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Sequence

from memory import Page, Process

MIN_INTENSITY = 0.1
MAX_INTENSITY = 10.0


@dataclass
class Access:
    """One simulated memory reference."""
    process: Process
    page: Page
    write: bool = False


class WorkloadGenerator:
    """
    Produces (process, page) accesses for the engine.

    Processes are chosen with probability proportional to their page count;
    the chosen process then picks a page through its locality model. Page ids
    placed on the scripted queue are replayed first, in order.
    """

    def __init__(self, pages: Mapping[int, Page], rng: Optional[random.Random] = None):
        self.pages = pages
        self.rng = rng or random.Random()
        self.processes: List[Process] = []
        self.access_queue = deque()
        self.intensity = 1.0

    def set_processes(self, processes: Sequence[Process]):
        self.processes = list(processes)

    def set_intensity(self, intensity: float) -> float:
        self.intensity = max(MIN_INTENSITY, min(MAX_INTENSITY, float(intensity)))
        return self.intensity

    def enqueue(self, page_ids: Iterable[int]):
        for page_id in page_ids:
            if page_id not in self.pages:
                raise KeyError(f"Unknown page {page_id}")
            self.access_queue.append(page_id)

    # -----------------------------
    # Generation
    # -----------------------------
    def generate_access(self) -> Optional[Access]:
        if self.access_queue:
            page = self.pages[self.access_queue.popleft()]
            process = next(p for p in self.processes if p.id == page.process_id)
            return Access(process, page)

        candidates = [p for p in self.processes if p.page_count > 0]
        if not candidates:
            return None
        process = self.rng.choices(candidates, weights=[p.page_count for p in candidates])[0]
        return Access(process, self.pages[process.pick_page(self.pages, self.rng)])

    def generate_batch(self, count: int = 1) -> List[Access]:
        effective = math.ceil(count * self.intensity)
        accesses = []
        for _ in range(effective):
            access = self.generate_access()
            if access is not None:
                accesses.append(access)
        return accesses

    def generate_process_access(self, process_id: int) -> Optional[Access]:
        process = next((p for p in self.processes if p.id == process_id), None)
        if process is None or process.page_count == 0:
            return None
        return Access(process, self.pages[process.pick_page(self.pages, self.rng)])

    def generate_burst(self, burst_size: int = 5) -> List[Access]:
        """A sudden spike of load."""
        return self.generate_batch(burst_size)

    def reset(self):
        self.access_queue.clear()
        self.processes = []
