# memory.py
"""
Passive records for the memory simulation.

Pages, frames and disk blocks only describe state. Keeping a page and the
frame or block that holds it consistent is the engine's job; none of these
classes reach into each other.
"""

import math
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional

from utils import process_color


class Location(Enum):
    """Where a page currently lives."""
    UNMAPPED = "none"
    RESIDENT = "ram"
    SWAPPED = "disk"


# =============================================================================
# PAGE
# =============================================================================

@dataclass
class Page:
    """
    A fixed-size unit of virtual memory owned by exactly one process.

    Attributes:
        id (int): Globally unique page id (index into the engine's page arena)
        process_id (int): Owning process
        process_name (str): Owning process name, for display
        virtual_address (int): Symbolic virtual address in bytes
        location (Location): UNMAPPED, RESIDENT or SWAPPED
        frame_id (Optional[int]): Frame holding the page while RESIDENT
        block_id (Optional[int]): Disk block holding the page while SWAPPED
        last_access_time (float): Simulation time of the latest access (LRU)
        load_time (float): Simulation time the page last entered RAM (FIFO)
        access_count (int): Number of hits recorded by the policy
        reference_bit (bool): Set on access, cleared on swap out
        dirty_bit (bool): Set by write accesses, cleared on swap out
    """
    id: int
    process_id: int
    process_name: str = ""
    virtual_address: int = 0
    location: Location = Location.UNMAPPED
    frame_id: Optional[int] = None
    block_id: Optional[int] = None
    last_access_time: float = 0.0
    load_time: float = 0.0
    access_count: int = 0
    reference_bit: bool = False
    dirty_bit: bool = False

    @property
    def label(self) -> str:
        return f"P{self.id}"

    @property
    def is_resident(self) -> bool:
        return self.location is Location.RESIDENT

    @property
    def is_swapped(self) -> bool:
        return self.location is Location.SWAPPED

    def access(self, timestamp: float, write: bool = False):
        self.last_access_time = timestamp
        self.access_count += 1
        self.reference_bit = True
        if write:
            self.dirty_bit = True

    def move_to_ram(self, frame_id: int, timestamp: float):
        self.location = Location.RESIDENT
        self.frame_id = frame_id
        self.block_id = None
        self.load_time = timestamp
        self.last_access_time = timestamp

    def move_to_disk(self, block_id: int):
        self.location = Location.SWAPPED
        self.frame_id = None
        self.block_id = block_id
        self.reference_bit = False
        self.dirty_bit = False

    def unmap(self):
        self.location = Location.UNMAPPED
        self.frame_id = None
        self.block_id = None

    def info(self) -> Dict[str, object]:
        """Summary used by tooltips and tables."""
        return {
            "id": self.id,
            "process": self.process_name,
            "location": self.location.value,
            "frame": self.frame_id,
            "disk_block": self.block_id,
            "accesses": self.access_count,
        }


# =============================================================================
# FRAME / DISK BLOCK
# =============================================================================

@dataclass
class Frame:
    """A physical RAM slot holding at most one page (by id)."""
    id: int
    page_id: Optional[int] = None

    @property
    def is_free(self) -> bool:
        return self.page_id is None

    def allocate(self, page_id: int):
        self.page_id = page_id

    def free(self):
        self.page_id = None


@dataclass
class DiskBlock:
    """A swap slot on disk holding at most one page (by id)."""
    id: int
    page_id: Optional[int] = None

    @property
    def is_free(self) -> bool:
        return self.page_id is None

    def allocate(self, page_id: int):
        self.page_id = page_id

    def free(self):
        self.page_id = None


# =============================================================================
# PROCESS
# =============================================================================

@dataclass
class Process:
    """
    A simulated process owning an ordered set of pages.

    The locality model lives here: with probability ``locality`` an access
    targets the working set (the ``working_set_size`` most recently accessed
    pages), otherwise any owned page.

    Attributes:
        id (int): Process id
        name (str): Display name
        page_ids (List[int]): Owned page ids, in creation order
        locality (float): Probability of drawing from the working set
        working_set_size (int): K, size of the working set
        total_accesses (int): Accesses issued against this process
        page_faults (int): Faults taken by this process
        color (str): Display colour
    """
    id: int
    name: str
    page_ids: List[int] = field(default_factory=list)
    locality: float = 0.7
    working_set_size: Optional[int] = None
    total_accesses: int = 0
    page_faults: int = 0
    color: str = ""

    def __post_init__(self):
        if not 0.0 <= self.locality <= 1.0:
            raise ValueError(f"locality must be within [0, 1], got {self.locality}")
        if self.working_set_size is None:
            self.working_set_size = max(1, math.ceil(len(self.page_ids) * 0.4))
        if self.working_set_size < 1:
            raise ValueError("working_set_size must be at least 1")
        if not self.color:
            self.color = process_color(self.id)

    @property
    def page_count(self) -> int:
        return len(self.page_ids)

    def working_set(self, pages: Mapping[int, Page]) -> List[int]:
        """Ids of the K most recently accessed owned pages."""
        ranked = sorted(self.page_ids, key=lambda pid: pages[pid].last_access_time, reverse=True)
        return ranked[:self.working_set_size]

    def pick_page(self, pages: Mapping[int, Page], rng: random.Random) -> Optional[int]:
        """Choose the id of the next page to touch according to locality."""
        if not self.page_ids:
            return None
        if rng.random() < self.locality:
            return rng.choice(self.working_set(pages))
        return rng.choice(self.page_ids)

    def record_access(self):
        self.total_accesses += 1

    def record_page_fault(self):
        self.page_faults += 1

    def stats(self, pages: Mapping[int, Page]) -> Dict[str, object]:
        owned = [pages[pid] for pid in self.page_ids]
        fault_rate = (self.page_faults / self.total_accesses * 100) if self.total_accesses > 0 else 0.0
        return {
            "name": self.name,
            "total_pages": self.page_count,
            "pages_in_ram": sum(1 for p in owned if p.is_resident),
            "pages_on_disk": sum(1 for p in owned if p.is_swapped),
            "page_faults": self.page_faults,
            "total_accesses": self.total_accesses,
            "fault_rate": round(fault_rate, 1),
        }
