# policies.py
"""
Page replacement policies.

A policy only ever sees pages through four hooks, called by the engine as
residency actually changes:

    on_load    page entered RAM            (exactly once per load)
    on_access  page hit while resident
    on_evict   page left RAM               (exactly once per eviction)
    reset      drop all tracking

Hooks called out of order raise PolicyStateError instead of silently
corrupting the tracking structures.
"""

from collections import OrderedDict
from typing import Dict, List, Optional, Sequence, Type

from errors import InvalidPolicyName, PolicyStateError
from memory import Page

DEFAULT_POLICY = "LRU"


class ReplacementPolicy:
    """Common interface for replacement policies."""

    name = "BASE"
    description = "Base policy interface"

    def select_victim(self, resident_pages: Sequence[Page]) -> Optional[Page]:
        raise NotImplementedError

    def on_load(self, page: Page, timestamp: float):
        raise NotImplementedError

    def on_access(self, page: Page, timestamp: float, write: bool = False):
        page.access(timestamp, write=write)

    def on_evict(self, page: Page):
        raise NotImplementedError

    def reset(self):
        raise NotImplementedError

    def tracked_ids(self) -> List[int]:
        """Page ids the policy currently tracks, in policy order."""
        raise NotImplementedError

    def __len__(self):
        return len(self.tracked_ids())


# =============================================================================
# FIFO
# =============================================================================

class FIFOPolicy(ReplacementPolicy):
    """
    First In First Out: evict the page that has been in RAM the longest.

    The victim is the resident page with the smallest load_time, ties broken
    by ascending page id. Belady's anomaly is expected behaviour here.
    """

    name = "FIFO"
    description = "First In First Out - Evicts the oldest page in memory"

    def __init__(self):
        # page id -> None, in arrival order
        self.queue: "OrderedDict[int, None]" = OrderedDict()

    def select_victim(self, resident_pages):
        if not resident_pages:
            return None
        return min(resident_pages, key=lambda p: (p.load_time, p.id))

    def on_load(self, page, timestamp):
        if page.id in self.queue:
            raise PolicyStateError(f"FIFO already tracks page {page.id}")
        self.queue[page.id] = None

    def on_access(self, page, timestamp, write=False):
        if page.id not in self.queue:
            raise PolicyStateError(f"FIFO never loaded page {page.id}")
        super().on_access(page, timestamp, write=write)

    def on_evict(self, page):
        if page.id not in self.queue:
            raise PolicyStateError(f"FIFO cannot evict untracked page {page.id}")
        del self.queue[page.id]

    def reset(self):
        self.queue.clear()

    def tracked_ids(self):
        return list(self.queue)


# =============================================================================
# LRU
# =============================================================================

class _LRUNode:
    __slots__ = ("page", "prev", "next")

    def __init__(self, page: Page):
        self.page = page
        self.prev: Optional["_LRUNode"] = None
        self.next: Optional["_LRUNode"] = None


class LRUPolicy(ReplacementPolicy):
    """
    Least Recently Used: evict the page not accessed for the longest time.

    Uses an intrusive doubly linked list (head = most recent, tail = least
    recent) and an id -> node index, so load, access and evict are all O(1).
    The list holds exactly the resident pages, in recency order.
    """

    name = "LRU"
    description = "Least Recently Used - Evicts the page not accessed for longest time"

    def __init__(self):
        self.head: Optional[_LRUNode] = None
        self.tail: Optional[_LRUNode] = None
        self.nodes: Dict[int, _LRUNode] = {}

    def select_victim(self, resident_pages):
        if self.tail is not None:
            return self.tail.page
        if not resident_pages:
            return None
        raise PolicyStateError(f"LRU tracks no pages but {len(resident_pages)} are resident")

    def on_load(self, page, timestamp):
        if page.id in self.nodes:
            raise PolicyStateError(f"LRU already tracks page {page.id}")
        node = _LRUNode(page)
        self.nodes[page.id] = node
        self._push_front(node)

    def on_access(self, page, timestamp, write=False):
        node = self.nodes.get(page.id)
        if node is None:
            raise PolicyStateError(f"LRU never loaded page {page.id}")
        super().on_access(page, timestamp, write=write)
        if node is not self.head:
            self._unlink(node)
            self._push_front(node)

    def on_evict(self, page):
        node = self.nodes.pop(page.id, None)
        if node is None:
            raise PolicyStateError(f"LRU cannot evict untracked page {page.id}")
        self._unlink(node)

    def reset(self):
        self.head = None
        self.tail = None
        self.nodes.clear()

    def tracked_ids(self):
        order = []
        node = self.head
        while node is not None:
            order.append(node.page.id)
            node = node.next
        return order

    def __len__(self):
        return len(self.nodes)

    # -----------------------------
    # Linked list helpers
    # -----------------------------
    def _push_front(self, node: _LRUNode):
        node.prev = None
        node.next = self.head
        if self.head is not None:
            self.head.prev = node
        self.head = node
        if self.tail is None:
            self.tail = node

    def _unlink(self, node: _LRUNode):
        if node.prev is not None:
            node.prev.next = node.next
        else:
            self.head = node.next
        if node.next is not None:
            node.next.prev = node.prev
        else:
            self.tail = node.prev
        node.prev = None
        node.next = None


# =============================================================================
# REGISTRY
# =============================================================================

POLICIES: Dict[str, Type[ReplacementPolicy]] = {
    FIFOPolicy.name: FIFOPolicy,
    LRUPolicy.name: LRUPolicy,
}


def normalize_policy_name(name: Optional[str]) -> str:
    """
    Map a user supplied policy identifier onto a registered name.

    None selects the default (LRU). Anything else must match a registered
    policy, case-insensitively.

    Raises:
        InvalidPolicyName: If the identifier is not registered
    """
    if name is None:
        return DEFAULT_POLICY
    key = str(name).strip().upper()
    if key not in POLICIES:
        raise InvalidPolicyName(name, POLICIES)
    return key


def create_policy(name: Optional[str] = None) -> ReplacementPolicy:
    return POLICIES[normalize_policy_name(name)]()
