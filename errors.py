# errors.py


class SimulationError(Exception):
    """Base class for errors raised by the simulation core."""


class SwapExhausted(SimulationError, MemoryError):
    """No free disk block is left to hold an evicted page."""

    def __init__(self, page_id=None, total_blocks=0):
        self.page_id = page_id
        self.total_blocks = total_blocks
        if page_id is None:
            message = f"Swap space full ({total_blocks} blocks in use)"
        else:
            message = f"Swap space full: no block for page {page_id} ({total_blocks} blocks in use)"
        super().__init__(message)


class InvalidPolicyName(SimulationError, ValueError):
    """Raised for a replacement policy identifier that is not registered."""

    def __init__(self, name, known=()):
        self.name = name
        self.known = tuple(known)
        super().__init__(f"Unknown replacement policy {name!r} (expected one of {', '.join(self.known)})")


class PolicyStateError(SimulationError):
    """A policy hook was called out of order with the page's residency."""
