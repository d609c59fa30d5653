# engine.py
"""
Simulation engine - the core state machine of the virtual memory simulator.

The engine owns the frame pool, the swap space, the replacement policy and
the page arena, and is the only code that mutates them. Each access either
hits (the policy is told about the access) or faults:

    1. count the fault
    2. evict a victim to swap if RAM is full
    3. release the faulting page's disk block if it was swapped out
    4. load the page into the free frame
    5. re-evaluate thrashing

Collaborators (dashboards, CLI, tests) observe the engine through its
EventBus and the SimulationStats snapshot; the engine never waits on them.
"""

import logging
import random
from collections import deque
from dataclasses import asdict, dataclass, replace
from typing import Callable, Dict, List, Optional, Tuple, Union

from errors import SimulationError, SwapExhausted
from events import EngineEvent, EventBus
from memory import Frame, Location, Page, Process
from policies import ReplacementPolicy, create_policy
from scenarios import ProcessSpec, Scenario, SimulationConfig, get_scenario
from swap import SlidingWindowCounter, SwapSpace
from workload import WorkloadGenerator

logger = logging.getLogger(__name__)


@dataclass
class SimulationStats:
    """Snapshot of the engine's KPIs, handed to collaborators."""
    total_page_faults: int
    page_faults_per_second: float
    swap_in_count: int
    swap_out_count: int
    disk_io_rate: float
    ram_used: int
    ram_total: int
    ram_utilization: float
    swap_used: int
    swap_total: int
    swap_utilization: float
    memory_accesses: int
    hit_count: int
    hit_ratio: float
    is_thrashing: bool
    thrashing_level: float
    simulation_time: float
    current_policy: str
    failed_accesses: int = 0
    unmapped_pages: int = 0
    handler_errors: int = 0

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


class SimulationEngine:
    """
    Orchestrates processes, memory, swap and the replacement policy.

    Args:
        config (Optional[SimulationConfig]): Initial configuration
        clock (Optional[Callable[[], float]]): Millisecond clock used for the
            sliding I/O and fault windows. Defaults to the simulated clock, so
            rates are measured in simulated time and runs are reproducible.
    """

    def __init__(self, config: Optional[SimulationConfig] = None,
                 clock: Optional[Callable[[], float]] = None):
        self.config = config or SimulationConfig()
        self.events = EventBus()
        self.clock = clock

        self.pages: Dict[int, Page] = {}
        self.processes: List[Process] = []
        self.registered: List[Tuple[ProcessSpec, bool]] = []

        self.rng = random.Random(self.config.seed)
        self.workload = WorkloadGenerator(self.pages, self.rng)
        self.policy: ReplacementPolicy = create_policy(self.config.policy)

        self.simulation_time = 0
        self.reset()

    def now(self) -> float:
        return self.clock() if self.clock is not None else self.simulation_time

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def reset(self):
        """
        Full reset: drop every process and page, reinitialize the frame and
        swap pools from the current config, clear policy tracking and zero
        every counter.
        """
        self.frames: List[Frame] = [Frame(i) for i in range(self.config.ram_frames)]
        self.free_frames = deque(self.frames)
        self.swap = SwapSpace(self.config.swap_blocks, self.now, self.config.io_window_ms)
        self.fault_window = SlidingWindowCounter(self.now, self.config.io_window_ms)

        self.pages.clear()
        self.processes = []
        self.registered = []
        self.policy.reset()
        self.workload.reset()
        if self.config.seed is not None:
            self.rng.seed(self.config.seed)

        self.simulation_time = 0
        self.total_page_faults = 0
        self.memory_accesses = 0
        self.hit_count = 0
        self.failed_accesses = 0
        self.unmapped_pages = 0
        self.is_thrashing = False

    def update_config(self, **changes) -> SimulationConfig:
        """
        Apply configuration changes.

        Resizing RAM or swap, or switching policy, invalidates all tracked
        state: the engine resets and re-registers the processes it had.
        Other options (interval, threshold, seed, ...) apply in place.
        """
        new_config = self.config.with_changes(**changes)
        needs_reset = (
            new_config.ram_frames != self.config.ram_frames
            or new_config.swap_blocks != self.config.swap_blocks
            or new_config.policy != self.config.policy
            or new_config.io_window_ms != self.config.io_window_ms
        )
        reseed = new_config.seed is not None and new_config.seed != self.config.seed
        self.config = new_config
        if reseed and not needs_reset:
            self.rng.seed(new_config.seed)
        if needs_reset:
            registered = list(self.registered)
            self.policy = create_policy(new_config.policy)
            self.reset()
            for spec, preload in registered:
                self.add_process(spec.name, spec.pages, spec.locality,
                                 working_set_size=spec.working_set_size, preload=preload)
        logger.info("Configuration applied: %d frames, %d blocks, %s%s",
                    new_config.ram_frames, new_config.swap_blocks, new_config.policy,
                    " (reset)" if needs_reset else "")
        return self.config

    def set_policy(self, policy_name: str):
        self.update_config(policy=policy_name)

    def set_intensity(self, intensity: float) -> float:
        return self.workload.set_intensity(intensity)

    def load_scenario(self, scenario: Union[Scenario, str]):
        if isinstance(scenario, str):
            scenario = get_scenario(scenario)
        self.config = replace(scenario.config)
        self.policy = create_policy(self.config.policy)
        self.reset()
        for spec in scenario.processes:
            self.add_process(spec.name, spec.pages, spec.locality, working_set_size=spec.working_set_size)
        logger.info("Scenario loaded: %s", scenario.name)

    def on(self, event, callback: Callable) -> Callable:
        return self.events.subscribe(event, callback)

    # =========================================================================
    # PROCESSES
    # =========================================================================

    def add_process(self, name: str, page_count: int, locality: float = 0.7,
                    working_set_size: Optional[int] = None, preload: bool = True) -> Process:
        """
        Register a process and create its pages.

        With ``preload`` the pages are placed straight into free frames, and
        the overflow straight onto swap blocks. The overflow never passes
        through the policy; it becomes visible to it on its first fault.
        Without ``preload`` every page starts UNMAPPED (cold start).
        """
        spec = ProcessSpec(name, page_count, locality, working_set_size)
        start = len(self.pages)
        # Validated before any page enters the arena.
        process = Process(len(self.processes), name, list(range(start, start + page_count)),
                          locality=locality, working_set_size=working_set_size)

        page_size_bytes = self.config.page_size * 1024
        for page_id in process.page_ids:
            self.pages[page_id] = Page(page_id, process.id, name,
                                       virtual_address=page_id * page_size_bytes)
        self.processes.append(process)
        self.registered.append((spec, preload))
        self.workload.set_processes(self.processes)

        if preload:
            self._place_initial_pages(process)

        self.events.emit(EngineEvent.PROCESS_ADDED, process)
        return process

    def _place_initial_pages(self, process: Process):
        for page_id in process.page_ids:
            page = self.pages[page_id]
            if self.free_frames:
                self._allocate_to_frame(page)
                continue
            block = self.swap.place(page)
            if block is None:
                self.unmapped_pages += 1
                logger.warning("No frame or swap block for %s, left unmapped", page.label)
            else:
                self.events.emit(EngineEvent.PAGE_SWAPPED_OUT, page, block)

    # =========================================================================
    # PAGE ACCESS / FAULT HANDLING
    # =========================================================================

    def access_page(self, page: Union[Page, int], write: bool = False) -> bool:
        """
        Access a page, returning True on a hit and False on a (handled) fault.

        Raises:
            SwapExhausted: The fault needed an eviction and swap is full. The
                access does not complete and the victim stays resident.
        """
        if not isinstance(page, Page):
            page = self.pages[page]

        self.memory_accesses += 1
        self.processes[page.process_id].record_access()

        if page.is_resident:
            self.hit_count += 1
            self.policy.on_access(page, self.simulation_time, write=write)
            self.events.emit(EngineEvent.PAGE_ACCESSED, page, "hit")
            return True

        self._handle_page_fault(page, write)
        return False

    def _handle_page_fault(self, page: Page, write: bool):
        self.total_page_faults += 1
        self.fault_window.record()
        self.processes[page.process_id].record_page_fault()
        logger.debug("Page fault on %s (%s)", page.label, page.location.value)
        self.events.emit(EngineEvent.PAGE_FAULT, page)
        self.events.emit(EngineEvent.PAGE_ACCESSED, page, "fault")

        try:
            if not self.free_frames:
                self.evict_page()

            if page.is_swapped:
                self.swap.free_block(page.block_id)
                page.unmap()
                self.events.emit(EngineEvent.PAGE_SWAPPED_IN, page)

            self._allocate_to_frame(page)
            if write:
                page.dirty_bit = True
        except SimulationError:
            self.failed_accesses += 1
            raise

        self.check_thrashing()

    def evict_page(self) -> Page:
        """Move the policy's victim from RAM to swap and return it."""
        victim = self.policy.select_victim(self.resident_pages())
        if victim is None:
            raise SimulationError("No resident page to evict")
        if not victim.is_resident:
            raise SimulationError(f"Policy selected non-resident page {victim.id}")
        if not self.swap.has_free_block():
            logger.warning("Swap exhausted while evicting %s", victim.label)
            raise SwapExhausted(victim.id, self.swap.block_count)

        frame = self.frames[victim.frame_id]
        frame.free()
        self.free_frames.append(frame)
        self.policy.on_evict(victim)
        self.events.emit(EngineEvent.PAGE_EVICTED, victim, frame)

        block = self.swap.allocate_block(victim)
        logger.debug("Evicted %s from frame %d to block %d", victim.label, frame.id, block.id)
        self.events.emit(EngineEvent.PAGE_SWAPPED_OUT, victim, block)
        return victim

    def _allocate_to_frame(self, page: Page) -> Frame:
        frame = self.free_frames.popleft()
        frame.allocate(page.id)
        page.move_to_ram(frame.id, self.simulation_time)
        self.policy.on_load(page, self.simulation_time)
        self.events.emit(EngineEvent.PAGE_ALLOCATED, page, frame)
        return frame

    # =========================================================================
    # THRASHING / STEPPING
    # =========================================================================

    def check_thrashing(self) -> bool:
        """Re-evaluate thrashing; notifies only when the state flips."""
        io_rate = self.swap.get_io_rate()
        was_thrashing = self.is_thrashing
        self.is_thrashing = io_rate >= self.config.thrashing_threshold
        if self.is_thrashing != was_thrashing:
            logger.info("Thrashing %s (%.1f swap ops/s)",
                        "detected" if self.is_thrashing else "subsided", io_rate)
            self.events.emit(EngineEvent.THRASHING_CHANGED, self.is_thrashing)
        return self.is_thrashing

    def step(self) -> SimulationStats:
        """Run one tick: generate and resolve accesses, then advance the clock."""
        for access in self.workload.generate_batch(1):
            self.access_page(access.page, write=access.write)

        self.simulation_time += self.config.access_interval
        self.check_thrashing()

        stats = self.get_stats()
        self.events.emit(EngineEvent.SIMULATION_STEP, stats)
        self.events.emit(EngineEvent.STATS_UPDATED, stats)
        return stats

    def run(self, steps: int) -> SimulationStats:
        stats = self.get_stats()
        for _ in range(steps):
            stats = self.step()
        return stats

    def burst(self, burst_size: int = 5) -> SimulationStats:
        """Resolve a sudden spike of accesses without advancing the clock."""
        for access in self.workload.generate_burst(burst_size):
            self.access_page(access.page, write=access.write)
        self.check_thrashing()
        stats = self.get_stats()
        self.events.emit(EngineEvent.STATS_UPDATED, stats)
        return stats

    # =========================================================================
    # INSPECTION
    # =========================================================================

    def get_stats(self) -> SimulationStats:
        ram_used = len(self.frames) - len(self.free_frames)
        io_rate = self.swap.get_io_rate()
        return SimulationStats(
            total_page_faults=self.total_page_faults,
            page_faults_per_second=self.fault_window.rate(),
            swap_in_count=self.swap.swap_in_count,
            swap_out_count=self.swap.swap_out_count,
            disk_io_rate=io_rate,
            ram_used=ram_used,
            ram_total=len(self.frames),
            ram_utilization=ram_used / len(self.frames) * 100,
            swap_used=self.swap.used_count,
            swap_total=self.swap.block_count,
            swap_utilization=self.swap.utilization,
            memory_accesses=self.memory_accesses,
            hit_count=self.hit_count,
            hit_ratio=(self.hit_count / self.memory_accesses) if self.memory_accesses > 0 else 0.0,
            is_thrashing=self.is_thrashing,
            thrashing_level=min(100.0, io_rate / self.config.thrashing_threshold * 100),
            simulation_time=self.simulation_time,
            current_policy=self.policy.name,
            failed_accesses=self.failed_accesses,
            unmapped_pages=self.unmapped_pages,
            handler_errors=self.events.handler_errors,
        )

    def resident_pages(self) -> List[Page]:
        return [self.pages[f.page_id] for f in self.frames if f.page_id is not None]

    def get_frames(self) -> List[Frame]:
        return self.frames

    def get_all_pages(self) -> List[Page]:
        return list(self.pages.values())

    def get_page(self, page_id: int) -> Page:
        return self.pages[page_id]

    def get_process(self, process_id: int) -> Process:
        return self.processes[process_id]

    def get_process_stats(self) -> List[Dict[str, object]]:
        return [p.stats(self.pages) for p in self.processes]

    def check_invariants(self):
        """
        Verify page/frame/block bookkeeping and policy tracking.

        Raises:
            SimulationError: Describing the first inconsistency found
        """
        for page in self.pages.values():
            if page.location is Location.RESIDENT:
                ok = (page.block_id is None and page.frame_id is not None
                      and self.frames[page.frame_id].page_id == page.id)
            elif page.location is Location.SWAPPED:
                ok = (page.frame_id is None and page.block_id is not None
                      and self.swap.blocks[page.block_id].page_id == page.id)
            else:
                ok = page.frame_id is None and page.block_id is None
            if not ok:
                raise SimulationError(f"{page.label} location {page.location.value} is inconsistent")

        for frame in self.frames:
            if frame.page_id is not None and self.pages[frame.page_id].frame_id != frame.id:
                raise SimulationError(f"Frame {frame.id} claims {frame.page_id} which points elsewhere")
        for block in self.swap.blocks:
            if block.page_id is not None and self.pages[block.page_id].block_id != block.id:
                raise SimulationError(f"Block {block.id} claims {block.page_id} which points elsewhere")

        if {f.id for f in self.free_frames} != {f.id for f in self.frames if f.is_free}:
            raise SimulationError("Free frame list out of sync with frame table")

        resident = {p.id for p in self.resident_pages()}
        if set(self.policy.tracked_ids()) != resident:
            raise SimulationError(f"{self.policy.name} tracking differs from resident set")
