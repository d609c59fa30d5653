"""Tests for the simulation engine state machine.

Covers hit/fault handling, eviction into swap, initial placement, swap
exhaustion, thrashing transitions, configuration resets and the stats
snapshot.
"""

import pytest

from engine import SimulationEngine
from errors import SwapExhausted
from events import EngineEvent
from memory import Location
from scenarios import SimulationConfig


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def recorder(engine: SimulationEngine, event: EngineEvent) -> list:
    calls = []
    engine.on(event, lambda *args: calls.append(args))
    return calls


# -- Initial placement --------------------------------------------------------


class TestInitialPlacement:
    """Verify where pages land when a process is registered."""

    def test_pages_fill_frames_then_swap(self) -> None:
        """Frames are filled first, the overflow goes straight to swap."""
        engine = SimulationEngine(SimulationConfig(ram_frames=4, swap_blocks=8))
        process = engine.add_process("p", 6)
        locations = [engine.pages[pid].location for pid in process.page_ids]
        assert locations == [Location.RESIDENT] * 4 + [Location.SWAPPED] * 2
        engine.check_invariants()

    def test_overflow_bypasses_policy(self) -> None:
        """Only frame placements are reported to the policy."""
        engine = SimulationEngine(SimulationConfig(ram_frames=3, swap_blocks=8, policy="LRU"))
        engine.add_process("p", 5)
        assert sorted(engine.policy.tracked_ids()) == [0, 1, 2]
        assert engine.get_stats().swap_out_count == 0

    def test_overflow_counts_as_disk_io(self) -> None:
        """Pages written straight to swap feed the I/O rate of a fresh scenario."""
        engine = SimulationEngine()
        engine.load_scenario("heavy")
        stats = engine.get_stats()
        assert stats.swap_used == 47
        assert stats.disk_io_rate == 47.0
        assert stats.swap_out_count == 0
        assert engine.check_thrashing()

    def test_rejected_process_leaves_no_pages(self) -> None:
        """A registration that fails validation creates nothing."""
        engine = SimulationEngine(SimulationConfig(ram_frames=4, swap_blocks=8))
        with pytest.raises(ValueError):
            engine.add_process("bad", 3, working_set_size=0)
        assert engine.get_all_pages() == [] and engine.processes == []

        good = engine.add_process("good", 2)
        assert good.id == 0
        assert len(engine.pages) == 2
        assert all(p.process_id == good.id for p in engine.get_all_pages())
        engine.check_invariants()

    def test_overflow_beyond_swap_is_unmapped(self) -> None:
        """Pages with neither a frame nor a block stay unmapped and are counted."""
        engine = SimulationEngine(SimulationConfig(ram_frames=2, swap_blocks=1))
        engine.add_process("p", 4)
        assert engine.pages[3].location is Location.UNMAPPED
        assert engine.get_stats().unmapped_pages == 1

    def test_cold_start(self) -> None:
        """preload=False leaves every page unmapped."""
        engine = SimulationEngine(SimulationConfig(ram_frames=2, swap_blocks=4))
        engine.add_process("p", 3, preload=False)
        assert all(p.location is Location.UNMAPPED for p in engine.get_all_pages())
        assert engine.get_stats().ram_used == 0

    def test_process_added_event(self) -> None:
        """Registering a process notifies subscribers once."""
        engine = SimulationEngine()
        calls = recorder(engine, EngineEvent.PROCESS_ADDED)
        process = engine.add_process("p", 2)
        assert calls == [(process,)]

    def test_virtual_addresses_follow_page_size(self) -> None:
        """Symbolic addresses are spaced by the configured page size."""
        engine = SimulationEngine(SimulationConfig(page_size=8))
        engine.add_process("p", 3)
        assert [p.virtual_address for p in engine.get_all_pages()] == [0, 8192, 16384]


# -- Access / fault handling ---------------------------------------------------


class TestAccess:
    """Verify hits, faults, evictions and swap-ins."""

    def test_hit(self) -> None:
        """Accessing a resident page is a hit reported to the policy."""
        engine = SimulationEngine(SimulationConfig(ram_frames=4, swap_blocks=4))
        engine.add_process("p", 2)
        calls = recorder(engine, EngineEvent.PAGE_ACCESSED)
        assert engine.access_page(0) is True
        stats = engine.get_stats()
        assert stats.hit_count == 1 and stats.total_page_faults == 0
        assert engine.pages[0].access_count == 1
        assert calls == [(engine.pages[0], "hit")]

    def test_fault_on_unmapped_page_uses_free_frame(self) -> None:
        """A cold page faults into a free frame without eviction."""
        engine = SimulationEngine(SimulationConfig(ram_frames=2, swap_blocks=4))
        engine.add_process("p", 2, preload=False)
        evictions = recorder(engine, EngineEvent.PAGE_EVICTED)
        assert engine.access_page(1) is False
        assert engine.pages[1].location is Location.RESIDENT
        assert evictions == []
        assert engine.processes[0].page_faults == 1

    def test_fault_with_full_ram_evicts_and_swaps_in(self) -> None:
        """A swapped page evicts the victim to swap and frees its own block."""
        engine = SimulationEngine(SimulationConfig(ram_frames=2, swap_blocks=4, policy="FIFO"))
        engine.add_process("p", 3)
        faults = recorder(engine, EngineEvent.PAGE_FAULT)
        swapped_in = recorder(engine, EngineEvent.PAGE_SWAPPED_IN)
        swapped_out = recorder(engine, EngineEvent.PAGE_SWAPPED_OUT)

        engine.access_page(2)

        assert engine.pages[2].location is Location.RESIDENT
        assert engine.pages[0].location is Location.SWAPPED
        assert len(faults) == 1 and len(swapped_in) == 1 and len(swapped_out) == 1
        stats = engine.get_stats()
        assert stats.swap_in_count == 1
        assert stats.swap_out_count == 1
        assert stats.swap_used == 1
        engine.check_invariants()

    def test_write_sets_dirty_bit(self) -> None:
        """Write accesses mark pages dirty; swapping out clears it."""
        engine = SimulationEngine(SimulationConfig(ram_frames=1, swap_blocks=4))
        engine.add_process("p", 2)
        engine.access_page(0, write=True)
        assert engine.pages[0].dirty_bit
        engine.access_page(1)
        assert not engine.pages[0].dirty_bit

    def test_swap_exhaustion_is_surfaced(self) -> None:
        """A fault that needs a block from a full swap fails loudly."""
        engine = SimulationEngine(SimulationConfig(ram_frames=2, swap_blocks=1))
        engine.add_process("p", 4)
        with pytest.raises(SwapExhausted):
            engine.access_page(3)
        # The victim keeps its frame instead of vanishing
        assert [p.location for p in engine.get_all_pages()][:2] == [Location.RESIDENT] * 2
        assert engine.get_stats().failed_accesses == 1
        engine.check_invariants()

    def test_swap_exhaustion_propagates_from_step(self) -> None:
        """step() does not swallow SwapExhausted."""
        engine = SimulationEngine(SimulationConfig(ram_frames=1, swap_blocks=1))
        engine.add_process("p", 3)
        engine.workload.enqueue([2])
        with pytest.raises(SwapExhausted):
            engine.step()

    def test_locations_stay_consistent_under_load(self) -> None:
        """Every page is in exactly one place after every step."""
        engine = SimulationEngine()
        engine.load_scenario("heavy")
        engine.update_config(seed=5)
        engine.set_intensity(3)
        for _ in range(150):
            engine.step()
            engine.check_invariants()
        assert engine.get_stats().total_page_faults > 0

    def test_high_locality_resident_process_never_faults(self) -> None:
        """A process that fits in RAM and stays local takes no faults."""
        engine = SimulationEngine(SimulationConfig(ram_frames=16, swap_blocks=16, seed=2))
        engine.add_process("local", 8, locality=1.0)
        engine.run(200)
        stats = engine.get_stats()
        assert stats.total_page_faults == 0
        assert stats.hit_ratio == 1.0


# -- Thrashing -----------------------------------------------------------------


class TestThrashing:
    """Verify the edge-triggered thrashing detector."""

    def test_one_notification_per_crossing(self) -> None:
        """Oscillating I/O around the threshold flips state once per crossing."""
        clock = FakeClock()
        engine = SimulationEngine(SimulationConfig(thrashing_threshold=5.0), clock=clock)
        changes = recorder(engine, EngineEvent.THRASHING_CHANGED)

        schedule = [
            (0, 5),      # 5 ops/s -> thrashing
            (100, 0),
            (500, 0),
            (1000, 0),   # window emptied -> calm
            (1100, 0),
            (1200, 6),   # thrashing again
            (1300, 0),
            (1400, 0),
            (2200, 0),   # calm
            (2300, 0),
        ]
        for now, events in schedule:
            clock.now = now
            for _ in range(events):
                engine.swap.io.record()
            engine.check_thrashing()

        assert changes == [(True,), (False,), (True,), (False,)]

    def test_thrashing_level(self) -> None:
        """The level is the I/O rate as a percentage of the threshold, capped at 100."""
        clock = FakeClock()
        engine = SimulationEngine(SimulationConfig(thrashing_threshold=4.0), clock=clock)
        engine.swap.io.record()
        assert engine.get_stats().thrashing_level == 25.0
        for _ in range(9):
            engine.swap.io.record()
        assert engine.get_stats().thrashing_level == 100.0

    def test_heavy_scenario_thrashes(self) -> None:
        """The heavy scenario reaches the thrashing state in simulated time."""
        engine = SimulationEngine()
        engine.load_scenario("heavy")
        engine.update_config(seed=1)
        changes = recorder(engine, EngineEvent.THRASHING_CHANGED)
        engine.set_intensity(2)
        engine.run(100)
        assert (True,) in changes


# -- Stats / reset / config ----------------------------------------------------


class TestStatsAndReset:
    """Verify snapshot fields, resets and configuration changes."""

    def test_hit_ratio_without_accesses(self) -> None:
        """The hit ratio is zero before any access."""
        stats = SimulationEngine().get_stats()
        assert stats.memory_accesses == 0
        assert stats.hit_ratio == 0.0

    def test_hit_ratio(self) -> None:
        """hit_ratio equals hits over accesses."""
        engine = SimulationEngine(SimulationConfig(ram_frames=1, swap_blocks=4))
        engine.add_process("p", 2)
        engine.access_page(0)
        engine.access_page(1)
        engine.access_page(1)
        engine.access_page(1)
        stats = engine.get_stats()
        assert stats.hit_ratio == stats.hit_count / stats.memory_accesses == 0.75

    def test_step_emits_snapshot(self) -> None:
        """A step advances time and publishes the snapshot twice."""
        engine = SimulationEngine(SimulationConfig(access_interval=250))
        engine.add_process("p", 4)
        steps = recorder(engine, EngineEvent.SIMULATION_STEP)
        updates = recorder(engine, EngineEvent.STATS_UPDATED)
        stats = engine.step()
        assert stats.simulation_time == 250
        assert steps == [(stats,)] and updates == [(stats,)]
        assert stats.memory_accesses == 1

    def test_full_reset(self) -> None:
        """reset() frees every slot, empties the policy and zeroes counters."""
        engine = SimulationEngine()
        engine.load_scenario("heavy")
        engine.run(50)
        engine.reset()
        stats = engine.get_stats()
        assert all(f.is_free for f in engine.get_frames())
        assert all(b.is_free for b in engine.swap.blocks)
        assert len(engine.policy) == 0
        assert engine.get_all_pages() == [] and engine.processes == []
        assert stats.total_page_faults == 0
        assert stats.memory_accesses == 0
        assert stats.swap_in_count == 0 and stats.swap_out_count == 0
        assert stats.simulation_time == 0
        assert not stats.is_thrashing

    def test_policy_change_resets_and_recreates(self) -> None:
        """Switching policy resets state and re-registers the same processes."""
        engine = SimulationEngine()
        engine.load_scenario("balanced")
        engine.run(30)
        engine.set_policy("FIFO")
        stats = engine.get_stats()
        assert stats.current_policy == "FIFO"
        assert stats.total_page_faults == 0 and stats.memory_accesses == 0
        assert [p.name for p in engine.processes] == ["Web Browser", "IDE"]
        engine.check_invariants()

    def test_resize_resets_pools(self) -> None:
        """Resizing RAM rebuilds the frame pool."""
        engine = SimulationEngine()
        engine.load_scenario("light")
        engine.update_config(ram_frames=8)
        stats = engine.get_stats()
        assert stats.ram_total == 8 and stats.ram_used == 8
        engine.check_invariants()

    def test_interval_change_keeps_state(self) -> None:
        """Non-structural options apply without a reset."""
        engine = SimulationEngine()
        engine.load_scenario("light")
        engine.run(5)
        engine.update_config(access_interval=100)
        assert engine.get_stats().memory_accesses == 5

    def test_invalid_policy_change_keeps_engine(self) -> None:
        """A rejected policy name leaves the engine untouched."""
        engine = SimulationEngine()
        engine.load_scenario("light")
        with pytest.raises(ValueError):
            engine.set_policy("OPT")
        assert engine.get_stats().current_policy == "LRU"
        assert len(engine.processes) == 2

    def test_failing_subscriber_is_counted(self) -> None:
        """Subscriber errors never stop a step but show up in the stats."""
        engine = SimulationEngine()
        engine.add_process("p", 2)

        def broken(stats):
            raise RuntimeError("boom")

        engine.on(EngineEvent.SIMULATION_STEP, broken)
        stats = engine.step()
        assert stats.memory_accesses == 1
        assert engine.get_stats().handler_errors == 1
