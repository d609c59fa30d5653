# scenarios.py
"""
Simulation configuration and workload scenarios.

A scenario bundles a SimulationConfig with the processes to register. The
built-in scenarios range from a light, high-locality workload to one whose
combined working sets overflow RAM and thrash.
"""

import json
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Optional, Union

from policies import normalize_policy_name

# camelCase keys accepted in scenario files
_CONFIG_ALIASES = {
    "ramFrames": "ram_frames",
    "swapBlocks": "swap_blocks",
    "pageSize": "page_size",
    "accessInterval": "access_interval",
    "thrashingThreshold": "thrashing_threshold",
    "ioWindowMs": "io_window_ms",
}


@dataclass
class SimulationConfig:
    """
    Engine configuration.

    Attributes:
        ram_frames (int): Number of physical frames
        swap_blocks (int): Number of swap blocks on disk
        page_size (int): Page size in KB (symbolic, only shapes addresses)
        access_interval (int): Simulated ms between steps
        policy (str): Replacement policy name (FIFO or LRU)
        thrashing_threshold (float): Swap ops/second at which thrashing starts
        io_window_ms (int): Sliding window for I/O and fault rates
        seed (Optional[int]): Seed for the workload RNG
    """
    ram_frames: int = 32
    swap_blocks: int = 64
    page_size: int = 4
    access_interval: int = 300
    policy: str = "LRU"
    thrashing_threshold: float = 5.0
    io_window_ms: int = 1000
    seed: Optional[int] = None

    def __post_init__(self):
        for name in ("ram_frames", "swap_blocks", "page_size", "access_interval", "io_window_ms"):
            if int(getattr(self, name)) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.thrashing_threshold <= 0:
            raise ValueError("thrashing_threshold must be positive")
        self.policy = normalize_policy_name(self.policy)

    @classmethod
    def from_dict(cls, data: Dict) -> "SimulationConfig":
        values = {_CONFIG_ALIASES.get(key, key): value for key, value in data.items()}
        unknown = set(values) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown configuration option(s): {', '.join(sorted(unknown))}")
        return cls(**values)

    def with_changes(self, **changes) -> "SimulationConfig":
        return replace(self, **changes)

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class ProcessSpec:
    name: str
    pages: int
    locality: float = 0.7
    working_set_size: Optional[int] = None

    def __post_init__(self):
        if self.pages <= 0:
            raise ValueError(f"Process {self.name!r} needs at least one page")
        if not 0.0 <= self.locality <= 1.0:
            raise ValueError(f"Process {self.name!r} locality must be within [0, 1]")
        if self.working_set_size is not None and self.working_set_size < 1:
            raise ValueError(f"Process {self.name!r} working set must hold at least one page")


@dataclass
class Scenario:
    id: str
    name: str
    config: SimulationConfig = field(default_factory=SimulationConfig)
    processes: List[ProcessSpec] = field(default_factory=list)
    description: str = ""
    expected_behavior: str = ""


def _scenario(id, name, description, config, processes, expected):
    return Scenario(
        id=id,
        name=name,
        description=description,
        config=SimulationConfig(**config),
        processes=[ProcessSpec(*p) for p in processes],
        expected_behavior=expected,
    )


SCENARIOS: Dict[str, Scenario] = {
    s.id: s for s in (
        _scenario(
            "light", "Light Workload",
            "Small working set with high locality. Low page fault rate expected.",
            dict(ram_frames=32, swap_blocks=64, access_interval=500, policy="LRU"),
            [("Text Editor", 8, 0.9), ("Calculator", 4, 0.95)],
            "Minimal swapping, stable memory usage, low fault rate",
        ),
        _scenario(
            "balanced", "Balanced Workload",
            "Medium working set with moderate locality. Some page faults expected.",
            dict(ram_frames=24, swap_blocks=64, access_interval=300, policy="LRU"),
            [("Web Browser", 16, 0.7), ("IDE", 12, 0.6)],
            "Occasional swapping, moderate fault rate, stable performance",
        ),
        _scenario(
            "heavy", "Heavy Workload (Thrashing)",
            "Working set larger than RAM. High churn, thrashing expected!",
            dict(ram_frames=16, swap_blocks=64, access_interval=150, policy="LRU"),
            [("Video Editor", 20, 0.4), ("Game", 25, 0.3), ("3D Renderer", 18, 0.35)],
            "Continuous swap activity, thrashing detected, poor performance",
        ),
        _scenario(
            "experimental", "Experimental Mode",
            "Full control over all parameters. Design your own workload!",
            dict(ram_frames=32, swap_blocks=64, access_interval=300, policy="LRU"),
            [],
            "Depends on your configuration!",
        ),
        _scenario(
            "fifo_anomaly", "FIFO Anomaly Demo",
            "Demonstrates Belady's anomaly - more frames can cause more faults with FIFO.",
            dict(ram_frames=12, swap_blocks=32, access_interval=400, policy="FIFO"),
            [("Anomaly Test", 15, 0.3)],
            "Watch how FIFO behaves - compare with LRU",
        ),
        _scenario(
            "locality_demo", "Locality Comparison",
            "Compare high-locality vs low-locality processes.",
            dict(ram_frames=20, swap_blocks=48, access_interval=250, policy="LRU"),
            [("High Locality", 15, 0.95), ("Low Locality", 15, 0.2)],
            "High locality process should have fewer faults",
        ),
    )
}


def available_scenarios() -> List[Dict[str, str]]:
    return [{"id": s.id, "name": s.name, "description": s.description} for s in SCENARIOS.values()]


def get_scenario(scenario_id: str) -> Scenario:
    try:
        return SCENARIOS[scenario_id]
    except KeyError:
        raise KeyError(f"Unknown scenario {scenario_id!r}") from None


def scenario_from_dict(data: Dict) -> Scenario:
    """
    Build a Scenario from plain data, e.g. a parsed JSON document.

    Expected shape::

        {"config": {...}, "processes": [{"name": str, "pages": int, "locality": float}]}
    """
    if "config" not in data:
        raise ValueError("Scenario is missing its 'config' section")
    processes = []
    for entry in data.get("processes", []):
        processes.append(ProcessSpec(
            name=entry["name"],
            pages=int(entry["pages"]),
            locality=float(entry.get("locality", 0.7)),
            working_set_size=entry.get("working_set_size", entry.get("workingSetSize")),
        ))
    return Scenario(
        id=data.get("id", "custom"),
        name=data.get("name", "Custom Scenario"),
        config=SimulationConfig.from_dict(data["config"]),
        processes=processes,
        description=data.get("description", "User-defined configuration"),
        expected_behavior=data.get("expected_behavior", data.get("expectedBehavior", "")),
    )


def load_scenario_file(path: Union[str, Path]) -> Scenario:
    with open(path, "r", encoding="utf-8") as f:
        return scenario_from_dict(json.load(f))


def create_custom_scenario(processes=(), **config) -> Scenario:
    return Scenario(
        id="custom",
        name="Custom Scenario",
        config=SimulationConfig(**config),
        processes=[p if isinstance(p, ProcessSpec) else ProcessSpec(**p) for p in processes],
        description="User-defined configuration",
    )
