# cli.py
import argparse
import json
import logging
import sys

from engine import SimulationEngine
from errors import SimulationError
from events import EventLog
from scenarios import SCENARIOS, get_scenario, load_scenario_file


def build_parser():
    parser = argparse.ArgumentParser(description="Headless virtual memory thrashing simulator")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--scenario", default="balanced", choices=sorted(SCENARIOS))
    source.add_argument("--scenario-file", help="JSON scenario file")
    parser.add_argument("--steps", type=int, default=100)
    parser.add_argument("--policy", help="override the scenario's policy (FIFO or LRU)")
    parser.add_argument("--intensity", type=float, default=1.0)
    parser.add_argument("--seed", type=int)
    parser.add_argument("--json", action="store_true", help="print stats as JSON")
    parser.add_argument("--log", type=int, default=10, help="number of event log lines to print")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    scenario = load_scenario_file(args.scenario_file) if args.scenario_file else get_scenario(args.scenario)
    engine = SimulationEngine()
    event_log = EventLog().attach(engine.events)
    engine.load_scenario(scenario)
    changes = {}
    if args.policy:
        changes["policy"] = args.policy
    if args.seed is not None:
        changes["seed"] = args.seed
    if changes:
        engine.update_config(**changes)
    engine.set_intensity(args.intensity)

    try:
        stats = engine.run(args.steps)
    except SimulationError as e:
        print(f"Simulation stopped: {e}", file=sys.stderr)
        stats = engine.get_stats()
        code = 1
    else:
        code = 0

    if args.json:
        print(json.dumps(stats.to_dict(), indent=2))
    else:
        print(f"Scenario: {scenario.name} ({stats.current_policy}), {stats.simulation_time} ms simulated")
        for key, value in stats.to_dict().items():
            print(f"  {key:<24} {value:.2f}" if isinstance(value, float) else f"  {key:<24} {value}")
        for message in (event_log.messages()[-args.log:] if args.log > 0 else []):
            print(f"  | {message}")
    return code


if __name__ == "__main__":
    sys.exit(main())
