#!/usr/bin/env python3
"""
Attrition runner against a simulated cluster.

Usage:
    python scripts/run_attrition.py --machines-to-kill 3 --test-duration 5
    python scripts/run_attrition.py --option killDc=true --option reboot=true --seed 7
    python scripts/run_attrition.py --runs 20 --seed 1  # Outcome histogram
"""

import argparse
import asyncio
import json
import random
import sys
from collections import Counter
from datetime import datetime
from pathlib import Path

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from attrition_engine.attrition import AttritionConfig, AttritionWorkload
from attrition_engine.errors import ConfigurationError
from attrition_engine.logging import setup_logging
from attrition_engine.sim.cluster import SimulatedCluster
from attrition_engine.store.memory import InMemoryStore


def parse_option(raw: str) -> tuple[str, object]:
    """Parse NAME=VALUE, decoding VALUE as JSON when possible."""
    name, sep, value = raw.partition("=")
    if not sep:
        raise argparse.ArgumentTypeError(f"Expected NAME=VALUE, got {raw!r}")
    try:
        return name, json.loads(value)
    except json.JSONDecodeError:
        return name, value


async def run_once(options: dict, seed: int | None, topology: dict) -> dict:
    """Run one simulated attrition and return its report as a dict."""
    rng = random.Random(seed)
    config = AttritionConfig.from_options(options, rng)
    cluster = SimulatedCluster.build(rng=rng, **topology)
    workload = AttritionWorkload(
        config,
        InMemoryStore(),
        cluster=cluster,
        topology=cluster,
        rng=rng,
    )

    await workload.setup()
    report = await workload.start()
    await workload.check()

    return {
        "config": config.model_dump(),
        "report": report.model_dump(mode="json"),
        "metrics": {m.name: m.value for m in workload.get_metrics()},
        "alive": len(cluster.alive()),
    }


def main():
    parser = argparse.ArgumentParser(description="Run attrition against a simulated cluster")
    parser.add_argument("--machines-to-kill", type=int, default=2, help="Kill events to issue")
    parser.add_argument("--machines-to-leave", type=int, default=1, help="Zones to leave alive")
    parser.add_argument("--test-duration", type=float, default=2.0, help="Time budget in seconds")
    parser.add_argument("--reboot", action="store_true", help="Reboot instead of kill")
    parser.add_argument(
        "--option",
        action="append",
        type=parse_option,
        default=[],
        metavar="NAME=VALUE",
        help="Extra workload option (repeatable)",
    )
    parser.add_argument("--datacenters", type=int, default=2, help="Simulated datacenters")
    parser.add_argument("--machines-per-dc", type=int, default=3, help="Machines per datacenter")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--runs", type=int, default=1, help="Number of runs")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    args = parser.parse_args()

    setup_logging(level=args.log_level)

    options: dict = {
        "machinesToKill": args.machines_to_kill,
        "machinesToLeave": args.machines_to_leave,
        "testDuration": args.test_duration,
        "reboot": args.reboot,
    }
    options.update(dict(args.option))
    topology = {"datacenters": args.datacenters, "machines_per_dc": args.machines_per_dc}

    print(f"\n{'='*60}")
    print(f"ATTRITION RUN - {datetime.now().strftime('%Y-%m-%d %H:%M')}")
    print(f"{'='*60}")

    try:
        if args.runs == 1:
            result = asyncio.run(run_once(options, args.seed, topology))
            print(json.dumps(result, indent=2))
            return

        outcomes: Counter[str] = Counter()
        kills: Counter[str] = Counter()
        for i in range(args.runs):
            seed = None if args.seed is None else args.seed + i
            result = asyncio.run(run_once(options, seed, topology))
            outcomes[result["report"]["outcome"]] += 1
            for kill in result["report"]["kills"]:
                kills[kill["kill_type"]] += 1
    except ConfigurationError as e:
        print(f"Invalid options: {e}")
        sys.exit(2)

    print(f"Runs: {args.runs}")
    print("\nOutcomes:")
    for outcome, count in outcomes.most_common():
        print(f"  {outcome:22} {count}")
    print("\nKills:")
    for kill_type, count in kills.most_common():
        print(f"  {kill_type:22} {count}")


if __name__ == "__main__":
    main()
