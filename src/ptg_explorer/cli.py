"""Command line interface for the graph-guided explorer."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from .core.config import ConfigurationError, RunConfig, load_configuration
from .core.dependencies import verify_dependencies
from .core.preflight import check_target_reachable
from .runner import RunOutcome, run_exploration
from .snapshots.coordinator import SnapshotPlan


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Graph-guided exploration of a single-page web app")
    parser.add_argument("target", help="Target name from the targets file")
    parser.add_argument("mode", choices=["ptg", "random"], help="Exploration mode")
    parser.add_argument("duration", nargs="?", type=int, default=300, help="Total time budget in seconds")
    parser.add_argument("interval", nargs="?", type=int, default=None, help="Seconds between snapshots")
    parser.add_argument("--graph", help="Path to the page transition graph (defaults to the latest run)")
    parser.add_argument("--targets", help="Targets JSON file (default: targets.json or PTG_TARGETS_FILE)")
    parser.add_argument("--out", help="Output root directory (default: out or PTG_OUT_DIR)")
    parser.add_argument("--headless", action="store_true", default=None, help="Run the browser headless")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def print_dependency_status() -> bool:
    status = verify_dependencies()
    for name, ok in status.items():
        print(f"[{'+' if ok else '!'}] {name} {'found' if ok else 'not found'}")
    if not all(status.values()):
        print("[!] Statement coverage will be reported as 0 until the tools above are installed.")
        return False
    return True


def print_plan(config: RunConfig) -> None:
    target = config.target
    print(f"[*] Target: {target.name} ({target.base_url}, {target.route_mode} routing)")
    print(f"[*] Mode: {config.mode.upper()}  duration={config.duration}s  interval={config.interval}s")
    plan = SnapshotPlan(config.duration, config.interval)
    if plan.is_single_run:
        print("[*] Single run: one final snapshot")
    else:
        print(f"[*] Snapshots expected: {plan.expected_snapshots}")
    print(f"[*] Run id: {config.run_id}")


def print_summary(outcome: RunOutcome) -> None:
    final = outcome.final
    if final is None:
        print("[!] No snapshot was recorded.")
        return
    print("\n=== Summary ===")
    print(f" - Snapshots: {len(outcome.records)}")
    print(f" - Actions: {final.action_number}")
    print(f" - Pages visited: {final.pages_visited}")
    print(f" - Page coverage: {final.page_coverage * 100:.2f}%")
    print(f" - Statement coverage: {final.statement_coverage * 100:.2f}%")
    if outcome.result is not None:
        print(f" - Edges traversed: {outcome.result.edges_traversed}/{outcome.result.total_edges}")
    print(f"[+] Results saved in {outcome.runs_root}")


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_arguments(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_configuration(
            args.target,
            args.mode,
            args.duration,
            args.interval,
            targets_path=args.targets,
            graph_path=args.graph,
            out_dir=args.out,
            headless=args.headless,
        )
    except ConfigurationError as exc:
        print(f"[!] {exc}", file=sys.stderr)
        return 1

    print_plan(config)
    print("[*] Checking coverage tools...")
    print_dependency_status()

    status = check_target_reachable(config.target.base_url)
    if status is None:
        print(f"[!] {config.target.base_url} is not reachable; continuing anyway")

    try:
        outcome = run_exploration(config)
    except ConfigurationError as exc:
        print(f"[!] {exc}", file=sys.stderr)
        return 1

    print_summary(outcome)
    return 0


def main() -> None:
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
