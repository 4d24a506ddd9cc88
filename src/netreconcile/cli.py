#!/usr/bin/env python3
"""netreconcile command line.

Usage:
    netreconcile apply DIFF --declaration FILE --current FILE --appliance NAME
    netreconcile apply DIFF --declaration FILE --current FILE --dry-run

Files may be YAML or JSON. DIFF holds ``{"toUpdate": ..., "toDelete": ...}``.

Environment variables:
    NETRECONCILE_PASSWORD       Appliance credentials (default password_env)
    NETRECONCILE_LOG_LEVEL      Console log level (default: INFO)
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import yaml

from .config.inventory import ApplianceInventory
from .engine.engine import ReconcileEngine
from .engine.schema import Diff
from .errors import ReconcileError
from .store.base import ObjectStore
from .store.recording import RecordingObjectStore
from .utils.logging_config import setup_logging

logger = logging.getLogger("netreconcile.cli")


def load_document(path: Path) -> dict[str, Any]:
    """Load a YAML or JSON file (JSON is a subset of YAML)."""
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping, got {type(data).__name__}")
    return data


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="netreconcile",
        description="Reconcile a network appliance toward a declared configuration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Preview the operations a diff would produce
    netreconcile apply diff.yaml --declaration decl.yaml --current current.yaml --dry-run

    # Apply to an appliance from appliances.yaml
    netreconcile apply diff.yaml --declaration decl.yaml --current current.yaml \\
        --appliance bigip-a
""",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    apply_parser = subparsers.add_parser("apply", help="Apply a diff")
    apply_parser.add_argument("diff", type=Path, help="Diff file (toUpdate/toDelete)")
    apply_parser.add_argument(
        "--declaration", type=Path, required=True, help="Full declaration file",
    )
    apply_parser.add_argument(
        "--current", type=Path, required=True, help="Current appliance config file",
    )
    apply_parser.add_argument(
        "--appliance", type=str, help="Appliance name from the inventory",
    )
    apply_parser.add_argument(
        "--inventory", type=str, help="Path to appliances.yaml",
    )
    apply_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Record operations against the current config instead of applying",
    )
    apply_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


async def run_apply(
    store: ObjectStore,
    declaration: dict,
    current_config: dict,
    diff: Diff,
) -> dict:
    async with store:
        result = await ReconcileEngine(store).apply(declaration, current_config, diff)
    output = result.to_dict()
    if isinstance(store, RecordingObjectStore):
        output["operations"] = [op.to_dict() for op in store.mutations]
    return output


def make_store(args: argparse.Namespace, current_config: dict) -> Optional[ObjectStore]:
    if args.dry_run:
        store = RecordingObjectStore()
        store.seed_current_config(current_config)
        return store
    if not args.appliance:
        logger.error("--appliance is required unless --dry-run is given")
        return None
    inventory = ApplianceInventory(args.inventory)
    return inventory.get_store(args.appliance)


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the netreconcile CLI."""
    args = build_parser().parse_args(argv)

    setup_logging(level=logging.DEBUG if args.verbose else None, log_to_file=not args.dry_run)

    try:
        diff = Diff.from_dict(load_document(args.diff))
        declaration = load_document(args.declaration)
        current_config = load_document(args.current)
        store = make_store(args, current_config)
    except (OSError, ValueError, KeyError, yaml.YAMLError) as e:
        logger.error(f"Could not load inputs: {e}")
        return 2
    if store is None:
        return 2

    try:
        output = asyncio.run(run_apply(store, declaration, current_config, diff))
    except ReconcileError as e:
        logger.error(f"Reconcile failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130

    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
