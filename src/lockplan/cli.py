"""Command line entry point.

Usage:
    lockplan plan Cargo.lock --licenses licenses.json --overrides overrides.json
    lockplan plan manifest.json --allow-license LicenseRef-Unfree --format cbor -o plan.cbor
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from lockplan.builders.toolchains import TOOLCHAINS, toolchain_named
from lockplan.errors import LockplanError, ValidationError
from lockplan.manifest.io import read_manifest
from lockplan.observability import StructuredLogger
from lockplan.overrides import OverrideRegistry, read_overrides
from lockplan.planner import PlanConfig, plan
from lockplan.policy import DEFAULT_ALLOWED_LICENSES, GatePolicy


def cmd_plan(args: argparse.Namespace) -> int:
    licenses = _read_licenses(args.licenses) if args.licenses else None
    manifest = read_manifest(args.manifest, licenses=licenses, root=args.root)
    overrides = read_overrides(args.overrides) if args.overrides else OverrideRegistry()
    allowed = frozenset(args.allow_license)
    if not args.no_default_licenses:
        allowed |= DEFAULT_ALLOWED_LICENSES
    config = PlanConfig(
        toolchain=toolchain_named(args.toolchain),
        gate=GatePolicy(
            allowed_licenses=allowed,
            allowed_packages=frozenset(args.allow_package),
        ),
        overrides=overrides,
    )
    logger = StructuredLogger()
    try:
        build_plan = plan(manifest, config, max_workers=args.jobs, logger=logger)
    finally:
        if args.log:
            logger.to_json_lines(args.log)

    if args.format == "cbor":
        if args.output is None:
            sys.stdout.buffer.write(build_plan.to_cbor())
        else:
            build_plan.to_cbor(args.output)
    elif args.output is None:
        sys.stdout.write(build_plan.to_json())
    else:
        build_plan.to_json(args.output)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lockplan",
        description="Compile lock files into build plans",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    plan_p = sub.add_parser("plan", help="Compile a locked manifest into a build plan")
    plan_p.add_argument("manifest", type=Path, help="JSON manifest or Cargo-style .lock file")
    plan_p.add_argument("--overrides", type=Path, help="JSON override configuration")
    plan_p.add_argument("--licenses", type=Path, help="JSON mapping of package name to license")
    plan_p.add_argument("--root", help="Name of the root package")
    plan_p.add_argument(
        "--allow-license",
        action="append",
        default=[],
        metavar="TAG",
        help="Additional allowed license tag (repeatable)",
    )
    plan_p.add_argument(
        "--allow-package",
        action="append",
        default=[],
        metavar="NAME",
        help="Package permitted regardless of license (repeatable)",
    )
    plan_p.add_argument(
        "--no-default-licenses",
        action="store_true",
        help="Start from an empty license allow-list",
    )
    plan_p.add_argument("--toolchain", choices=sorted(TOOLCHAINS), default="rust")
    plan_p.add_argument("--format", choices=("json", "cbor"), default="json")
    plan_p.add_argument("-o", "--output", type=Path, help="Write the plan to this file")
    plan_p.add_argument("--log", type=Path, help="Write structured logs as JSON lines")
    plan_p.add_argument("-j", "--jobs", type=int, default=None, help="Plan nodes on N threads")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        if args.command == "plan":
            return cmd_plan(args)
    except LockplanError as exc:
        print(f"error[{exc.code}]: {exc}", file=sys.stderr)
        return 1
    parser.error(f"unknown command: {args.command}")
    return 2


def _read_licenses(path: Path) -> dict[str, str]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValidationError(
            "Invalid license mapping JSON.",
            hint=str(exc),
            context={"path": str(path)},
        ) from exc
    if not isinstance(payload, dict) or not all(
        isinstance(key, str) and isinstance(value, str) for key, value in payload.items()
    ):
        raise ValidationError(
            "License mapping must map package names to license tags.",
            context={"path": str(path)},
        )
    return payload


if __name__ == "__main__":
    sys.exit(main())
