# src/main.py — v2
"""CLI entry point — execute, validate, merge, migrate, diff, log, versions.

Usage:
    phasekit execute <series> [--version V] [--from P] [--to P] [options]
    phasekit validate <series> [--version V]
    phasekit merge <series> --from <old> <phases_dir> [--version NEW]
    phasekit migrate <series> --from <old> [--to NEW] [--scope DIR]
    phasekit diff <series> <old> <new>
    phasekit log [series] [--command NAME]
    phasekit versions [series]

Exit codes: 0 succeeded, 2 partial failure, 1 failure, 130 interrupted.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from phasekit.core.errors import PhaseKitError
from phasekit.version import __version__

logger = logging.getLogger("phasekit.cli")


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = _load_settings(args)
        _setup_logging(settings, args.verbose)
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except PhaseKitError as exc:
        logger.error("%s", exc)
        return 1
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="phasekit",
        description=f"phasekit v{__version__} — versioned phase execution for AI agents",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--config", action="append", type=Path, default=[],
        help="Extra configuration fragment (YAML/JSON); repeatable, later wins",
    )
    parser.add_argument(
        "--project", type=Path, default=None,
        help="Project root (default: PHASEKIT_PROJECT_ROOT or current directory)",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- execute ---
    p_exec = subparsers.add_parser("execute", help="Run phases of a manifest")
    p_exec.add_argument("series", help="Series name")
    p_exec.add_argument("--version", dest="series_version", default=None,
                        help="Manifest version (default: latest)")
    _add_selection_args(p_exec)
    _add_agent_args(p_exec)
    p_exec.add_argument("--force", action="store_true",
                        help="Run phases even when already satisfied")
    p_exec.set_defaults(func=_cmd_execute)

    # --- validate ---
    p_val = subparsers.add_parser("validate", help="Check a manifest without running agents")
    p_val.add_argument("series", help="Series name")
    p_val.add_argument("--version", dest="series_version", default=None,
                       help="Manifest version (default: latest)")
    _add_selection_args(p_val)
    _add_input_arg(p_val)
    p_val.set_defaults(func=_cmd_validate)

    # --- merge ---
    p_merge = subparsers.add_parser("merge", help="Publish a new manifest version")
    p_merge.add_argument("series", help="Series name")
    p_merge.add_argument("phases_dir", type=Path, help="Directory of phase documents")
    p_merge.add_argument("--from", dest="from_version", required=True,
                         help="Version the new phase set evolves from")
    p_merge.add_argument("--version", dest="version_override", default=None,
                         help="Explicit new version (default: computed bump)")
    p_merge.add_argument("--no-dry-run", action="store_true",
                         help="Skip the instruction-resolution dry run")
    p_merge.set_defaults(func=_cmd_merge)

    # --- migrate ---
    p_mig = subparsers.add_parser("migrate", help="Regenerate artifacts of changed phases")
    p_mig.add_argument("series", help="Series name")
    p_mig.add_argument("--from", dest="from_version", required=True,
                       help="Version the existing artifacts were generated from")
    p_mig.add_argument("--to", dest="to_version", default=None,
                       help="Target version (default: latest)")
    p_mig.add_argument("--scope", type=Path, default=Path("."),
                       help="Directory to scan, relative to the project (default: .)")
    _add_agent_args(p_mig)
    p_mig.set_defaults(func=_cmd_migrate)

    # --- diff ---
    p_diff = subparsers.add_parser("diff", help="Compare two manifest versions")
    p_diff.add_argument("series", help="Series name")
    p_diff.add_argument("old_version")
    p_diff.add_argument("new_version")
    p_diff.set_defaults(func=_cmd_diff)

    # --- log ---
    p_log = subparsers.add_parser("log", help="Show execution log records")
    p_log.add_argument("series", nargs="?", default=None)
    p_log.add_argument("--command", dest="log_command", default=None,
                       help="Only records of this command")
    p_log.add_argument("--json", action="store_true", help="Print full JSON records")
    p_log.set_defaults(func=_cmd_log)

    # --- versions ---
    p_ver = subparsers.add_parser("versions", help="List stored manifest versions")
    p_ver.add_argument("series", nargs="?", default=None)
    p_ver.set_defaults(func=_cmd_versions)

    return parser


def _add_selection_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--phase", default=None, help="Run a single phase")
    parser.add_argument("--from", dest="from_phase", default=None,
                        help="First phase of an inclusive range")
    parser.add_argument("--to", dest="to_phase", default=None,
                        help="Last phase of an inclusive range")
    parser.add_argument("--only", action="append", default=[],
                        help="Comma-separated phase ids to keep; repeatable")
    parser.add_argument("--skip", action="append", default=[],
                        help="Comma-separated phase ids to drop; repeatable")


def _add_input_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--input", dest="inputs", action="append", default=[],
                        metavar="NAME=VALUE",
                        help="Input override, NAME or PHASE.NAME; repeatable")


def _add_agent_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--agent", default=None,
                        help="Agent name (default: PHASEKIT_DEFAULT_AGENT)")
    parser.add_argument("--continue-on-error", action="store_true", default=None,
                        help="Keep running independent phases after a failure")
    parser.add_argument("--interactive", action="store_true",
                        help="Prompt for inputs that cannot be resolved")
    _add_input_arg(parser)


def _load_settings(args: argparse.Namespace):
    from phasekit.config.settings import discover_config_files, load_layered_settings

    root = args.project or Path(".")
    files = [*discover_config_files(root), *args.config]
    return load_layered_settings(files, project_root=args.project)


def _selection(args: argparse.Namespace):
    from phasekit.manifest.selector import SelectionSpec

    return SelectionSpec(
        phase=args.phase,
        from_phase=args.from_phase,
        to_phase=args.to_phase,
        only=frozenset(_split_ids(args.only)),
        skip=frozenset(_split_ids(args.skip)),
    )


def _split_ids(values: list[str]) -> list[str]:
    return [v.strip() for value in values for v in value.split(",") if v.strip()]


def _parse_inputs(values: list[str]) -> dict[str, str]:
    inputs: dict[str, str] = {}
    for item in values:
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"Invalid --input {item!r}; expected NAME=VALUE")
        inputs[name.strip()] = value
    return inputs


def _prompt(phase_id: str, spec) -> str | None:
    """Ask for one input on the terminal."""
    hint = f" ({spec.description})" if spec.description else ""
    try:
        return input(f"{phase_id}.{spec.name} [{spec.type}]{hint}: ").strip() or None
    except EOFError:
        return None


async def _cmd_execute(args: argparse.Namespace, settings) -> int:
    """Run phases of a manifest."""
    from phasekit.api.facade import execute

    result = await execute(
        args.series,
        args.series_version,
        _selection(args),
        agent=args.agent,
        continue_on_error=args.continue_on_error,
        interactive=args.interactive,
        inputs=_parse_inputs(args.inputs),
        force=args.force,
        settings=settings,
        prompter=_prompt if args.interactive else None,
    )
    _print_command_summary(result)
    return result.status.exit_code


async def _cmd_validate(args: argparse.Namespace, settings) -> int:
    """Validate a manifest and render its instructions."""
    from phasekit.api.facade import validate

    report = await validate(
        args.series,
        args.series_version,
        _selection(args),
        inputs=_parse_inputs(args.inputs),
        settings=settings,
    )
    print(f"\n{report.series}@{report.version}: {len(report.phases)} phases selected")
    for i, level in enumerate(report.levels):
        print(f"  level {i}: {', '.join(level)}")
    for warning in report.warnings:
        print(f"  warning: {warning}")
    for phase_id, error in report.errors.items():
        print(f"  error:   {phase_id}: {error}")
    return 0 if report.ok else 1


async def _cmd_merge(args: argparse.Namespace, settings) -> int:
    """Publish a new manifest version."""
    from phasekit.api.facade import merge

    result = await merge(
        args.series,
        args.from_version,
        args.phases_dir,
        version_override=args.version_override,
        dry_run_check=not args.no_dry_run,
        settings=settings,
    )
    diff = result.details["diff"]
    print(f"\nMerged {result.series} {args.from_version} -> {result.version} "
          f"({result.details['bump']})")
    for label in ("added", "modified", "removed"):
        if diff[label]:
            print(f"  {label:9s} {', '.join(diff[label])}")
    return result.status.exit_code


async def _cmd_migrate(args: argparse.Namespace, settings) -> int:
    """Regenerate artifacts of changed phases."""
    from phasekit.api.facade import migrate

    result = await migrate(
        args.series,
        args.from_version,
        args.to_version,
        args.scope,
        agent=args.agent,
        continue_on_error=args.continue_on_error,
        interactive=args.interactive,
        inputs=_parse_inputs(args.inputs),
        settings=settings,
        prompter=_prompt if args.interactive else None,
    )
    regenerated = result.details["regeneration"]
    print(f"\nRegeneration set: {', '.join(regenerated) if regenerated else '(none)'}")
    _print_command_summary(result)
    return result.status.exit_code


async def _cmd_diff(args: argparse.Namespace, settings) -> int:
    """Print the phase diff between two versions."""
    from phasekit.api.facade import diff_versions

    diff = diff_versions(args.series, args.old_version, args.new_version, settings=settings)
    for phase_id, label in diff.labels.items():
        print(f"{label.value:9s} {phase_id}")
    return 0


async def _cmd_log(args: argparse.Namespace, settings) -> int:
    """Print execution log records."""
    from phasekit.api.facade import read_log

    for record in read_log(args.series, args.log_command, settings=settings):
        if args.json:
            print(record.model_dump_json(indent=2))
            continue
        counts = ", ".join(f"{k}={v}" for k, v in record.summary.items() if v)
        print(f"{record.timestamp.isoformat()}  {record.command:8s} "
              f"{record.series}@{record.version}  {record.status}  {counts}")
    return 0


async def _cmd_versions(args: argparse.Namespace, settings) -> int:
    """List stored versions."""
    from phasekit.api.facade import list_versions

    print(json.dumps(list_versions(args.series, settings=settings), indent=2))
    return 0


def _print_command_summary(result) -> None:
    """Print a human-readable summary of a CommandResult."""
    print(f"\n{result.command} {result.series}@{result.version}: {result.status.value}")
    for key, value in result.summary.items():
        print(f"  {key + ':':18s} {value}")
    for phase_id in result.failed:
        print(f"  failed: {phase_id}")
    if result.log_path:
        print(f"  Log:               {result.log_path}")


def _setup_logging(settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from phasekit.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
