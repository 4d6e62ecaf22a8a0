from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, Sequence

import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from stratum._logging import level_for_verbosity, setup_logging
from stratum.engine import (
    PatternEngine,
    find_project_root,
    project_config_path,
)
from stratum.errors import ConfigError, PatternError
from stratum.loader import read_yaml_mapping
from stratum.merger import merge
from stratum.models import PatternListing, PatternSummary, TraceResult
from stratum.tracer import extract_section

_cli_log = logging.getLogger("stratum.cli")
_TYPE_CHOICES = ["workflows", "phases", "documents"]


def _console(*, stderr: bool = False) -> Console:
    return Console(highlight=False, stderr=stderr)


def _project_root(args: argparse.Namespace, *, required: bool = False) -> Path:
    if args.project_root:
        return Path(args.project_root).expanduser().resolve()
    try:
        return find_project_root()
    except ConfigError:
        if required:
            raise
        return Path.cwd()


def _engine(args: argparse.Namespace) -> PatternEngine:
    return PatternEngine.for_project(_project_root(args), shipped_dir=args.shipped_dir)


def _dump(payload: Any, fmt: str) -> str:
    if fmt == "json":
        return json.dumps(payload, indent=2, sort_keys=True, default=str) + "\n"
    return yaml.safe_dump(payload, sort_keys=False)


def _short_text(value: object, *, width: int = 80) -> str:
    text = str(value)
    return text if len(text) <= width else text[: width - 3] + "..."


def _render_patterns_table(
    listing: PatternListing, *, pattern_type: str, usage: bool
) -> None:
    console = _console()
    rows: list[tuple[str, PatternSummary]] = [
        *(("Shipped", item) for item in listing.shipped),
        *(("User", item) for item in listing.user_defined),
    ]
    if not rows:
        kind = "" if pattern_type == "all" else f"{pattern_type} "
        console.print(f"No {kind}patterns found")
        return

    table = Table(title="Available Patterns")
    table.add_column("Name", style="bold")
    table.add_column("Type")
    table.add_column("Source")
    table.add_column("Description")
    if usage:
        table.add_column("Usage")
    for source, item in rows:
        description = escape(item.description)
        if item.error is not None:
            description = f"[red]invalid:[/red] {escape(_short_text(item.error.splitlines()[0]))}"
        row = [item.name, item.pattern_type, source, description]
        if usage:
            row.append(escape(item.usage_example or ""))
        table.add_row(*row)
    console.print(table)


def _render_order_table(title: str, order: Sequence[Any]) -> None:
    """Goes to stderr so the document on stdout stays parseable."""
    table = Table(title=title)
    table.add_column("#", justify="right")
    table.add_column("Pattern", style="bold")
    table.add_column("Type")
    table.add_column("Origin")
    table.add_column("Path")
    for index, descriptor in enumerate(order, 1):
        table.add_row(
            str(index),
            descriptor.name,
            descriptor.pattern_type,
            descriptor.origin,
            str(descriptor.source_path),
        )
    _console(stderr=True).print(table)


def _render_trace_table(result: TraceResult) -> None:
    console = _console()
    overview = Table(title="Value Trace", show_header=False)
    overview.add_column("Field", style="bold cyan")
    overview.add_column("Value")
    overview.add_row("Path", result.path)
    overview.add_row(
        "Final Value", json.dumps(result.final_value, sort_keys=True, default=str)
    )
    console.print(overview)

    if not result.found:
        console.print(f"No pattern sets '{result.path}'.")
        return
    chain = Table(title="Contributors")
    chain.add_column("Pattern", style="bold")
    chain.add_column("Type")
    chain.add_column("Origin")
    chain.add_column("Value")
    chain.add_column("Final")
    for step in result.steps:
        chain.add_row(
            step.pattern,
            step.pattern_type,
            step.origin,
            escape(_short_text(json.dumps(step.value, sort_keys=True, default=str))),
            "yes" if step.is_final else "",
        )
    console.print(chain)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stratum", description="Layered YAML pattern resolution"
    )
    parser.add_argument(
        "--project-root",
        default=None,
        help="Project directory (default: nearest parent containing .stratum/)",
    )
    parser.add_argument(
        "--shipped-dir",
        default=None,
        help="Shipped patterns directory (default: bundled patterns or $STRATUM_SHIPPED_PATTERNS)",
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=0, help="Increase log verbosity"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    def _add_pattern_args(target: argparse.ArgumentParser) -> None:
        target.add_argument("--name", required=True, help="Pattern name")
        target.add_argument("--type", choices=_TYPE_CHOICES, default="workflows")

    list_patterns = sub.add_parser(
        "list-patterns", aliases=["ls-patterns"], help="List available patterns"
    )
    list_patterns.add_argument(
        "--type", choices=[*_TYPE_CHOICES, "all"], default="all"
    )
    list_patterns.add_argument(
        "--usage", action="store_true", help="Include usage examples"
    )
    list_patterns.add_argument("--format", choices=["table", "json"], default="table")
    list_patterns.set_defaults(handler=_cmd_list_patterns)

    inspect = sub.add_parser("inspect-pattern", help="Show one pattern document")
    _add_pattern_args(inspect)
    inspect.add_argument(
        "--resolve",
        action="store_true",
        help="Show the merged result instead of the raw file",
    )
    inspect.add_argument("--format", choices=["yaml", "json"], default="yaml")
    inspect.set_defaults(handler=_cmd_inspect_pattern)

    resolve = sub.add_parser("resolve", help="Resolve and merge a pattern")
    _add_pattern_args(resolve)
    resolve.add_argument("--section", default=None, help="Dotted path to print")
    resolve.add_argument(
        "--show-order", action="store_true", help="Print the resolution order"
    )
    resolve.add_argument("--format", choices=["yaml", "json"], default="yaml")
    resolve.set_defaults(handler=_cmd_resolve)

    trace = sub.add_parser("trace", help="Show which patterns set a value")
    trace.add_argument(
        "--name",
        default=None,
        help="Pattern to trace (default: trace the project config)",
    )
    trace.add_argument("--type", choices=_TYPE_CHOICES, default="workflows")
    trace.add_argument(
        "--config",
        default=None,
        help="Project config YAML (default: <project-root>/.stratum/project.yaml)",
    )
    trace.add_argument("--key", required=True, help="Dotted path, e.g. review.checklist[0]")
    trace.add_argument("--format", choices=["table", "json"], default="table")
    trace.set_defaults(handler=_cmd_trace)

    show = sub.add_parser("show", help="Show the resolved project configuration")
    show.add_argument(
        "--config",
        default=None,
        help="Project config YAML (default: <project-root>/.stratum/project.yaml)",
    )
    show.add_argument("--section", default=None, help="Dotted path to print")
    show.add_argument("--format", choices=["yaml", "json"], default="yaml")
    show.set_defaults(handler=_cmd_show)
    return parser


def _cmd_list_patterns(args: argparse.Namespace) -> int:
    listing = _engine(args).list_patterns(args.type, usage=args.usage)
    if args.format == "json":
        print(json.dumps(listing.to_json(), indent=2, sort_keys=True, default=str))
        return 0
    _render_patterns_table(listing, pattern_type=args.type, usage=args.usage)
    return 0


def _cmd_inspect_pattern(args: argparse.Namespace) -> int:
    engine = _engine(args)
    if args.resolve:
        payload = engine.resolve_config(args.name, args.type)
    else:
        source = engine.resolver.find(args.name, args.type)
        payload = read_yaml_mapping(source.path)
    print(_dump(payload, args.format), end="")
    return 0


def _cmd_resolve(args: argparse.Namespace) -> int:
    engine = _engine(args)
    order = engine.resolve(args.name, args.type)
    merged = merge(order)
    payload = extract_section(merged, args.section) if args.section else merged
    if args.show_order:
        if args.format == "json":
            payload = {
                "config": payload,
                "order": [descriptor.to_json() for descriptor in order],
            }
        else:
            _render_order_table("Resolution Order", order)
    print(_dump(payload, args.format), end="")
    return 0


def _cmd_trace(args: argparse.Namespace) -> int:
    if args.name:
        result = _engine(args).trace(args.key, args.name, args.type)
    else:
        engine, config_path = _project_config(args)
        result = engine.trace_project(args.key, config_path)
    if args.format == "json":
        print(json.dumps(result.to_json(), indent=2, sort_keys=True, default=str))
        return 0
    _render_trace_table(result)
    return 0


def _project_config(args: argparse.Namespace) -> tuple[PatternEngine, Path]:
    if args.config:
        return _engine(args), Path(args.config).expanduser().resolve()
    root = _project_root(args, required=True)
    engine = PatternEngine.for_project(root, shipped_dir=args.shipped_dir)
    return engine, project_config_path(root)


def _cmd_show(args: argparse.Namespace) -> int:
    engine, config_path = _project_config(args)
    merged = engine.load_project_config(config_path)
    payload = extract_section(merged, args.section) if args.section else merged
    print(_dump(payload, args.format), end="")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    raw_argv = list(argv) if argv is not None else sys.argv[1:]
    args = parser.parse_args(raw_argv)
    setup_logging(level=level_for_verbosity(args.verbose) if args.verbose else None)
    command = str(getattr(args, "command", "unknown"))
    started = time.perf_counter()
    _cli_log.info("cli_command_start command=%s argv=%s", command, " ".join(raw_argv))

    exit_code = 1
    try:
        exit_code = int(args.handler(args))
    except PatternError as exc:
        _cli_log.error(
            "cli_command_error command=%s kind=%s error=%s",
            command,
            exc.kind,
            str(exc).splitlines()[0],
        )
        print(f"[{exc.kind.replace('_', ' ')} error] {exc}", file=sys.stderr)
        exit_code = 2
    except ConfigError as exc:
        _cli_log.error("cli_command_error command=%s kind=config error=%s", command, exc)
        print(f"[config error] {exc}", file=sys.stderr)
        exit_code = 2
    except KeyboardInterrupt:
        _cli_log.error("cli_command_error command=%s kind=interrupted", command)
        print("\n[interrupted]", file=sys.stderr)
        exit_code = 130
    except (OSError, ValueError) as exc:
        _cli_log.error(
            "cli_command_error command=%s kind=%s error=%s",
            command,
            type(exc).__name__,
            exc,
        )
        print(f"[error] {type(exc).__name__}: {exc}", file=sys.stderr)
        exit_code = 1
    finally:
        duration_sec = time.perf_counter() - started
        _cli_log.info(
            "cli_command_end command=%s exit_code=%s duration_sec=%.3f",
            command,
            exit_code,
            duration_sec,
        )

    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
