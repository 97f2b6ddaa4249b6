from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from rich.logging import RichHandler

from .config import Settings, get_settings
from .export import write_text_report
from .tracer import ProbeError, TraceResult, trace
from .util import (
    ValidationError,
    default_log_dir,
    ensure_dir,
    timestamp_filename,
    validate_count,
    validate_target,
)


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _export_path(outfile: str, log_dir: Optional[str]) -> Path:
    if outfile and outfile != "auto":
        out_path = Path(outfile)
        ensure_dir(out_path.parent)
        return out_path
    base_dir = Path(log_dir) if log_dir else default_log_dir()
    ensure_dir(base_dir)
    return base_dir / timestamp_filename(prefix="mtr", ext=".txt")


async def run_once(
    target: str,
    count: int,
    report: bool,
    settings: Settings,
    *,
    color: bool,
    ascii_mode: bool = False,
    export_path: Optional[Path] = None,
) -> TraceResult:
    result = await trace(
        target, count, report, settings,
        color=color, ascii_mode=ascii_mode, timeout=settings.run_timeout,
    )
    if export_path is not None:
        write_text_report(export_path, result.hops, target)
    return result


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    update = {}
    if args.mtr_path:
        update["mtr_path"] = args.mtr_path
    if args.sudo:
        update["use_sudo"] = True
    if args.red is not None:
        update["loss_red_threshold"] = args.red
    if args.yellow is not None:
        update["loss_yellow_threshold"] = args.yellow
    if args.timeout is not None:
        update["run_timeout"] = args.timeout
    if args.width is not None:
        update["table_width"] = args.width
    if args.log_dir:
        update["log_dir"] = args.log_dir
    return settings.model_copy(update=update) if update else settings


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="mtr-report",
        description="Per-hop loss/latency report built on `mtr --raw`.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    ap.add_argument("target", nargs="?", help="Hostname or IP to trace (CLI mode)")
    ap.add_argument("--count", "-c", default=settings.default_count,
                    help=f"Pings per hop (1-{settings.max_count})")
    ap.add_argument("--report", "-r", action="store_true",
                    help="Full report with header and reverse DNS")
    ap.add_argument("--no-color", action="store_true", help="Disable ANSI colours")
    ap.add_argument("--ascii", action="store_true", help="Use ASCII borders")
    ap.add_argument("--width", type=int, default=None, help="Console width for the table")
    ap.add_argument("--red", type=float, default=None, help="Loss%% above which a hop is red")
    ap.add_argument("--yellow", type=float, default=None, help="Loss%% above which a hop is yellow")
    ap.add_argument("--timeout", type=float, default=None, help="Seconds before a run is abandoned")
    ap.add_argument("--mtr-path", default=None, help="Path to the mtr binary")
    ap.add_argument("--sudo", action="store_true", help="Run mtr through `sudo -n`")
    ap.add_argument("--export", action="store_true", help="Write a plain-text report when done")
    ap.add_argument("--outfile", default="auto", help='Path or "auto" to write reports')
    ap.add_argument("--log-dir", default=None, help="Override report directory")
    ap.add_argument("--log-level", default=settings.log_level, help="Logging level")
    ap.add_argument("--server", action="store_true", help="Run the HTTP API instead")
    ap.add_argument("--host", default="0.0.0.0", help="Server bind address")
    ap.add_argument("--port", type=int, default=8080, help="Server port")
    return ap


def serve(settings: Settings, host: str, port: int) -> int:
    import uvicorn

    from .server import create_app

    uvicorn.run(create_app(settings), host=host, port=port, log_config=None)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    settings = get_settings()
    ap = build_parser(settings)
    args = ap.parse_args(argv)
    settings = _apply_overrides(settings, args)
    setup_logging(args.log_level)

    if args.server:
        return serve(settings, args.host, args.port)

    try:
        target = validate_target(args.target)
        count = validate_count(args.count, default=settings.default_count, maximum=settings.max_count)
    except ValidationError as e:
        print(f"error: {e}", file=sys.stderr)
        ap.print_usage(sys.stderr)
        return 2

    export_path = _export_path(args.outfile, settings.log_dir) if args.export else None
    color = not args.no_color and sys.stdout.isatty() and "NO_COLOR" not in os.environ

    try:
        result = asyncio.run(
            run_once(
                target, count, bool(args.report), settings,
                color=color, ascii_mode=bool(args.ascii), export_path=export_path,
            )
        )
    except KeyboardInterrupt:
        # graceful stop on Ctrl+C
        return 130
    except (ProbeError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    sys.stdout.write(result.output)
    sys.stdout.flush()
    if export_path is not None:
        print(export_path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
