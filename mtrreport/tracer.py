from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from icmplib import NameLookupError, async_resolve

from .config import Settings
from .render import render_report
from .stats import HopStat, parse_raw_output
from .util import is_ip_literal, run_proc, which

logger = logging.getLogger(__name__)

# Looked up in order when no explicit mtr_path is configured
MTR_CANDIDATES = ("mtr", "/usr/sbin/mtr", "/usr/local/sbin/mtr", "/opt/homebrew/sbin/mtr")


class ProbeError(RuntimeError):
    """mtr could not produce usable output for this run."""


class MtrNotFoundError(ProbeError):
    pass


class MtrPermissionError(ProbeError):
    pass


class HostResolutionError(ProbeError):
    pass


class NoRouteDataError(ProbeError):
    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


@dataclass
class TraceResult:
    target: str
    count: int
    report: bool
    hops: List[HopStat] = field(default_factory=list)
    output: str = ""


def resolve_mtr(settings: Settings) -> str:
    if settings.mtr_path:
        return settings.mtr_path
    path = which(MTR_CANDIDATES)
    if not path:
        raise MtrNotFoundError("mtr command not found - please install mtr")
    return path


def mtr_args(mtr_path: str, target: str, count: int, report: bool, settings: Settings) -> List[str]:
    args: List[str] = []
    if settings.use_sudo:
        # -n: never prompt for a password
        args += [settings.sudo_path, "-n"]
    args += [mtr_path, "--raw"]
    if not report:
        args.append("-n")  # no reverse DNS outside report mode
    args += ["-c", str(count), target]
    return args


def classify_output(text: str, target: str = "") -> Optional[ProbeError]:
    """Map well-known mtr/sudo/shell failure text to a specific error."""
    if "command not found" in text or "No such file or directory" in text:
        return MtrNotFoundError("mtr command not found - please install mtr")
    if "socket: Permission denied" in text or "a password is required" in text:
        return MtrPermissionError("permission denied - try running with sudo")
    if "Failure to resolve" in text or "Name or service not known" in text:
        return HostResolutionError(f"failed to resolve hostname: {target}")
    return None


async def check_resolvable(target: str) -> None:
    if is_ip_literal(target):
        return
    try:
        await async_resolve(target)
    except NameLookupError:
        raise HostResolutionError(f"failed to resolve hostname: {target}")


async def run_mtr(
    target: str,
    count: int,
    report: bool,
    settings: Settings,
    *,
    timeout: Optional[float] = None,
) -> str:
    """
    Run mtr once in raw mode and return its combined stdout/stderr.
    Raises a ProbeError subclass when the run fails.
    """
    await check_resolvable(target)

    mtr_path = resolve_mtr(settings)
    args = mtr_args(mtr_path, target, count, report, settings)
    logger.debug("running %s", " ".join(args))

    try:
        out_b, err_b, rc = await run_proc(*args, timeout=timeout)
    except FileNotFoundError:
        raise MtrNotFoundError(f"mtr command not found: {args[0]}")
    except PermissionError:
        raise MtrPermissionError("permission denied - try running with sudo")
    except asyncio.TimeoutError:
        raise ProbeError(f"mtr timed out after {timeout:g}s")

    output = out_b.decode("utf-8", "replace") + err_b.decode("utf-8", "replace")
    if rc != 0:
        err = classify_output(output, target)
        if err is not None:
            raise err
        if output.strip():
            raise ProbeError(f"mtr error: exit status {rc}, output: {output.strip()}")
        raise ProbeError(f"mtr error: exit status {rc}")
    return output


async def trace(
    target: str,
    count: int,
    report: bool,
    settings: Settings,
    *,
    color: bool = True,
    ascii_mode: bool = False,
    timeout: Optional[float] = None,
) -> TraceResult:
    """Run mtr, aggregate its raw records and render the report."""
    raw = await run_mtr(target, count, report, settings, timeout=timeout)

    hops = parse_raw_output(raw, count)
    if not hops:
        err = classify_output(raw, target)
        if err is not None:
            raise err
        raise NoRouteDataError(f"no route data available\nRaw output:\n{raw}", raw)

    output = render_report(
        hops,
        target,
        report=report,
        thresholds=settings.thresholds,
        color=color,
        ascii_mode=ascii_mode,
        width=settings.table_width,
    )
    return TraceResult(target=target, count=count, report=report, hops=hops, output=output)
