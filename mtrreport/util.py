from __future__ import annotations

import asyncio
import contextlib
import os
import tempfile
from datetime import datetime
from pathlib import Path
from shutil import which as _which
from typing import Iterable, Optional, Union

from icmplib import is_hostname, is_ipv4_address, is_ipv6_address

# Characters that must never reach a command line
_SHELL_META = set(";&|`$<>")

_TRUE = {"1", "t", "T", "true", "TRUE", "True"}
_FALSE = {"0", "f", "F", "false", "FALSE", "False"}


class ValidationError(ValueError):
    """Bad caller input, rejected before any probe runs."""


# ---------------- Input validation ----------------

def is_ip_literal(s: str) -> bool:
    return is_ipv4_address(s) or is_ipv6_address(s)


def validate_target(target: Optional[str]) -> str:
    target = (target or "").strip()
    if not target:
        raise ValidationError("hostname parameter is required")
    if any(c in _SHELL_META for c in target) or any(c.isspace() for c in target):
        raise ValidationError("invalid hostname format")
    if target.startswith("-"):
        raise ValidationError("invalid hostname format")
    if not (is_ip_literal(target) or is_hostname(target)):
        raise ValidationError("invalid hostname format")
    return target


def validate_count(value: Union[str, int, None], default: int = 20, maximum: int = 100) -> int:
    if value is None or value == "":
        return default
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise ValidationError("invalid count parameter")
    if count <= 0:
        raise ValidationError("invalid count parameter")
    if count > maximum:
        raise ValidationError(f"count cannot exceed {maximum}")
    return count


def parse_bool(value: Optional[str], name: str, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValidationError(f"invalid {name} parameter")


# ---------------- Filesystem helpers ----------------

def ensure_dir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)


def default_log_dir() -> Path:
    base = Path.home() / "mtr" / "reports"
    ensure_dir(base)
    return base


def timestamp_filename(prefix: str = "mtr", ext: str = ".txt") -> str:
    # mtr-09-24-2025-01-51-57.txt
    ts = datetime.now().strftime("%m-%d-%Y-%H-%M-%S")
    return f"{prefix}-{ts}{ext}"


def atomic_write_text(path: Path, text: str) -> None:
    """Safely write text by using a temporary file and atomic rename."""
    ensure_dir(path.parent)
    with tempfile.NamedTemporaryFile(
        "w", delete=False, dir=str(path.parent), encoding="utf-8", newline="\n"
    ) as tmp:
        tmp.write(text)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp_path = Path(tmp.name)
    tmp_path.replace(path)


# ---------------- Time helpers ----------------

def now_local_str() -> str:
    """Current local time as '09-24-2025 1:02:11PM'."""
    now = datetime.now()
    return f"{now.strftime('%m-%d-%Y')} {now.strftime('%I:%M:%S%p').lstrip('0')}"


# ---------------- Process / system helpers ----------------

async def _kill_proc(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    with contextlib.suppress(ProcessLookupError):
        proc.kill()
    with contextlib.suppress(Exception):
        await asyncio.wait_for(proc.wait(), timeout=1.0)


async def run_proc(*args: str, timeout: Optional[float] = None) -> tuple[bytes, bytes, int]:
    """
    Run a subprocess, capture stdout/stderr, with optional timeout.
    The child is killed if we time out or get cancelled.
    """
    proc = await asyncio.create_subprocess_exec(
        *args, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
    )
    try:
        out_b, err_b = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except (asyncio.TimeoutError, asyncio.CancelledError):
        await _kill_proc(proc)
        raise
    return out_b, err_b, proc.returncode


def which(candidates: Iterable[str] | str) -> Optional[str]:
    if isinstance(candidates, str):
        return _which(candidates)
    for c in candidates:
        p = _which(c)
        if p:
            return p
    return None
