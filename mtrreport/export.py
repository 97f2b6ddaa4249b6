from __future__ import annotations

import io
from pathlib import Path
from typing import Sequence

from .render import build_summary, host_label
from .stats import HopStat
from .util import atomic_write_text, now_local_str

# --- helpers ---------------------------------------------------------------

def _build_table_lines(hops: Sequence[HopStat]) -> list[str]:
    """Plain-text MTR-style table as a list of lines (without trailing \\n)."""
    lines: list[str] = []
    lines.append(" Hop   Loss%  Snt     Last      Avg     Best     Wrst    StDev  Host")
    lines.append(" ---  ------  ---  -------  -------  -------  -------  -------  ----------------------------------------")

    # Widths:
    #   Hop 3, Loss% 6 (one decimal), Snt 3, latencies 7 (one decimal), Host left
    for hop in hops:
        line = (
            f"{hop.ttl:>4}  "
            f"{hop.loss_pct:>6.1f}  "
            f"{hop.sent:>3}  "
            f"{hop.last_ms:>7.1f}  "
            f"{hop.avg_ms:>7.1f}  "
            f"{hop.best_ms:>7.1f}  "
            f"{hop.worst_ms:>7.1f}  "
            f"{hop.stdev_ms:>7.1f}  "
            f"{host_label(hop)}"
        )
        lines.append(line)

    return lines


def _build_alert_lines(hops: Sequence[HopStat], when: str) -> list[str]:
    """One line per resolved hop that lost packets."""
    lines: list[str] = []
    for hop in hops:
        lost = max(0, hop.sent - hop.recv)
        if lost > 0 and hop.address:
            lines.append(f"❌ Packet loss detected on hop {hop.ttl} at {when} - {lost} packets were lost")
    return lines


# --- public API ------------------------------------------------------------

def format_text_report(hops: Sequence[HopStat], target: str, when: str) -> str:
    buf = io.StringIO()
    buf.write(f"mtr-report → {target} ({when})\n\n")

    for line in _build_table_lines(hops):
        buf.write(line)
        buf.write("\n")

    buf.write(build_summary(hops))

    alerts = _build_alert_lines(hops, when)
    if alerts:
        buf.write("\nAlerts:\n")
        for line in alerts:
            buf.write(line)
            buf.write("\n")
    return buf.getvalue()


def write_text_report(path: Path, hops: Sequence[HopStat], target: str) -> None:
    """Build the plain-text report (table + summary + alerts) and write it atomically."""
    atomic_write_text(Path(path), format_text_report(hops, target, now_local_str()))
