from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from .stats import HopStat

# (header, width, justify)
COLUMNS = [
    ("Hop", 3, "right"),
    ("Loss%", 6, "right"),
    ("Snt", 3, "right"),
    ("Last", 7, "right"),
    ("Avg", 7, "right"),
    ("Best", 7, "right"),
    ("Wrst", 7, "right"),
    ("StDev", 7, "right"),
    ("Host", 40, "left"),
]

DEFAULT_WIDTH = 120


@dataclass(frozen=True)
class LossThresholds:
    """Loss% above `red` is red, above `yellow` is yellow, anything else green."""
    red: float = 20.0
    yellow: float = 5.0

    def style_for(self, loss_pct: float) -> str:
        if loss_pct > self.red:
            return "red"
        if loss_pct > self.yellow:
            return "yellow"
        return "green"


def _fmt_ms(v: float) -> str:
    return f"{v:.1f}"


def host_label(hop: HopStat) -> str:
    name, addr = hop.hostname, hop.address
    if addr and name != addr and addr not in name:
        return f"{name} ({addr})"
    return name


def build_table(
    hops: Sequence[HopStat],
    *,
    thresholds: LossThresholds = LossThresholds(),
    ascii_mode: bool = False,
) -> Table:
    """Create a Rich Table for a finished run."""
    t = Table(
        box=box.ASCII if ascii_mode else box.ROUNDED,
        show_edge=True,
        show_lines=False,
        pad_edge=False,
    )
    for header, width, justify in COLUMNS:
        t.add_column(header, justify=justify, width=width, no_wrap=header != "Host", overflow="fold")

    # Text cells only: hostnames must never be read as console markup
    for hop in hops:
        t.add_row(
            Text(str(hop.ttl)),
            Text(f"{hop.loss_pct:.1f}", style=thresholds.style_for(hop.loss_pct)),
            Text(str(hop.sent)),
            Text(_fmt_ms(hop.last_ms)),
            Text(_fmt_ms(hop.avg_ms)),
            Text(_fmt_ms(hop.best_ms)),
            Text(_fmt_ms(hop.worst_ms)),
            Text(_fmt_ms(hop.stdev_ms)),
            Text(host_label(hop)),
        )
    return t


def render_table(table: Table, *, color: bool = True, width: int = DEFAULT_WIDTH) -> str:
    """Render a Rich Table to a string."""
    # own console per call, never the process terminal
    console = Console(
        color_system="standard" if color else None,
        force_terminal=color,
        no_color=not color,
        width=width,
        highlight=False,
        emoji=False,
    )
    with console.capture() as cap:
        console.print(table)
    return cap.get()


def format_header(target: str, thresholds: LossThresholds) -> str:
    return (
        "\nMTR Report\n==========\n\n"
        "Column Explanation:\n"
        "Loss%    : Percentage of packets lost at this hop\n"
        "Snt      : Number of packets sent\n"
        "Last     : The latency of the last packet sent (ms)\n"
        "Avg      : Average latency of all packets (ms)\n"
        "Best     : The best (lowest) latency observed (ms)\n"
        "Wrst     : The worst (highest) latency observed (ms)\n"
        "StDev    : Standard deviation of latencies (ms)\n"
        "Host     : Hostname or IP address of the hop\n"
        "\n"
        "Color Indicators (Loss%):\n"
        f"Red      : Loss above {thresholds.red:g}%\n"
        f"Yellow   : Loss above {thresholds.yellow:g}%\n"
        f"Green    : Loss at or below {thresholds.yellow:g}%\n"
        "\n"
        f"Target Host: {target}\n\n"
    )


def build_summary(hops: Sequence[HopStat]) -> str:
    if not hops:
        return "\nNo route data available.\n"

    lines: List[str] = ["", "Summary:", "--------"]

    # first hop wins ties
    worst_loss = hops[0]
    worst_latency = hops[0]
    for hop in hops:
        if hop.loss_pct > worst_loss.loss_pct:
            worst_loss = hop
        if hop.avg_ms > worst_latency.avg_ms:
            worst_latency = hop

    if worst_loss.loss_pct > 0:
        lines.append(
            f"Worst packet loss at hop {worst_loss.ttl} ({worst_loss.hostname}): {worst_loss.loss_pct:.1f}%"
        )
    else:
        lines.append("No packet loss detected")

    lines.append(
        f"Highest average latency at hop {worst_latency.ttl} ({worst_latency.hostname}): {worst_latency.avg_ms:.1f} ms"
    )

    last = hops[-1]
    lines += [
        "",
        f"End-to-end metrics for {last.hostname}:",
        f"  Average: {last.avg_ms:.1f} ms",
        f"  Best: {last.best_ms:.1f} ms",
        f"  Worst: {last.worst_ms:.1f} ms",
        f"  Standard Deviation: {last.stdev_ms:.1f} ms",
    ]
    return "\n".join(lines) + "\n"


def render_report(
    hops: Sequence[HopStat],
    target: str,
    *,
    report: bool = False,
    thresholds: LossThresholds = LossThresholds(),
    color: bool = True,
    ascii_mode: bool = False,
    width: int = DEFAULT_WIDTH,
) -> str:
    """
    Full text for one run: optional report header, the hop table, the summary.
    Pure function of its arguments.
    """
    parts: List[str] = []
    if report:
        parts.append(format_header(target, thresholds))
    if hops:
        table = build_table(hops, thresholds=thresholds, ascii_mode=ascii_mode)
        parts.append(render_table(table, color=color, width=width))
    parts.append(build_summary(hops))
    return "".join(parts)
