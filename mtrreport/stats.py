from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional

from .raw import RawRecord, tokenize_line

UNKNOWN_HOST = "???"


@dataclass
class HopStat:
    ttl: int
    hostname: str = UNKNOWN_HOST
    address: str = ""
    sent: int = 0
    recv: int = 0
    last_ms: float = 0.0
    best_ms: float = math.inf
    worst_ms: float = 0.0
    avg_ms: float = 0.0
    stdev_ms: float = 0.0
    loss_pct: float = 100.0
    # Welford running sum of squared deviations from the mean
    m2: float = 0.0

    def add_sample(self, rtt_ms: float) -> None:
        self.recv += 1
        n = self.recv
        self.last_ms = rtt_ms
        self.best_ms = min(self.best_ms, rtt_ms)
        self.worst_ms = max(self.worst_ms, rtt_ms)

        prev_avg = self.avg_ms
        self.avg_ms = (prev_avg * (n - 1) + rtt_ms) / n
        self.m2 += (rtt_ms - prev_avg) * (rtt_ms - self.avg_ms)
        if n > 1:
            self.stdev_ms = math.sqrt(self.m2 / (n - 1))


class Circuit:
    """
    Per-run hop table built from `mtr --raw` records.

    Holds the sequence index (probe seq id -> hop that announced it) so
    ping results get credited to the hop that sent the probe.
    """

    def __init__(self, count: int) -> None:
        self.count = count
        self.hops: Dict[int, HopStat] = {}
        self.seq_index: Dict[str, int] = {}

    def _get(self, ttl: int) -> HopStat:
        hop = self.hops.get(ttl)
        if not hop:
            hop = HopStat(ttl=ttl, sent=self.count)
            self.hops[ttl] = hop
        return hop

    def feed(self, rec: RawRecord) -> None:
        hop = self._get(rec.hop)

        if rec.kind == "h":
            hop.address = rec.fields[0]
            # an IP stands in for the name until a DNS record shows up
            if hop.hostname == UNKNOWN_HOST:
                hop.hostname = rec.fields[0]

        elif rec.kind == "d":
            hop.hostname = rec.fields[0]

        elif rec.kind == "x":
            self.seq_index[rec.fields[0]] = rec.hop

        elif rec.kind == "p":
            usec, seq = rec.fields[0], rec.fields[1]
            origin = self.seq_index.get(seq)
            if origin is None:
                return
            try:
                value = float(usec)
            except ValueError:
                return
            if not math.isfinite(value):
                return
            self._get(origin).add_sample(value / 1000.0)

    def feed_lines(self, lines: Iterable[str]) -> None:
        for line in lines:
            rec = tokenize_line(line)
            if rec is not None:
                self.feed(rec)

    def ordered_hops(self) -> List[HopStat]:
        """
        Finalised hops in TTL order with adjacent duplicates collapsed.

        Returns copies; the circuit itself is left as parsed.
        """
        if not self.hops:
            return []

        out: List[HopStat] = []
        prev: Optional[HopStat] = None
        for ttl in range(1, max(self.hops) + 1):
            hop = self.hops.get(ttl)
            if hop is None:
                continue
            if prev is not None and _same_host(hop, prev):
                continue
            done = _finalize(hop)
            out.append(done)
            prev = done
        return out


def _same_host(hop: HopStat, prev: HopStat) -> bool:
    if hop.address and hop.address == prev.address:
        return True
    return hop.hostname != UNKNOWN_HOST and hop.hostname == prev.hostname


def _finalize(hop: HopStat) -> HopStat:
    best = 0.0 if math.isinf(hop.best_ms) else hop.best_ms
    return replace(hop, best_ms=best, loss_pct=loss_percent(hop.sent, hop.recv))


def loss_percent(sent: int, recv: int) -> float:
    if sent == 0:
        return 100.0
    return 100.0 * (sent - recv) / sent


def parse_raw_output(text: str, count: int) -> List[HopStat]:
    """Parse one run's raw capture into the ordered, deduplicated hop list."""
    circuit = Circuit(count)
    circuit.feed_lines(text.splitlines())
    return circuit.ordered_hops()
