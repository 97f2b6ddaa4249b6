from __future__ import annotations

from typing import NamedTuple, Optional, Tuple

# Record type -> minimum number of fields on the line (type + index + payload)
_MIN_FIELDS = {
    "h": 3,  # h <idx> <address>
    "d": 3,  # d <idx> <dns name words...>
    "x": 3,  # x <idx> <seq>
    "p": 4,  # p <idx> <usec> <seq>
}


class RawRecord(NamedTuple):
    kind: str
    hop: int                # 1-based
    fields: Tuple[str, ...]  # payload after the hop index


def tokenize_line(line: str) -> Optional[RawRecord]:
    """
    Split one line of `mtr --raw` output into a RawRecord.

    Returns None for blank/short lines, record types we don't aggregate,
    and lines whose hop index isn't a non-negative integer.
    """
    parts = line.split()
    if len(parts) < 2:
        return None

    kind = parts[0]
    need = _MIN_FIELDS.get(kind)
    if need is None or len(parts) < need:
        return None

    try:
        idx = int(parts[1])
    except ValueError:
        return None
    if idx < 0:
        return None

    payload = tuple(parts[2:])
    if kind == "d":
        # multi-word names collapse to single spaces
        payload = (" ".join(payload),)
    return RawRecord(kind=kind, hop=idx + 1, fields=payload)
