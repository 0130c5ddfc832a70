from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

STATUS_OK = "OK"


@dataclass(frozen=True)
class Reading:
    """
    One displayable reading extracted from a device line:

        "<seq>, <value> [<unit>...], OK"
    """
    value: str
    unit: Optional[str] = None
    seq: str = ""
    status: str = STATUS_OK

    def value_float(self) -> Optional[float]:
        try:
            return float(self.value)
        except ValueError:
            return None


def parse_line(line: str) -> Optional[Reading]:
    """
    Return a Reading, or None when the line carries nothing to display.

    None is not an error: anything other than exactly three comma-separated
    fields with status "OK" is simply skipped. The value is the first
    whitespace-separated token of the middle field; the rest is kept as the
    unit annotation and not validated.

    The leading sequence field is a single token. A measurement there
    ("23.5 C, 23.5 C, OK") means the device misplaced a comma, and the line
    is skipped rather than trusted.
    """
    parts = [p.strip() for p in line.split(",")]
    if len(parts) != 3 or parts[2] != STATUS_OK:
        return None
    if len(parts[0].split()) > 1:
        return None
    sub = parts[1].split()
    if not sub:
        return None
    unit = " ".join(sub[1:]) or None
    return Reading(value=sub[0], unit=unit, seq=parts[0])
