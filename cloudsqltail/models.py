"""Record model and Pub/Sub payload decoding."""

import json
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

NANOS_PER_SECOND = 1_000_000_000

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# RFC 3339 date-time, as emitted by Cloud Logging sinks.
_RFC3339_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})"
    r"(?:\.(\d+))?"
    r"(?:([Zz])|([+-])(\d{2}):(\d{2}))",
    re.ASCII,
)


@dataclass(frozen=True)
class Record:
    text: str
    timestamp_ns: int

    @property
    def timestamp(self) -> datetime:
        """UTC datetime (truncated to microseconds)."""
        seconds, nanos = divmod(self.timestamp_ns, NANOS_PER_SECOND)
        return _EPOCH + timedelta(seconds=seconds, microseconds=nanos // 1000)

    @property
    def starts_entry(self) -> bool:
        return self.text.startswith("[")


def parse_timestamp(value: str) -> int:
    """Parse an RFC 3339 timestamp into nanoseconds since the epoch (UTC).

    Fractions longer than nine digits are truncated. Raises ValueError on
    anything that is not a valid date-time.
    """
    m = _RFC3339_RE.fullmatch(value)
    if m is None:
        raise ValueError(f"invalid timestamp: {value!r}")

    year, month, day, hour, minute, second = (int(g) for g in m.group(1, 2, 3, 4, 5, 6))
    fraction = m.group(7) or ""
    if m.group(8):
        tz = timezone.utc
    else:
        offset_hours, offset_minutes = int(m.group(10)), int(m.group(11))
        if offset_hours > 23 or offset_minutes > 59:
            raise ValueError(f"invalid offset in timestamp: {value!r}")
        offset = timedelta(hours=offset_hours, minutes=offset_minutes)
        tz = timezone(-offset if m.group(9) == "-" else offset)

    dt = datetime(year, month, day, hour, minute, second, tzinfo=tz)
    delta = dt - _EPOCH
    seconds = delta.days * 86400 + delta.seconds
    nanos = int(fraction[:9].ljust(9, "0")) if fraction else 0
    return seconds * NANOS_PER_SECOND + nanos


def format_timestamp(timestamp_ns: int) -> str:
    """Format as ``YYYY-MM-DD HH:MM:SS[.fraction] UTC`` (the Postgres log style).

    The fraction keeps up to nine digits with trailing zeros stripped and is
    left out entirely for whole seconds.
    """
    seconds, nanos = divmod(timestamp_ns, NANOS_PER_SECOND)
    text = (_EPOCH + timedelta(seconds=seconds)).strftime("%Y-%m-%d %H:%M:%S")
    if nanos:
        text += "." + f"{nanos:09d}".rstrip("0")
    return text + " UTC"


def decode_record(data: bytes) -> Record | None:
    """Decode a Pub/Sub message body into a Record.

    Returns None when the payload is not a JSON object carrying a string
    ``textPayload`` and a valid ``timestamp``. Other fields are ignored.
    """
    try:
        payload = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError, RecursionError):
        return None

    if not isinstance(payload, dict):
        return None

    text = payload.get("textPayload")
    raw_ts = payload.get("timestamp")
    if not isinstance(text, str) or not isinstance(raw_ts, str):
        return None

    try:
        timestamp_ns = parse_timestamp(raw_ts)
    except ValueError:
        return None

    return Record(text=text, timestamp_ns=timestamp_ns)
