"""
Parser for RIR "delegated extended" statistics files.

Line format:

    registry|cc|type|start|value|date|status[|opaque-id|...]

Only ipv4/ipv6 lines with status allocated/assigned and a real two-letter
country code survive. A bad line is skipped and counted, never raised.
"""
import io
import re
from dataclasses import dataclass, fields
from typing import BinaryIO, Dict, Iterator, List, Optional, Tuple

from .errors import ParseError

# longest line accepted before the stream is treated as broken
MAX_LINE_BYTES = 4 * 1024 * 1024

MIN_FIELDS = 7
ACCEPTED_STATUSES = ("allocated", "assigned")
ACCEPTED_TYPES = ("ipv4", "ipv6")

# RIR-internal "not specified" code
UNSPECIFIED_COUNTRY = "ZZ"

_COUNTRY_RE = re.compile(r"[A-Z]{2}")
_INT_RE = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class RangeRecord:
    """One accepted stats line, before CIDR conversion"""
    registry: str
    country: str
    family: str  # ipv4, ipv6
    start: str
    value: int  # ipv4: address count, ipv6: prefix length
    date: str = ""
    status: str = ""


@dataclass
class ParseStats:
    lines: int = 0
    skipped_comment: int = 0
    skipped_short: int = 0
    skipped_status: int = 0
    skipped_country: int = 0
    skipped_type: int = 0
    skipped_value: int = 0
    accepted: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @property
    def skipped(self) -> int:
        return self.lines - self.accepted - self.skipped_comment


def is_country_code(cc: str) -> bool:
    return bool(_COUNTRY_RE.fullmatch(cc)) and cc != UNSPECIFIED_COUNTRY


class DelegatedStatsParser:
    """Parser for delegated-extended stats"""

    def __init__(self):
        self.stats = ParseStats()

    @staticmethod
    def split_line(line: str) -> Tuple[Optional[RangeRecord], str]:
        """
        Decode one line (without its newline).

        Returns (record, reason); reason names the ParseStats counter
        that a skipped line falls into, or "accepted".
        """
        if not line or line.startswith("#"):
            return None, "skipped_comment"

        parts = line.split("|")
        if len(parts) < MIN_FIELDS:
            return None, "skipped_short"

        registry, cc, typ, start, value, date, status = parts[:MIN_FIELDS]

        if status not in ACCEPTED_STATUSES:
            return None, "skipped_status"

        # str.upper() maps "ß" to "SS"
        if not cc.isascii():
            return None, "skipped_country"
        cc = cc.upper()
        if not is_country_code(cc):
            return None, "skipped_country"

        if typ not in ACCEPTED_TYPES:
            return None, "skipped_type"

        if not _INT_RE.fullmatch(value):
            return None, "skipped_value"

        record = RangeRecord(
            registry=registry,
            country=cc,
            family=typ,
            start=start,
            value=int(value),
            date=date,
            status=status,
        )
        return record, "accepted"

    @classmethod
    def parse_line(cls, line: str) -> Optional[RangeRecord]:
        record, _ = cls.split_line(line.rstrip("\r\n"))
        return record

    def parse_stream(self, stream: BinaryIO, source: str = "") -> List[RangeRecord]:
        """Scan a binary stream line by line; only read failures raise."""
        self.stats = ParseStats()
        records: List[RangeRecord] = []

        for raw in _iter_lines(stream, source):
            self.stats.lines += 1
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            record, reason = self.split_line(line)
            if record is None:
                setattr(self.stats, reason, getattr(self.stats, reason) + 1)
                continue
            self.stats.accepted += 1
            records.append(record)

        return records

    def parse_bytes(self, data: bytes, source: str = "") -> List[RangeRecord]:
        return self.parse_stream(io.BytesIO(data), source=source)

    def parse_text(self, text: str, source: str = "") -> List[RangeRecord]:
        return self.parse_bytes(text.encode("utf-8"), source=source)


def _iter_lines(stream: BinaryIO, source: str) -> Iterator[bytes]:
    offset = 0
    while True:
        try:
            raw = stream.readline(MAX_LINE_BYTES + 2)
        except OSError as exc:
            raise ParseError(f"read failed: {exc}", offset=offset, source=source) from exc
        if not raw:
            return
        if len(raw.rstrip(b"\r\n")) > MAX_LINE_BYTES:
            raise ParseError(
                f"line longer than {MAX_LINE_BYTES} bytes", offset=offset, source=source
            )
        yield raw
        offset += len(raw)
