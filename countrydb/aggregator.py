"""
Aggregator:
- IPv4 (start, count) -> minimal ordered set of aligned CIDR blocks
- IPv6 (start, prefix length) -> one prefix, passed through after validation
- records that do not validate are skipped and counted
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .parser import RangeRecord

IPV4_BITS = 32
IPV4_MAX = (1 << IPV4_BITS) - 1
IPV6_BITS = 128


@dataclass(frozen=True, order=True)
class PrefixRecord:
    """Final unit of the database: CIDR prefix and its country."""
    prefix: str
    country: str


@dataclass
class AggregateStats:
    ranges: int = 0
    rejected: int = 0
    ipv4_prefixes: int = 0
    ipv6_prefixes: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "ranges": self.ranges,
            "rejected": self.rejected,
            "ipv4_prefixes": self.ipv4_prefixes,
            "ipv6_prefixes": self.ipv6_prefixes,
        }


def ipv4_range_to_cidrs(start: str, count: int, country: str) -> List[PrefixRecord]:
    """
    Split [start, start + count - 1] into the fewest aligned CIDR blocks.

    Left to right, each block starts as a /32 and doubles while the doubled
    block is still aligned at cur and still ends inside the range.
    Returns [] for an unparseable start, a non-positive count, or a range
    running past 255.255.255.255.
    """
    try:
        addr = ipaddress.IPv4Address(start)
    except ValueError:
        return []
    if count <= 0:
        return []

    cur = int(addr)
    end = cur + count - 1
    if end > IPV4_MAX:
        return []

    out: List[PrefixRecord] = []
    while cur <= end:
        prefix_len = IPV4_BITS
        while prefix_len > 0:
            bigger = 1 << (IPV4_BITS - prefix_len + 1)
            if cur % bigger != 0 or cur + bigger - 1 > end:
                break
            prefix_len -= 1

        out.append(
            PrefixRecord(
                prefix=f"{ipaddress.IPv4Address(cur)}/{prefix_len}",
                country=country,
            )
        )
        cur += 1 << (IPV4_BITS - prefix_len)

    return out


def ipv6_to_cidr(start: str, value: int, country: str) -> Optional[PrefixRecord]:
    """IPv6 stats lines carry a prefix length, not a count."""
    try:
        addr = ipaddress.IPv6Address(start)
    except ValueError:
        return None
    if addr.ipv4_mapped is not None or getattr(addr, "scope_id", None):
        return None
    if not 0 <= value <= IPV6_BITS:
        return None
    return PrefixRecord(prefix=f"{addr.compressed}/{value}", country=country)


class Aggregator:
    def __init__(self):
        self.stats = AggregateStats()

    def aggregate(self, records: Iterable[RangeRecord]) -> List[PrefixRecord]:
        self.stats = AggregateStats()
        out: List[PrefixRecord] = []

        for rec in records:
            self.stats.ranges += 1

            if rec.family == "ipv4":
                blocks = ipv4_range_to_cidrs(rec.start, rec.value, rec.country)
                if not blocks:
                    self.stats.rejected += 1
                    continue
                self.stats.ipv4_prefixes += len(blocks)
                out.extend(blocks)

            elif rec.family == "ipv6":
                block = ipv6_to_cidr(rec.start, rec.value, rec.country)
                if block is None:
                    self.stats.rejected += 1
                    continue
                self.stats.ipv6_prefixes += 1
                out.append(block)

            else:
                self.stats.rejected += 1

        return out
