"""
PrefixMerger:
- union of PrefixRecord from every source
- dedup of identical (prefix, country) pairs
- same prefix with a different country -> ConflictError, the build stops
- result sorted by prefix string, independent of source order
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from .aggregator import PrefixRecord
from .errors import ConflictError


@dataclass
class MergeStats:
    before: int = 0
    dropped_dup: int = 0
    after: int = 0

    def to_dict(self) -> Dict:
        return {
            "before": self.before,
            "dropped_dup": self.dropped_dup,
            "after": self.after,
        }


class PrefixMerger:
    def __init__(self):
        # prefix -> (country, source that first set it)
        self._seen: Dict[str, Tuple[str, str]] = {}
        self.stats = MergeStats()

    def __len__(self) -> int:
        return len(self._seen)

    def add(self, records: Iterable[PrefixRecord], source: str = "") -> None:
        """Fold one source's records into the set; raises ConflictError."""
        for rec in records:
            self.stats.before += 1

            prev = self._seen.get(rec.prefix)
            if prev is None:
                self._seen[rec.prefix] = (rec.country, source)
                continue

            prev_country, prev_source = prev
            if prev_country != rec.country:
                raise ConflictError(
                    rec.prefix,
                    prev_country,
                    rec.country,
                    existing_source=prev_source,
                    incoming_source=source,
                )
            self.stats.dropped_dup += 1

    def result(self) -> Tuple[List[PrefixRecord], MergeStats]:
        merged = [
            PrefixRecord(prefix=prefix, country=country)
            for prefix, (country, _) in sorted(self._seen.items())
        ]
        self.stats.after = len(merged)
        return merged, self.stats


def merge_records(records: Iterable[PrefixRecord]) -> List[PrefixRecord]:
    merger = PrefixMerger()
    merger.add(records)
    merged, _ = merger.result()
    return merged
