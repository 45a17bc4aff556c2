"""
RIR delegated-extended stats endpoints.
"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Tuple

SOURCES: Dict[str, str] = {
    "arin": "https://ftp.arin.net/pub/stats/arin/delegated-arin-extended-latest",
    "ripe": "https://ftp.ripe.net/pub/stats/ripencc/delegated-ripencc-extended-latest",
    "apnic": "https://ftp.apnic.net/stats/apnic/delegated-apnic-extended-latest",
    "lacnic": "https://ftp.lacnic.net/pub/stats/lacnic/delegated-lacnic-extended-latest",
    "afrinic": "https://ftp.afrinic.net/pub/stats/afrinic/delegated-afrinic-extended-latest",
}


def iter_sources() -> Iterator[Tuple[str, str]]:
    """(name, url) pairs in registry order."""
    return iter(SOURCES.items())


def source_label(name: str) -> str:
    return f"{name}-delegated"


def manifest_sources(names: Iterable[str]) -> List[str]:
    """Labels for the manifest, sorted so dict order never leaks into output."""
    return sorted(source_label(n) for n in names)
