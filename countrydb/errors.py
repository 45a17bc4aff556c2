"""
Error kinds of the countrydb build.

Every fatal condition is a CountryDBError subclass; pipeline.main() turns
any of them into a message on stderr and a non-zero exit code.
Malformed lines and records are never raised, only counted.
"""

from __future__ import annotations

from typing import Optional


class CountryDBError(Exception):
    """Base class for all fatal build errors."""


class ConfigError(CountryDBError):
    pass


class FetchError(CountryDBError):
    """Download of one source failed on every attempt."""

    def __init__(self, source: str, attempts: int, last_error: Optional[BaseException] = None):
        self.source = source
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"failed to fetch {source} after {attempts} attempts: {last_error}"
        )


class ParseError(CountryDBError):
    """Stream could not be read while scanning a stats file."""

    def __init__(self, message: str, offset: int, source: str = ""):
        self.offset = offset
        self.source = source
        prefix = f"{source}: " if source else ""
        super().__init__(f"{prefix}{message} (byte offset {offset})")


class ConflictError(CountryDBError):
    """Same prefix mapped to two different countries."""

    def __init__(
        self,
        prefix: str,
        existing: str,
        incoming: str,
        existing_source: str = "",
        incoming_source: str = "",
    ):
        self.prefix = prefix
        self.existing = existing
        self.incoming = incoming
        self.existing_source = existing_source
        self.incoming_source = incoming_source

        left = f"{existing} ({existing_source})" if existing_source else existing
        right = f"{incoming} ({incoming_source})" if incoming_source else incoming
        super().__init__(f"country conflict for prefix {prefix}: {left} vs {right}")


class ArtifactError(CountryDBError):
    pass
