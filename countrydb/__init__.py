"""
countrydb package: RIR delegated stats -> country prefix database.

Modules:
- sources: RIR stats endpoints (static registry)
- fetcher: full-body download with retries and linear backoff
- parser: delegated-extended line decoder
- aggregator: IPv4 range -> minimal CIDR set, IPv6 prefix pass-through
- merger: cross-source union, dedup, conflict detection
- writer: gzip CSV artifact, sha256 sidecar, latest.json manifest
- reporter: markdown build report
- errors: fatal error kinds
"""
