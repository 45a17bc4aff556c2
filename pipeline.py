#!/usr/bin/env python3
"""
pipeline.py
Orchestrator of the deflect-geoip countrydb build.

Steps:
  1. Fetch      — download each RIR delegated-extended file (with retries),
                  parse it and convert ranges to CIDR prefixes
  2. Merge      — union of all sources, dedup, fail on country conflicts
  3. Write      — releases/<version>/countrydb.csv.gz + .sha256 + releases/latest.json
  4. Report     — markdown summary → reports/countrydb_report.md

Any fatal error stops the run before latest.json is written.
"""

from __future__ import annotations

import os
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from countrydb.aggregator import Aggregator, PrefixRecord
from countrydb.errors import ConfigError, CountryDBError
from countrydb.fetcher import Fetcher, FetcherConfig
from countrydb.merger import PrefixMerger
from countrydb.parser import DelegatedStatsParser
from countrydb.reporter import Reporter
from countrydb.sources import iter_sources, manifest_sources, source_label
from countrydb.writer import DEFAULT_NAME, ArtifactWriter, Manifest


@dataclass
class SourceResult:
    name: str
    url: str
    bytes: int = 0
    attempts: int = 0
    prefixes: int = 0
    parse: Dict = field(default_factory=dict)
    aggregate: Dict = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "url": self.url,
            "bytes": self.bytes,
            "attempts": self.attempts,
            "prefixes": self.prefixes,
            "parse": self.parse,
            "aggregate": self.aggregate,
        }


def default_version() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


class CountryDBPipeline:

    def __init__(
        self,
        config_path: Optional[str] = None,
        out_dir: Optional[str] = None,
        version: Optional[str] = None,
        config: Optional[dict] = None,
        fetcher: Optional[Fetcher] = None,
        debug: Optional[bool] = None,
    ):
        self.config_path = config_path
        self.config = config if config is not None else self._load_config()

        app = self.config.get("app", {}) or {}
        self.debug = app.get("debug", False) if debug is None else debug
        self.name = app.get("name", DEFAULT_NAME)

        out_cfg = self.config.get("output", {}) or {}
        self.base_out = Path(out_dir or out_cfg.get("base_path", "./dist"))
        self.report_path = out_cfg.get("report_path", "./reports/countrydb_report.md")
        self.version = version or default_version()

        fetch_cfg = FetcherConfig.from_dict(self.config.get("fetch"))
        self.fetcher = fetcher or Fetcher(fetch_cfg, debug=self.debug)
        self.parser = DelegatedStatsParser()
        self.aggregator = Aggregator()
        self.merger = PrefixMerger()
        self.writer = ArtifactWriter(self.base_out, name=self.name)
        self.reporter = Reporter(self.report_path)

        self.source_names: List[str] = []
        self.source_results: List[SourceResult] = []

    def run(self) -> Manifest:
        t_start = time.monotonic()
        self._banner(f"deflect-geoip countrydb build  |  version {self.version}")

        self._step1_fetch()
        records, merge_stats = self._step2_merge()
        manifest = self._step3_write(records)
        self._step4_report(manifest, merge_stats)

        elapsed = time.monotonic() - t_start
        self._banner(f"Done in {elapsed:.1f}s  |  {len(records)} prefixes in {self.base_out}")
        return manifest

    # ── step 1: Fetch + parse + aggregate ────────────────────

    def _step1_fetch(self) -> None:
        print("\n[1/4] Fetching RIR delegated stats...", flush=True)

        for name, url in iter_sources():
            print(f"    Source: {name}", flush=True)
            body = self.fetcher.fetch(name, url)

            ranges = self.parser.parse_bytes(body, source=name)
            prefixes = self.aggregator.aggregate(ranges)

            result = SourceResult(
                name=name,
                url=url,
                bytes=len(body),
                attempts=getattr(self.fetcher, "last_attempts", 1),
                prefixes=len(prefixes),
                parse=self.parser.stats.to_dict(),
                aggregate=self.aggregator.stats.to_dict(),
            )
            self.source_results.append(result)
            self.source_names.append(name)

            print(
                f"    → {name}: ranges: {self.parser.stats.accepted}  "
                f"skipped lines: {self.parser.stats.skipped}  "
                f"prefixes: {len(prefixes)}",
                flush=True,
            )
            if self.debug:
                print(f"      {result.parse}", flush=True)

            self.merger.add(prefixes, source=source_label(name))

    # ── step 2: Merge ────────────────────────────────────────

    def _step2_merge(self):
        print("\n[2/4] Merging sources...", flush=True)
        records, stats = self.merger.result()
        print(
            f"    → before: {stats.before}  "
            f"dup dropped: {stats.dropped_dup}  "
            f"after: {stats.after}",
            flush=True,
        )
        return records, stats

    # ── step 3: Write ────────────────────────────────────────

    def _step3_write(self, records: List[PrefixRecord]) -> Manifest:
        print("\n[3/4] Writing artifact...", flush=True)
        manifest = self.writer.write(
            records,
            version=self.version,
            sources=manifest_sources(self.source_names),
        )
        print(f"    → sha256: {manifest.artifacts[0].sha256}", flush=True)
        return manifest

    # ── step 4: Report ───────────────────────────────────────

    def _step4_report(self, manifest: Manifest, merge_stats) -> None:
        print("\n[4/4] Generating report...", flush=True)
        try:
            report = self.reporter.generate(
                manifest=manifest,
                source_results=[r.to_dict() for r in self.source_results],
                merge_stats=merge_stats.to_dict(),
            )
        except OSError as exc:
            # artifact and manifest are already in place
            print(f"    ! cannot write report: {exc}", flush=True)
            return
        print(f"    → report saved to {self.reporter.out_path}", flush=True)

        ghs = os.environ.get("GITHUB_STEP_SUMMARY")
        if ghs:
            try:
                with open(ghs, "a", encoding="utf-8") as f:
                    f.write(report)
            except OSError as exc:
                print(f"    ! cannot write step summary: {exc}", flush=True)

    # ── utilities ────────────────────────────────────────────

    def _load_config(self) -> dict:
        if not self.config_path:
            return {}
        try:
            with open(self.config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError as exc:
            raise ConfigError(f"config file '{self.config_path}' not found") from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"cannot parse config: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"config file '{self.config_path}' must be a mapping")
        return data

    @staticmethod
    def _banner(text: str) -> None:
        print("\n" + "=" * 60)
        print(f"  {text}")
        print("=" * 60, flush=True)


def main(argv: Optional[List[str]] = None) -> int:
    import argparse

    ap = argparse.ArgumentParser(description="Build the deflect-geoip country database")
    ap.add_argument("--out", default=None, help="Output directory (default: dist)")
    ap.add_argument("--version", default=None, help="Release label (default: today's UTC date)")
    ap.add_argument("--config", default=None, help="Optional path to a YAML config")
    ap.add_argument("--debug", action="store_true", default=None, help="Verbose progress output")
    args = ap.parse_args(argv)

    try:
        pipeline = CountryDBPipeline(
            config_path=args.config,
            out_dir=args.out,
            version=args.version,
            debug=args.debug,
        )
        pipeline.run()
    except KeyboardInterrupt:
        print("Interrupted by user.", file=sys.stderr)
        return 130
    except CountryDBError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
