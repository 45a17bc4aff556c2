"""
Reporter:
- builds a markdown report of the countrydb build
- saves it to reports/countrydb_report.md (configurable)
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List

from .writer import Manifest


class Reporter:
    def __init__(self, out_path: str = "reports/countrydb_report.md"):
        self.out_path = Path(out_path)

    def generate(
        self,
        manifest: Manifest,
        source_results: List[Dict],
        merge_stats: Dict,
    ) -> str:
        ts = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
        lines: List[str] = []

        lines.append("# countrydb build report")
        lines.append("")
        lines.append(f"- Generated at: **{ts}**")
        lines.append(f"- Version: **{manifest.version}**")
        for art in manifest.artifacts:
            lines.append(f"- Artifact: `{art.path}` ({art.bytes} bytes)")
            lines.append(f"- SHA-256: `{art.sha256}`")
        lines.append("")

        lines.append("## Merge stats")
        lines.append("")
        lines.append(f"- Prefixes from all sources: `{merge_stats.get('before')}`")
        lines.append(f"- Dropped as duplicates: `{merge_stats.get('dropped_dup')}`")
        lines.append(f"- Final prefixes: `{merge_stats.get('after')}`")
        lines.append("")

        lines.append("## Sources")
        lines.append("")
        if not source_results:
            lines.append("_No sources processed_")
        else:
            lines.append(
                "| Source | Bytes | Attempts | Ranges | Skipped lines | "
                "Rejected ranges | IPv4 prefixes | IPv6 prefixes |"
            )
            lines.append(
                "|--------|-------|----------|--------|---------------|"
                "-----------------|---------------|---------------|"
            )
            for r in sorted(source_results, key=lambda x: x.get("name", "")):
                parse = r.get("parse") or {}
                agg = r.get("aggregate") or {}
                skipped = (
                    parse.get("lines", 0)
                    - parse.get("accepted", 0)
                    - parse.get("skipped_comment", 0)
                )
                lines.append(
                    f"| `{r.get('name')}` | {r.get('bytes', '-')} | "
                    f"{r.get('attempts', '-')} | "
                    f"{parse.get('accepted', '-')} | "
                    f"{skipped} | "
                    f"{agg.get('rejected', '-')} | "
                    f"{agg.get('ipv4_prefixes', '-')} | "
                    f"{agg.get('ipv6_prefixes', '-')} |"
                )

        report = "\n".join(lines) + "\n"
        self.out_path.parent.mkdir(parents=True, exist_ok=True)
        self.out_path.write_text(report, encoding="utf-8")
        return report
