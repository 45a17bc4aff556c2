"""
ArtifactWriter:
- releases/<version>/countrydb.csv.gz         gzip CSV "prefix,country"
- releases/<version>/countrydb.csv.gz.sha256  "<hex>  countrydb.csv.gz"
- releases/latest.json                         manifest, written last

The digest and size come from the bytes as they are written; the file is
not read back. The gzip header has no file name and mtime 0, so the same
records always give the same bytes and the same digest.
"""

from __future__ import annotations

import gzip
import hashlib
import json
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Dict, Iterable, List, Optional, Tuple, Union

from .aggregator import PrefixRecord
from .errors import ArtifactError

ARTIFACT_NAME = "countrydb.csv.gz"
CSV_HEADER = "prefix,country"
MANIFEST_NAME = "latest.json"
DEFAULT_NAME = "deflect-geoip-country"

PathLike = Union[str, Path]


@dataclass
class Artifact:
    type: str
    path: str
    sha256: str
    bytes: int


@dataclass
class Manifest:
    name: str
    version: str
    generated_at: str
    sources: List[str]
    artifacts: List[Artifact] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return asdict(self)


class _HashingWriter:
    """File wrapper that hashes and counts every byte passing through."""

    def __init__(self, fileobj: BinaryIO):
        self.fileobj = fileobj
        self.sha256 = hashlib.sha256()
        self.size = 0

    def write(self, data) -> int:
        self.sha256.update(data)
        self.size += len(data)
        return self.fileobj.write(data)

    def flush(self) -> None:
        self.fileobj.flush()


def utc_timestamp(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def write_csv_gz(path: PathLike, records: Iterable[PrefixRecord], compresslevel: int = 9) -> Tuple[int, str]:
    """Write the gzip CSV; return (compressed size, sha256 hex of compressed bytes)."""
    with open(path, "wb") as f:
        hw = _HashingWriter(f)
        with gzip.GzipFile(filename="", mode="wb", fileobj=hw, compresslevel=compresslevel, mtime=0) as gz:
            gz.write((CSV_HEADER + "\n").encode("utf-8"))
            for rec in records:
                gz.write(f"{rec.prefix},{rec.country}\n".encode("utf-8"))
    return hw.size, hw.sha256.hexdigest()


class ArtifactWriter:
    def __init__(self, base_path: PathLike = "dist", name: str = DEFAULT_NAME, compresslevel: int = 9):
        self.base_path = Path(base_path)
        self.name = name
        self.compresslevel = compresslevel

    def release_dir(self, version: str) -> Path:
        return self.base_path / "releases" / version

    @property
    def manifest_path(self) -> Path:
        return self.base_path / "releases" / MANIFEST_NAME

    def write(
        self,
        records: List[PrefixRecord],
        version: str,
        sources: List[str],
        generated_at: Optional[datetime] = None,
    ) -> Manifest:
        release_dir = self.release_dir(version)
        gz_path = release_dir / ARTIFACT_NAME

        try:
            release_dir.mkdir(parents=True, exist_ok=True)
            size, sha = write_csv_gz(gz_path, records, compresslevel=self.compresslevel)
            print(f"    - {gz_path} ({size} bytes, {len(records)} prefixes)", flush=True)

            sidecar = gz_path.with_name(ARTIFACT_NAME + ".sha256")
            sidecar.write_text(f"{sha}  {ARTIFACT_NAME}\n", encoding="utf-8")
            print(f"    - {sidecar}", flush=True)
        except OSError as exc:
            raise ArtifactError(f"writing {gz_path} failed: {exc}") from exc

        manifest = Manifest(
            name=self.name,
            version=version,
            generated_at=utc_timestamp(generated_at),
            sources=sorted(sources),
            artifacts=[
                Artifact(
                    type=ARTIFACT_NAME,
                    path=f"releases/{version}/{ARTIFACT_NAME}",
                    sha256=sha,
                    bytes=size,
                )
            ],
        )
        self.write_manifest(manifest)
        return manifest

    def write_manifest(self, manifest: Manifest) -> Path:
        path = self.manifest_path
        tmp = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(
                json.dumps(manifest.to_dict(), ensure_ascii=False, indent=2) + "\n",
                encoding="utf-8",
            )
            os.replace(tmp, path)
        except OSError as exc:
            raise ArtifactError(f"writing {path} failed: {exc}") from exc
        print(f"    - {path}", flush=True)
        return path
