from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class AssetStatus(Enum):
    """Outcome reported by the server for an uploaded asset."""

    CREATED = "created"
    DUPLICATE = "duplicate"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> "AssetStatus":
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class SourceFile:
    """Snapshot of a candidate file taken while scanning an album folder."""

    path: Path
    size: int
    mtime_ns: int
    rel_path: str  # POSIX path relative to the album folder
    album: str

    @property
    def root_rel_path(self) -> str:
        return f"{self.album}/{self.rel_path}"


@dataclass(frozen=True)
class UploadJob:
    source: SourceFile
    identity: str
    fingerprint: str | None = None

    @property
    def path(self) -> Path:
        return self.source.path


@dataclass
class UploadResult:
    """One per dispatched (or cancelled) file."""

    job: UploadJob
    asset_id: str | None = None
    status: AssetStatus | None = None
    error: Exception | None = None
    duration: float = 0.0
    bytes_sent: int = 0
    relocation_error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def is_duplicate(self) -> bool:
        return self.status is AssetStatus.DUPLICATE


@dataclass(frozen=True)
class AlbumRecord:
    name: str
    id: str
    created: bool = False


@dataclass
class RunSummary:
    albums_processed: int = 0
    albums_skipped: int = 0
    files_uploaded: int = 0
    duplicates: int = 0
    failures: int = 0
    relocation_failures: int = 0
    link_failures: int = 0
    bytes_uploaded: int = 0
    elapsed: float = 0.0
    skipped_albums: list[str] = field(default_factory=list)
