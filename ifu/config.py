import os
from dataclasses import dataclass, replace
from pathlib import Path

from .exceptions import SetupError

DEFAULT_BASE_URL = "http://localhost:2283/api"
ENV_BASE_URL = "IMMICH_URL"
ENV_API_KEY = "IMMICH_API_KEY"


@dataclass(frozen=True)
class SyncOptions:
    """
    Settings of one sync run.

    Attributes:
        base_url: Immich API url including ``/api``.
        api_key: Value of the ``x-api-key`` header.
        root: Folder whose top-level subfolders become albums.
        recursive: Upload files from nested folders below each album folder.
        checksum: Send a SHA-1 of every file as ``x-immich-checksum``.
        batch_size: Assets per add-to-album request.
        workers: Parallel uploads per album.
        smallest_first: Upload smaller files first.
        timeout: Seconds allowed for each HTTP request.
        deadline: Seconds allowed for the whole run, unlimited when None.
        parking_dir: Folder below the root receiving uploaded files; never treated as an album.
        live: Use the single-line live display when the terminal supports it.
    """

    base_url: str = DEFAULT_BASE_URL
    api_key: str = ""
    root: Path | None = None
    recursive: bool = True
    checksum: bool = True
    batch_size: int = 200
    workers: int = 4
    smallest_first: bool = True
    timeout: float = 300.0
    deadline: float | None = None
    parking_dir: str = "ignore"
    live: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        if self.root is not None:
            object.__setattr__(self, "root", Path(self.root))

    @classmethod
    def from_env(cls, **overrides) -> "SyncOptions":
        """Build options, taking the url and api key from the environment when not given."""
        values = {k: v for k, v in overrides.items() if v is not None}
        values.setdefault("base_url", os.getenv(ENV_BASE_URL) or DEFAULT_BASE_URL)
        values.setdefault("api_key", os.getenv(ENV_API_KEY, ""))
        return cls(**values)

    def validate(self) -> "SyncOptions":
        """
        Check the settings that must hold before any network activity.

        Raises:
            SetupError: If the api key or root is missing, the root is not a directory,
                or a timeout or deadline is not positive.
        """
        if not self.api_key:
            raise SetupError(f"missing API key: pass --key or set {ENV_API_KEY}")
        if self.root is None or not str(self.root):
            raise SetupError("missing root folder")
        if not self.root.is_dir():
            raise SetupError(f"root is not a readable directory: {self.root}")
        if not os.access(self.root, os.R_OK | os.X_OK):
            raise SetupError(f"root is not readable: {self.root}")
        if self.timeout <= 0:
            raise SetupError(f"timeout must be positive, got {self.timeout}")
        if self.deadline is not None and self.deadline <= 0:
            raise SetupError(f"deadline must be positive, got {self.deadline}")
        if not self.parking_dir or "/" in self.parking_dir or "\\" in self.parking_dir:
            raise SetupError(f"invalid parking directory name: {self.parking_dir!r}")
        return self

    def with_overrides(self, **changes) -> "SyncOptions":
        return replace(self, **changes)
