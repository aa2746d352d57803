import errno
import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, TypeVar

from .models import SourceFile

T = TypeVar("T")

# ERROR_SHARING_VIOLATION / ERROR_LOCK_VIOLATION
WINDOWS_IN_USE_ERRORS = (32, 33)
POSIX_IN_USE_ERRORS = (errno.EBUSY, errno.ETXTBSY)
# Filesystems that cannot hard link (FAT, exFAT, some network shares)
NO_HARDLINK_ERRORS = (errno.EPERM, errno.EOPNOTSUPP, errno.ENOTSUP, errno.EXDEV, errno.EMLINK)
MAX_NAME_ATTEMPTS = 5


def is_sharing_violation(error: BaseException) -> bool:
    """True for transient "file in use" errors (AV scanners, Explorer previews, open handles)."""
    if not isinstance(error, OSError):
        return False
    if getattr(error, "winerror", None) in WINDOWS_IN_USE_ERRORS:
        return True
    if error.errno in POSIX_IN_USE_ERRORS:
        return True
    return "being used by another process" in str(error).lower()


def linear_backoff(base: float) -> Callable[[int], float]:
    """Delay of ``base * attempt`` seconds after the given failed attempt."""
    return lambda attempt: base * attempt


def move_no_replace(src: str | Path, dst: str | Path) -> None:
    """
    Move a file without ever replacing an existing destination.

    ``os.rename`` refuses existing targets on Windows only, so POSIX moves go
    through a hard link, which fails atomically when the target exists.

    Raises:
        FileExistsError: If the destination already exists.
        OSError: On any other failure; the source is left in place.
    """
    if os.name == "nt":
        os.rename(src, dst)
        return
    try:
        os.link(src, dst)
    except OSError as e:
        if isinstance(e, FileExistsError) or e.errno not in NO_HARDLINK_ERRORS:
            raise
        if os.path.lexists(dst):
            raise FileExistsError(errno.EEXIST, "destination exists", str(dst)) from e
        os.rename(src, dst)
        return
    try:
        os.unlink(src)
    except OSError:
        os.unlink(dst)
        raise


@dataclass
class RetryPolicy:
    max_attempts: int = 10
    backoff: Callable[[int], float] = field(default_factory=lambda: linear_backoff(0.15))
    retryable: Callable[[BaseException], bool] = is_sharing_violation
    sleep: Callable[[float], None] = time.sleep

    def call(self, fn: Callable[..., T], *args, **kwargs) -> T:
        """
        Call ``fn`` until it succeeds, retrying only retryable errors.

        Raises:
            Exception: The first non-retryable error, or the last error once attempts are exhausted.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return fn(*args, **kwargs)
            except Exception as e:
                if not self.retryable(e) or attempt >= self.max_attempts:
                    raise
                self.sleep(self.backoff(attempt))
        raise RuntimeError("max_attempts must be at least 1")


class RelocationManager:
    """
    Moves uploaded files into the parking tree ``<root>/<parking_dir>/<album>/<rel_path>``.

    Existing destinations are never overwritten; the new file gets a
    nanosecond timestamp suffix instead.
    """

    def __init__(self, root: str | Path, parking_dir: str, retry_policy: RetryPolicy | None = None) -> None:
        self.root = Path(root)
        self.parking_root = self.root / parking_dir
        self.retry_policy = retry_policy or RetryPolicy()
        self.logger = logging.getLogger(__name__)

    def album_dir(self, album: str) -> Path:
        return self.parking_root / album

    def ensure_album_dir(self, album: str) -> Path:
        path = self.album_dir(album)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def destination_for(self, source: SourceFile) -> Path:
        dst = self.album_dir(source.album).joinpath(*source.rel_path.split("/"))
        if dst.exists():
            dst = dst.with_name(f"{dst.stem}-{time.time_ns()}{dst.suffix}")
        return dst

    def relocate(self, source: SourceFile) -> Path:
        """
        Move one file into the parking tree.

        Returns:
            Path: Final destination of the file.

        Raises:
            OSError: If directories cannot be created or the move keeps failing.
            FileExistsError: If every candidate destination name was taken.
        """
        for _ in range(MAX_NAME_ATTEMPTS):
            dst = self.destination_for(source)
            dst.parent.mkdir(parents=True, exist_ok=True)
            try:
                self.retry_policy.call(move_no_replace, source.path, dst)
            except FileExistsError:
                # Destination appeared after the existence check, pick another name.
                self.logger.debug(f"{dst} appeared while moving {source.path}, retrying with a new name")
                continue
            self.logger.debug(f"Moved {source.path} -> {dst}")
            return dst
        raise FileExistsError(errno.EEXIST, "no free destination name", str(self.album_dir(source.album)))
