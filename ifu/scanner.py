import os
from pathlib import Path

from .exceptions import SetupError
from .models import SourceFile

MEDIA_EXTENSIONS = frozenset(
    {
        ".jpg", ".jpeg", ".png", ".gif", ".webp", ".heic", ".heif", ".tif", ".tiff", ".bmp",
        ".mp4", ".mov", ".m4v", ".mkv", ".avi", ".webm",
    }
)


def is_media_file(name: str) -> bool:
    return os.path.splitext(name)[1].lower() in MEDIA_EXTENSIONS


def _raise(error: OSError) -> None:
    raise error


def list_album_folders(root: str | Path, parking_dir: str) -> list[str]:
    """
    List the top-level folders of the sync root that map to albums.

    Args:
        root: Sync root.
        parking_dir: Name of the parking directory, never treated as an album.

    Returns:
        list[str]: Folder names in sorted order, without hidden folders.

    Raises:
        SetupError: If the root is missing or cannot be read.
    """
    root = Path(root)
    if not root.is_dir():
        raise SetupError(f"Root is not a directory: {root}")
    try:
        entries = sorted(os.scandir(root), key=lambda e: e.name)
    except OSError as e:
        raise SetupError(f"Cannot read root {root}: {e}") from e

    return [
        entry.name
        for entry in entries
        if entry.is_dir() and not entry.name.startswith(".") and entry.name != parking_dir
    ]


def scan_album(root: str | Path, album: str, recursive: bool) -> list[SourceFile]:
    """
    Collect the media files of one album folder.

    Hidden entries are skipped. Without ``recursive`` only files directly inside
    the album folder are returned and subdirectories are never entered.

    Raises:
        OSError: On any walk or stat error; the caller skips the album.
    """
    album_root = Path(root) / album
    files: list[SourceFile] = []
    for dirpath, dirnames, filenames in os.walk(album_root, onerror=_raise):
        if recursive:
            dirnames[:] = [d for d in dirnames if not d.startswith(".")]
        else:
            dirnames[:] = []

        for filename in filenames:
            if filename.startswith(".") or not is_media_file(filename):
                continue
            path = Path(dirpath) / filename
            st = path.stat()
            files.append(
                SourceFile(
                    path=path,
                    size=st.st_size,
                    mtime_ns=st.st_mtime_ns,
                    rel_path=path.relative_to(album_root).as_posix(),
                    album=album,
                )
            )
    return files


def sort_smallest_first(files: list[SourceFile]) -> list[SourceFile]:
    """Size ascending; equal sizes ordered by path string."""
    return sorted(files, key=lambda f: (f.size, str(f.path)))
