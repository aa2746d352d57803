import hashlib
from pathlib import Path, PurePath

CHUNK_SIZE = 1024 * 1024


def stable_identity(relative_path: str | PurePath) -> str:
    """
    Deterministic per-file token sent as ``deviceAssetId``.

    Separators are normalized to ``/`` so the same logical file gets the same
    identity on every platform and on every run.

    Args:
        relative_path: Path of the file relative to the sync root.

    Returns:
        str: SHA-1 hex digest of the normalized path.
    """
    normalized = str(relative_path).replace("\\", "/").strip("/")
    return hashlib.sha1(normalized.encode("utf-8")).hexdigest()


def calculate_sha1_hash(file_path: str | Path, chunk_size: int = CHUNK_SIZE) -> str:
    """
    Calculate the SHA-1 of a file's content.

    Reads the whole file in chunks; used for the ``x-immich-checksum`` header.

    Returns:
        str: Hex digest.

    Raises:
        OSError: If the file cannot be read.
    """
    sha1 = hashlib.sha1()
    with open(file_path, "rb") as f:
        while chunk := f.read(chunk_size):
            sha1.update(chunk)
    return sha1.hexdigest()
