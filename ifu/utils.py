import logging
from typing import Iterator, Sequence, TypeVar

from rich.console import Console
from rich.logging import RichHandler

T = TypeVar("T")

KIB = 1024
MIB = 1024 * KIB
GIB = 1024 * MIB


def create_logger(log_level: str, console: Console | None = None) -> logging.Logger:
    """Create rich logger"""
    handler = RichHandler(console=console, rich_tracebacks=True, show_path=False)
    # Handler level too, so a more verbose file log on "ifu" does not leak to the console.
    handler.setLevel(log_level)
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        datefmt="%H:%M:%S",
        handlers=[handler],
        force=True,
    )
    return logging.getLogger("ifu")


def format_bytes(n: int | float) -> str:
    """Human readable binary size, e.g. ``1.50MiB``."""
    if n >= GIB:
        return f"{n / GIB:.2f}GiB"
    if n >= MIB:
        return f"{n / MIB:.2f}MiB"
    if n >= KIB:
        return f"{n / KIB:.2f}KiB"
    return f"{int(n)}B"


def format_rate(num_bytes: int, seconds: float) -> str:
    if seconds <= 0:
        return "-"
    return f"{format_bytes(int(num_bytes / seconds))}/s"


def format_duration(seconds: float | None) -> str:
    if seconds is None or seconds < 0:
        return "--:--"
    seconds = int(round(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h{minutes:02d}m{secs:02d}s"
    if minutes:
        return f"{minutes}m{secs:02d}s"
    return f"{secs}s"


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """
    Split a sequence into consecutive batches.

    Args:
        items: Items to split, order is preserved.
        size: Maximum batch size. A non-positive size yields everything as one batch.

    Yields:
        Sequence[T]: Consecutive slices of ``items``; nothing for an empty input.
    """
    if not items:
        return
    if size <= 0:
        yield items
        return
    for i in range(0, len(items), size):
        yield items[i : i + size]
