"""
Shared upload counters and the two ways of showing them.

Workers report into a single :class:`ProgressAggregator`; every mutation
happens under one lock. A renderer is picked once per run:

- :class:`LogRenderer` appends one line per event and per file.
- :class:`LiveRenderer` redraws a single status line with rich ``Live`` on a
  fixed timer and right after discrete events.
"""

import copy
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from rich.console import Console
from rich.live import Live
from rich.text import Text

from .models import RunSummary, SourceFile, UploadResult
from .utils import format_bytes, format_duration, format_rate

REFRESH_INTERVAL = 0.25


@dataclass
class AlbumCounters:
    name: str = ""
    files_total: int = 0
    files_done: int = 0
    bytes_total: int = 0
    bytes_done: int = 0
    started_at: float = 0.0

    def rate(self, now: float) -> float:
        elapsed = now - self.started_at
        return self.bytes_done / elapsed if elapsed > 0 else 0.0

    def eta(self, now: float) -> float | None:
        """Seconds left at the average rate since the album started; None while unknown."""
        rate = self.rate(now)
        if rate <= 0:
            return None
        return max(self.bytes_total - self.bytes_done, 0) / rate


@dataclass
class RunCounters:
    albums_processed: int = 0
    files_uploaded: int = 0
    duplicates: int = 0
    failures: int = 0
    relocation_failures: int = 0
    link_failures: int = 0
    bytes_uploaded: int = 0
    started_at: float = 0.0


@dataclass
class ProgressState:
    album: AlbumCounters = field(default_factory=AlbumCounters)
    run: RunCounters = field(default_factory=RunCounters)


class Renderer:
    """Base renderer; also usable as a silent renderer."""

    def start(self, aggregator: "ProgressAggregator") -> None:
        pass

    def stop(self) -> None:
        pass

    def refresh(self) -> None:
        pass

    def event(self, message: str, level: int = logging.INFO) -> None:
        pass

    def file_done(self, result: UploadResult, state: ProgressState, now: float) -> None:
        pass


class LogRenderer(Renderer):
    """Append-only output: event lines plus a trace and a progress line per file."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger("ifu.progress")

    def event(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, message)

    def file_done(self, result: UploadResult, state: ProgressState, now: float) -> None:
        album = state.album
        source = result.job.source
        if not result.ok:
            self.logger.warning(f"upload failed ({source.path}): {result.error}")
            return
        if result.relocation_error is not None:
            self.logger.warning(f"move failed ({source.path}): {result.relocation_error}")
        self.logger.info(
            f"    Progress: {album.files_done}/{album.files_total} "
            f"({format_bytes(album.bytes_done)}/{format_bytes(album.bytes_total)}) "
            f"| avg {format_rate(album.bytes_done, now - album.started_at)} "
            f"| last {format_rate(source.size, result.duration)} ({result.duration * 1000:.0f}ms)"
        )
        status = result.status.value if result.status else "unknown"
        self.logger.info(f"  [{album.files_done}/{album.files_total}] {source.path.name} -> {result.asset_id} ({status})")


class LiveRenderer(Renderer):
    """Single status line redrawn in place; failures still go to the log above it."""

    def __init__(self, console: Console, logger: logging.Logger | None = None, refresh_interval: float = REFRESH_INTERVAL) -> None:
        self.console = console
        self.logger = logger or logging.getLogger("ifu.progress")
        self.refresh_interval = refresh_interval
        self._aggregator: ProgressAggregator | None = None
        self._live: Live | None = None

    def start(self, aggregator: "ProgressAggregator") -> None:
        self._aggregator = aggregator
        self._live = Live(
            get_renderable=self.render,
            console=self.console,
            refresh_per_second=1 / self.refresh_interval,
            transient=True,
        )
        self._live.start()

    def stop(self) -> None:
        if self._live is not None:
            self._live.stop()
            self._live = None

    def refresh(self) -> None:
        if self._live is not None:
            self._live.refresh()

    def event(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, message)
        self.refresh()

    def file_done(self, result: UploadResult, state: ProgressState, now: float) -> None:
        source = result.job.source
        if not result.ok:
            self.logger.warning(f"upload failed ({source.path}): {result.error}")
        elif result.relocation_error is not None:
            self.logger.warning(f"move failed ({source.path}): {result.relocation_error}")
        else:
            self.logger.debug(f"{source.path.name} -> {result.asset_id} ({result.status.value if result.status else 'unknown'})")
        self.refresh()

    def render(self) -> Text:
        if self._aggregator is None:
            return Text("")
        state = self._aggregator.snapshot()
        return status_line(state, self._aggregator.clock())


def status_line(state: ProgressState, now: float) -> Text:
    album, run = state.album, state.run
    text = Text()
    text.append(f"[{album.name}] ", style="bold cyan")
    text.append(f"{album.files_done}/{album.files_total} files ")
    text.append(f"| {format_bytes(album.bytes_done)}/{format_bytes(album.bytes_total)} ")
    text.append(f"| {format_bytes(album.rate(now))}/s ")
    text.append(f"| ETA {format_duration(album.eta(now))} ")
    text.append(f"| up {run.files_uploaded}", style="green")
    text.append(f" dup {run.duplicates}", style="yellow")
    text.append(f" fail {run.failures}", style="red")
    return text


def supports_live(console: Console) -> bool:
    return console.is_terminal and not console.is_dumb_terminal


def select_renderer(console: Console, live: bool, logger: logging.Logger | None = None) -> Renderer:
    """Pick the renderer once for the whole run; non-interactive output always gets the log renderer."""
    if live and supports_live(console):
        return LiveRenderer(console, logger)
    return LogRenderer(logger)


class ProgressAggregator:
    """Thread-safe upload counters shared by all workers of a run."""

    def __init__(self, renderer: Renderer | None = None, clock: Callable[[], float] = time.monotonic) -> None:
        self.renderer = renderer or Renderer()
        self.clock = clock
        self._lock = threading.Lock()
        self._state = ProgressState()

    def begin_run(self) -> None:
        with self._lock:
            self._state = ProgressState(run=RunCounters(started_at=self.clock()))
        self.renderer.start(self)

    def close(self) -> None:
        self.renderer.stop()

    def event(self, message: str, level: int = logging.INFO) -> None:
        self.renderer.event(message, level)

    def begin_album(self, name: str, files_total: int, bytes_total: int) -> None:
        with self._lock:
            self._state.album = AlbumCounters(
                name=name,
                files_total=files_total,
                bytes_total=bytes_total,
                started_at=self.clock(),
            )
        self.renderer.refresh()

    def file_started(self, source: SourceFile) -> None:
        self.renderer.refresh()

    def add_bytes(self, n: int) -> None:
        with self._lock:
            self._state.album.bytes_done += n

    def file_finished(self, result: UploadResult) -> None:
        """Account a finished file; partial bytes of a failed file are topped up so the album reaches its total."""
        size = result.job.source.size
        with self._lock:
            album, run = self._state.album, self._state.run
            album.files_done += 1
            album.bytes_done += max(size - result.bytes_sent, 0)
            if result.ok:
                run.files_uploaded += 1
                run.bytes_uploaded += size
                if result.is_duplicate:
                    run.duplicates += 1
                if result.relocation_error is not None:
                    run.relocation_failures += 1
            else:
                run.failures += 1
            state = copy.deepcopy(self._state)
        self.renderer.file_done(result, state, self.clock())

    def link_failed(self, batches: int = 1) -> None:
        with self._lock:
            self._state.run.link_failures += batches

    def end_album(self) -> None:
        with self._lock:
            self._state.run.albums_processed += 1
        self.renderer.refresh()

    def snapshot(self) -> ProgressState:
        with self._lock:
            return copy.deepcopy(self._state)

    def summary(self) -> RunSummary:
        state = self.snapshot()
        run = state.run
        return RunSummary(
            albums_processed=run.albums_processed,
            files_uploaded=run.files_uploaded,
            duplicates=run.duplicates,
            failures=run.failures,
            relocation_failures=run.relocation_failures,
            link_failures=run.link_failures,
            bytes_uploaded=run.bytes_uploaded,
            elapsed=self.clock() - run.started_at,
        )
