import logging
from typing import Literal

import requests
from rich.console import Console

from . import utils
from .album_resolver import AlbumResolver
from .api import Api
from .cancellation import CancelToken
from .config import SyncOptions
from .exceptions import ApiError, SetupError
from .interruption_handler import InterruptionHandler
from .linker import AlbumLinker
from .models import RunSummary
from .pipeline import UploadPipeline
from .progress import ProgressAggregator, select_renderer
from .relocation import RelocationManager
from .scanner import list_album_folders, scan_album, sort_smallest_first

LogLevel = Literal["INFO", "DEBUG", "WARNING", "ERROR", "CRITICAL"]


class Client:
    """Uploads a folder tree to Immich, one album per top-level folder."""

    def __init__(self, options: SyncOptions, console: Console | None = None, log_level: LogLevel | None = "INFO") -> None:
        """
        Uploads a folder tree to Immich, one album per top-level folder.

        Args:
            options: Run settings. Validated here, before any network activity.
            console: Console shared by the log handler and the live display.
            log_level: Logging level for the console handler. Pass None to leave logging configuration alone.

        Raises:
            SetupError: If the api key or root is missing or the root is unreadable.
        """
        self.console = console or Console()
        self.logger = utils.create_logger(log_level, self.console) if log_level else logging.getLogger("ifu")
        self.options = options.validate()
        self.api = Api(
            options.base_url,
            options.api_key,
            timeout=options.timeout,
            pool_size=max(options.workers, 1),
        )

    def close(self) -> None:
        self.api.close()

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def sync(self, cancel_token: CancelToken | None = None) -> RunSummary:
        """
        Upload every album folder under the root.

        Albums are processed one at a time. Per-album and per-file problems are
        logged and counted; they never stop the run.

        Args:
            cancel_token: Optional external token; a deadline token is created from the options otherwise.

        Returns:
            RunSummary: Counters of the finished run.

        Raises:
            SetupError: If the root cannot be read or the remote album list cannot be fetched.
        """
        opts = self.options
        cancel_token = cancel_token or CancelToken(opts.deadline)

        folders = list_album_folders(opts.root, opts.parking_dir)
        resolver = AlbumResolver(self.api)
        try:
            resolver.load()
        except (ApiError, requests.RequestException) as e:
            raise SetupError(f"failed to list albums: {e}") from e

        progress = ProgressAggregator(select_renderer(self.console, opts.live, logging.getLogger("ifu.progress")))
        relocator = RelocationManager(opts.root, opts.parking_dir)
        pipeline = UploadPipeline(
            self.api,
            relocator,
            progress,
            workers=opts.workers,
            checksum=opts.checksum,
            cancel_token=cancel_token,
        )
        linker = AlbumLinker(self.api, batch_size=opts.batch_size)

        self.logger.info(f"Found {len(folders)} album folders in {opts.root} ({len(resolver)} albums on server)")
        skipped: list[str] = []
        progress.begin_run()
        try:
            with InterruptionHandler(cancel_token):
                for name in folders:
                    if cancel_token.cancelled:
                        progress.event(f"Stopping before album {name}: {cancel_token.reason}", logging.WARNING)
                        break
                    if not self._sync_album(name, resolver, relocator, pipeline, linker, progress):
                        skipped.append(name)
        finally:
            progress.close()

        summary = progress.summary()
        summary.albums_skipped = len(skipped)
        summary.skipped_albums = skipped
        self._log_summary(summary)
        return summary

    def _sync_album(
        self,
        name: str,
        resolver: AlbumResolver,
        relocator: RelocationManager,
        pipeline: UploadPipeline,
        linker: AlbumLinker,
        progress: ProgressAggregator,
    ) -> bool:
        """Process one album folder. Returns False when the album had to be skipped."""
        opts = self.options
        try:
            album = resolver.resolve(name)
        except (ApiError, requests.RequestException) as e:
            progress.event(f"create album {name!r} failed: {e}", logging.ERROR)
            return False
        progress.event(f"Created album: {name}" if album.created else f"Using existing album: {name}")

        try:
            files = scan_album(opts.root, name, recursive=opts.recursive)
        except OSError as e:
            progress.event(f"walk {name}: {e}", logging.ERROR)
            return False

        if not files:
            progress.begin_album(name, 0, 0)
            progress.event(f"No media files in {name}, skipping")
            progress.end_album()
            return True

        if opts.smallest_first:
            files = sort_smallest_first(files)

        try:
            relocator.ensure_album_dir(name)
        except OSError as e:
            progress.event(f"failed to create ignore folder for {name}: {e}", logging.ERROR)
            return False

        total_bytes = sum(f.size for f in files)
        progress.begin_album(name, len(files), total_bytes)
        progress.event(f"Uploading {len(files)} files ({utils.format_bytes(total_bytes)}) from {name}...")

        results = pipeline.run(files)
        asset_ids = [r.asset_id for r in results if r.ok]
        upload_errors = len(results) - len(asset_ids)

        if not asset_ids:
            progress.event(f"No uploads succeeded for {name}", logging.WARNING)
            progress.end_album()
            return True

        if upload_errors:
            progress.event(f"Album {name}: {upload_errors} upload errors (still adding successful assets to album)", logging.WARNING)

        report = linker.link(album, asset_ids)
        if report.failed_batches:
            progress.link_failed(report.failed_batches)
        progress.event(f"Album {name}: added {report.linked}/{len(asset_ids)} assets")
        progress.end_album()
        return True

    def _log_summary(self, summary: RunSummary) -> None:
        self.logger.info(
            f"Done in {utils.format_duration(summary.elapsed)}: "
            f"albums={summary.albums_processed} skipped={summary.albums_skipped} "
            f"uploaded={summary.files_uploaded} ({utils.format_bytes(summary.bytes_uploaded)}) "
            f"duplicates={summary.duplicates} failed={summary.failures} "
            f"move_failures={summary.relocation_failures} link_failures={summary.link_failures}"
        )
        if summary.skipped_albums:
            self.logger.warning(f"Skipped albums: {', '.join(summary.skipped_albums)}")
