"""
Concurrent upload of one album's files.

A feeder thread pushes files into a bounded queue consumed by a fixed pool of
workers. After the last file it sends one stop marker per worker, waits for
every worker to return and only then closes the result stream, so the consumer
sees exactly one result per file and always terminates.
"""

import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, Sequence

import requests

from .api import Api
from .cancellation import CancelToken
from .exceptions import ApiError, UploadCancelled
from .hash_handler import calculate_sha1_hash, stable_identity
from .models import SourceFile, UploadJob, UploadResult
from .progress import ProgressAggregator
from .relocation import RelocationManager

_STOP = object()
_DONE = object()


class UploadPipeline:
    def __init__(
        self,
        api: Api,
        relocator: RelocationManager,
        progress: ProgressAggregator,
        workers: int = 4,
        checksum: bool = True,
        cancel_token: CancelToken | None = None,
    ) -> None:
        self.api = api
        self.relocator = relocator
        self.progress = progress
        self.workers = workers
        self.checksum = checksum
        self.cancel_token = cancel_token or CancelToken()
        self.logger = logging.getLogger(__name__)

    def worker_count(self, file_count: int) -> int:
        return max(1, min(self.workers, file_count))

    def run(self, files: Sequence[SourceFile], on_result: Callable[[UploadResult], None] | None = None) -> list[UploadResult]:
        """
        Upload files concurrently and collect one result per file.

        Args:
            files: Files in dispatch order.
            on_result: Called in the calling thread as each result arrives.

        Returns:
            list[UploadResult]: Results in completion order.
        """
        if not files:
            return []

        worker_count = self.worker_count(len(files))
        jobs: queue.Queue = queue.Queue(maxsize=worker_count)
        results: queue.Queue = queue.Queue()
        collected: list[UploadResult] = []

        with ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="ifu-upload") as executor:
            futures = [executor.submit(self._worker, jobs, results) for _ in range(worker_count)]
            feeder = threading.Thread(
                target=self._feed,
                args=(files, jobs, results, futures, worker_count),
                name="ifu-feeder",
                daemon=True,
            )
            feeder.start()

            while (item := results.get()) is not _DONE:
                collected.append(item)
                self.progress.file_finished(item)
                if on_result is not None:
                    on_result(item)
            feeder.join()

        return collected

    def _feed(self, files: Sequence[SourceFile], jobs: queue.Queue, results: queue.Queue, futures: list, worker_count: int) -> None:
        try:
            for source in files:
                if self.cancel_token.cancelled:
                    results.put(self._cancelled(source))
                    continue
                jobs.put(source)
        finally:
            for _ in range(worker_count):
                jobs.put(_STOP)
            wait(futures)
            for future in futures:
                if future.exception() is not None:
                    self.logger.error(f"Upload worker crashed: {future.exception()!r}")
            results.put(_DONE)

    def _worker(self, jobs: queue.Queue, results: queue.Queue) -> None:
        while (source := jobs.get()) is not _STOP:
            if self.cancel_token.cancelled:
                results.put(self._cancelled(source))
                continue
            results.put(self.process(source))

    def _cancelled(self, source: SourceFile) -> UploadResult:
        job = UploadJob(source=source, identity=stable_identity(source.root_rel_path))
        return UploadResult(job=job, error=UploadCancelled(self.cancel_token.reason or "cancelled"))

    def process(self, source: SourceFile) -> UploadResult:
        """
        Run the lifecycle of a single file: stat, identity, fingerprint, upload, relocate.

        Never raises; any failure is returned on the result and the file is left in place.
        """
        job = UploadJob(source=source, identity=stable_identity(source.root_rel_path))
        result = UploadResult(job=job)
        self.progress.file_started(source)

        def on_read(n: int) -> None:
            result.bytes_sent += n
            self.progress.add_bytes(n)

        started = time.monotonic()
        try:
            st = source.path.stat()
            if self.checksum:
                job = UploadJob(source=source, identity=job.identity, fingerprint=calculate_sha1_hash(source.path))
                result.job = job
            result.asset_id, result.status = self.api.upload_asset(
                source.path,
                device_asset_id=job.identity,
                modified_ns=st.st_mtime_ns,
                checksum=job.fingerprint,
                on_read=on_read,
            )
        except (OSError, ApiError, requests.RequestException) as e:
            result.error = e
        except Exception as e:
            self.logger.exception(f"Unexpected error uploading {source.path}")
            result.error = e
        finally:
            result.duration = time.monotonic() - started

        if result.ok:
            try:
                self.relocator.relocate(source)
            except OSError as e:
                result.relocation_error = e
        return result
