import logging
from dataclasses import dataclass
from typing import Sequence

import requests

from .api import Api
from .exceptions import ApiError
from .models import AlbumRecord
from .utils import chunked

DEFAULT_BATCH_SIZE = 200


@dataclass
class LinkReport:
    batches: int = 0
    failed_batches: int = 0
    linked: int = 0


class AlbumLinker:
    """Attaches uploaded assets to an album in fixed-size batches, best effort."""

    def __init__(self, api: Api, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        self.api = api
        self.batch_size = batch_size
        self.logger = logging.getLogger(__name__)

    def link(self, album: AlbumRecord, asset_ids: Sequence[str]) -> LinkReport:
        """
        Issue one link request per batch of ids.

        A failed batch is logged and counted; the remaining batches are still sent.

        Args:
            album: Target album.
            asset_ids: Ids of the album's successful uploads, in order.

        Returns:
            LinkReport: Number of requests issued, failed, and ids linked.
        """
        report = LinkReport()
        for batch in chunked(asset_ids, self.batch_size):
            report.batches += 1
            try:
                self.api.add_assets_to_album(album.id, batch)
            except (ApiError, requests.RequestException) as e:
                report.failed_batches += 1
                self.logger.error(f"add assets to album {album.name} failed ({len(batch)} assets): {e}")
                continue
            report.linked += len(batch)
        return report
