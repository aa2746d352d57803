import os
import platform
import time
from pathlib import Path
from typing import Any, Callable, Sequence

import requests
from requests.adapters import HTTPAdapter
from requests_toolbelt.multipart.encoder import MultipartEncoder, MultipartEncoderMonitor

from .exceptions import ApiError, UploadRejected
from .models import AlbumRecord, AssetStatus

DEFAULT_TIMEOUT = 300
DEVICE_ID = f"immich-folder-uploader-{platform.system().lower() or 'unknown'}"


def rfc3339_nano(timestamp_ns: int) -> str:
    """Format a nanosecond epoch timestamp as UTC RFC 3339 with nanoseconds."""
    seconds, nanos = divmod(timestamp_ns, 1_000_000_000)
    return time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(seconds)) + f".{nanos:09d}Z"


class Api:
    """Thin client for the subset of the Immich API used by the uploader."""

    def __init__(self, base_url: str, api_key: str, timeout: float = DEFAULT_TIMEOUT, pool_size: int = 10) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Accept": "application/json", "x-api-key": api_key})
        adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def close(self) -> None:
        self.session.close()

    def _request(self, method: str, path: str, expected: Sequence[int] | None = None, error_cls: type[ApiError] = ApiError, **kwargs) -> Any:
        """
        Send a request and decode the JSON answer.

        Args:
            method: HTTP method.
            path: Path below the base url, starting with ``/``.
            expected: Accepted status codes. Any 2xx when omitted.
            error_cls: Exception raised for other status codes.
            **kwargs: Passed to ``requests.Session.request``.

        Returns:
            Any: Decoded JSON body, or None for an empty body.

        Raises:
            ApiError: On an unexpected status code or an undecodable body.
            requests.RequestException: On connection errors and timeouts.
        """
        response = self.session.request(method, self.base_url + path, timeout=self.timeout, **kwargs)
        status_ok = response.status_code in expected if expected else 200 <= response.status_code < 300
        if not status_ok:
            raise error_cls(method, path, response.status_code, response.text.strip())
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise error_cls(method, path, response.status_code, f"undecodable body: {response.text.strip()}") from e

    def list_albums(self) -> list[AlbumRecord]:
        albums = self._request("GET", "/albums") or []
        if not isinstance(albums, list):
            raise ApiError("GET", "/albums", 200, f"expected a list of albums, got {albums!r}")
        records = []
        for album in albums:
            if not isinstance(album, dict) or "id" not in album or "albumName" not in album:
                raise ApiError("GET", "/albums", 200, f"malformed album entry {album!r}")
            records.append(AlbumRecord(name=album["albumName"], id=album["id"]))
        return records

    def create_album(self, name: str) -> AlbumRecord:
        album = self._request("POST", "/albums", json={"albumName": name})
        if not isinstance(album, dict) or "id" not in album:
            raise ApiError("POST", "/albums", 200, f"missing album id in {album!r}")
        return AlbumRecord(name=album.get("albumName", name), id=album["id"], created=True)

    def add_assets_to_album(self, album_id: str, asset_ids: Sequence[str]) -> None:
        if not asset_ids:
            return
        self._request("PUT", f"/albums/{album_id}/assets", json={"ids": list(asset_ids)})

    def upload_asset(
        self,
        file_path: Path,
        device_asset_id: str,
        modified_ns: int,
        checksum: str | None = None,
        on_read: Callable[[int], None] | None = None,
    ) -> tuple[str, AssetStatus]:
        """
        Upload one file as a streamed multipart body.

        The file is read lazily while the request is sent, so memory use does
        not depend on the file size.

        Args:
            file_path: File to upload.
            device_asset_id: Stable identity of the file.
            modified_ns: Modification time in nanoseconds, used for both created and modified dates.
            checksum: Optional SHA-1 hex digest sent as ``x-immich-checksum``.
            on_read: Called with the number of file bytes sent since the previous call.
                Multipart framing is not counted, so the calls add up to the file size.

        Returns:
            tuple[str, AssetStatus]: Asset id and the server reported status.

        Raises:
            UploadRejected: If the server does not answer 200 or 201.
            OSError: If the file cannot be opened or read.
            requests.RequestException: On connection errors and timeouts.
        """
        timestamp = rfc3339_nano(modified_ns)
        headers = {}
        if checksum:
            headers["x-immich-checksum"] = checksum

        with open(file_path, "rb") as raw:
            file_size = os.fstat(raw.fileno()).st_size
            encoder = MultipartEncoder(
                fields=[
                    ("deviceId", DEVICE_ID),
                    ("deviceAssetId", device_asset_id),
                    ("fileCreatedAt", timestamp),
                    ("fileModifiedAt", timestamp),
                    ("filename", os.path.basename(file_path)),
                    ("assetData", (os.path.basename(file_path), raw, "application/octet-stream")),
                ]
            )
            data = encoder
            if on_read:
                data = MultipartEncoderMonitor(encoder, self._file_progress(on_read, file_size, encoder.len - file_size))
            headers["Content-Type"] = data.content_type
            body = self._request("POST", "/assets", expected=(200, 201), error_cls=UploadRejected, data=data, headers=headers)

        if not isinstance(body, dict) or "id" not in body:
            raise UploadRejected("POST", "/assets", 200, f"missing asset id in {body!r}")
        return body["id"], AssetStatus.parse(body.get("status"))

    @staticmethod
    def _file_progress(on_read: Callable[[int], None], file_size: int, overhead: int) -> Callable[[MultipartEncoderMonitor], None]:
        """Turn the monitor's cumulative body count into file byte deltas, capped at the file size."""
        reported = 0

        def callback(monitor: MultipartEncoderMonitor) -> None:
            nonlocal reported
            sent = min(max(monitor.bytes_read - overhead, 0), file_size)
            if sent > reported:
                on_read(sent - reported)
                reported = sent

        return callback
