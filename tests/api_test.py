import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from requests_toolbelt.multipart.encoder import MultipartEncoder, MultipartEncoderMonitor

from fakes import response

from ifu.api import DEVICE_ID, Api, rfc3339_nano
from ifu.exceptions import ApiError, UploadRejected
from ifu.models import AssetStatus


class TestApi(unittest.TestCase):
    def setUp(self):
        self.api = Api("http://immich.local/api/", "secret", timeout=12)
        self.addCleanup(self.api.close)

    def _patch(self, *responses):
        patcher = patch.object(self.api.session, "request", side_effect=list(responses))
        self.addCleanup(patcher.stop)
        return patcher.start()

    def test_session_headers(self):
        self.assertEqual(self.api.session.headers["x-api-key"], "secret")
        self.assertEqual(self.api.session.headers["Accept"], "application/json")
        self.assertEqual(self.api.base_url, "http://immich.local/api")

    def test_list_albums(self):
        request = self._patch(response(payload=[{"id": "1", "albumName": "Trip"}, {"id": "2", "albumName": "trip"}]))

        albums = self.api.list_albums()

        self.assertEqual([(a.name, a.id) for a in albums], [("Trip", "1"), ("trip", "2")])
        request.assert_called_once_with("GET", "http://immich.local/api/albums", timeout=12)

    def test_create_album(self):
        request = self._patch(response(201, {"id": "new-id", "albumName": "Trip"}))

        album = self.api.create_album("Trip")

        self.assertEqual(album.id, "new-id")
        self.assertTrue(album.created)
        request.assert_called_once_with("POST", "http://immich.local/api/albums", timeout=12, json={"albumName": "Trip"})

    def test_add_assets_to_album(self):
        request = self._patch(response(200, [{"id": "a", "success": True}]))

        self.api.add_assets_to_album("album-1", ["a", "b"])

        request.assert_called_once_with("PUT", "http://immich.local/api/albums/album-1/assets", timeout=12, json={"ids": ["a", "b"]})

    def test_add_no_assets_sends_nothing(self):
        request = self._patch()
        self.api.add_assets_to_album("album-1", [])
        request.assert_not_called()

    def test_create_album_without_id_is_api_error(self):
        self._patch(response(201, {"albumName": "Broken"}))

        with self.assertRaises(ApiError):
            self.api.create_album("Broken")

    def test_create_album_null_body_is_api_error(self):
        resp = response(201, None)
        resp.content = b"null"
        resp.text = "null"
        resp.json.side_effect = lambda: None
        self._patch(resp)

        with self.assertRaises(ApiError):
            self.api.create_album("Broken")

    def test_malformed_album_list_is_api_error(self):
        self._patch(response(200, [{"id": "1", "albumName": "Trip"}, {"albumName": "no id"}]))

        with self.assertRaises(ApiError):
            self.api.list_albums()

    def test_error_status_raises_api_error(self):
        self._patch(response(500, {"message": "boom"}))

        with self.assertRaises(ApiError) as cm:
            self.api.list_albums()
        self.assertEqual(cm.exception.status_code, 500)


class TestUploadAsset(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.path = Path(self._tmp.name) / "img_0001.jpg"
        self.path.write_bytes(b"jpegdata")
        self.api = Api("http://immich.local/api", "secret")
        self.addCleanup(self.api.close)

    def _upload(self, resp, **kwargs):
        with patch.object(self.api.session, "request", return_value=resp) as request:
            result = self.api.upload_asset(self.path, "identity-1", 1_700_000_000_123_456_789, **kwargs)
        return result, request

    def test_multipart_fields_and_checksum_header(self):
        result, request = self._upload(response(201, {"id": "asset-1", "status": "created"}), checksum="abc123")

        self.assertEqual(result, ("asset-1", AssetStatus.CREATED))
        method, url = request.call_args.args
        kwargs = request.call_args.kwargs
        self.assertEqual((method, url), ("POST", "http://immich.local/api/assets"))
        self.assertIsInstance(kwargs["data"], MultipartEncoder)
        fields = dict(kwargs["data"].fields)
        self.assertEqual(fields["deviceId"], DEVICE_ID)
        self.assertEqual(fields["deviceAssetId"], "identity-1")
        self.assertEqual(fields["fileCreatedAt"], "2023-11-14T22:13:20.123456789Z")
        self.assertEqual(fields["fileModifiedAt"], fields["fileCreatedAt"])
        self.assertEqual(fields["filename"], "img_0001.jpg")
        self.assertEqual(fields["assetData"][0], "img_0001.jpg")
        self.assertEqual(kwargs["headers"]["x-immich-checksum"], "abc123")
        self.assertTrue(kwargs["headers"]["Content-Type"].startswith("multipart/form-data"))

    def test_no_checksum_header_when_disabled(self):
        _, request = self._upload(response(200, {"id": "asset-1", "status": "duplicate"}))
        self.assertNotIn("x-immich-checksum", request.call_args.kwargs["headers"])

    def test_duplicate_status(self):
        result, _ = self._upload(response(200, {"id": "asset-1", "status": "duplicate"}))
        self.assertEqual(result, ("asset-1", AssetStatus.DUPLICATE))

    def test_rejected_upload(self):
        with self.assertRaises(UploadRejected) as cm:
            self._upload(response(400, {"message": "bad"}))
        self.assertEqual(cm.exception.status_code, 400)

    def test_missing_asset_id_is_rejected(self):
        with self.assertRaises(UploadRejected):
            self._upload(response(201, {"status": "created"}))

    def test_read_progress_is_reported(self):
        seen = []

        def consume(method, url, data=None, **kwargs):
            data.read()
            return response(201, {"id": "asset-1", "status": "created"})

        with patch.object(self.api.session, "request", side_effect=consume):
            self.api.upload_asset(self.path, "identity-1", 0, on_read=seen.append)

        self.assertEqual(sum(seen), len(b"jpegdata"))

    def test_progress_uses_encoder_monitor_and_skips_framing(self):
        self.path.write_bytes(b"x" * 5000)
        seen = []
        sent = {}

        def consume(method, url, data=None, headers=None, **kwargs):
            sent["data"] = data
            sent["content_type"] = headers["Content-Type"]
            while data.read(512):
                pass
            return response(201, {"id": "asset-1", "status": "created"})

        with patch.object(self.api.session, "request", side_effect=consume):
            self.api.upload_asset(self.path, "identity-1", 0, on_read=seen.append)

        self.assertIsInstance(sent["data"], MultipartEncoderMonitor)
        self.assertEqual(sent["content_type"], sent["data"].content_type)
        self.assertEqual(sum(seen), 5000)
        self.assertTrue(all(n > 0 for n in seen))
        self.assertGreater(len(seen), 1)


class TestHelpers(unittest.TestCase):
    def test_rfc3339_nano(self):
        self.assertEqual(rfc3339_nano(1_700_000_000_123_456_789), "2023-11-14T22:13:20.123456789Z")
        self.assertEqual(rfc3339_nano(0), "1970-01-01T00:00:00.000000000Z")

    def test_status_parsing(self):
        self.assertIs(AssetStatus.parse("Duplicate"), AssetStatus.DUPLICATE)
        self.assertIs(AssetStatus.parse("created"), AssetStatus.CREATED)
        self.assertIs(AssetStatus.parse("replaced"), AssetStatus.UNKNOWN)
        self.assertIs(AssetStatus.parse(None), AssetStatus.UNKNOWN)


if __name__ == "__main__":
    unittest.main()
