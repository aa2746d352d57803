import logging
import logging.handlers
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from fakes import FakeApi, make_file

from ifu.cli import main, parse_arguments
from ifu.config import DEFAULT_BASE_URL, SyncOptions


class TestArguments(unittest.TestCase):
    def test_defaults(self):
        args = parse_arguments([])
        self.assertTrue(args.recursive)
        self.assertTrue(args.checksum)
        self.assertTrue(args.smallest_first)
        self.assertTrue(args.live)
        self.assertEqual(args.workers, 4)
        self.assertEqual(args.batch_size, 200)
        self.assertEqual(args.timeout, 300)
        self.assertEqual(args.parking_dir, "ignore")
        self.assertIsNone(args.deadline)

    def test_negated_flags(self):
        args = parse_arguments(["--no-deep", "--no-checksum", "--no-smallest-first", "--no-tui"])
        self.assertFalse(args.recursive)
        self.assertFalse(args.checksum)
        self.assertFalse(args.smallest_first)
        self.assertFalse(args.live)

    def test_invalid_value_is_usage_error(self):
        with self.assertRaises(SystemExit) as cm:
            parse_arguments(["--workers", "many"])
        self.assertEqual(cm.exception.code, 2)


class TestOptionsFromEnv(unittest.TestCase):
    def test_environment_fallback(self):
        with patch.dict(os.environ, {"IMMICH_URL": "http://nas:2283/api/", "IMMICH_API_KEY": "env-key"}):
            options = SyncOptions.from_env(api_key=None, base_url=None, workers=8)
        self.assertEqual(options.base_url, "http://nas:2283/api")
        self.assertEqual(options.api_key, "env-key")
        self.assertEqual(options.workers, 8)

    def test_flags_override_environment(self):
        with patch.dict(os.environ, {"IMMICH_URL": "http://nas:2283/api", "IMMICH_API_KEY": "env-key"}):
            options = SyncOptions.from_env(api_key="flag-key", base_url="http://other/api")
        self.assertEqual(options.api_key, "flag-key")
        self.assertEqual(options.base_url, "http://other/api")

    def test_default_url(self):
        with patch.dict(os.environ, {"IMMICH_URL": ""}):
            self.assertEqual(SyncOptions.from_env().base_url, DEFAULT_BASE_URL)


class TestMain(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.addCleanup(self._tmp.cleanup)
        self.addCleanup(self._reset_logging)

    def _reset_logging(self):
        logger = logging.getLogger("ifu")
        for handler in list(logger.handlers):
            if isinstance(handler, logging.handlers.RotatingFileHandler):
                logger.removeHandler(handler)
                handler.close()
        logger.setLevel(logging.NOTSET)

    def _main(self, api, *extra):
        argv = ["--root", str(self.root), "--key", "secret", "--no-tui", *extra]
        with patch("ifu.client.Api", return_value=api):
            return main(argv)

    def test_successful_run_exits_zero(self):
        make_file(self.root, "Trip2023/a.jpg")
        api = FakeApi()

        self.assertEqual(self._main(api, "--workers", "2", "--batch", "1"), 0)
        self.assertEqual(len(api.uploads), 1)

    def test_per_album_failures_still_exit_zero(self):
        make_file(self.root, "Broken/x.jpg")
        make_file(self.root, "Good/y.jpg")
        api = FakeApi(fail_create={"Broken"}, fail_upload={"y.jpg"})

        self.assertEqual(self._main(api), 0)

    def test_missing_key_exits_one(self):
        with patch.dict(os.environ, {"IMMICH_API_KEY": ""}):
            with patch("ifu.client.Api") as api_cls:
                self.assertEqual(main(["--root", str(self.root), "--no-tui"]), 1)
        api_cls.assert_not_called()

    def test_unreadable_root_exits_one(self):
        with patch("ifu.client.Api") as api_cls:
            self.assertEqual(main(["--root", str(self.root / "missing"), "--key", "k", "--no-tui"]), 1)
        api_cls.assert_not_called()

    def test_album_list_failure_exits_one(self):
        make_file(self.root, "Trip/a.jpg")
        self.assertEqual(self._main(FakeApi(fail_list=True)), 1)

    def test_log_file_receives_debug_trace(self):
        make_file(self.root, "Trip/a.jpg")
        log_dir = tempfile.TemporaryDirectory()
        self.addCleanup(log_dir.cleanup)
        log_file = Path(log_dir.name) / "logs" / "run.log"

        self.assertEqual(self._main(FakeApi(), "--log-file", str(log_file)), 0)

        self._reset_logging()
        content = log_file.read_text(encoding="utf-8")
        self.assertIn("Done in", content)
        self.assertIn("DEBUG", content)


if __name__ == "__main__":
    unittest.main()
