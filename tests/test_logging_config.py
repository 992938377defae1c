import shutil
import unittest
from pathlib import Path
from uuid import uuid4

from loguru import logger

from chatinstance_cli.logging_config import default_consumers, setup_logging

PROJECT_ROOT = Path(__file__).resolve().parents[1]


class SetupLoggingTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp_dir = PROJECT_ROOT / ".test-artifacts" / f"logging-{uuid4().hex}"
        self._tmp_dir.mkdir(parents=True, exist_ok=True)

    def tearDown(self) -> None:
        logger.remove()
        shutil.rmtree(self._tmp_dir, ignore_errors=True)

    def test_default_console_stays_quiet_unless_debug(self) -> None:
        self.assertEqual("WARNING", default_consumers()[0]["level"])
        self.assertEqual("DEBUG", default_consumers(debug=True)[0]["level"])

    def test_file_consumer_receives_messages(self) -> None:
        log_path = self._tmp_dir / "client.log"
        descriptions = setup_logging("INFO", [{"type": "file", "path": str(log_path)}])
        logger.info("turn committed")
        logger.debug("not written")
        logger.remove()

        self.assertEqual([f"file ({log_path}, INFO)"], descriptions)
        contents = log_path.read_text()
        self.assertIn("turn committed", contents)
        self.assertNotIn("not written", contents)

    def test_debug_overrides_sink_levels(self) -> None:
        descriptions = setup_logging("INFO", [{"type": "console", "level": "ERROR"}], debug=True)
        self.assertEqual(["console (stderr, DEBUG)"], descriptions)

    def test_setup_replaces_existing_handlers(self) -> None:
        earlier: list[str] = []
        logger.add(earlier.append, level="DEBUG")
        setup_logging("INFO", [{"type": "file", "path": str(self._tmp_dir / "client.log")}])
        logger.warning("after setup")
        self.assertEqual([], earlier)

    def test_unknown_consumer_is_skipped(self) -> None:
        descriptions = setup_logging("INFO", [{"type": "syslog"}, {"type": "console"}])
        self.assertEqual(["console (stderr, INFO)"], descriptions)


if __name__ == "__main__":
    unittest.main()
