import logging
import tempfile
import unittest
from pathlib import Path

from chat_gateway.__main__ import configure_logging


class ConfigureLoggingTests(unittest.TestCase):
    def setUp(self) -> None:
        root = logging.getLogger()
        self._saved = (root.level, list(root.handlers))

    def tearDown(self) -> None:
        root = logging.getLogger()
        for handler in root.handlers:
            if handler not in self._saved[1]:
                handler.close()
        root.setLevel(self._saved[0])
        root.handlers[:] = self._saved[1]

    def test_console_only_by_default(self) -> None:
        configure_logging("debug")
        root = logging.getLogger()
        self.assertEqual(root.level, logging.DEBUG)
        self.assertEqual(len(root.handlers), 1)

    def test_file_handler_when_path_set(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "logs" / "gateway.log"
            configure_logging("info", str(path))
            logging.getLogger("chat_gateway.test").info("hello file")
            for handler in logging.getLogger().handlers:
                handler.flush()

            self.assertIn("hello file", path.read_text(encoding="utf-8"))
            for handler in list(logging.getLogger().handlers):
                if isinstance(handler, logging.FileHandler):
                    handler.close()


if __name__ == "__main__":
    unittest.main()
