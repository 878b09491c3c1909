import logging
import os
import tempfile
import unittest

from jobpoller.logging import setup


class TestLoggingSetup(unittest.TestCase):
    def setUp(self):
        # Reset logging configuration before each test
        self.savedHandlers = logging.root.handlers
        logging.root.handlers = []
        logging.root.setLevel(logging.WARNING)

    def tearDown(self):
        for handler in logging.root.handlers:
            handler.close()
        logging.root.handlers = self.savedHandlers

    def test_setup_quiet(self):
        """Without debug or verbose only warnings reach stderr"""
        with tempfile.TemporaryDirectory() as tmpdir:
            setup(tmpdir, "test-debug.log")
            self.assertTrue(
                any(
                    isinstance(h, logging.StreamHandler)
                    for h in logging.root.handlers
                )
            )
            self.assertEqual(logging.root.level, logging.WARNING)

    def test_setup_verbose(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            setup(tmpdir, "test-debug.log", verbose=[1])
            self.assertEqual(logging.root.level, logging.INFO)
            self.assertFalse(os.path.exists(os.path.join(tmpdir, "test-debug.log")))

    def test_setup_debug_true(self):
        """Test setup with debug=True uses default log file"""
        with tempfile.TemporaryDirectory() as tmpdir:
            setup(tmpdir, "test-debug.log", debug=True)
            self.assertTrue(
                any(
                    isinstance(h, logging.FileHandler) for h in logging.root.handlers
                )
            )
            self.assertEqual(logging.root.level, logging.DEBUG)
            self.assertTrue(os.path.exists(os.path.join(tmpdir, "test-debug.log")))

    def test_setup_debug_with_custom_file(self):
        """Test setup with debug=/path/to/file uses custom log file"""
        with tempfile.TemporaryDirectory() as tmpdir:
            custom_log = os.path.join(tmpdir, "custom-debug.log")
            setup(tmpdir, "default-debug.log", debug=custom_log)
            logging.getLogger("jobpoller.test").debug("hello from the test")
            for handler in logging.root.handlers:
                handler.flush()

            self.assertTrue(os.path.exists(custom_log))
            self.assertFalse(
                os.path.exists(os.path.join(tmpdir, "default-debug.log")))
            with open(custom_log) as logFp:
                self.assertIn("hello from the test", logFp.read())


if __name__ == "__main__":
    unittest.main()
