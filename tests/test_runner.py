import logging
import os
import unittest
from unittest.mock import patch

from switchyard.errors import CommandFailedError
from switchyard.log import init_logging
from switchyard.runner import CommandRunner


class CommandRunnerTests(unittest.TestCase):
    def setUp(self):
        self.runner = CommandRunner(timeout=5)

    def test_captures_trimmed_output_and_exit_code(self):
        result = self.runner.run(["sh", "-c", "echo ' out '; echo err >&2; exit 3"])
        self.assertEqual((result.stdout, result.stderr, result.exit_code), ("out", "err", 3))
        self.assertFalse(result.ok)
        self.assertEqual(result.error_text(), "err")

    def test_missing_binary_raises(self):
        with self.assertRaises(CommandFailedError):
            self.runner.run(["/nonexistent/cc-switch", "--help"])

    def test_timeout_raises(self):
        with self.assertRaises(CommandFailedError) as ctx:
            self.runner.run(["sh", "-c", "sleep 2"], timeout=0.1)
        self.assertIn("timed out", str(ctx.exception))

    def test_check_raises_on_non_zero_exit(self):
        with self.assertRaises(CommandFailedError) as ctx:
            self.runner.check(["sh", "-c", "echo nope >&2; exit 1"], "do the thing")
        self.assertEqual(str(ctx.exception), "Failed to do the thing: nope")
        self.assertEqual(ctx.exception.exit_code, 1)


class LoggingTests(unittest.TestCase):
    def tearDown(self):
        logger = logging.getLogger("switchyard")
        for handler in list(logger.handlers):
            logger.removeHandler(handler)

    def test_level_from_environment(self):
        with patch.dict(os.environ, {"SWITCHYARD_LOG_LEVEL": "info"}):
            logger = init_logging()
        self.assertEqual(logger.level, logging.INFO)
        self.assertFalse(logger.propagate)

    def test_debug_flag_wins_and_handler_is_reused(self):
        init_logging()
        logger = init_logging(debug=True)
        self.assertEqual(logger.level, logging.DEBUG)
        self.assertEqual(len(logger.handlers), 1)


if __name__ == "__main__":
    unittest.main()
