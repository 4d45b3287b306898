import io
import unittest
from contextlib import redirect_stdout

from onion_network import logger


class TestComponentLogger(unittest.TestCase):
    def capture(self, log, action, msg):
        out = io.StringIO()
        with redirect_stdout(out):
            log(action, msg)
        return out.getvalue()

    def test_tag_and_reset(self):
        line = self.capture(logger.component_logger("Router1", color=logger.ansi(34)), "PEEL", "ok")
        self.assertEqual(line, "\033[34m[Router1][PEEL] ok\033[0m\n")

    def test_error_and_warn_override_component_color(self):
        log = logger.component_logger("Router1", color=logger.ansi(34))
        self.assertTrue(self.capture(log, "FORWARD_ERROR", "x").startswith(logger.ERROR_COLOR))
        self.assertTrue(self.capture(log, "PEEL_WARN", "x").startswith(logger.WARN_COLOR))

    def test_round_robin_palette(self):
        colors = [logger.next_color() for _ in range(len(logger.PALETTE))]
        self.assertEqual(sorted(colors), sorted(logger.PALETTE))
        self.assertNotIn(logger.ERROR_COLOR, logger.PALETTE)
        self.assertNotIn(logger.WARN_COLOR, logger.PALETTE)


if __name__ == "__main__":
    unittest.main()
