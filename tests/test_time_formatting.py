import os
import sys
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from utils import time_formatting


class TestTimeFormatting(unittest.TestCase):
    def test_format_relative_age_units(self):
        self.assertEqual(time_formatting.format_relative_age(0.4), "now")
        self.assertEqual(time_formatting.format_relative_age(-3), "now")
        self.assertEqual(time_formatting.format_relative_age(12), "12s ago")
        self.assertEqual(time_formatting.format_relative_age(125), "2m ago")
        self.assertEqual(time_formatting.format_relative_age(7200), "2h ago")
        self.assertEqual(time_formatting.format_relative_age(3 * 86400), "3d ago")

    def test_format_relative_age_caps_label_width(self):
        label = time_formatting.format_relative_age(5000 * 86400)
        self.assertEqual(label, ">999d")
        self.assertLessEqual(len(time_formatting.format_relative_age(999 * 86400)), 8)

    def test_format_relative_age_handles_invalid(self):
        self.assertEqual(time_formatting.format_relative_age("soon"), "?")


if __name__ == "__main__":
    unittest.main()
