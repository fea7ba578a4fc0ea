#!/usr/bin/env python3
"""Unit tests for utils.json_utils covering atomic saves, error paths and pretty-printing."""

import json
import os
import sys
import tempfile
import unittest
from unittest.mock import patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from utils import json_utils


class TestJsonUtils(unittest.TestCase):
    def test_save_and_load_ok(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            target = os.path.join(td, "nested", "data.json")
            data = {"a": 1, "b": "ok"}

            self.assertTrue(json_utils.save_json_atomic(target, data))
            self.assertEqual(json_utils.load_json_from_file(target), data)
            self.assertEqual(sorted(os.listdir(os.path.dirname(target))), ["data.json"])

    def test_save_rejects_unserialisable_data(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            target = os.path.join(td, "data.json")
            self.assertFalse(json_utils.save_json_atomic(target, {"bad": object()}))
            self.assertFalse(os.path.exists(target))

    def test_save_cleans_up_temp_file_on_replace_failure(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            target = os.path.join(td, "data.json")
            with patch("utils.json_utils.os.replace", side_effect=OSError("boom")):
                self.assertFalse(json_utils.save_json_atomic(target, {"k": "v"}))
            self.assertEqual(os.listdir(td), [])

    def test_load_returns_default_for_missing_or_corrupt(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            missing = os.path.join(td, "missing.json")
            self.assertEqual(json_utils.load_json_from_file(missing, default=[]), [])

            corrupt = os.path.join(td, "corrupt.json")
            with open(corrupt, "w", encoding="utf-8") as f:
                f.write("{ nope")
            self.assertIsNone(json_utils.load_json_from_file(corrupt))

    def test_pretty_json(self) -> None:
        rendered = json_utils.pretty_json('{"level":"error","n":[1,2]}')
        self.assertEqual(json.loads(rendered), {"level": "error", "n": [1, 2]})
        self.assertTrue(rendered.startswith('{\n  "level"'))
        self.assertIsNone(json_utils.pretty_json("{not json}"))


if __name__ == "__main__":
    unittest.main()
