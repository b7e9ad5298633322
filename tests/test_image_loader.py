"""
Tests for the program image text format.
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from lmc_vm.image_loader import (
    ImageLoader, ImageLoaderError, ProgramImage, load_image_file, parse_image, parse_number
)

PROGRAMS_DIR = os.path.join(os.path.dirname(__file__), '..', 'programs')


class TestImageLoader(unittest.TestCase):
    """Test parsing of program images."""

    def test_separators(self):
        """Test whitespace, commas and newlines all separate cells."""
        image = parse_image("901 902\n000,5 ,\t7\n\n")
        self.assertEqual(image.cells, (901, 902, 0, 5, 7))
        self.assertEqual(len(image), 5)

    def test_comments(self):
        """Test both comment styles are stripped."""
        text = """
        # header comment
        901   # INP
        902   // OUT
        // 123
        000
        """
        self.assertEqual(parse_image(text).cells, (901, 902, 0))

    def test_number_forms(self):
        """Test leading zeros and hex values."""
        image = parse_image("005 0x1F 0X10 10000")
        self.assertEqual(image.cells, (5, 31, 16, 10000))

    def test_parse_number(self):
        """Test the number forms shared by images and interactive input."""
        cases = {
            '010': 10,
            ' 7 ': 7,
            '-3': -3,
            '+4': 4,
            '0x1f': 31,
            '-0x10': -16,
        }
        for text, expected in cases.items():
            with self.subTest(text=text):
                self.assertEqual(parse_number(text), expected)

        for text in ['', '-', '--5', 'abc', '0xZZ']:
            with self.subTest(text=text):
                with self.assertRaises(ValueError):
                    parse_number(text)

    def test_data_prefix(self):
        """Test d: marks data reservations by address."""
        image = parse_image("510 902 000\nd:42 D:0x2")

        self.assertEqual(image.cells, (510, 902, 0, 42, 2))
        self.assertEqual(image.data_addresses, frozenset({3, 4}))

    def test_errors_report_line(self):
        """Test bad tokens are reported with their line number."""
        cases = [
            ("901\nabc", "line 2"),
            ("-5", "line 1"),
            ("1\n2\n0xZZ", "line 3"),
            ("d:", "line 1"),
        ]

        for text, expected in cases:
            with self.subTest(text=text):
                with self.assertRaises(ImageLoaderError) as ctx:
                    parse_image(text)
                self.assertIn(expected, str(ctx.exception))

    def test_empty_image(self):
        """Test text with no cells gives an empty image."""
        image = parse_image("# nothing here\n")
        self.assertEqual(image, ProgramImage(()))

    def test_loader_is_reusable(self):
        """Test a loader instance starts fresh on every call."""
        loader = ImageLoader()
        loader.load_from_string("d:1 2 3")
        image = loader.load_from_string("4")

        self.assertEqual(image.cells, (4,))
        self.assertEqual(image.data_addresses, frozenset())

    def test_load_file(self):
        """Test reading an image from disk."""
        image = load_image_file(os.path.join(PROGRAMS_DIR, 'countdown.lmc'))

        self.assertEqual(image.cells, (901, 902, 207, 705, 601, 902, 0, 1))
        self.assertEqual(image.data_addresses, frozenset({7}))

    def test_missing_file(self):
        """Test a missing file raises FileNotFoundError."""
        with self.assertRaises(FileNotFoundError):
            load_image_file(os.path.join(PROGRAMS_DIR, 'missing.lmc'))


if __name__ == '__main__':
    unittest.main()
