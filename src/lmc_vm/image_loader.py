"""LMC Program Image Loader

Reads numeric memory images from text.

Format: one integer per cell, separated by whitespace or commas, in decimal
(leading zeros allowed, so ``005`` reads as 5) or hex (``0x1F``). ``#`` and
``//`` start comments. A ``d:`` prefix marks the cell as a data reservation::

    901        # INP
    310        // STA 10
    902, 000   # OUT, HLT
    d:42
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, List, Set, Tuple, Union

DATA_PREFIX = 'd:'


class ImageLoaderError(Exception):
    """Exception raised for image loading errors."""
    pass


def parse_number(text: str) -> int:
    """Parse a signed decimal (leading zeros allowed) or ``0x`` hex integer."""
    text = text.strip()
    sign = 1
    if text.startswith(('-', '+')):
        sign = -1 if text[0] == '-' else 1
        text = text[1:]

    if not text[:1].isdigit():
        raise ValueError(f"Not a number: {text!r}")
    if text.lower().startswith('0x'):
        return sign * int(text, 16)
    return sign * int(text, 10)


@dataclass(frozen=True)
class ProgramImage:
    """Cell values plus the addresses reserved as data."""
    cells: Tuple[int, ...]
    data_addresses: FrozenSet[int] = field(default_factory=frozenset)

    def __len__(self) -> int:
        return len(self.cells)


class ImageLoader:
    """Parses program image text into a ProgramImage."""

    def __init__(self):
        self.cells: List[int] = []
        self.data_addresses: Set[int] = set()

    def load_from_file(self, filename: Union[str, Path]) -> ProgramImage:
        """Load an image from file.

        Args:
            filename: Path to image file

        Returns:
            The parsed image
        """
        with open(filename, 'r', encoding='utf-8') as f:
            content = f.read()

        return self.load_from_string(content)

    def load_from_string(self, text: str) -> ProgramImage:
        """Load an image from a string."""
        self.cells.clear()
        self.data_addresses.clear()

        for line_num, line in enumerate(text.splitlines(), 1):
            for token in self._preprocess_line(line).replace(',', ' ').split():
                try:
                    self._parse_token(token)
                except ValueError as e:
                    raise ImageLoaderError(f"Error on line {line_num}: {e}") from e

        return ProgramImage(tuple(self.cells), frozenset(self.data_addresses))

    def _preprocess_line(self, line: str) -> str:
        """Strip comments and surrounding whitespace."""
        for marker in ('#', '//'):
            comment_pos = line.find(marker)
            if comment_pos >= 0:
                line = line[:comment_pos]
        return line.strip()

    def _parse_token(self, token: str) -> None:
        if token.lower().startswith(DATA_PREFIX):
            self.data_addresses.add(len(self.cells))
            token = token[len(DATA_PREFIX):]

        value = parse_number(token)
        if value < 0:
            raise ValueError(f"Negative cell value: {token}")
        self.cells.append(value)


def load_image_file(filename: Union[str, Path]) -> ProgramImage:
    """Convenience function to load an image from file."""
    loader = ImageLoader()
    return loader.load_from_file(filename)


def parse_image(text: str) -> ProgramImage:
    """Convenience function to load an image from a string."""
    loader = ImageLoader()
    return loader.load_from_string(text)
