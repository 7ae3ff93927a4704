"""Line tokenizer for delimited BOM text.

Every character of the delimiter set separates cells. Each physical line is
one row; quoted fields do not span lines.
"""

import re
from typing import List

from .schema import DEFAULT_DELIMITERS

_LINE_SPLIT = re.compile(r"\r?\n")


def tokenize_line(line: str, delimiters: str = DEFAULT_DELIMITERS) -> List[str]:
    """Split one delimited line into unquoted cell values.

    Args:
        line: A single line of text (no line terminator)
        delimiters: Every character in this string separates cells

    Returns:
        Ordered list of cell strings. An empty line yields ``[""]``.

    Quoting follows the usual CSV convention: a ``"`` opens a quoted section
    in which delimiters are literal and ``""`` stands for one ``"``. An
    unterminated quote runs to the end of the line.
    """
    cells: List[str] = []
    current: List[str] = []
    in_quotes = False
    i = 0
    length = len(line)

    while i < length:
        ch = line[i]
        if in_quotes:
            if ch == '"':
                if i + 1 < length and line[i + 1] == '"':
                    current.append('"')
                    i += 1
                else:
                    in_quotes = False
            else:
                current.append(ch)
        elif ch == '"':
            in_quotes = True
        elif ch in delimiters:
            cells.append("".join(current))
            current = []
        else:
            current.append(ch)
        i += 1

    cells.append("".join(current))
    return cells


def tokenize_text(text: str, delimiters: str = DEFAULT_DELIMITERS) -> List[List[str]]:
    """Tokenize every line of a text blob."""
    if text.startswith("\ufeff"):
        text = text[1:]
    return [tokenize_line(line, delimiters) for line in _LINE_SPLIT.split(text)]
