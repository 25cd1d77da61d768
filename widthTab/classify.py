# Copyright 2019 Facebook Inc. All Rights Reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Column width rules.

The rules follow Markus Kuhn's wcwidth() as refined by glibc:

  - The null character (U+0000) has a column width of 0.
  - Other C0/C1 control characters and DEL have no width (-1).
  - Zero-width characters (non-spacing and enclosing marks, format
    characters except SOFT HYPHEN, default ignorables, Hangul Jamo
    medial vowels and final consonants) have a column width of 0.
  - Hangul Jamo initial consonants, the angle brackets U+2329/U+232A,
    the CJK block range U+2E80..U+A4CF (except U+303F) and the East
    Asian Wide and Fullwidth characters have a column width of 2.
  - Everything else, including code points not yet assigned, has a
    column width of 1.

Surrogate code points are not scalar values and have no width.

Two implementations are provided.  ``reference_width()`` evaluates the
rules one code point at a time and is used to verify the tables.
``width_values()`` evaluates them for every code point at once by
painting ranges into a flat array, lowest-priority rule first; its
output is what ``table.build_table()`` compresses.
"""

import enum
from bisect import bisect_right

from .codepoints import MAX_CODEPOINT, CodepointSet


__all__ = [
    "WidthClass",
    "INVALID_BYTE",
    "NUM_CODEPOINTS",
    "WIDE_RANGES",
    "is_scalar",
    "to_byte",
    "from_byte",
    "reference_width",
    "width_values",
]

NUM_CODEPOINTS = MAX_CODEPOINT + 1

# Table byte for WidthClass.INVALID.
INVALID_BYTE = 0xFF

SURROGATES = (0xD800, 0xDFFF)

CONTROL_RANGES = ((0x01, 0x1F), (0x7F, 0x9F))

# Hangul Jamo initial consonants and the angle brackets.
LEADING_WIDE_RANGES = ((0x1100, 0x115F), (0x2329, 0x232A))

HANGUL_FILLER = 0x3164

# CJK Radicals Supplement .. Yi Radicals, minus IDEOGRAPHIC HALF FILL SPACE.
CJK_RANGE = (0x2E80, 0xA4CF)
CJK_EXCEPTION = 0x303F

WIDE_RANGES = (
    (0xAC00, 0xD7A3),  # Hangul Syllables
    (0xF900, 0xFAFF),  # CJK Compatibility Ideographs
    (0xFE10, 0xFE19),  # Vertical Forms
    (0xFE30, 0xFE6F),  # CJK Compatibility Forms
    (0xFF00, 0xFF60),  # Fullwidth Forms
    (0xFFE0, 0xFFE6),
    (0x20000, 0x2FFFD),  # CJK Extension B and beyond
    (0x30000, 0x3FFFD),  # CJK Extension G and beyond
)

_WIDE_STARTS = tuple(r[0] for r in WIDE_RANGES)


class WidthClass(enum.IntEnum):
    INVALID = -1
    ZERO = 0
    NARROW = 1
    WIDE = 2


def is_scalar(cp):
    """
    >>> is_scalar(0x41), is_scalar(0xD800), is_scalar(0x110000)
    (True, False, False)
    """
    return 0 <= cp <= MAX_CODEPOINT and not SURROGATES[0] <= cp <= SURROGATES[1]


def to_byte(width):
    """
    >>> to_byte(WidthClass.INVALID), to_byte(2)
    (255, 2)
    """
    return width & 0xFF


def from_byte(value):
    """
    >>> from_byte(0xFF), from_byte(1)
    (-1, 1)
    """
    return -1 if value == INVALID_BYTE else value


def _in_wide_ranges(cp):
    i = bisect_right(_WIDE_STARTS, cp) - 1
    return i >= 0 and cp <= WIDE_RANGES[i][1]


def reference_width(cp, combining, wide=None):
    """Classify one code point by walking the rules in order.

    ``combining`` is the zero-width set and ``wide`` the optional East
    Asian Wide/Fullwidth set; anything supporting ``in`` will do
    (CodepointSet, SparseBitset, set).
    """
    if not is_scalar(cp):
        return WidthClass.INVALID
    if cp == 0:
        return WidthClass.ZERO
    if cp < 32 or 0x7F <= cp < 0xA0:
        return WidthClass.INVALID
    if cp in combining:
        return WidthClass.ZERO
    if cp < 0x1100:
        return WidthClass.NARROW
    if cp <= 0x115F or cp == 0x2329 or cp == 0x232A:
        return WidthClass.WIDE
    if cp == HANGUL_FILLER:
        return WidthClass.NARROW
    if CJK_RANGE[0] <= cp <= CJK_RANGE[1] and cp != CJK_EXCEPTION:
        return WidthClass.WIDE
    if _in_wide_ranges(cp) or (wide is not None and cp in wide):
        return WidthClass.WIDE
    return WidthClass.NARROW


def _paint(values, start, end, width):
    values[start : end + 1] = bytes([to_byte(width)]) * (end - start + 1)


def width_values(combining, wide=None):
    """Return a bytearray holding the table byte of every code point.

    Rules are applied in reverse priority so that each later paint
    overrides the earlier ones, which gives the same answer as
    ``reference_width()`` for every code point.
    """
    if not isinstance(combining, CodepointSet):
        combining = CodepointSet.from_codepoints(combining)
    if wide is not None and not isinstance(wide, CodepointSet):
        wide = CodepointSet.from_codepoints(wide)

    values = bytearray([WidthClass.NARROW]) * NUM_CODEPOINTS

    if wide is not None:
        for start, end in wide.ranges():
            _paint(values, start, end, WidthClass.WIDE)
    for start, end in WIDE_RANGES:
        _paint(values, start, end, WidthClass.WIDE)

    _paint(values, CJK_RANGE[0], CJK_EXCEPTION - 1, WidthClass.WIDE)
    _paint(values, CJK_EXCEPTION + 1, CJK_RANGE[1], WidthClass.WIDE)

    values[HANGUL_FILLER] = WidthClass.NARROW

    for start, end in LEADING_WIDE_RANGES:
        _paint(values, start, end, WidthClass.WIDE)

    _paint(values, 0, 0x10FF, WidthClass.NARROW)

    for start, end in combining.ranges():
        _paint(values, start, end, WidthClass.ZERO)

    for start, end in CONTROL_RANGES:
        _paint(values, start, end, WidthClass.INVALID)
    values[0] = WidthClass.ZERO

    _paint(values, SURROGATES[0], SURROGATES[1], WidthClass.INVALID)

    return values
