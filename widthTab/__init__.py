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
Terminal column widths of Unicode code points and strings.

Overview
--------

Every code point gets one of four widths: -1 (not printable), 0, 1 or
2 columns.  ``wcwidth()`` measures one code point and ``wcswidth()`` a
string; the ``Cjk`` variants additionally count East Asian Ambiguous
characters (DEGREE SIGN, Greek letters, box drawing...) as two columns,
the way terminals set up for legacy CJK encodings do.

    >>> wcwidth('a'), wcwidth('\\u597d'), wcwidth('\\x07')
    (1, 2, -1)
    >>> wcswidth('\\uc548\\ub155'), wcswidth('hello', 3)
    (4, 3)
    >>> wcswidth('\\xb0C'), wcswidthCjk('\\xb0C')
    (2, 3)

The package has two halves.

**Build time** turns Unicode Character Database properties into
lookup structures:

  - ``ucd`` / ``ucdxml`` extract the code point sets the rules need
    (format controls, grapheme extenders and ignorables, Hangul
    vowels and trailers, East Asian widths, combining classes) from
    UCD text files, the UCD XML repertoire or the interpreter's own
    ``unicodedata``.
  - ``bitset`` compiles a set into a sparse block-index to 32-bit mask
    map, with dense-range shortcuts for long all-ones runs.
  - ``classify`` holds the width rules; ``table`` packs their result
    for all 0x110000 code points into one three-stage table buffer.
  - ``generate`` writes these artifacts out, ``__main__`` drives it.

**Run time** (``data``) keeps one read-only WidthData per process:
one table lookup per code point, plus a bitset test in CJK mode.
"""

from .classify import WidthClass
from .data import WidthData, default_data


__all__ = [
    "wcwidth",
    "wcswidth",
    "wcwidthCjk",
    "wcswidthCjk",
    "default_data",
    "WidthData",
    "WidthClass",
]

__version__ = "1.0.0"


def wcwidth(char):
    """Return the column width of a code point (str or int): -1, 0, 1 or 2."""
    return default_data().wcwidth(char)


def wcswidth(s, n=None):
    """Return the column width of the first ``n`` code points of ``s``.

    Returns -1 if any of them is not printable.
    """
    return default_data().wcswidth(s, n)


def wcwidthCjk(char):
    """wcwidth() with East Asian Ambiguous code points counted as wide."""
    return default_data().wcwidthCjk(char)


def wcswidthCjk(s, n=None):
    """wcswidth() with East Asian Ambiguous code points counted as wide."""
    return default_data().wcswidthCjk(s, n)
