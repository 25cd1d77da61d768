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
Extract the code point sets behind the width rules from the UCD.

Two sources are read here: a directory of UCD text files, and the
``unicodedata`` module of the running interpreter.  The UCD XML
repertoire is handled by ``widthTab.ucdxml``.  All of them produce a
``WidthProperties``.
"""

import logging
import os
import re
import unicodedata
from typing import Callable, Iterable, Iterator, Optional, Tuple

from .codepoints import MAX_CODEPOINT, CodepointSet


__all__ = [
    "UCDError",
    "EXCLUSIONS",
    "WidthProperties",
    "parse_property_lines",
    "load_property",
    "parse_unicode_data",
    "read_version",
    "load_ucd",
    "SUPPORTED_VERSIONS",
    "other_grapheme_extend",
    "from_unicodedata",
]

_logger = logging.getLogger(__name__)


class UCDError(ValueError):
    """Malformed, missing or empty UCD source data."""


# Characters that the format-control and ignorable properties mark as
# zero width, but that terminals render with a width (glibc).
EXCLUSIONS = CodepointSet(
    [
        (0x00AD, 0x00AD),  # SOFT HYPHEN
        (0x115F, 0x115F),  # HANGUL CHOSEONG FILLER
        (0x3164, 0x3164),  # HANGUL FILLER
        (0xFFA0, 0xFFA0),  # HALFWIDTH HANGUL FILLER
        (0xFFF9, 0xFFFB),  # INTERLINEAR ANNOTATION ANCHOR..TERMINATOR
        (0x13430, 0x1343F),  # EGYPTIAN HIEROGLYPH format controls
    ]
)

SOFT_HYPHEN = 0x00AD

EXTEND_PROPERTIES = frozenset(
    ["Grapheme_Extend", "Variation_Selector", "Default_Ignorable_Code_Point"]
)


class WidthProperties:
    """The code point sets the width rules are built from.

    ``zero_width`` is the set compiled into the combining bitset.
    """

    def __init__(
        self,
        version: str,
        format_controls: CodepointSet,
        extend: CodepointSet,
        jamo: CodepointSet,
        ambiguous: CodepointSet,
        wide: CodepointSet,
        combining_class: CodepointSet,
    ) -> None:
        self.version = version
        self.format_controls = format_controls
        self.extend = extend
        self.jamo = jamo
        self.ambiguous = ambiguous
        self.wide = wide
        self.combining_class = combining_class

    @property
    def zero_width(self) -> CodepointSet:
        return (self.format_controls | self.extend | self.jamo) - EXCLUSIONS

    def __eq__(self, other) -> bool:
        if not isinstance(other, WidthProperties):
            return NotImplemented
        return vars(self) == vars(other)

    def __repr__(self) -> str:
        return "%s(%r, zero_width=%d, ambiguous=%d, wide=%d)" % (
            self.__class__.__name__,
            self.version,
            len(self.zero_width),
            len(self.ambiguous),
            len(self.wide),
        )


# UCD text files


_property_line = re.compile(
    r"^([0-9A-Fa-f]{4,6})(?:\.\.([0-9A-Fa-f]{4,6}))?\s*;\s*([^;]*?)\s*(?:;.*)?$"
)
_version_line = re.compile(r"^#\s*[\w.]+-(\d+\.\d+\.\d+)\.txt")


def parse_property_lines(
    lines: Iterable[str], source: str = "<string>"
) -> Iterator[Tuple[int, int, str]]:
    """Yield ``(start, end, value)`` for every data line of a UCD file.

    Data lines look like ``start[..end] ; value [; more] [# comment]``.
    Blank and comment lines are skipped; anything else is an error.
    """
    for lineno, line in enumerate(lines, 1):
        line = line.split("#", 1)[0].strip()
        if not line:
            continue
        m = _property_line.match(line)
        if not m:
            raise UCDError("%s:%d: cannot parse %r" % (source, lineno, line))
        start = int(m.group(1), 16)
        end = int(m.group(2), 16) if m.group(2) else start
        if start > end or end > MAX_CODEPOINT:
            raise UCDError("%s:%d: bad range %r" % (source, lineno, line))
        yield start, end, m.group(3)


def load_property(
    lines: Iterable[str],
    values: Iterable[str],
    source: str = "<string>",
    predicate: Optional[Callable[[str], bool]] = None,
) -> CodepointSet:
    """Collect the code points whose property value is one of ``values``.

    ``predicate``, if given, replaces the membership test.

    >>> load_property(["0041..0043 ; A # x", "0045 ; W"], ["A"]).ranges()
    [(65, 67)]
    """
    if predicate is None:
        values = frozenset(values)
        predicate = values.__contains__
    ranges = []
    seen = False
    for start, end, value in parse_property_lines(lines, source):
        seen = True
        if predicate(value):
            ranges.append((start, end))
    if not seen:
        raise UCDError("%s: no data" % source)
    return CodepointSet(ranges)


def parse_unicode_data(
    lines: Iterable[str],
    categories: Iterable[str] = ("Cf",),
    source: str = "UnicodeData.txt",
) -> CodepointSet:
    """Collect the code points of UnicodeData.txt in ``categories``.

    ``<..., First>`` and ``<..., Last>`` entries denote ranges.
    """
    categories = frozenset(categories)
    ranges = []
    first = None
    seen = False
    for lineno, line in enumerate(lines, 1):
        line = line.strip()
        if not line:
            continue
        fields = line.split(";")
        if len(fields) < 3:
            raise UCDError("%s:%d: cannot parse %r" % (source, lineno, line))
        try:
            cp = int(fields[0], 16)
        except ValueError:
            raise UCDError("%s:%d: bad code point %r" % (source, lineno, fields[0]))
        if cp > MAX_CODEPOINT:
            raise UCDError("%s:%d: bad code point %r" % (source, lineno, fields[0]))
        seen = True
        name, gc = fields[1], fields[2]
        if name.endswith(", First>"):
            first = cp
            continue
        start = cp
        if name.endswith(", Last>"):
            if first is None:
                raise UCDError("%s:%d: range end without start" % (source, lineno))
            start, first = first, None
        if gc in categories:
            ranges.append((start, cp))
    if not seen:
        raise UCDError("%s: no data" % source)
    return CodepointSet(ranges)


def read_version(lines: Iterable[str], source: str = "<string>") -> str:
    """Read X.Y.Z from the ``# Name-X.Y.Z.txt`` banner of a UCD file.

    >>> read_version(["# DerivedCoreProperties-16.0.0.txt", "# Date: ..."])
    '16.0.0'
    """
    for i, line in enumerate(lines):
        m = _version_line.match(line)
        if m:
            return m.group(1)
        if i > 10:
            break
    raise UCDError("%s: cannot determine Unicode version" % source)


def _read_lines(directory, *candidates):
    for name in candidates:
        path = os.path.join(directory, name)
        if os.path.exists(path):
            try:
                with open(path, encoding="utf-8") as f:
                    return f.read().splitlines(), path
            except (OSError, UnicodeDecodeError) as e:
                raise UCDError("%s: %s" % (path, e)) from e
    raise UCDError("%s not found in %s" % (candidates[0], directory))


def load_ucd(directory: str) -> WidthProperties:
    """Load WidthProperties from a directory of UCD text files.

    Raises:
        UCDError: If a file is missing, empty or malformed.
    """
    lines, path = _read_lines(directory, "DerivedCoreProperties.txt")
    version = read_version(lines, path)
    extend = load_property(lines, EXTEND_PROPERTIES, path)

    lines, path = _read_lines(directory, "UnicodeData.txt")
    format_controls = parse_unicode_data(lines, ["Cf"], path) - CodepointSet(
        [(SOFT_HYPHEN, SOFT_HYPHEN)]
    )

    lines, path = _read_lines(directory, "HangulSyllableType.txt")
    jamo = load_property(lines, ["V", "T"], path)

    lines, path = _read_lines(directory, "EastAsianWidth.txt")
    ambiguous = load_property(lines, ["A"], path)
    wide = load_property(lines, ["W", "F"], path)

    lines, path = _read_lines(
        directory,
        os.path.join("extracted", "DerivedCombiningClass.txt"),
        "DerivedCombiningClass.txt",
    )
    combining_class = load_property(lines, (), path, predicate=lambda v: v != "0")

    properties = WidthProperties(
        version, format_controls, extend, jamo, ambiguous, wide, combining_class
    )
    _logger.info("loaded %r from %s", properties, directory)
    return properties


# Interpreter database
#
# unicodedata exposes General_Category, East_Asian_Width and the
# canonical combining class, but not the derived core properties.
# Those are rebuilt from the category plus the contributory lists below,
# which are only known for the versions in SUPPORTED_VERSIONS.

# (first, last) Unicode (major, minor) accepted by from_unicodedata().
SUPPORTED_VERSIONS = ((12, 1), (16, 0))

# Other_Grapheme_Extend, as (version the entries apply from, entries).
# Characters added to Unicode later than the database are dropped by
# their Cn category; the 16.0 group holds older spacing marks that only
# became grapheme extenders in 16.0.
OTHER_GRAPHEME_EXTEND = (
    (
        (12, 1),
        CodepointSet(
            [
                (0x09BE, 0x09BE), (0x09D7, 0x09D7), (0x0B3E, 0x0B3E),
                (0x0B57, 0x0B57), (0x0BBE, 0x0BBE), (0x0BD7, 0x0BD7),
                (0x0CC2, 0x0CC2), (0x0CD5, 0x0CD6), (0x0D3E, 0x0D3E),
                (0x0D57, 0x0D57), (0x0DCF, 0x0DCF), (0x0DDF, 0x0DDF),
                (0x1B35, 0x1B35), (0x200C, 0x200C), (0x302E, 0x302F),
                (0xFF9E, 0xFF9F), (0x1133E, 0x1133E), (0x11357, 0x11357),
                (0x114B0, 0x114B0), (0x114BD, 0x114BD), (0x115AF, 0x115AF),
                (0x11930, 0x11930), (0x1D165, 0x1D165), (0x1D16E, 0x1D172),
                (0xE0020, 0xE007F),
            ]
        ),
    ),
    (
        (16, 0),
        CodepointSet(
            [
                (0x0CC0, 0x0CC0), (0x0CC7, 0x0CC8), (0x0CCA, 0x0CCB),
                (0x1715, 0x1715), (0x1734, 0x1734), (0x1B3B, 0x1B3B),
                (0x1B3D, 0x1B3D), (0x1B43, 0x1B44), (0x1BAA, 0x1BAA),
                (0x1BF2, 0x1BF3), (0xA953, 0xA953), (0xA9C0, 0xA9C0),
                (0x111C0, 0x111C0), (0x11235, 0x11235), (0x1134D, 0x1134D),
                (0x113B8, 0x113B8), (0x113C2, 0x113C2), (0x113C5, 0x113C5),
                (0x113C7, 0x113C9), (0x113CF, 0x113CF), (0x116B6, 0x116B6),
                (0x1193D, 0x1193D), (0x1D166, 0x1D166), (0x1D16D, 0x1D16D),
            ]
        ),
    ),
)

OTHER_DEFAULT_IGNORABLE = CodepointSet(
    [
        (0x034F, 0x034F), (0x115F, 0x1160), (0x17B4, 0x17B5), (0x2065, 0x2065),
        (0x3164, 0x3164), (0xFFA0, 0xFFA0), (0xFFF0, 0xFFF8), (0xE0000, 0xE0000),
        (0xE0002, 0xE001F), (0xE0080, 0xE00FF), (0xE01F0, 0xE0FFF),
    ]
)

VARIATION_SELECTORS = CodepointSet(
    [(0x180B, 0x180D), (0x180F, 0x180F), (0xFE00, 0xFE0F), (0xE0100, 0xE01EF)]
)

# Removed from Default_Ignorable_Code_Point even though they are Cf.
NOT_DEFAULT_IGNORABLE = CodepointSet(
    [
        (0x0600, 0x0605), (0x06DD, 0x06DD), (0x070F, 0x070F), (0x0890, 0x0891),
        (0x08E2, 0x08E2), (0xFFF9, 0xFFFB), (0x110BD, 0x110BD),
        (0x110CD, 0x110CD), (0x13430, 0x13440),
    ]
)

HANGUL_VOWELS_AND_TRAILERS = CodepointSet(
    [(0x1160, 0x11A7), (0xD7B0, 0xD7C6), (0x11A8, 0x11FF), (0xD7CB, 0xD7FB)]
)


def _append(ranges, cp):
    if ranges and ranges[-1][1] == cp - 1:
        ranges[-1][1] = cp
    else:
        ranges.append([cp, cp])


def _parse_version(version):
    """
    >>> _parse_version("15.1.0")
    (15, 1)
    """
    m = re.match(r"^(\d+)\.(\d+)(?:\.\d+)?$", version)
    if not m:
        raise UCDError("bad Unicode version: %r" % version)
    return int(m.group(1)), int(m.group(2))


def other_grapheme_extend(version) -> CodepointSet:
    """Return the Other_Grapheme_Extend entries valid for ``version``.

    Raises:
        UCDError: If the lists are not known for ``version``.
    """
    key = _parse_version(version)
    first, last = SUPPORTED_VERSIONS
    if not first <= key <= last:
        raise UCDError(
            "no contributory property lists for Unicode %s (supported: %d.%d to %d.%d); "
            "generate artifacts with 'widthTab generate --ucd' and set $WIDTHTAB_DATA"
            % ((version,) + first + last)
        )
    out = CodepointSet()
    for since, entries in OTHER_GRAPHEME_EXTEND:
        if since <= key:
            out = out | entries
    return out


def from_unicodedata(database=unicodedata) -> WidthProperties:
    """Build WidthProperties from the interpreter's ``unicodedata``.

    ``database`` is anything with the ``unicodedata`` query functions
    and ``unidata_version``.  Every set comes from that one version.

    Raises:
        UCDError: If its Unicode version is outside SUPPORTED_VERSIONS.
    """
    version = database.unidata_version
    otherGraphemeExtend = other_grapheme_extend(version)
    category = database.category
    eastAsianWidth = database.east_asian_width
    combining = database.combining

    cf, marks, ambiguous, wide, ccc = [], [], [], [], []
    for cp in range(MAX_CODEPOINT + 1):
        c = chr(cp)
        gc = category(c)
        if gc == "Cf":
            _append(cf, cp)
        elif gc == "Mn" or gc == "Me":
            _append(marks, cp)
        ea = eastAsianWidth(c)
        if ea == "A":
            _append(ambiguous, cp)
        elif ea == "W" or ea == "F":
            _append(wide, cp)
        if combining(c):
            _append(ccc, cp)

    def assigned(codepoints):
        return CodepointSet.from_codepoints(
            cp for cp in codepoints if category(chr(cp)) != "Cn"
        )

    cf = CodepointSet(cf)
    variationSelectors = assigned(VARIATION_SELECTORS)
    graphemeExtend = CodepointSet(marks) | assigned(otherGraphemeExtend)
    # Other_Default_Ignorable_Code_Point reserves unassigned code points too.
    defaultIgnorable = (OTHER_DEFAULT_IGNORABLE | cf | variationSelectors) - NOT_DEFAULT_IGNORABLE

    properties = WidthProperties(
        version,
        cf - CodepointSet([(SOFT_HYPHEN, SOFT_HYPHEN)]),
        graphemeExtend | variationSelectors | defaultIgnorable,
        HANGUL_VOWELS_AND_TRAILERS,
        CodepointSet(ambiguous),
        CodepointSet(wide),
        CodepointSet(ccc),
    )
    _logger.info("loaded %r from unicodedata", properties)
    return properties
