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
Run-time lookup state.

A ``WidthData`` holds the width table and the ambiguous-width bitset
and answers the four width queries.  It is built either from a
directory of generated artifacts or directly from WidthProperties.

``default_data()`` returns the process-wide instance used by the
module-level functions of ``widthTab``.  It is created on first use:
from the directory named by the ``WIDTHTAB_DATA`` environment variable
if set, otherwise from the interpreter's ``unicodedata``.
"""

import hashlib
import logging
import os
import re
import threading
from typing import Iterable, Optional, Union

from . import bitset, classify, table
from .classify import WidthClass
from .codepoints import MAX_CODEPOINT


__all__ = [
    "ENVIRONMENT_VARIABLE",
    "TABLE_FILENAME",
    "WidthData",
    "default_data",
    "check_consistency",
]

_logger = logging.getLogger(__name__)

ENVIRONMENT_VARIABLE = "WIDTHTAB_DATA"
TABLE_FILENAME = "widths.bin"
AMBIGUOUS_MODULE = "ambiguous"

_surrogates = re.compile("[\ud800-\udfff]")


def _join_surrogates(s):
    """Replace surrogate pairs embedded in ``s`` by their scalar value.

    Lone surrogates are kept as they are.
    """
    if not _surrogates.search(s):
        return s
    return s.encode("utf-16-le", "surrogatepass").decode("utf-16-le", "surrogatepass")


def _first_codepoint(char):
    if isinstance(char, str):
        if not char:
            return -1
        return ord(_join_surrogates(char[:2])[0])
    if isinstance(char, int):
        return char
    raise TypeError("expected str or int, got %s" % type(char).__name__)


def _codepoints(s):
    if isinstance(s, str):
        return _join_surrogates(s)
    if isinstance(s, (bytes, bytearray)):
        # Undecodable bytes turn into lone surrogates, which have no width.
        return bytes(s).decode("utf-8", "surrogateescape")
    return s


def check_consistency(version, digest, module, name):
    """Raise ValueError unless a bitset module belongs with the table."""
    moduleVersion = getattr(module, "UNICODE_VERSION", None)
    moduleDigest = getattr(module, "TABLE_DIGEST", None)
    if moduleDigest != digest:
        raise ValueError(
            "%s was not generated with this table (digest %s, expected %s)"
            % (name, moduleDigest, digest)
        )
    if version is not None and moduleVersion != version:
        raise ValueError(
            "%s is for Unicode %s, expected %s" % (name, moduleVersion, version)
        )
    return moduleVersion


class WidthData:
    """Immutable width lookup state.

    Args:
        widths: The three-stage width table.
        ambiguous: SparseBitset of East Asian Ambiguous code points.
        version: Unicode version the data was built from.
    """

    def __init__(
        self,
        widths: "table.Table",
        ambiguous: "bitset.SparseBitset",
        version: Optional[str] = None,
    ) -> None:
        self.table = widths
        self.ambiguous = ambiguous
        self.version = version

    @classmethod
    def from_properties(cls, properties, splits=table.DEFAULT_SPLITS):
        values = classify.width_values(properties.zero_width, properties.wide)
        widths = table.build_table(values, *splits)
        ambiguous = bitset.compile_bitset(properties.ambiguous)
        _logger.info(
            "built width data for Unicode %s: %d byte table, %r",
            properties.version,
            len(widths),
            ambiguous,
        )
        return cls(widths, ambiguous, properties.version)

    @classmethod
    def from_directory(cls, path, version=None):
        """Load generated artifacts written by ``generate.write_artifacts()``.

        ``version``, if given, is the Unicode version the artifacts must
        have been generated for.

        Raises:
            OSError: If a file cannot be read.
            ValueError: If the table is corrupt, or the ambiguous module
                was generated with another table or for another version.
        """
        with open(os.path.join(path, TABLE_FILENAME), "rb") as f:
            buffer = f.read()
        widths = table.Table(buffer)
        digest = hashlib.sha256(buffer).hexdigest()

        module = bitset.load_module(os.path.join(path, AMBIGUOUS_MODULE + ".py"))
        version = check_consistency(version, digest, module, AMBIGUOUS_MODULE)
        ambiguous = bitset.SparseBitset.from_module(module)
        _logger.info("loaded width data for Unicode %s from %s", version, path)
        return cls(widths, ambiguous, version)

    def wcwidth(self, char: Union[str, int]) -> int:
        """Return the column width of one code point: -1, 0, 1 or 2.

        ``char`` is a string, of which the first code point is measured
        (a leading surrogate pair counts as one), or an integer code
        point.  An empty string has no width (-1).
        """
        cp = _first_codepoint(char)
        if not 0 <= cp <= MAX_CODEPOINT:
            return -1
        return classify.from_byte(self.table.lookup(cp))

    def wcwidthCjk(self, char: Union[str, int]) -> int:
        """Like wcwidth(), but East Asian Ambiguous code points are wide.

        Meant for users of legacy CJK encodings; not for general use.
        """
        cp = _first_codepoint(char)
        if cp in self.ambiguous:
            return WidthClass.WIDE.value
        return self.wcwidth(cp)

    def _sum(self, measure, s, n):
        if n is not None and n <= 0:
            return 0
        width = 0
        for i, c in enumerate(_codepoints(s)):
            if n is not None and i >= n:
                break
            w = measure(c)
            if w < 0:
                return -1
            width += w
        return width

    def wcswidth(self, s: Union[str, bytes, Iterable], n: Optional[int] = None) -> int:
        """Return the column width of the first ``n`` code points of ``s``.

        Returns -1 as soon as a code point has no width.
        """
        return self._sum(self.wcwidth, s, n)

    def wcswidthCjk(self, s: Union[str, bytes, Iterable], n: Optional[int] = None) -> int:
        """wcswidth() counterpart of wcwidthCjk()."""
        return self._sum(self.wcwidthCjk, s, n)

    def __repr__(self) -> str:
        return "%s(%r, %r, version=%r)" % (
            self.__class__.__name__,
            self.table,
            self.ambiguous,
            self.version,
        )


_lock = threading.Lock()
_default = None


def _load_default():
    path = os.environ.get(ENVIRONMENT_VARIABLE)
    if path:
        return WidthData.from_directory(path)
    from .ucd import from_unicodedata

    return WidthData.from_properties(from_unicodedata())


def default_data() -> WidthData:
    """Return the process-wide WidthData, creating it on first use."""
    global _default
    data = _default
    if data is None:
        with _lock:
            if _default is None:
                _default = _load_default()
            data = _default
    return data
