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
Pack per-code-point classification bytes into a three-stage table.

Overview
--------

A flat array of 0x110000 bytes is replaced by a chain of three
smaller lookups, all living in one buffer:

    stage3[stage2[stage1[cp >> shift1] + ((cp >> shift2) & mask2)] + (cp & mask3)]

Layout of the buffer (all integers little-endian uint32):

    header   shift1, bound1, shift2, mask2, mask3
    stage1   bound1 entries: offset of a stage-2 row
    stage2   rows of mask2 + 1 entries: offset of a stage-3 row
    stage3   rows of mask3 + 1 classification bytes

Offsets are byte positions inside the buffer itself, so the table
can be written to disk, read back and used without any decoding.
The header sits at offset 0, which leaves 0 free to mean "this whole
row holds the default value"; such rows are never stored.  Code
points at or beyond ``bound1 << shift1`` are default too, which is
how the trailing run of default values is stripped.

Rows are deduplicated.  Unicode is full of identical blocks (whole
scripts of narrow letters, thousands of wide ideographs), so only a
few hundred distinct stage-3 rows survive.

Lookup is always three indexings and two shift/mask pairs, whatever
the code point.

Choosing the split
------------------

``shift2`` sets the stage-3 row size and ``shift1 - shift2`` the
stage-2 row size.  ``table_candidates()`` builds the table for every
split in a fixed search space and ``pick_splits()`` keeps the
smallest, the same way a multistage table generator picks its shift.
Searching takes a few seconds, so run-time builds use
``DEFAULT_SPLITS`` and only the artifact generator searches.
"""

import collections
import logging
import struct
from typing import Callable, List, Optional, Tuple, Union

from .classify import NUM_CODEPOINTS, WidthClass


__all__ = [
    "DEFAULT_SPLITS",
    "HEADER_SIZE",
    "Table",
    "build_table",
    "table_candidates",
    "pick_splits",
]

_logger = logging.getLogger(__name__)

# (shift1, shift2): 8192 code points per stage-1 entry, 128 per stage-3 row.
DEFAULT_SPLITS = (13, 7)

MAX_CODEPOINT_BITS = 21

_header = struct.Struct("<5I")
_u32 = struct.Struct("<I")

HEADER_SIZE = _header.size


class AutoMapping(collections.defaultdict):
    """Bidirectional mapping that auto-assigns integer IDs to new keys.

    Rows are mapped to compact IDs (0, 1, 2, ...) in order of first
    appearance, and ``m[id]`` returns the row back.
    """

    _next = 0

    def __missing__(self, key):
        assert not isinstance(key, int)
        v = self._next
        self._next = self._next + 1
        self[key] = v
        self[v] = key
        return v

    def __len__(self):
        return self._next


class Table:
    """A three-stage lookup table backed by one immutable buffer."""

    def __init__(self, buffer: bytes, default: int = WidthClass.NARROW) -> None:
        buffer = bytes(buffer)
        if len(buffer) < HEADER_SIZE:
            raise ValueError("table too short: %d bytes" % len(buffer))
        shift1, bound1, shift2, mask2, mask3 = _header.unpack_from(buffer)
        if not 0 < shift2 < shift1 <= MAX_CODEPOINT_BITS:
            raise ValueError("bad shifts: %d, %d" % (shift1, shift2))
        if mask2 != (1 << (shift1 - shift2)) - 1 or mask3 != (1 << shift2) - 1:
            raise ValueError("masks do not match shifts")
        if bound1 > ((NUM_CODEPOINTS - 1) >> shift1) + 1:
            raise ValueError("bound1 too large: %d" % bound1)
        if len(buffer) < HEADER_SIZE + 4 * bound1:
            raise ValueError("table truncated")

        self.buffer = buffer
        self.shift1 = shift1
        self.bound1 = bound1
        self.shift2 = shift2
        self.mask2 = mask2
        self.mask3 = mask3
        self.default = int(default)

    def lookup(self, cp: int) -> int:
        """Return the classification byte of code point ``cp``.

        ``cp`` must be a non-negative integer; values past the table
        bound get the default.
        """
        index1 = cp >> self.shift1
        if index1 >= self.bound1:
            return self.default
        buffer = self.buffer
        offset2 = _u32.unpack_from(buffer, HEADER_SIZE + 4 * index1)[0]
        if not offset2:
            return self.default
        offset3 = _u32.unpack_from(buffer, offset2 + 4 * ((cp >> self.shift2) & self.mask2))[0]
        if not offset3:
            return self.default
        return buffer[offset3 + (cp & self.mask3)]

    def tobytes(self) -> bytes:
        return self.buffer

    def __len__(self) -> int:
        return len(self.buffer)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Table):
            return NotImplemented
        return self.buffer == other.buffer and self.default == other.default

    def stats(self) -> dict:
        size2 = 4 * (self.mask2 + 1)
        size3 = self.mask3 + 1
        stage2Start = HEADER_SIZE + 4 * self.bound1
        offsets2 = [
            _u32.unpack_from(self.buffer, HEADER_SIZE + 4 * i)[0]
            for i in range(self.bound1)
        ]
        # Stage-2 rows are stored back to back; stage 3 follows the last.
        stage3Start = max(offsets2, default=0) + size2 if any(offsets2) else stage2Start
        return {
            "bytes": len(self.buffer),
            "shift1": self.shift1,
            "shift2": self.shift2,
            "bound1": self.bound1,
            "stage2_rows": (stage3Start - stage2Start) // size2,
            "stage3_rows": (len(self.buffer) - stage3Start) // size3,
        }

    def __repr__(self) -> str:
        return "%s(%d bytes, shifts %d/%d)" % (
            self.__class__.__name__,
            len(self.buffer),
            self.shift1,
            self.shift2,
        )


def _values_for(values):
    if callable(values):
        return bytes(values(cp) & 0xFF for cp in range(NUM_CODEPOINTS))
    values = bytes(values)
    if len(values) > NUM_CODEPOINTS:
        raise ValueError("more values than code points: %d" % len(values))
    return values


def _pack(values, shift1, shift2, default):
    """Build the table buffer for one split of already-normalized values."""
    if not 0 < shift2 < shift1 <= MAX_CODEPOINT_BITS:
        raise ValueError("bad shifts: %d, %d" % (shift1, shift2))

    # Strip trailing default values; lookups past bound1 return default.
    values = values.rstrip(bytes([default]))

    size3 = 1 << shift2
    size2 = 1 << (shift1 - shift2)
    bound1 = ((len(values) - 1) >> shift1) + 1 if values else 0
    values = values.ljust(bound1 << shift1, bytes([default]))

    defaultRow = bytes([default]) * size3
    rows3 = AutoMapping()
    ids3 = []
    for i in range(0, len(values), size3):
        row = values[i : i + size3]
        ids3.append(None if row == defaultRow else rows3[row])

    rows2 = AutoMapping()
    ids2 = []
    for i in range(0, len(ids3), size2):
        row = tuple(ids3[i : i + size2])
        ids2.append(None if row.count(None) == size2 else rows2[row])

    stage2Start = HEADER_SIZE + 4 * bound1
    stage3Start = stage2Start + 4 * size2 * len(rows2)

    def offset2(i):
        return 0 if i is None else stage2Start + 4 * size2 * i

    def offset3(i):
        return 0 if i is None else stage3Start + size3 * i

    out = bytearray(_header.pack(shift1, bound1, shift2, size2 - 1, size3 - 1))
    out += struct.pack("<%dI" % bound1, *(offset2(i) for i in ids2))
    for i in range(len(rows2)):
        out += struct.pack("<%dI" % size2, *(offset3(j) for j in rows2[i]))
    for i in range(len(rows3)):
        out += rows3[i]
    return bytes(out)


def build_table(
    values: Union[bytes, bytearray, Callable[[int], int]],
    shift1: int = DEFAULT_SPLITS[0],
    shift2: int = DEFAULT_SPLITS[1],
    default: int = WidthClass.NARROW,
) -> Table:
    """Pack classification bytes into a Table.

    Args:
        values: Either a callable mapping a code point to its
            classification byte, or a bytes-like object indexed by code
            point.  Missing trailing values are ``default``.
        shift1: Code point bits below the stage-1 index.
        shift2: Code point bits below the stage-2 index; the stage-3 row
            size is ``1 << shift2``.
        default: Classification byte of rows that are not stored.

    Returns:
        The Table.  Identical inputs give byte-identical buffers.

    Raises:
        ValueError: If the shifts are inconsistent or there are more
            values than code points.
    """
    values = _values_for(values)
    return Table(_pack(values, shift1, shift2, default), default=default)


def table_candidates(
    values: Union[bytes, bytearray, Callable[[int], int]],
    default: int = WidthClass.NARROW,
    shift2Range: Tuple[int, int] = (4, 9),
    maxRowBits: int = 8,
) -> List[Tuple[int, int, int]]:
    """Return ``(size, shift1, shift2)`` for every split in the search space.

    ``shift2`` ranges over ``shift2Range`` (inclusive) and the stage-2 row
    width ``shift1 - shift2`` from 2 to ``maxRowBits`` bits.
    """
    values = _values_for(values)
    candidates = []
    for shift2 in range(shift2Range[0], shift2Range[1] + 1):
        for rowBits in range(2, maxRowBits + 1):
            shift1 = shift2 + rowBits
            if shift1 > MAX_CODEPOINT_BITS:
                break
            size = len(_pack(values, shift1, shift2, default))
            _logger.debug("split %d/%d: %d bytes", shift1, shift2, size)
            candidates.append((size, shift1, shift2))
    return candidates


def pick_splits(
    values: Union[bytes, bytearray, Callable[[int], int]],
    default: int = WidthClass.NARROW,
    candidates: Optional[List[Tuple[int, int, int]]] = None,
) -> Tuple[int, int]:
    """Return the ``(shift1, shift2)`` giving the smallest table."""
    if candidates is None:
        candidates = table_candidates(values, default)
    size, shift1, shift2 = min(candidates)
    return shift1, shift2
