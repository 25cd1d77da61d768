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

"""Immutable sets of code points stored as sorted ranges."""

from bisect import bisect_right
from typing import Iterable, Iterator, List, Tuple


__all__ = [
    "MAX_CODEPOINT",
    "CodepointSet",
]

MAX_CODEPOINT = 0x10FFFF


def _normalize(ranges):
    """Sort, merge overlapping and adjacent ranges.

    >>> _normalize([(5, 6), (0, 1), (2, 3)])
    [(0, 3), (5, 6)]
    """
    out = []
    for start, end in sorted(ranges):
        if start > end:
            raise ValueError("empty range: %X..%X" % (start, end))
        if out and start <= out[-1][1] + 1:
            if end > out[-1][1]:
                out[-1] = (out[-1][0], end)
        else:
            out.append((start, end))
    return out


class CodepointSet:
    """A set of code points held as sorted, disjoint inclusive ranges.

    Instances are immutable; the set operators return new instances.

    >>> s = CodepointSet([(0x41, 0x43)]) | CodepointSet.from_codepoints([0x44, 0x50])
    >>> s.ranges()
    [(65, 68), (80, 80)]
    >>> 0x42 in s, 0x45 in s
    (True, False)
    >>> len(s)
    5
    """

    __slots__ = ("_starts", "_ends")

    def __init__(self, ranges: Iterable[Tuple[int, int]] = ()) -> None:
        ranges = _normalize(ranges)
        self._starts = tuple(r[0] for r in ranges)
        self._ends = tuple(r[1] for r in ranges)

    @classmethod
    def from_codepoints(cls, codepoints: Iterable[int]) -> "CodepointSet":
        ranges = []
        for cp in sorted(set(codepoints)):
            if ranges and ranges[-1][1] == cp - 1:
                ranges[-1][1] = cp
            else:
                ranges.append([cp, cp])
        return cls((s, e) for s, e in ranges)

    def ranges(self) -> List[Tuple[int, int]]:
        return list(zip(self._starts, self._ends))

    def __contains__(self, cp) -> bool:
        i = bisect_right(self._starts, cp) - 1
        return i >= 0 and cp <= self._ends[i]

    def __iter__(self) -> Iterator[int]:
        for start, end in zip(self._starts, self._ends):
            yield from range(start, end + 1)

    def __len__(self) -> int:
        return sum(e - s + 1 for s, e in zip(self._starts, self._ends))

    def __bool__(self) -> bool:
        return bool(self._starts)

    def __eq__(self, other) -> bool:
        if not isinstance(other, CodepointSet):
            return NotImplemented
        return self._starts == other._starts and self._ends == other._ends

    def __hash__(self) -> int:
        return hash((self._starts, self._ends))

    def __or__(self, other: "CodepointSet") -> "CodepointSet":
        return CodepointSet(self.ranges() + other.ranges())

    def __sub__(self, other: "CodepointSet") -> "CodepointSet":
        out = []
        holes = other.ranges()
        i = 0
        for start, end in self.ranges():
            # Skip holes entirely before this range.
            while i < len(holes) and holes[i][1] < start:
                i += 1
            j = i
            while j < len(holes) and holes[j][0] <= end:
                hStart, hEnd = holes[j]
                if hStart > start:
                    out.append((start, hStart - 1))
                start = max(start, hEnd + 1)
                j += 1
            if start <= end:
                out.append((start, end))
        return CodepointSet(out)

    def __repr__(self) -> str:
        return "%s([%s])" % (
            self.__class__.__name__,
            ", ".join("(0x%04X, 0x%04X)" % r for r in self.ranges()),
        )
