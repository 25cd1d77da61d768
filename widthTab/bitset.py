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
Sparse bitsets over code points.

A code point ``cp`` lives in block ``cp >> 5``; each block is described
by one 32-bit mask whose bit ``cp & 31`` is set when ``cp`` belongs to
the property.  Only non-zero masks are stored.

Long stretches of blocks whose mask is all ones (private use areas,
CJK ideographs) are not stored block by block.  The compiler replaces
them with dense ranges ``(start, end, excluded)``: every block from
``start`` to ``end`` inclusive is all ones, except the blocks listed in
``excluded``, which keep their own mask in the sparse map.  A single
partial block sitting between two full runs is absorbed that way
instead of splitting the range in two.

A bitset can be written out as a self-contained Python module (data
plus an accessor function) and read back with ``load_module()`` and
``SparseBitset.from_module()``.
"""

import collections
import importlib.util
import os
import sys
from bisect import bisect_right
from functools import partial
from math import log2
from typing import Dict, Iterable, Optional, TextIO, Union

from .codepoints import MAX_CODEPOINT, CodepointSet


__all__ = [
    "FULL_MASK",
    "DenseRange",
    "SparseBitset",
    "compile_bitset",
    "load_module",
]

BLOCK_SHIFT = 5
BLOCK_MASK = (1 << BLOCK_SHIFT) - 1
FULL_MASK = 0xFFFFFFFF

DEFAULT_DENSE_THRESHOLD = 2


DenseRange = collections.namedtuple("DenseRange", "start end excluded")


class SparseBitset:
    """Block index to 32-bit mask map with dense-range shortcuts.

    ``masks`` maps block indices to non-zero masks; ``dense`` is a
    sequence of DenseRange tuples, disjoint and sorted by start.
    """

    def __init__(self, masks: Dict[int, int], dense: Iterable = ()) -> None:
        self.masks = {k: masks[k] for k in sorted(masks) if masks[k]}
        self.dense = tuple(
            DenseRange(start, end, tuple(sorted(excluded)))
            for start, end, excluded in sorted(dense)
        )
        self._starts = [r.start for r in self.dense]

    def mask(self, idx: int) -> int:
        """Return the 32-bit mask of block ``idx``."""
        i = bisect_right(self._starts, idx) - 1
        if i >= 0:
            r = self.dense[i]
            if idx <= r.end and idx not in r.excluded:
                return FULL_MASK
        return self.masks.get(idx, 0)

    def __contains__(self, cp) -> bool:
        if not 0 <= cp <= MAX_CODEPOINT:
            return False
        return bool((self.mask(cp >> BLOCK_SHIFT) >> (cp & BLOCK_MASK)) & 1)

    def __eq__(self, other) -> bool:
        if not isinstance(other, SparseBitset):
            return NotImplemented
        return self.masks == other.masks and self.dense == other.dense

    def __repr__(self) -> str:
        return "%s(%d masks, %d dense ranges)" % (
            self.__class__.__name__,
            len(self.masks),
            len(self.dense),
        )

    def codepoints(self) -> CodepointSet:
        """Expand back into a CodepointSet."""
        ranges = []
        for r in self.dense:
            start = r.start
            for idx in r.excluded + (r.end + 1,):
                if start < idx:
                    ranges.append((start << BLOCK_SHIFT, (idx << BLOCK_SHIFT) - 1))
                start = idx + 1
        for idx, mask in self.masks.items():
            base = idx << BLOCK_SHIFT
            for bit in range(32):
                if (mask >> bit) & 1:
                    ranges.append((base + bit, base + bit))
        return CodepointSet(ranges)

    def print_code(
        self,
        name: str,
        *,
        file: TextIO = sys.stdout,
        version: Optional[str] = None,
        digest: Optional[str] = None,
        description: str = "",
    ) -> None:
        """Write the bitset as a Python module with accessor ``name(idx)``."""
        printn = partial(print, file=file, sep="")

        printn("# Generated by widthTab; do not edit.")
        if description:
            printn("#")
            printn("# %s" % description)
        printn()
        printn("UNICODE_VERSION = %r" % version)
        printn("TABLE_DIGEST = %r" % digest)
        printn()
        printn("# (first block, last block, excluded blocks); blocks are all ones.")
        printn("DENSE = (")
        for r in self.dense:
            printn("    (%d, %d, %r)," % (r.start, r.end, r.excluded))
        printn(")")
        printn()
        printn("MASKS = {")
        items = ["%d: 0x%08X" % kv for kv in self.masks.items()]
        w = max((len(item) for item in items), default=1)
        n = max(1, 1 << int(log2(74 // (w + 2))))
        for i in range(0, len(items), n):
            line = items[i : i + n]
            printn("    " + " ".join("%-*s" % (w + 1, v + ",") for v in line).rstrip())
        printn("}")
        printn()
        printn()
        printn("def %s(idx):" % name)
        printn('    """Return the 32-bit mask of block ``idx`` (code point >> 5)."""')
        printn("    for start, end, excluded in DENSE:")
        printn("        if start <= idx <= end and idx not in excluded:")
        printn("            return 0x%08X" % FULL_MASK)
        printn("    return MASKS.get(idx, 0)")

    @classmethod
    def from_module(cls, module) -> "SparseBitset":
        try:
            masks = module.MASKS
            dense = module.DENSE
        except AttributeError as e:
            raise ValueError("not a bitset module: %s" % e)
        return cls(masks, dense)


def _collapse(masks, threshold):
    """Move runs of all-ones blocks out of ``masks`` into dense ranges.

    Returns the list of dense ranges; ``masks`` is modified in place.
    """
    runs = []
    for idx in sorted(masks):
        if masks[idx] != FULL_MASK:
            continue
        if runs and runs[-1][1] == idx - 1:
            runs[-1][1] = idx
        else:
            runs.append([idx, idx])

    # Merge runs separated by exactly one partial block.
    merged = []
    for start, end in runs:
        if merged and merged[-1][1] == start - 2:
            group = merged[-1]
            group[2].append(start - 1)
            group[1] = end
            group[3] += end - start + 1
        else:
            merged.append([start, end, [], end - start + 1])

    dense = []
    for start, end, excluded, nFull in merged:
        if nFull < threshold:
            # Not worth a range check; split back into plain masks.
            continue
        for idx in range(start, end + 1):
            if idx not in excluded:
                del masks[idx]
        dense.append((start, end, tuple(excluded)))
    return dense


def compile_bitset(
    codepoints: Union[CodepointSet, Iterable[int]],
    threshold: int = DEFAULT_DENSE_THRESHOLD,
) -> SparseBitset:
    """Compile a set of code points into a SparseBitset.

    Runs of at least ``threshold`` all-ones blocks become dense ranges.

    >>> b = compile_bitset(CodepointSet([(0x40, 0xBF), (0xC5, 0xC5)]))
    >>> b.dense, b.masks
    ((DenseRange(start=2, end=5, excluded=()),), {6: 32})
    >>> 0x41 in b, 0xC5 in b, 0xC4 in b
    (True, True, False)
    """
    if not isinstance(codepoints, CodepointSet):
        codepoints = CodepointSet.from_codepoints(codepoints)
    if threshold < 1:
        raise ValueError("threshold must be positive: %d" % threshold)

    masks = {}
    for start, end in codepoints.ranges():
        if start < 0 or end > MAX_CODEPOINT:
            raise ValueError("code point out of range: %X..%X" % (start, end))
        while start <= end:
            idx = start >> BLOCK_SHIFT
            last = min(end, idx << BLOCK_SHIFT | BLOCK_MASK)
            bits = ((1 << (last - start + 1)) - 1) << (start & BLOCK_MASK)
            masks[idx] = masks.get(idx, 0) | bits
            start = last + 1

    dense = _collapse(masks, threshold)
    return SparseBitset(masks, dense)


def load_module(path: str, name: Optional[str] = None):
    """Import a generated bitset module from a file path."""
    if name is None:
        name = "widthTab_generated_%s" % os.path.splitext(os.path.basename(path))[0]
    spec = importlib.util.spec_from_file_location(name, path)
    if spec is None:
        raise ValueError("cannot load %s" % path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module
