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
Turn WidthProperties into the generated artifacts.

One run produces, for a single Unicode version:

  - ``widths.bin``: the three-stage width table;
  - one Python module per bitset (``combining.py``, ``ambiguous.py``,
    ``wide.py``, ``combining_class.py``), each recording the Unicode
    version and the SHA-256 digest of the table it was generated with.

Everything is compiled and checked in memory first; files are only
written once every artifact exists, and each lands under a temporary
name before being renamed into place.
"""

import collections
import hashlib
import io
import logging
import os
from typing import Dict, Optional, Tuple

from . import bitset, classify, table
from .data import TABLE_FILENAME


__all__ = [
    "BITSET_MODULES",
    "Artifacts",
    "compile_artifacts",
    "write_artifacts",
]

_logger = logging.getLogger(__name__)

# Module name, WidthProperties attribute, description.
BITSET_MODULES = (
    (
        "combining",
        "zero_width",
        "Zero-width code points: Cf, Grapheme_Extend, Variation_Selector,\n"
        "# Default_Ignorable_Code_Point and Hangul V/T, minus the glibc exceptions.",
    ),
    ("ambiguous", "ambiguous", "East_Asian_Width=A code points."),
    ("wide", "wide", "East_Asian_Width=W and East_Asian_Width=F code points."),
    ("combining_class", "combining_class", "Canonical_Combining_Class > 0."),
)


class Artifacts:
    """In-memory result of one generation run."""

    def __init__(
        self,
        version: str,
        widths: table.Table,
        bitsets: Dict[str, bitset.SparseBitset],
    ) -> None:
        self.version = version
        self.table = widths
        self.bitsets = bitsets

    @property
    def digest(self) -> str:
        return hashlib.sha256(self.table.tobytes()).hexdigest()

    def files(self) -> "collections.OrderedDict[str, bytes]":
        """Return file name to content, in writing order."""
        out = collections.OrderedDict()
        out[TABLE_FILENAME] = self.table.tobytes()
        descriptions = {name: d for name, _, d in BITSET_MODULES}
        digest = self.digest
        for name, bits in self.bitsets.items():
            buf = io.StringIO()
            bits.print_code(
                name,
                file=buf,
                version=self.version,
                digest=digest,
                description="%s Unicode %s." % (descriptions.get(name, name), self.version),
            )
            out[name + ".py"] = buf.getvalue().encode("utf-8")
        return out


def _verify(widths, values):
    for cp in range(classify.NUM_CODEPOINTS):
        if widths.lookup(cp) != values[cp]:
            raise RuntimeError(
                "table lookup of U+%04X gives %d, expected %d"
                % (cp, widths.lookup(cp), values[cp])
            )


def compile_artifacts(
    properties,
    splits: Optional[Tuple[int, int]] = table.DEFAULT_SPLITS,
    threshold: int = bitset.DEFAULT_DENSE_THRESHOLD,
) -> Artifacts:
    """Compile every artifact for ``properties``.

    Args:
        properties: WidthProperties from any UCD source.
        splits: ``(shift1, shift2)`` of the width table, or None to
            search for the smallest table.
        threshold: Minimum number of all-ones blocks per dense range.

    Returns:
        Artifacts, after checking the table against the flat values.
    """
    values = classify.width_values(properties.zero_width, properties.wide)
    if splits is None:
        splits = table.pick_splits(values)
        _logger.info("picked table split %d/%d", *splits)
    widths = table.build_table(values, *splits)
    _verify(widths, values)
    _logger.info("width table: %r", widths.stats())

    bitsets = collections.OrderedDict()
    for name, attr, _ in BITSET_MODULES:
        bitsets[name] = bitset.compile_bitset(getattr(properties, attr), threshold)
        _logger.info("%s: %r", name, bitsets[name])

    return Artifacts(properties.version, widths, bitsets)


def write_artifacts(artifacts: Artifacts, directory: str) -> None:
    """Write all artifacts into ``directory``, replacing older ones.

    If writing or renaming fails, no temporary file is left behind.  A
    rename failing halfway leaves older artifacts next to newer ones;
    ``WidthData.from_directory()`` refuses such a mix by digest.
    """
    os.makedirs(directory, exist_ok=True)
    written = []
    try:
        for name, content in artifacts.files().items():
            path = os.path.join(directory, name)
            written.append(path)
            with open(path + ".tmp", "wb") as f:
                f.write(content)
        for path in written:
            os.replace(path + ".tmp", path)
            _logger.info("wrote %s", path)
    except OSError:
        for path in written:
            if os.path.exists(path + ".tmp"):
                os.unlink(path + ".tmp")
        raise
