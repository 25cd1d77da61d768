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

import argparse
import logging
import sys

from . import classify, default_data, table
from .generate import compile_artifacts, write_artifacts
from .ucd import UCDError, from_unicodedata, load_ucd


def _add_source(parser):
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--ucd",
        metavar="DIR",
        help="directory holding UnicodeData.txt, DerivedCoreProperties.txt, ...",
    )
    source.add_argument(
        "--ucdxml",
        metavar="FILE",
        help="UCD XML repertoire (ucd.all.flat.xml or .zip)",
    )
    source.add_argument(
        "--interpreter",
        action="store_true",
        help="use the unicodedata module of this Python",
    )


def _load_properties(parsed):
    if parsed.ucd:
        return load_ucd(parsed.ucd)
    if parsed.ucdxml:
        from .ucdxml import load_ucdxml, properties_from_ucdxml

        return properties_from_ucdxml(load_ucdxml(parsed.ucdxml))
    return from_unicodedata()


def _width(parsed):
    data = default_data()
    measure = data.wcswidthCjk if parsed.cjk else data.wcswidth
    for text in parsed.text:
        print("%d\t%s" % (measure(text, parsed.n), text))
    return 0


def _generate(parsed):
    splits = None if parsed.optimize_size else table.DEFAULT_SPLITS
    properties = _load_properties(parsed)
    artifacts = compile_artifacts(properties, splits, parsed.dense_threshold)
    write_artifacts(artifacts, parsed.output)
    print(
        "Wrote %d files for Unicode %s to %s"
        % (len(artifacts.files()), artifacts.version, parsed.output)
    )
    return 0


def _analyze(parsed):
    properties = _load_properties(parsed)
    values = classify.width_values(properties.zero_width, properties.wide)
    candidates = sorted(table.table_candidates(values))
    chosen = table.pick_splits(values, candidates=candidates)

    print("Width table analysis (Unicode %s)" % properties.version)
    print("=" * 40)
    print(f"{'Shift1':<8} {'Shift2':<8} {'Bytes':<10}")
    print("-" * 40)
    for size, shift1, shift2 in candidates:
        marks = []
        if (shift1, shift2) == chosen:
            marks.append("smallest")
        if (shift1, shift2) == table.DEFAULT_SPLITS:
            marks.append("default")
        print(f"{shift1:<8} {shift2:<8} {size:<10} {', '.join(marks)}".rstrip())
    return 0


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="widthTab",
        description="Terminal column widths of Unicode text.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="log progress (DEBUG level)"
    )
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.required = True

    width = commands.add_parser("width", help="print the column width of TEXT")
    width.add_argument("text", nargs="+", help="strings to measure")
    width.add_argument(
        "--cjk",
        action="store_true",
        help="count East Asian Ambiguous characters as wide",
    )
    width.add_argument(
        "-n",
        type=int,
        default=None,
        help="only measure the first N code points",
    )
    width.set_defaults(func=_width)

    generate = commands.add_parser(
        "generate", help="compile UCD data into table and bitset artifacts"
    )
    _add_source(generate)
    generate.add_argument(
        "-o",
        "--output",
        required=True,
        metavar="DIR",
        help="directory to write the artifacts to",
    )
    generate.add_argument(
        "--optimize-size",
        action="store_true",
        help="search all table splits for the smallest table",
    )
    generate.add_argument(
        "--dense-threshold",
        type=int,
        default=2,
        metavar="N",
        help="all-ones blocks needed for a dense range (default: 2)",
    )
    generate.set_defaults(func=_generate)

    analyze = commands.add_parser(
        "analyze", help="show the table size of every split"
    )
    _add_source(analyze)
    analyze.set_defaults(func=_analyze)

    parsed = parser.parse_args(args)

    if getattr(parsed, "dense_threshold", 1) < 1:
        parser.error("--dense-threshold must be positive")

    logging.basicConfig(
        level=logging.DEBUG if parsed.verbose else logging.WARNING,
        format="%(name)s: %(message)s",
    )

    try:
        return parsed.func(parsed)
    except (UCDError, OSError) as e:
        print("widthTab: error: %s" % e, file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
