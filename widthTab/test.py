import io
import os
import random
import struct
import subprocess
import sys
import types
import unicodedata
import zipfile

import pytest

from widthTab import (
    WidthClass,
    WidthData,
    default_data,
    wcswidth,
    wcswidthCjk,
    wcwidth,
    wcwidthCjk,
)
from widthTab import data as dataModule
from widthTab.bitset import (
    FULL_MASK,
    DenseRange,
    SparseBitset,
    compile_bitset,
    load_module,
)
from widthTab.classify import (
    INVALID_BYTE,
    NUM_CODEPOINTS,
    from_byte,
    is_scalar,
    reference_width,
    to_byte,
    width_values,
)
from widthTab.codepoints import CodepointSet
from widthTab.generate import compile_artifacts, write_artifacts
from widthTab.table import (
    DEFAULT_SPLITS,
    HEADER_SIZE,
    AutoMapping,
    Table,
    build_table,
    pick_splits,
    table_candidates,
)
from widthTab.ucd import (
    EXCLUSIONS,
    SUPPORTED_VERSIONS,
    UCDError,
    WidthProperties,
    from_unicodedata,
    load_property,
    load_ucd,
    other_grapheme_extend,
    parse_property_lines,
    parse_unicode_data,
    read_version,
)
from widthTab.ucdxml import load_ucdxml, properties_from_ucdxml


# ── Fixtures ───────────────────────────────────────────────────────


UNICODE_DATA = """\
0041;LATIN CAPITAL LETTER A;Lu;0;L;;;;;N;;;;0061;
00AD;SOFT HYPHEN;Cf;0;BN;;;;;N;;;;;
200B;ZERO WIDTH SPACE;Cf;0;BN;;;;;N;;;;;
4E00;<CJK Ideograph, First>;Lo;0;L;;;;;N;;;;;
9FFF;<CJK Ideograph, Last>;Lo;0;L;;;;;N;;;;;
FFF9;INTERLINEAR ANNOTATION ANCHOR;Cf;0;ON;;;;;N;;;;;
13430;EGYPTIAN HIEROGLYPH VERTICAL JOINER;Cf;0;L;;;;;N;;;;;
E0001;LANGUAGE TAG;Cf;0;BN;;;;;N;;;;;
E0020;TAG SPACE;Cf;0;BN;;;;;N;;;;;
"""

DERIVED_CORE_PROPERTIES = """\
# DerivedCoreProperties-16.0.0.txt
# Date: 2024-05-31
#
0041..005A    ; Alphabetic # L&  [26] LATIN CAPITAL LETTER A..LATIN CAPITAL LETTER Z

0300..036F    ; Grapheme_Extend # Mn [112] COMBINING GRAVE ACCENT..COMBINING LATIN SMALL LETTER X
200C          ; Grapheme_Extend # Cf       ZERO WIDTH NON-JOINER
FE00..FE0F    ; Variation_Selector # Mn  [16] VARIATION SELECTOR-1..VARIATION SELECTOR-16
00AD          ; Default_Ignorable_Code_Point # Cf       SOFT HYPHEN
115F..1160    ; Default_Ignorable_Code_Point # Lo   [2] HANGUL CHOSEONG FILLER..HANGUL JUNGSEONG FILLER
200B..200F    ; Default_Ignorable_Code_Point # Cf   [5] ZERO WIDTH SPACE..RIGHT-TO-LEFT MARK
3164          ; Default_Ignorable_Code_Point # Lo       HANGUL FILLER
0900..0902    ; InCB; Extend # Mn   [3] DEVANAGARI SIGN INVERTED CANDRABINDU..DEVANAGARI SIGN ANUSVARA
"""

HANGUL_SYLLABLE_TYPE = """\
# HangulSyllableType-16.0.0.txt
1100..115F    ; L # Lo  [96] HANGUL CHOSEONG KIYEOK..HANGUL CHOSEONG FILLER
1160..11A7    ; V # Lo  [72] HANGUL JUNGSEONG FILLER..HANGUL JUNGSEONG O-YAE
11A8..11FF    ; T # Lo  [88] HANGUL JONGSEONG KIYEOK..HANGUL JONGSEONG SSANGNIEUN
AC00          ; LV # Lo       HANGUL SYLLABLE GA
"""

EAST_ASIAN_WIDTH = """\
# EastAsianWidth-16.0.0.txt
0020..007E     ; Na # Zs    [95] SPACE..TILDE
00A1           ; A  # Po         INVERTED EXCLAMATION MARK
00B0           ; A  # So         DEGREE SIGN
0391..03A1     ; A  # L&    [17] GREEK CAPITAL LETTER ALPHA..GREEK CAPITAL LETTER RHO
2500..254B     ; A  # So    [76] BOX DRAWINGS LIGHT HORIZONTAL..BOX DRAWINGS HEAVY VERTICAL AND HORIZONTAL
E000..F8FF     ; A  # Co  [6400] <private-use-E000>..<private-use-F8FF>
1100..115F     ; W  # Lo    [96] HANGUL CHOSEONG KIYEOK..HANGUL CHOSEONG FILLER
3000           ; F  # Zs         IDEOGRAPHIC SPACE
4E00..9FFF     ; W  # Lo [20992] CJK UNIFIED IDEOGRAPH-4E00..CJK UNIFIED IDEOGRAPH-9FFF
FF01..FF60     ; F  # Po    [96] FULLWIDTH EXCLAMATION MARK..FULLWIDTH RIGHT WHITE PARENTHESIS
1F600..1F64F   ; W  # So    [80] GRINNING FACE..PERSON WITH FOLDED HANDS
"""

DERIVED_COMBINING_CLASS = """\
# DerivedCombiningClass-16.0.0.txt
0000..001F    ; 0 # Cc  [32] <control-0000>..<control-001F>
0300..0314    ; 230 # Mn  [21] COMBINING GRAVE ACCENT..COMBINING REVERSED COMMA ABOVE
0316..0319    ; 220 # Mn   [4] COMBINING GRAVE ACCENT BELOW..COMBINING RIGHT TACK BELOW
"""


def _write_ucd(directory):
    files = {
        "UnicodeData.txt": UNICODE_DATA,
        "DerivedCoreProperties.txt": DERIVED_CORE_PROPERTIES,
        "HangulSyllableType.txt": HANGUL_SYLLABLE_TYPE,
        "EastAsianWidth.txt": EAST_ASIAN_WIDTH,
        os.path.join("extracted", "DerivedCombiningClass.txt"): DERIVED_COMBINING_CLASS,
    }
    for name, text in files.items():
        path = os.path.join(str(directory), name)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
    return str(directory)


@pytest.fixture(scope="module")
def ucd_dir(tmp_path_factory):
    return _write_ucd(tmp_path_factory.mktemp("ucd"))


@pytest.fixture(scope="module")
def ucd_properties(ucd_dir):
    return load_ucd(ucd_dir)


@pytest.fixture(scope="module")
def artifacts(ucd_properties):
    return compile_artifacts(ucd_properties)


@pytest.fixture(scope="module")
def artifact_dir(artifacts, tmp_path_factory):
    directory = str(tmp_path_factory.mktemp("artifacts"))
    write_artifacts(artifacts, directory)
    return directory


def _interpreter_supported():
    version = tuple(int(x) for x in unicodedata.unidata_version.split(".")[:2])
    return SUPPORTED_VERSIONS[0] <= version <= SUPPORTED_VERSIONS[1]


needs_interpreter_data = pytest.mark.skipif(
    not _interpreter_supported(),
    reason="no property lists for Unicode %s" % unicodedata.unidata_version,
)


def _database(version):
    """This interpreter's unicodedata, reporting another Unicode version."""
    return types.SimpleNamespace(
        unidata_version=version,
        category=unicodedata.category,
        east_asian_width=unicodedata.east_asian_width,
        combining=unicodedata.combining,
    )


@pytest.fixture(scope="module")
def interpreter_properties():
    if not _interpreter_supported():
        pytest.skip("no property lists for Unicode %s" % unicodedata.unidata_version)
    return from_unicodedata()


@pytest.fixture(scope="module")
def interpreter_data(interpreter_properties):
    return WidthData.from_properties(interpreter_properties)


# ── CodepointSet ───────────────────────────────────────────────────


class TestCodepointSet:
    def test_merges_adjacent_and_overlapping(self):
        s = CodepointSet([(10, 20), (21, 25), (5, 12), (30, 30)])
        assert s.ranges() == [(5, 25), (30, 30)]

    def test_from_codepoints(self):
        s = CodepointSet.from_codepoints([3, 1, 2, 7, 7, 9, 8])
        assert s.ranges() == [(1, 3), (7, 9)]

    def test_contains(self):
        s = CodepointSet([(0x300, 0x36F), (0x1160, 0x11FF)])
        assert 0x300 in s
        assert 0x36F in s
        assert 0x370 not in s
        assert 0x2FF not in s
        assert 0x11A0 in s

    def test_len_and_iter(self):
        s = CodepointSet([(1, 3), (10, 11)])
        assert len(s) == 5
        assert list(s) == [1, 2, 3, 10, 11]

    def test_empty(self):
        s = CodepointSet()
        assert not s
        assert len(s) == 0
        assert 0 not in s

    def test_union(self):
        s = CodepointSet([(1, 3)]) | CodepointSet([(4, 6), (10, 10)])
        assert s.ranges() == [(1, 6), (10, 10)]

    def test_difference(self):
        s = CodepointSet([(0, 100), (200, 300)])
        holes = CodepointSet([(10, 20), (50, 250), (300, 400)])
        assert (s - holes).ranges() == [(0, 9), (21, 49), (251, 299)]

    def test_difference_matches_set(self):
        rng = random.Random(7)
        a = set(rng.randrange(500) for _ in range(200))
        b = set(rng.randrange(500) for _ in range(200))
        diff = CodepointSet.from_codepoints(a) - CodepointSet.from_codepoints(b)
        assert set(diff) == a - b

    def test_equality_and_hash(self):
        a = CodepointSet([(1, 2), (3, 4)])
        b = CodepointSet([(1, 4)])
        assert a == b
        assert hash(a) == hash(b)

    def test_empty_range_raises(self):
        with pytest.raises(ValueError):
            CodepointSet([(5, 4)])


# ── Width rules ────────────────────────────────────────────────────


class TestByteEncoding:
    def test_invalid(self):
        assert to_byte(WidthClass.INVALID) == INVALID_BYTE
        assert from_byte(INVALID_BYTE) == -1

    def test_widths(self):
        for w in (0, 1, 2):
            assert from_byte(to_byte(w)) == w

    def test_is_scalar(self):
        assert is_scalar(0)
        assert is_scalar(0x10FFFF)
        assert not is_scalar(-1)
        assert not is_scalar(0x110000)
        assert not is_scalar(0xD800)
        assert not is_scalar(0xDFFF)


class TestReferenceWidth:
    def setup_method(self):
        self.combining = CodepointSet([(0x300, 0x36F), (0x1160, 0x11FF), (0x200B, 0x200F)])

    def width(self, cp, wide=None):
        return reference_width(cp, self.combining, wide)

    def test_invalid(self):
        assert self.width(-1) == WidthClass.INVALID
        assert self.width(0x110000) == WidthClass.INVALID
        assert self.width(0xD800) == WidthClass.INVALID

    def test_null(self):
        assert self.width(0) == WidthClass.ZERO

    def test_controls(self):
        for cp in list(range(1, 32)) + list(range(0x7F, 0xA0)):
            assert self.width(cp) == WidthClass.INVALID

    def test_combining(self):
        assert self.width(0x301) == WidthClass.ZERO
        assert self.width(0x1160) == WidthClass.ZERO
        assert self.width(0x200B) == WidthClass.ZERO

    def test_latin(self):
        assert self.width(0x41) == WidthClass.NARROW
        assert self.width(0xA0) == WidthClass.NARROW
        assert self.width(0x10FF) == WidthClass.NARROW

    def test_hangul_leading_and_brackets(self):
        assert self.width(0x1100) == WidthClass.WIDE
        assert self.width(0x115F) == WidthClass.WIDE
        assert self.width(0x2329) == WidthClass.WIDE
        assert self.width(0x232A) == WidthClass.WIDE

    def test_hangul_filler(self):
        assert self.width(0x3164) == WidthClass.NARROW
        assert self.width(0x3164, wide=CodepointSet([(0x3164, 0x3164)])) == WidthClass.NARROW

    def test_cjk_range(self):
        assert self.width(0x2E80) == WidthClass.WIDE
        assert self.width(0x4E00) == WidthClass.WIDE
        assert self.width(0xA4CF) == WidthClass.WIDE
        assert self.width(0x303F) == WidthClass.NARROW
        assert self.width(0xA4D0) == WidthClass.NARROW

    def test_wide_ranges(self):
        for cp in (0xAC00, 0xD7A3, 0xF900, 0xFE10, 0xFE30, 0xFF00, 0xFF60,
                   0xFFE0, 0xFFE6, 0x20000, 0x2FFFD, 0x30000, 0x3FFFD):
            assert self.width(cp) == WidthClass.WIDE, hex(cp)
        for cp in (0xD7A4, 0xFE1A, 0xFF61, 0x2FFFE, 0x3FFFE):
            assert self.width(cp) == WidthClass.NARROW, hex(cp)

    def test_wide_set(self):
        wide = CodepointSet([(0x1F600, 0x1F64F)])
        assert self.width(0x1F60A) == WidthClass.NARROW
        assert self.width(0x1F60A, wide) == WidthClass.WIDE

    def test_wide_set_outside_classic_ranges(self):
        wide = CodepointSet([(0x231A, 0x231B), (0x17000, 0x187F7), (0x1B000, 0x1B122)])
        for cp in (0x231A, 0x17000, 0x1B000):
            assert self.width(cp) == WidthClass.NARROW, hex(cp)
            assert self.width(cp, wide) == WidthClass.WIDE, hex(cp)

    def test_unassigned_is_narrow(self):
        assert self.width(0x10FFFF) == WidthClass.NARROW
        assert self.width(0xE0FFF) == WidthClass.NARROW


class TestWidthValues:
    def test_agrees_with_reference(self):
        combining = CodepointSet([(0x300, 0x36F), (0x1160, 0x11FF), (0x302A, 0x302D)])
        wide = CodepointSet([(0x1100, 0x115F), (0x3000, 0x3000), (0x3164, 0x3164),
                             (0x1F300, 0x1F64F)])
        values = width_values(combining, wide)
        assert len(values) == NUM_CODEPOINTS
        interesting = set()
        for start, end in combining.ranges() + wide.ranges() + [
            (0, 0xFF), (0x1100, 0x1160), (0x2328, 0x232B), (0x2E7F, 0x2E81),
            (0x303E, 0x3040), (0x3163, 0x3165), (0xA4CE, 0xA4D0), (0xD7FF, 0xE000),
            (0xFFDF, 0xFFE7), (0x1FFFF, 0x20001), (0x3FFFC, 0x40000), (0x10FFFE, 0x10FFFF),
        ]:
            interesting.update(range(start, end + 1))
        for cp in sorted(interesting):
            assert from_byte(values[cp]) == reference_width(cp, combining, wide), hex(cp)

    def test_accepts_plain_sets(self):
        values = width_values({0x301}, {0x1F600})
        assert values[0x301] == 0
        assert values[0x1F600] == 2


# ── Bitset compiler ────────────────────────────────────────────────


class TestCompileBitset:
    def test_masks(self):
        b = compile_bitset([0, 1, 33, 0x10FFFF])
        assert b.masks == {0: 0b11, 1: 0b10, 0x10FFFF >> 5: 1 << 31}
        assert b.dense == ()

    def test_membership_preserved(self):
        rng = random.Random(1234)
        points = set(rng.randrange(0x3000) for _ in range(2000))
        points.update(range(0x4E00, 0x9FFF + 1))
        b = compile_bitset(points)
        assert b.codepoints() == CodepointSet.from_codepoints(points)
        for cp in range(0x5000):
            assert (cp in b) == (cp in points), hex(cp)

    def test_dense_range(self):
        b = compile_bitset(CodepointSet([(0xE000, 0xF8FF)]))
        assert b.dense == (DenseRange(1792, 1991, ()),)
        assert b.masks == {}
        assert b.mask(1800) == FULL_MASK
        assert b.mask(1991) == FULL_MASK
        assert b.mask(1992) == 0

    def test_dense_range_with_excluded_block(self):
        points = CodepointSet([(10 << 5, (15 << 5) - 1), ((15 << 5) + 3, (21 << 5) - 1)])
        b = compile_bitset(points)
        assert b.dense == (DenseRange(10, 20, (15,)),)
        assert b.masks == {15: FULL_MASK & ~0b111}
        assert b.mask(15) == FULL_MASK & ~0b111
        assert (15 << 5) + 2 not in b
        assert (15 << 5) + 3 in b
        assert b.codepoints() == points

    def test_excluded_empty_block(self):
        points = CodepointSet([(0, 63), (96, 159)])
        b = compile_bitset(points)
        assert b.dense == (DenseRange(0, 4, (2,)),)
        assert b.mask(2) == 0
        assert 64 not in b

    def test_threshold(self):
        points = CodepointSet([(32, 63)])
        assert compile_bitset(points).dense == ()
        assert compile_bitset(points).masks == {1: FULL_MASK}
        assert compile_bitset(points, threshold=1).dense == (DenseRange(1, 1, ()),)

    def test_bad_threshold(self):
        with pytest.raises(ValueError):
            compile_bitset([1], threshold=0)

    def test_out_of_range(self):
        with pytest.raises(ValueError):
            compile_bitset([0x110000])

    def test_contains_out_of_range(self):
        b = compile_bitset([5])
        assert -1 not in b
        assert 0x110000 not in b

    def test_deterministic(self):
        points = list(range(0, 5000, 3)) + list(range(0x20000, 0x21000))
        a = compile_bitset(points)
        b = compile_bitset(reversed(points))
        assert a == b
        assert list(a.masks) == sorted(a.masks)


class TestBitsetModule:
    def setup_method(self):
        self.points = CodepointSet([(0xA1, 0xA1), (0xB0, 0xB0), (0x2500, 0x254B),
                                    (0xE000, 0xF8FF), (0xF0000, 0xFFFFD)])
        self.bitset = compile_bitset(self.points)

    def _code(self):
        buf = io.StringIO()
        self.bitset.print_code("ambiguous", file=buf, version="16.0.0", digest="abc")
        return buf.getvalue()

    def test_source(self):
        code = self._code()
        assert code.startswith("# Generated by widthTab")
        assert "UNICODE_VERSION = '16.0.0'" in code
        assert "def ambiguous(idx):" in code

    def test_accessor(self):
        ns = {}
        exec(self._code(), ns)
        accessor = ns["ambiguous"]
        for idx in (5, 0xA1 >> 5, 1792, 1991, 0xF0000 >> 5, 0xFFFFD >> 5, 3000):
            assert accessor(idx) == self.bitset.mask(idx), idx

    def test_round_trip(self):
        ns = {}
        exec(self._code(), ns)
        module = types.SimpleNamespace(**ns)
        assert SparseBitset.from_module(module) == self.bitset
        assert module.TABLE_DIGEST == "abc"

    def test_load_module(self, tmp_path):
        path = tmp_path / "ambiguous.py"
        path.write_text(self._code(), encoding="utf-8")
        module = load_module(str(path))
        assert SparseBitset.from_module(module).codepoints() == self.points

    def test_not_a_bitset_module(self):
        with pytest.raises(ValueError):
            SparseBitset.from_module(types.SimpleNamespace())


# ── Multi-level table ──────────────────────────────────────────────


class TestAutoMapping:
    def test_bidirectional(self):
        m = AutoMapping()
        assert m[b"ab"] == 0
        assert m[0] == b"ab"
        assert m[(1, None)] == 1
        assert m[b"ab"] == 0
        assert len(m) == 2


class TestBuildTable:
    def test_lookup_small(self):
        values = bytes([1, 1, 2, 2, 0, 1, 0xFF, 1] * 10 + [2, 0])
        t = build_table(values, shift1=4, shift2=2)
        for cp, v in enumerate(values):
            assert t.lookup(cp) == v, cp
        for cp in range(len(values), len(values) + 100):
            assert t.lookup(cp) == 1

    def test_header(self):
        values = bytes([1] * 40 + [2] + [1] * 100)
        t = build_table(values, shift1=5, shift2=3)
        shift1, bound1, shift2, mask2, mask3 = struct.unpack_from("<5I", t.tobytes())
        assert (shift1, shift2, mask2, mask3) == (5, 3, 3, 7)
        assert bound1 == (40 >> 5) + 1
        assert t.bound1 == bound1

    def test_all_default(self):
        t = build_table(bytes([1] * 1000))
        assert len(t) == HEADER_SIZE
        assert t.bound1 == 0
        assert t.lookup(0) == 1
        assert t.lookup(0x10FFFF) == 1

    def test_empty(self):
        t = build_table(b"")
        assert t.lookup(5) == 1

    def test_rows_deduplicated(self):
        values = bytes([0, 2, 2, 2]) * 256
        t = build_table(values, shift1=6, shift2=2)
        stats = t.stats()
        assert stats["stage3_rows"] == 1
        assert stats["stage2_rows"] == 1

    def test_callable(self):
        t = build_table(lambda cp: 2 if 0x4E00 <= cp <= 0x9FFF else (0xFF if cp < 32 else 1))
        assert t.lookup(0x4E00) == 2
        assert t.lookup(0x9FFF) == 2
        assert t.lookup(0xA000) == 1
        assert t.lookup(5) == 0xFF
        assert t.stats()["bound1"] == (0x9FFF >> DEFAULT_SPLITS[0]) + 1

    def test_deterministic(self):
        values = bytes(random.Random(3).choice([0, 1, 1, 1, 2]) for _ in range(5000))
        assert build_table(values).tobytes() == build_table(bytearray(values)).tobytes()

    def test_round_trip_buffer(self):
        values = bytes([2] * 300 + [0] * 7)
        t = build_table(values, shift1=8, shift2=4)
        assert Table(t.tobytes()) == t

    def test_bad_shifts(self):
        with pytest.raises(ValueError):
            build_table(b"\x02", shift1=4, shift2=4)
        with pytest.raises(ValueError):
            build_table(b"\x02", shift1=22, shift2=4)

    def test_too_many_values(self):
        with pytest.raises(ValueError):
            build_table(bytes(NUM_CODEPOINTS + 1))


class TestTableValidation:
    def test_short(self):
        with pytest.raises(ValueError):
            Table(b"\x00" * 10)

    def test_bad_masks(self):
        with pytest.raises(ValueError):
            Table(struct.pack("<5I", 13, 0, 7, 1, 127))

    def test_truncated(self):
        with pytest.raises(ValueError):
            Table(struct.pack("<5I", 13, 5, 7, 63, 127))

    def test_bound_too_large(self):
        with pytest.raises(ValueError):
            Table(struct.pack("<5I", 13, 1000, 7, 63, 127) + bytes(4000))


class TestSplits:
    def test_candidates(self):
        values = bytes([1, 2] * 300 + [0] * 50)
        candidates = table_candidates(values)
        assert candidates
        for size, shift1, shift2 in candidates:
            assert len(build_table(values, shift1, shift2)) == size

    def test_pick_smallest(self):
        values = bytes([1, 2] * 300 + [0] * 50)
        candidates = table_candidates(values)
        shift1, shift2 = pick_splits(values, candidates=candidates)
        assert len(build_table(values, shift1, shift2)) == min(c[0] for c in candidates)


# ── UCD extraction ─────────────────────────────────────────────────


class TestParsePropertyLines:
    def test_ranges_and_single(self):
        lines = ["# comment", "", "0041..005A ; Lu # x", "00AD;Cf", "0900 ; InCB; Extend # y"]
        assert list(parse_property_lines(lines)) == [
            (0x41, 0x5A, "Lu"),
            (0xAD, 0xAD, "Cf"),
            (0x900, 0x900, "InCB"),
        ]

    def test_malformed(self):
        with pytest.raises(UCDError) as e:
            list(parse_property_lines(["0041 ; A", "hello world"], "EastAsianWidth.txt"))
        assert "EastAsianWidth.txt:2" in str(e.value)

    def test_bad_range(self):
        with pytest.raises(UCDError):
            list(parse_property_lines(["0050..0041 ; A"]))
        with pytest.raises(UCDError):
            list(parse_property_lines(["110000 ; A"]))

    def test_no_data(self):
        with pytest.raises(UCDError):
            load_property(["# only comments", ""], ["A"])


class TestParseUnicodeData:
    def test_categories_and_ranges(self):
        s = parse_unicode_data(UNICODE_DATA.splitlines(), ["Cf"])
        assert s.ranges() == [(0xAD, 0xAD), (0x200B, 0x200B), (0xFFF9, 0xFFF9),
                              (0x13430, 0x13430), (0xE0001, 0xE0001), (0xE0020, 0xE0020)]
        s = parse_unicode_data(UNICODE_DATA.splitlines(), ["Lo"])
        assert s.ranges() == [(0x4E00, 0x9FFF)]

    def test_last_without_first(self):
        with pytest.raises(UCDError):
            parse_unicode_data(["9FFF;<CJK Ideograph, Last>;Lo;0;L;;;;;N;;;;;"])

    def test_malformed(self):
        with pytest.raises(UCDError):
            parse_unicode_data(["0041 LATIN CAPITAL LETTER A"])
        with pytest.raises(UCDError):
            parse_unicode_data(["XYZ;NAME;Lu"])


class TestWidthProperties:
    def test_zero_width(self):
        p = WidthProperties(
            "16.0.0",
            CodepointSet([(0xAD, 0xAD), (0x200B, 0x200B)]),
            CodepointSet([(0x300, 0x36F), (0x3164, 0x3164)]),
            CodepointSet([(0x1160, 0x11FF)]),
            CodepointSet(),
            CodepointSet(),
            CodepointSet(),
        )
        assert p.zero_width.ranges() == [(0x300, 0x36F), (0x1160, 0x11FF), (0x200B, 0x200B)]

    def test_equality(self):
        sets = [CodepointSet([(i, i)]) for i in range(6)]
        assert WidthProperties("1.0.0", *sets) == WidthProperties("1.0.0", *sets)
        assert WidthProperties("1.0.0", *sets) != WidthProperties("2.0.0", *sets)


class TestReadVersion:
    def test_missing(self):
        with pytest.raises(UCDError):
            read_version(["# no version here"])


class TestLoadUcd:
    def test_version(self, ucd_properties):
        assert ucd_properties.version == "16.0.0"

    def test_format_controls(self, ucd_properties):
        assert 0xAD not in ucd_properties.format_controls
        assert 0x200B in ucd_properties.format_controls

    def test_sets(self, ucd_properties):
        assert ucd_properties.jamo.ranges() == [(0x1160, 0x11FF)]
        assert 0xB0 in ucd_properties.ambiguous
        assert 0xE123 in ucd_properties.ambiguous
        assert 0x1F60A in ucd_properties.wide
        assert 0x3000 in ucd_properties.wide
        assert ucd_properties.combining_class.ranges() == [(0x300, 0x314), (0x316, 0x319)]

    def test_zero_width(self, ucd_properties):
        assert ucd_properties.zero_width.ranges() == [
            (0x300, 0x36F),
            (0x1160, 0x11FF),
            (0x200B, 0x200F),
            (0xFE00, 0xFE0F),
            (0xE0001, 0xE0001),
            (0xE0020, 0xE0020),
        ]

    def test_exclusions_removed(self, ucd_properties):
        for cp in EXCLUSIONS:
            assert cp not in ucd_properties.zero_width

    def test_missing_file(self, tmp_path):
        _write_ucd(tmp_path)
        os.unlink(str(tmp_path / "EastAsianWidth.txt"))
        with pytest.raises(UCDError):
            load_ucd(str(tmp_path))

    def test_combining_class_top_level(self, tmp_path):
        _write_ucd(tmp_path)
        os.rename(
            str(tmp_path / "extracted" / "DerivedCombiningClass.txt"),
            str(tmp_path / "DerivedCombiningClass.txt"),
        )
        assert 0x300 in load_ucd(str(tmp_path)).combining_class

    def test_malformed_file(self, tmp_path):
        _write_ucd(tmp_path)
        with open(str(tmp_path / "HangulSyllableType.txt"), "a", encoding="utf-8") as f:
            f.write("not a property line\n")
        with pytest.raises(UCDError):
            load_ucd(str(tmp_path))


# Grapheme_Extend of the Kannada block in DerivedCoreProperties.
KANNADA_GRAPHEME_EXTEND_15 = """\
0C81          ; Grapheme_Extend # Mn       KANNADA SIGN CANDRABINDU
0CBC          ; Grapheme_Extend # Mn       KANNADA SIGN NUKTA
0CBF          ; Grapheme_Extend # Mn       KANNADA VOWEL SIGN I
0CC2          ; Grapheme_Extend # Mc       KANNADA VOWEL SIGN UU
0CC6          ; Grapheme_Extend # Mn       KANNADA VOWEL SIGN E
0CCC..0CCD    ; Grapheme_Extend # Mn   [2] KANNADA VOWEL SIGN AU..KANNADA SIGN VIRAMA
0CD5..0CD6    ; Grapheme_Extend # Mc   [2] KANNADA LENGTH MARK..KANNADA AI LENGTH MARK
0CE2..0CE3    ; Grapheme_Extend # Mn   [2] KANNADA VOWEL SIGN VOCALIC L..KANNADA VOWEL SIGN VOCALIC LL
"""

KANNADA_GRAPHEME_EXTEND_16 = KANNADA_GRAPHEME_EXTEND_15 + """\
0CC0          ; Grapheme_Extend # Mc       KANNADA VOWEL SIGN II
0CC7..0CC8    ; Grapheme_Extend # Mc   [2] KANNADA VOWEL SIGN EE..KANNADA VOWEL SIGN AI
0CCA..0CCB    ; Grapheme_Extend # Mc   [2] KANNADA VOWEL SIGN O..KANNADA VOWEL SIGN OO
"""


class TestFromUnicodedata:
    def test_sets(self, interpreter_properties):
        p = interpreter_properties
        assert 0x300 in p.zero_width
        assert 0x200B in p.zero_width
        assert 0x1160 in p.zero_width
        assert 0xFE0F in p.zero_width
        assert 0xAD not in p.zero_width
        assert 0xB0 in p.ambiguous
        assert 0x4E00 in p.wide
        assert 0x1F60A in p.wide
        assert 0x300 in p.combining_class
        assert 0x41 not in p.combining_class

    def test_exclusions_removed(self, interpreter_properties):
        for cp in EXCLUSIONS:
            assert cp not in interpreter_properties.zero_width

    def test_deterministic(self, interpreter_properties):
        assert from_unicodedata() == interpreter_properties

    @pytest.mark.parametrize(
        "version, extend",
        [
            ("15.1.0", KANNADA_GRAPHEME_EXTEND_15),
            ("16.0.0", KANNADA_GRAPHEME_EXTEND_16),
        ],
    )
    def test_matches_ucd_of_same_version(self, tmp_path, version, extend):
        _write_ucd(tmp_path)
        with open(str(tmp_path / "DerivedCoreProperties.txt"), "w", encoding="utf-8") as f:
            f.write("# DerivedCoreProperties-%s.txt\n%s" % (version, extend))
        fromFiles = load_ucd(str(tmp_path)).zero_width
        fromDatabase = from_unicodedata(_database(version)).zero_width
        for cp in range(0x0C80, 0x0D00):
            assert (cp in fromFiles) == (cp in fromDatabase), hex(cp)

    def test_spacing_marks_follow_version(self):
        marks = (0x0CC0, 0x0CC7, 0x1B3B, 0x11235, 0x1D16D)
        older = from_unicodedata(_database("14.0.0"))
        assert older.version == "14.0.0"
        for cp in marks:
            assert cp not in older.zero_width, hex(cp)
        assert 0x0CC2 in older.zero_width
        newer = from_unicodedata(_database("16.0.0"))
        for cp in marks:
            assert cp in newer.zero_width, hex(cp)

    def test_other_grapheme_extend(self):
        assert 0x0CC0 not in other_grapheme_extend("15.1.0")
        assert 0x0CC0 in other_grapheme_extend("16.0.0")
        assert 0x0CC2 in other_grapheme_extend("12.1.0")

    def test_unsupported_version(self):
        with pytest.raises(UCDError):
            from_unicodedata(unicodedata.ucd_3_2_0)
        with pytest.raises(UCDError):
            from_unicodedata(_database("99.0.0"))
        with pytest.raises(UCDError):
            other_grapheme_extend("sixteen")

    @needs_interpreter_data
    def test_interpreter_version(self, interpreter_properties, interpreter_data):
        assert interpreter_properties.version == unicodedata.unidata_version
        if SUPPORTED_VERSIONS[1] > tuple(
            int(x) for x in unicodedata.unidata_version.split(".")[:2]
        ):
            assert 0x0CC0 not in interpreter_properties.zero_width
            assert interpreter_data.wcwidth(0x0CC0) == 1


UCD_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<ucd xmlns="http://www.unicode.org/ns/2003/ucd/1.0">
  <description>Unicode 16.0.0</description>
  <repertoire>
    <char cp="0041" gc="Lu" ea="Na" ccc="0" Gr_Ext="N" VS="N" DI="N" hst="NA"/>
    <char cp="00AD" gc="Cf" ea="A" ccc="0" Gr_Ext="N" VS="N" DI="Y" hst="NA"/>
    <char cp="00B0" gc="So" ea="A" ccc="0" Gr_Ext="N" VS="N" DI="N" hst="NA"/>
    <char cp="0300" gc="Mn" ea="A" ccc="230" Gr_Ext="Y" VS="N" DI="N" hst="NA"/>
    <char cp="200B" gc="Cf" ea="N" ccc="0" Gr_Ext="N" VS="N" DI="Y" hst="NA"/>
    <group gc="Lo" ea="W" ccc="0" Gr_Ext="N" VS="N" DI="N" hst="NA">
      <char cp="1100" hst="L"/>
      <char first-cp="1160" last-cp="1161" hst="V" ea="N"/>
    </group>
    <char first-cp="4E00" last-cp="4E05" gc="Lo" ea="W" ccc="0" Gr_Ext="N" VS="N" DI="N" hst="NA"/>
    <reserved first-cp="E0080" last-cp="E00FF" gc="Cn" ea="N" ccc="0" Gr_Ext="N" VS="N" DI="Y" hst="NA"/>
  </repertoire>
</ucd>
"""


@pytest.fixture(scope="module")
def ucdxml_properties():
    return properties_from_ucdxml(load_ucdxml(io.BytesIO(UCD_XML)))


class TestUcdXml:
    def test_version(self, ucdxml_properties):
        assert ucdxml_properties.version == "16.0.0"

    def test_sets(self, ucdxml_properties):
        p = ucdxml_properties
        assert p.format_controls.ranges() == [(0x200B, 0x200B)]
        assert p.jamo.ranges() == [(0x1160, 0x1161)]
        assert p.ambiguous.ranges() == [(0xAD, 0xAD), (0xB0, 0xB0), (0x300, 0x300)]
        assert p.wide.ranges() == [(0x1100, 0x1100), (0x4E00, 0x4E05)]
        assert p.combining_class.ranges() == [(0x300, 0x300)]

    def test_zero_width(self, ucdxml_properties):
        assert ucdxml_properties.zero_width.ranges() == [
            (0x300, 0x300),
            (0x1160, 0x1161),
            (0x200B, 0x200B),
            (0xE0080, 0xE00FF),
        ]

    def test_load_path(self, tmp_path, ucdxml_properties):
        path = tmp_path / "ucd.all.flat.xml"
        path.write_bytes(UCD_XML)
        assert properties_from_ucdxml(load_ucdxml(str(path))) == ucdxml_properties

    def test_load_zip(self, tmp_path, ucdxml_properties):
        path = tmp_path / "ucd.all.flat.zip"
        with zipfile.ZipFile(str(path), "w") as z:
            z.writestr("ucd.all.flat.xml", UCD_XML)
        assert properties_from_ucdxml(load_ucdxml(str(path))) == ucdxml_properties

    def test_bad_xml(self):
        with pytest.raises(UCDError):
            load_ucdxml(io.BytesIO(b"<ucd><unclosed></ucd>"))

    def test_missing_file(self, tmp_path):
        with pytest.raises(UCDError):
            load_ucdxml(str(tmp_path / "nowhere.xml"))

    def test_no_version(self):
        xml = UCD_XML.replace(b"<description>Unicode 16.0.0</description>", b"")
        with pytest.raises(UCDError):
            properties_from_ucdxml(load_ucdxml(io.BytesIO(xml)))


# ── Generated artifacts ────────────────────────────────────────────


class TestArtifacts:
    def test_files(self, artifacts):
        files = artifacts.files()
        assert list(files) == [
            "widths.bin",
            "combining.py",
            "ambiguous.py",
            "wide.py",
            "combining_class.py",
        ]
        assert files["widths.bin"] == artifacts.table.tobytes()
        for name in ("combining.py", "ambiguous.py"):
            text = files[name].decode("utf-8")
            assert "TABLE_DIGEST = %r" % artifacts.digest in text
            assert "UNICODE_VERSION = '16.0.0'" in text

    def test_reproducible(self, ucd_properties, artifacts):
        assert compile_artifacts(ucd_properties).files() == artifacts.files()

    def test_combining_bitset(self, artifacts, ucd_properties):
        assert artifacts.bitsets["combining"].codepoints() == ucd_properties.zero_width

    def test_table_matches_reference(self, artifacts, ucd_properties):
        combining = artifacts.bitsets["combining"]
        wide = ucd_properties.wide
        for cp in list(range(0, 0x3300)) + list(range(0x4DF0, 0x4E10)) + [
            0x9FFF, 0xA000, 0xAC00, 0xFE0F, 0xFFF9, 0x13430, 0x1F60A, 0x20000,
            0xE0001, 0xE0020, 0x10FFFF,
        ]:
            expected = reference_width(cp, combining, wide)
            assert from_byte(artifacts.table.lookup(cp)) == expected, hex(cp)

    def test_optimized_split(self, ucd_properties):
        values = width_values(ucd_properties.zero_width, ucd_properties.wide)
        optimized = compile_artifacts(ucd_properties, splits=pick_splits(values))
        assert len(optimized.table) <= len(build_table(values))

    def test_written(self, artifact_dir, artifacts):
        for name, content in artifacts.files().items():
            with open(os.path.join(artifact_dir, name), "rb") as f:
                assert f.read() == content
        assert not [n for n in os.listdir(artifact_dir) if n.endswith(".tmp")]

    def test_failed_rename(self, artifacts, tmp_path, monkeypatch):
        replace = os.replace
        calls = []

        def failing(src, dst):
            calls.append(src)
            if len(calls) > 1:
                raise OSError("disk full")
            replace(src, dst)

        monkeypatch.setattr(os, "replace", failing)
        with pytest.raises(OSError):
            write_artifacts(artifacts, str(tmp_path))
        assert len(calls) == 2
        assert not [n for n in os.listdir(str(tmp_path)) if n.endswith(".tmp")]
        assert os.listdir(str(tmp_path)) == ["widths.bin"]


class TestFromDirectory:
    def test_load(self, artifact_dir, ucd_properties):
        loaded = WidthData.from_directory(artifact_dir)
        built = WidthData.from_properties(ucd_properties)
        assert loaded.version == "16.0.0"
        assert loaded.table == built.table
        assert loaded.ambiguous == built.ambiguous

    def test_widths(self, artifact_dir):
        data = WidthData.from_directory(artifact_dir)
        assert data.wcwidth(0x300) == 0
        assert data.wcwidth(0x115F) == 2
        assert data.wcwidth(0x1160) == 0
        assert data.wcwidth(0x3164) == 1
        assert data.wcwidth(0xFFF9) == 1
        assert data.wcwidth(0x13430) == 1
        assert data.wcwidth(0xAD) == 1
        assert data.wcwidth(0x1F600) == 2
        assert data.wcwidth(0xE0001) == 0
        assert data.wcwidthCjk(0xB0) == 2
        assert data.wcwidthCjk(0xE000) == 2
        assert data.wcwidth(0xE000) == 1

    def test_surrogate_pair(self, artifact_dir):
        data = WidthData.from_directory(artifact_dir)
        assert data.wcwidth("\ud83d\ude00") == 2
        assert data.wcwidthCjk("\ud83d\ude00") == 2
        assert data.wcwidth("\ud83d\ude00") == data.wcswidth("\ud83d\ude00")

    def test_version(self, artifact_dir):
        assert WidthData.from_directory(artifact_dir, version="16.0.0").version == "16.0.0"
        with pytest.raises(ValueError):
            WidthData.from_directory(artifact_dir, version="15.1.0")

    def test_mismatched_table(self, artifact_dir, tmp_path):
        for name in os.listdir(artifact_dir):
            with open(os.path.join(artifact_dir, name), "rb") as f:
                content = f.read()
            if name == "widths.bin":
                content += b"\x00"
            (tmp_path / name).write_bytes(content)
        with pytest.raises(ValueError):
            WidthData.from_directory(str(tmp_path))

    def test_missing(self, tmp_path):
        with pytest.raises(OSError):
            WidthData.from_directory(str(tmp_path))

    def test_environment(self, artifact_dir, monkeypatch):
        monkeypatch.setenv(dataModule.ENVIRONMENT_VARIABLE, artifact_dir)
        data = dataModule._load_default()
        assert data.version == "16.0.0"
        assert data.wcwidth(0x1F600) == 2


# ── Width queries ──────────────────────────────────────────────────


@needs_interpreter_data
class TestWcwidth:
    def test_scenarios(self):
        assert wcwidth("a") == 1
        assert wcwidth("好") == 2
        assert wcwidth("\U0001F60A") == 2
        assert wcwidth("A") == 1
        assert wcwidth(" ") == 1
        assert wcwidth("\uff21") == 2
        assert wcwidth("\u3000") == 2

    def test_null(self):
        assert wcwidth(0) == 0
        assert wcwidth("\x00") == 0
        assert wcwidthCjk("\x00") == 0

    def test_controls(self):
        for cp in list(range(1, 32)) + list(range(0x7F, 0xA0)):
            assert wcwidth(cp) == -1, hex(cp)
            assert wcwidth(chr(cp)) == -1, hex(cp)

    def test_zero_width(self):
        for c in ("\u0300", "\u200b", "\u1160", "\u20dd", "\ufe0f"):
            assert wcwidth(c) == 0, hex(ord(c))

    def test_exclusions(self):
        assert wcwidth(0x00AD) == 1
        assert wcwidth(0x115F) == 2
        assert wcwidth(0x3164) == 1
        assert wcwidth(0xFFA0) == 1
        for cp in range(0xFFF9, 0xFFFC):
            assert wcwidth(cp) == 1
        for cp in range(0x13430, 0x13440):
            assert wcwidth(cp) == 1

    def test_boundaries(self):
        assert wcwidth(0x10FFFF) == 1
        assert wcwidth(0x110000) == -1
        assert wcwidth(-1) == -1
        assert wcwidth("") == -1

    def test_surrogates(self):
        assert wcwidth(0xD800) == -1
        assert wcwidth("\udfff") == -1

    def test_surrogate_pair(self):
        assert wcwidth("\ud83d\ude0a") == 2 == wcswidth("\ud83d\ude0a")
        assert wcwidthCjk("\ud83d\ude0a") == 2
        assert wcwidth("\ud83d\ude0aa") == 2
        assert wcwidth("\ud83d") == -1
        assert wcwidth("\ud83da") == -1

    def test_first_code_point(self):
        assert wcwidth("好a") == 2

    def test_type_error(self):
        with pytest.raises(TypeError):
            wcwidth(1.5)
        with pytest.raises(TypeError):
            wcwidthCjk(None)

    def test_deterministic(self):
        assert [wcwidth(cp) for cp in range(0x3000, 0x3100)] == [
            wcwidth(cp) for cp in range(0x3000, 0x3100)
        ]


@needs_interpreter_data
class TestWcswidth:
    def test_scenarios(self):
        assert wcswidth("hi") == 2
        assert wcswidth("hello") == 5
        assert wcswidth("안녕하세요") == 10
        assert wcswidth("\U0001F60Aこんにちは") == 12
        assert wcswidth("你好") == 4

    def test_empty(self):
        assert wcswidth("") == 0
        assert wcswidth("", 0) == 0
        assert wcswidth(b"") == 0
        assert wcswidth([]) == 0

    def test_limit(self):
        assert wcswidth("hello", 3) == 3
        assert wcswidth("你好世", 2) == 4
        assert wcswidth("test", 0) == 0
        assert wcswidth("test", -3) == 0
        assert wcswidth("ab", 10) == 2

    def test_short_circuit(self):
        assert wcswidth("hello\x07world") == -1
        assert wcswidth("ab\x07", 2) == 2
        assert wcswidth("\x07" + "a" * 10, 0) == 0

    def test_sum(self):
        for s in ("abc", "e\u0301", "\u4e00\u0300x", "\uac01"):
            assert wcswidth(s) == sum(wcwidth(c) for c in s)

    def test_surrogate_pairs(self):
        assert wcswidth("\ud83d\ude0a") == 2
        assert wcswidth("\ud83d\ude0aab", 2) == 3
        assert wcswidth("a\ud800") == -1
        assert wcswidth("a\ud800", 1) == 1

    def test_bytes(self):
        assert wcswidth("好a".encode("utf-8")) == 3
        assert wcswidth(bytearray(b"abc"), 2) == 2
        assert wcswidth(b"\xffa") == -1

    def test_code_points(self):
        assert wcswidth([0x61, 0x4E00]) == 3
        assert wcswidth([0x61, 0x07]) == -1


@needs_interpreter_data
class TestCjk:
    def test_scenarios(self):
        assert wcswidthCjk("\xb0C") == 3
        assert wcswidth("\xb0C") == 2
        assert wcwidthCjk("\xa1") == 2
        assert wcwidth("\xa1") == 1
        assert wcwidthCjk("\xb0") == 2
        assert wcswidthCjk("\xb0\xb1\xf7", 2) == 4

    def test_same_as_default(self):
        assert wcwidthCjk("A") == 1
        assert wcwidthCjk("一") == 2
        assert wcswidthCjk("hello") == 5
        assert wcswidthCjk("你好") == 4
        assert wcwidthCjk("") == -1
        assert wcswidthCjk("\x07") == -1

    def test_ambiguous_set(self, interpreter_data, interpreter_properties):
        for cp in interpreter_properties.ambiguous:
            assert interpreter_data.wcwidthCjk(cp) == 2, hex(cp)

    def test_other_code_points(self, interpreter_data, interpreter_properties):
        ambiguous = interpreter_properties.ambiguous
        for cp in range(0, 0x30000, 7):
            if cp not in ambiguous:
                assert interpreter_data.wcwidthCjk(cp) == interpreter_data.wcwidth(cp), hex(cp)


@needs_interpreter_data
class TestInterpreterData:
    def test_zero_width_set(self, interpreter_data, interpreter_properties):
        for cp in interpreter_properties.zero_width:
            assert interpreter_data.wcwidth(cp) == 0, hex(cp)

    def test_table_matches_reference(self, interpreter_data, interpreter_properties):
        combining = compile_bitset(interpreter_properties.zero_width)
        wide = interpreter_properties.wide
        for cp in range(NUM_CODEPOINTS):
            assert interpreter_data.wcwidth(cp) == reference_width(cp, combining, wide), hex(cp)

    def test_default_data_is_shared(self):
        assert default_data() is default_data()


# ── CLI ────────────────────────────────────────────────────────────


class TestCLI:
    def _run(self, *args, **env):
        environ = dict(os.environ, PYTHONUTF8="1", PYTHONIOENCODING="utf-8")
        environ.pop(dataModule.ENVIRONMENT_VARIABLE, None)
        environ.update(env)
        return subprocess.run(
            [sys.executable, "-m", "widthTab", *args],
            capture_output=True,
            encoding="utf-8",
            env=environ,
            cwd=os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
        )

    def test_no_args_shows_usage(self):
        r = self._run()
        assert r.returncode != 0
        assert "usage" in r.stderr.lower()

    def test_help(self):
        r = self._run("--help")
        assert r.returncode == 0
        assert "widthTab" in r.stdout

    @needs_interpreter_data
    def test_width(self):
        r = self._run("width", "hello", "你好")
        assert r.returncode == 0
        assert r.stdout.splitlines() == ["5\thello", "4\t你好"]

    @needs_interpreter_data
    def test_width_cjk(self):
        r = self._run("width", "--cjk", "\xb0C")
        assert r.returncode == 0
        assert r.stdout.startswith("3\t")

    @needs_interpreter_data
    def test_width_limit(self):
        r = self._run("width", "-n", "2", "hello")
        assert r.stdout.startswith("2\t")

    def test_generate(self, ucd_dir, tmp_path):
        out = str(tmp_path / "out")
        r = self._run("generate", "--ucd", ucd_dir, "-o", out)
        assert r.returncode == 0, r.stderr
        assert "16.0.0" in r.stdout
        assert sorted(os.listdir(out)) == [
            "ambiguous.py",
            "combining.py",
            "combining_class.py",
            "wide.py",
            "widths.bin",
        ]
        r = self._run("width", "\U0001F600", WIDTHTAB_DATA=out)
        assert r.stdout.startswith("2\t")

    def test_generate_bad_source(self, tmp_path):
        r = self._run("generate", "--ucd", str(tmp_path / "nowhere"), "-o", str(tmp_path / "out"))
        assert r.returncode == 1
        assert "error" in r.stderr
        assert not os.path.exists(str(tmp_path / "out"))

    def test_generate_requires_source(self, tmp_path):
        r = self._run("generate", "-o", str(tmp_path))
        assert r.returncode != 0
        assert "usage" in r.stderr.lower()

    def test_bad_threshold(self, ucd_dir, tmp_path):
        r = self._run("generate", "--ucd", ucd_dir, "-o", str(tmp_path), "--dense-threshold", "0")
        assert r.returncode != 0

    def test_analyze(self, ucd_dir):
        r = self._run("analyze", "--ucd", ucd_dir)
        assert r.returncode == 0
        assert "smallest" in r.stdout
        assert "default" in r.stdout
