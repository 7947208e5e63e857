import pytest

from hidremap.bits import get_bit, get_bits, put_bit, put_bits, rlencode, sign_extend
from hidremap.types import UsageRle


def _expand_ranges(ranges):
    usages = set()
    for lo, hi in ranges:
        usages.update(range(lo, hi + 1))
    return usages


def _expand_runs(runs):
    usages = set()
    for run in runs:
        usages.update(range(run.usage, run.usage + run.count))
    return usages


def test_get_bit_reads_lsb_first():
    data = bytes([0b00000010, 0b10000000])
    assert get_bit(data, 1) == 1
    assert get_bit(data, 0) == 0
    assert get_bit(data, 15) == 1


def test_get_bit_past_end_is_zero():
    assert get_bit(b"\xff", 8) == 0
    assert get_bits(b"\xff", 4, 8) == 0x0F


def test_get_bits_across_byte_boundary():
    data = bytes([0x34, 0x12])
    assert get_bits(data, 0, 16) == 0x1234
    assert get_bits(data, 4, 8) == 0x23


@pytest.mark.parametrize("bitpos,size,value", [(0, 1, 1), (3, 5, 0x15), (7, 9, 0x1AB), (0, 32, 0xDEADBEEF)])
def test_put_get_round_trip(bitpos, size, value):
    data = bytearray(8)
    put_bits(data, bitpos, size, value)
    assert get_bits(data, bitpos, size) == value


def test_put_bits_preserves_neighbours():
    data = bytearray(b"\xff\xff")
    put_bits(data, 4, 4, 0)
    assert data == bytearray(b"\x0f\xff")


def test_put_bit_past_end_is_dropped():
    data = bytearray(b"\x00")
    put_bit(data, 9, 1)
    assert data == bytearray(b"\x00")
    put_bits(data, 6, 4, 0xF)
    assert data == bytearray(b"\xc0")


def test_put_bits_truncates_value():
    data = bytearray(2)
    put_bits(data, 0, 4, 0xFFFFFFFF)
    assert data == bytearray(b"\x0f\x00")


def test_sign_extend():
    assert sign_extend(0xFF, 8) == -1
    assert sign_extend(0x7F, 8) == 0x7F
    assert sign_extend(0x80, 8) == -128
    assert sign_extend(0xFFFFFFFF, 32) == -1


@pytest.mark.parametrize("size", [2, 7, 12, 16])
def test_sign_extend_round_trip_through_buffer(size):
    data = bytearray(4)
    for v in (-(1 << (size - 1)), -1, 0, 1, (1 << (size - 1)) - 1):
        put_bits(data, 3, size, v)
        assert sign_extend(get_bits(data, 3, size), size) == v


def test_rlencode_empty():
    assert rlencode([]) == []


def test_rlencode_single_usage():
    assert rlencode([(0x00070004, 0x00070004)]) == [UsageRle(usage=0x00070004, count=1)]


def test_rlencode_merges_adjacent_ranges():
    result = rlencode([(0x10, 0x12), (0x13, 0x15)])
    assert len(result) == 1
    assert result[0].usage == 0x10
    assert _expand_runs(result) == _expand_ranges([(0x10, 0x15)])


def test_rlencode_keeps_gaps():
    ranges = [(0x20, 0x22), (0x30, 0x30), (0x10, 0x11)]
    result = rlencode(ranges)
    assert [r.usage for r in result] == [0x10, 0x20, 0x30]
    assert _expand_runs(result) == _expand_ranges(ranges)


def test_rlencode_contained_and_overlapping():
    ranges = [(0x100, 0x1FF), (0x110, 0x120), (0x1F0, 0x210), (0x300, 0x305)]
    result = rlencode(ranges)
    assert _expand_runs(result) == _expand_ranges(ranges)
    assert len(result) == 2
    ends = [(r.usage, r.usage + r.count) for r in result]
    assert all(a_end < b_start for (_, a_end), (b_start, _) in zip(ends, ends[1:]))


def test_rlencode_ignores_duplicates_and_order():
    ranges = [(5, 9), (1, 2), (5, 9), (3, 3)]
    assert rlencode(ranges) == rlencode(sorted(set(ranges)))