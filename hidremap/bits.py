"""Bit-level access to report buffers and usage range encoding."""

from __future__ import annotations

from collections.abc import Iterable

from .types import UsageRle


def get_bit(data: bytes | bytearray, bitpos: int) -> int:
    """Return the bit at ``bitpos``; bits past the end read as 0."""
    byte_no, bit_no = divmod(bitpos, 8)
    if byte_no < len(data):
        return (data[byte_no] >> bit_no) & 1
    return 0


def get_bits(data: bytes | bytearray, bitpos: int, size: int) -> int:
    """Return ``size`` bits starting at ``bitpos`` as an unsigned integer (LSB first)."""
    value = 0
    for i in range(size):
        value |= get_bit(data, bitpos + i) << i
    return value


def put_bit(data: bytearray, bitpos: int, value: int) -> None:
    """Set the bit at ``bitpos`` to the low bit of ``value``; writes past the end are dropped."""
    byte_no, bit_no = divmod(bitpos, 8)
    if byte_no < len(data):
        data[byte_no] = (data[byte_no] & ~(1 << bit_no) & 0xFF) | ((value & 1) << bit_no)


def put_bits(data: bytearray, bitpos: int, size: int, value: int) -> None:
    """Write the low ``size`` bits of ``value`` starting at ``bitpos`` (LSB first)."""
    for i in range(size):
        put_bit(data, bitpos + i, (value >> i) & 1)


def sign_extend(value: int, size: int) -> int:
    """Interpret the low ``size`` bits of ``value`` as a two's complement number."""
    if size <= 0:
        return value
    value &= (1 << size) - 1
    if value & (1 << (size - 1)):
        return value - (1 << size)
    return value


def rlencode(usage_ranges: Iterable[tuple[int, int]]) -> list[UsageRle]:
    """Merge (minimum, maximum) usage ranges into runs of consecutive usages.

    Ranges are processed in ascending order; a start usage of 0 is treated
    as "no run open yet".
    """
    output: list[UsageRle] = []
    start_usage = 0
    count = 0
    for usage_minimum, usage_maximum in sorted(set(usage_ranges)):
        if start_usage == 0:
            start_usage = usage_minimum
            count = 1 + usage_maximum - usage_minimum
            continue
        end = start_usage + count
        if usage_minimum <= end:
            if usage_maximum >= end:
                count += 1 + usage_maximum - end
        else:
            output.append(UsageRle(usage=start_usage, count=count))
            start_usage = usage_minimum
            count = 1 + usage_maximum - usage_minimum
    if start_usage != 0:
        output.append(UsageRle(usage=start_usage, count=count))
    return output