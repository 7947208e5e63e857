"""Decoding of input values from incoming device reports and MIDI messages."""

from __future__ import annotations

from collections.abc import Iterable

from .bits import get_bits, sign_extend
from .types import MIDI_USAGE_PAGE, UsageDef


def _array_elements(report: bytes | bytearray, usage_def: UsageDef) -> Iterable[int]:
    for i in range(usage_def.count):
        yield get_bits(report, usage_def.bitpos + i * usage_def.size, usage_def.size)


def read_value(report: bytes | bytearray, usage_def: UsageDef) -> int:
    """Return the value of one usage in ``report``.

    For array usages the value is 1 when any array element holds the usage's
    index and 0 otherwise. Variable usages are sign-extended when their
    logical minimum is negative; the result is a signed 32-bit integer.
    """
    if usage_def.is_array:
        return int(any(element == usage_def.index for element in _array_elements(report, usage_def)))
    value = get_bits(report, usage_def.bitpos, usage_def.size)
    if usage_def.logical_minimum < 0:
        return sign_extend(value, usage_def.size)
    return sign_extend(value, 32)


def array_range_hits(report: bytes | bytearray, usage_def: UsageDef, source_usage: int) -> list[int]:
    """Return the usages reported by the elements of an array covering a usage range.

    ``source_usage`` is the first usage of the range and
    ``usage_def.usage_maximum`` the last. Elements outside the logical range
    are ignored. A usage appears once for every element that reports it.
    """
    lower = usage_def.logical_minimum & 0xFFFFFFFF
    upper = (usage_def.logical_minimum + usage_def.usage_maximum - source_usage) & 0xFFFFFFFF
    return [
        (source_usage + bits - usage_def.logical_minimum) & 0xFFFFFFFF
        for bits in _array_elements(report, usage_def)
        if lower <= bits <= upper
    ]


def is_rollover(report: bytes | bytearray, usage_defs: Iterable[UsageDef]) -> bool:
    """Return True when any of the rollover usages is active in ``report``."""
    for usage_def in usage_defs:
        if usage_def.is_array:
            if any(element == usage_def.index for element in _array_elements(report, usage_def)):
                return True
        elif get_bits(report, usage_def.bitpos, usage_def.size) != 0:
            return True
    return False


def decode_midi(msg: bytes | bytearray) -> tuple[int, int] | None:
    """Translate a 4-byte USB MIDI event packet into ``(usage, value)``.

    The cable number and code index byte is ignored. Note-off events map to
    the same usage as the matching note-on with value 0. Returns None for
    messages that carry no input.
    """
    if len(msg) < 4:
        raise ValueError(f"USB MIDI packet must be 4 bytes, got {len(msg)}")
    status, data1, data2 = msg[1], msg[2], msg[3]
    kind = status & 0xF0
    if kind == 0x80:
        return MIDI_USAGE_PAGE | ((status | 0x10) << 8) | data1, 0
    if kind in (0x90, 0xA0, 0xB0):
        return MIDI_USAGE_PAGE | (status << 8) | data1, data2
    if kind in (0xC0, 0xD0):
        return MIDI_USAGE_PAGE | (status << 8), data1
    if kind == 0xE0:
        return MIDI_USAGE_PAGE | (status << 8), ((data2 << 7) & 0xFFFF) | data1
    return None