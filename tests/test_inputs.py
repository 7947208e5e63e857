import pytest

from hidremap.inputs import array_range_hits, decode_midi, is_rollover, read_value
from hidremap.types import MIDI_USAGE_PAGE, UsageDef


def test_read_value_array_found():
    usage_def = UsageDef(size=8, bitpos=0, is_array=True, index=4, count=3)
    assert read_value(bytes([0, 4, 0]), usage_def) == 1


def test_read_value_array_missing():
    usage_def = UsageDef(size=8, bitpos=0, is_array=True, index=4, count=3)
    assert read_value(bytes([1, 2, 3]), usage_def) == 0


def test_read_value_signed():
    usage_def = UsageDef(size=8, bitpos=8, logical_minimum=-128)
    assert read_value(bytes([0, 0xFF]), usage_def) == -1


def test_read_value_unsigned():
    usage_def = UsageDef(size=8, bitpos=8, logical_minimum=0)
    assert read_value(bytes([0, 0xFF]), usage_def) == 0xFF


def test_read_value_single_bit():
    usage_def = UsageDef(size=1, bitpos=3)
    assert read_value(bytes([0b1000]), usage_def) == 1
    assert read_value(bytes([0b0111]), usage_def) == 0


def test_read_value_beyond_report_is_zero():
    usage_def = UsageDef(size=8, bitpos=64, logical_minimum=-128)
    assert read_value(bytes([0xFF]), usage_def) == 0


def test_array_range_hits_keyboard():
    usage_def = UsageDef(size=8, bitpos=16, is_array=True, count=6, logical_minimum=0, usage_maximum=0x000700FF)
    report = bytes([0, 0, 4, 5, 0, 0, 0, 0])
    hits = array_range_hits(report, usage_def, 0x00070000)
    assert hits == [0x00070004, 0x00070005] + [0x00070000] * 4


def test_array_range_hits_out_of_range_ignored():
    usage_def = UsageDef(size=8, bitpos=0, is_array=True, count=2, logical_minimum=1, usage_maximum=0x00090003)
    hits = array_range_hits(bytes([9, 2]), usage_def, 0x00090001)
    assert hits == [0x00090002]


def test_is_rollover_variable():
    rollover = UsageDef(size=1, bitpos=2)
    assert is_rollover(bytes([0b100]), [rollover])
    assert not is_rollover(bytes([0b011]), [rollover])


def test_is_rollover_array():
    rollover = UsageDef(size=8, bitpos=0, is_array=True, index=1, count=2)
    assert is_rollover(bytes([0, 1]), [rollover])
    assert not is_rollover(bytes([0, 0]), [rollover])


def test_is_rollover_empty():
    assert is_rollover(bytes([0xFF]), []) is False


def test_decode_midi_note_on():
    assert decode_midi(bytes([0x09, 0x90, 60, 100])) == (MIDI_USAGE_PAGE | (0x90 << 8) | 60, 100)


def test_decode_midi_note_off_matches_note_on_usage():
    note_on = decode_midi(bytes([0x09, 0x93, 60, 100]))
    note_off = decode_midi(bytes([0x08, 0x83, 60, 40]))
    assert note_off[0] == note_on[0]
    assert note_off[1] == 0


def test_decode_midi_control_change():
    assert decode_midi(bytes([0x0B, 0xB0, 7, 64])) == (MIDI_USAGE_PAGE | (0xB0 << 8) | 7, 64)


def test_decode_midi_program_change():
    assert decode_midi(bytes([0x0C, 0xC2, 5, 0])) == (MIDI_USAGE_PAGE | (0xC2 << 8), 5)


def test_decode_midi_pitch_bend_center():
    assert decode_midi(bytes([0x0E, 0xE0, 0x00, 0x40])) == (MIDI_USAGE_PAGE | (0xE0 << 8), 8192)


def test_decode_midi_unknown_is_none():
    assert decode_midi(bytes([0x0F, 0xF8, 0, 0])) is None


def test_decode_midi_short_packet():
    with pytest.raises(ValueError):
        decode_midi(bytes([0x09, 0x90]))