import pytest

from hidremap.engine import Remapper
from hidremap.types import (
    EXPR_USAGE_PAGE,
    LAYERS_USAGE_PAGE,
    MIDI_USAGE_PAGE,
    ExprElem,
    MappingConfig,
    Op,
    UsageDef,
)

KEY_A = 0x00070004
KEY_B = 0x00070005
KEY_C = 0x00070006
MOUSE_X = 0x00010030
IFACE = 0x0100


def make_remapper():
    r = Remapper(clock=lambda: 0)
    r.set_our_descriptor(
        {
            1: {
                KEY_A: UsageDef(report_id=1, size=1, bitpos=0),
                KEY_B: UsageDef(report_id=1, size=1, bitpos=1),
            },
            2: {MOUSE_X: UsageDef(report_id=2, size=8, bitpos=0, is_relative=True, logical_minimum=-127)},
        },
        {1: 1, 2: 1},
    )
    r.their_usages = {
        IFACE: {
            0: {
                KEY_A: UsageDef(size=1, bitpos=0),
                KEY_C: UsageDef(size=1, bitpos=1),
                MOUSE_X: UsageDef(size=8, bitpos=8, is_relative=True, logical_minimum=-127),
            }
        }
    }
    return r


def collect(r):
    out = []
    while r.send_report(lambda itf, data: out.append((itf, data)) or True):
        pass
    return out


def test_key_remapped():
    r = make_remapper()
    r.set_mapping([MappingConfig(target_usage=KEY_B, source_usage=KEY_A)])
    r.handle_received_report(bytes([0x01, 0x00]), IFACE)
    r.process_mapping()
    assert collect(r) == [(0, bytes([1, 0b10]))]


def test_unchanged_report_not_resent_and_release_sent():
    r = make_remapper()
    r.set_mapping([MappingConfig(target_usage=KEY_B, source_usage=KEY_A)])
    r.handle_received_report(bytes([0x01, 0x00]), IFACE)
    r.process_mapping()
    collect(r)
    r.process_mapping()
    assert collect(r) == []
    r.handle_received_report(bytes([0x00, 0x00]), IFACE)
    r.process_mapping()
    assert collect(r) == [(0, bytes([1, 0]))]


def test_relative_movement_passes_through():
    r = make_remapper()
    r.set_mapping([MappingConfig(target_usage=MOUSE_X, source_usage=MOUSE_X)])
    r.handle_received_report(bytes([0x00, 5]), IFACE)
    r.process_mapping()
    assert collect(r) == [(0, bytes([2, 5]))]


def test_negative_relative_movement():
    r = make_remapper()
    r.set_mapping([MappingConfig(target_usage=MOUSE_X, source_usage=MOUSE_X)])
    r.handle_received_report(bytes([0x00, 0xFD]), IFACE)
    r.process_mapping()
    assert collect(r) == [(0, bytes([2, 0xFD]))]


def test_layer_activation():
    r = make_remapper()
    r.set_mapping([
        MappingConfig(target_usage=LAYERS_USAGE_PAGE | 1, source_usage=KEY_C),
        MappingConfig(target_usage=KEY_B, source_usage=KEY_A, layer_mask=2),
    ])
    r.handle_received_report(bytes([0x01, 0x00]), IFACE)
    r.process_mapping()
    assert collect(r) == []
    assert r.layer_state_mask == 1
    r.handle_received_report(bytes([0x03, 0x00]), IFACE)
    r.process_mapping()
    assert r.layer_state_mask == 2
    assert collect(r) == [(0, bytes([1, 0b10]))]


def test_expression_drives_target():
    r = make_remapper()
    r.expressions = [[ExprElem(Op.PUSH_USAGE, KEY_A), ExprElem(Op.INPUT_STATE_BINARY)]]
    r.set_mapping([MappingConfig(target_usage=KEY_B, source_usage=EXPR_USAGE_PAGE | 1)])
    r.handle_received_report(bytes([0x01, 0x00]), IFACE)
    r.process_mapping()
    assert collect(r) == [(0, bytes([1, 0b10]))]


def test_midi_input_mapped():
    r = make_remapper()
    note = MIDI_USAGE_PAGE | (0x90 << 8) | 60
    r.set_mapping([MappingConfig(target_usage=KEY_B, source_usage=note)])
    r.handle_received_midi(1, bytes([0x09, 0x90, 60, 100]))
    r.process_mapping()
    assert collect(r) == [(0, bytes([1, 0b10]))]


def test_set_input_state_ignores_unknown_usage():
    r = make_remapper()
    r.set_mapping([MappingConfig(target_usage=KEY_B, source_usage=KEY_A)])
    r.set_input_state(KEY_C, 1)
    assert r.state.get(KEY_C, 0) is None
    r.set_input_state(KEY_A, 1)
    assert r.state.get(KEY_A, 0).value == 1


def test_suspended_sends_nothing():
    r = make_remapper()
    r.set_mapping([MappingConfig(target_usage=KEY_B, source_usage=KEY_A)])
    r.handle_received_report(bytes([0x01, 0x00]), IFACE)
    r.process_mapping()
    r.suspended = True
    assert r.send_report(lambda itf, data: True) is False
    assert r.outgoing_count == 1


def test_stats_count_and_reset():
    r = make_remapper()
    r.set_mapping([MappingConfig(target_usage=KEY_B, source_usage=KEY_A)])
    r.handle_received_report(bytes([0x01, 0x00]), IFACE)
    r.handle_received_report(bytes([0x01, 0x00]), IFACE)
    r.process_mapping()
    collect(r)
    assert r.stats() == (2, 1)
    assert r.stats() == (0, 0)


def test_device_connected_and_disconnected():
    r = make_remapper()
    r.device_connected(IFACE, 0)
    assert r.hub_ports[1] == 1
    r.device_disconnected(1)
    assert 1 not in r.hub_ports
    assert IFACE not in r.their_usages


def test_monitor_report():
    r = make_remapper()
    r.set_mapping([])
    r.monitor.set_enabled(True)
    r.handle_received_report(bytes([0x01, 0x00]), IFACE)
    sent = []
    assert r.send_monitor_report(lambda itf, data: sent.append((itf, data)) or True) is True
    assert sent[0][0] == 1
    assert int.from_bytes(sent[0][1][1:5], "little") == KEY_A
    assert r.send_monitor_report(lambda itf, data: True) is False


@pytest.mark.parametrize("pressed", [0x00, 0x01])
def test_previous_state_tracks_current(pressed):
    r = make_remapper()
    r.set_mapping([MappingConfig(target_usage=KEY_B, source_usage=KEY_A)])
    r.handle_received_report(bytes([pressed, 0x00]), IFACE)
    r.process_mapping()
    slot = r.state.get(KEY_A, 0)
    assert slot.prev == slot.value