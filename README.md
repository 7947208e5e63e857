# hidremap

A pure-Python engine for remapping HID input reports. Values read from
the reports of connected devices go in; reports for the device being
presented come out. It supports:

- mapping any input usage to any output usage, with scaling
- up to four layers, with sticky, tap and hold mappings
- macros, queued and played back one entry per frame
- a stack-based expression language (`Op`) for computed inputs, with
  registers, trigonometry, d-pad synthesis and per-port lookups
- GPIO and digital potentiometer targets, written into bit buffers
- MIDI event packets as input usages
- a monitor that collects changes in input usages into monitor reports

The package has no dependencies outside the standard library.

## Installation

```
pip install hidremap
```

## Modules

- `hidremap.types`: the enums `Op`, `ConfigCommand` and `MutexId`, the
  records `UsageDef`, `MappingConfig`, `ExprElem`, `TapHoldState`,
  `MapSource`, `OutUsageDef`, `ReverseMapping` and `UsageRle`, and the
  usage page constants (`LAYERS_USAGE_PAGE`, `MACRO_USAGE_PAGE`,
  `EXPR_USAGE_PAGE`, `GPIO_USAGE_PAGE`, `REGISTER_USAGE_PAGE`,
  `MIDI_USAGE_PAGE`, ...) and mapping flags.
- `hidremap.bits`: LSB-first bit-field access into report buffers
  (`get_bit`, `get_bits`, `put_bit`, `put_bits`), `sign_extend`, and
  `rlencode`, which merges usage ranges into runs.
- `hidremap.state`: `StateStore`, a bounded set of `StateSlot`s keyed
  by usage and hub port; `OutOfStateSlots` is raised when it is full.
- `hidremap.expressions`: `ExpressionEngine`, which validates and
  evaluates expressions, plus `is_expr_valid` and `dpad`.
- `hidremap.inputs`: `read_value`, `array_range_hits`, `is_rollover`
  and `decode_midi`.
- `hidremap.monitor`: `Monitor` and `MonitorItem`; `take_report()`
  packs up to seven items into a monitor report.
- `hidremap.tick`: `TickFlag`, a thread-safe "tick pending" flag.
- `hidremap.engine`: `Remapper`, which ties the above together.

## Usage

```python
from hidremap.engine import Remapper
from hidremap.types import MappingConfig, UsageDef

KEY_A, KEY_B = 0x00070004, 0x00070005

remapper = Remapper(clock=lambda: 0)  # microseconds

# Our device: report 1, one byte, A in bit 0 and B in bit 1.
remapper.set_our_descriptor(
    {1: {KEY_A: UsageDef(report_id=1, size=1, bitpos=0),
         KEY_B: UsageDef(report_id=1, size=1, bitpos=1)}},
    {1: 1},
)

# A connected device on interface 0x0100: B in bit 0 of its report.
remapper.their_usages[0x0100] = {0: {KEY_B: UsageDef(size=1, bitpos=0)}}
remapper.device_connected(interface=0x0100, hub_port=1)

# Pressing B on the device produces A.
remapper.set_mapping([MappingConfig(target_usage=KEY_A, source_usage=KEY_B)])

remapper.handle_received_report(b"\x01", interface=0x0100)
remapper.process_mapping(auto_repeat=False)
remapper.send_report(lambda interface, data: print(interface, data.hex()) or True)
# prints: 0 0101
```

Expressions and macros are set on the engine directly:
`remapper.expressions = [[ExprElem(Op.PUSH, 1000), ...]]` and
`remapper.macros = [[[usage, ...], ...]]`. Settings such as
`tap_hold_threshold`, `partial_scroll_timeout`, `macro_entry_duration`,
`unmapped_passthrough_layer_mask` and `resolution_multiplier` are plain
attributes. `remapper.monitor.set_enabled(True)` turns on monitoring,
and `send_monitor_report()` hands the packed report to the callback on
interface 1. `stats()` returns and resets the received/sent counters.

Usages are 32-bit values: the usage page in the high 16 bits and the
usage ID in the low 16 bits. Values in expressions and scalings are
fixed-point, multiplied by 1000.

## What it does not do

- It does not parse HID report descriptors. The caller fills in the
  `UsageDef` tables (`set_our_descriptor`, `remapper.their_usages`,
  `has_report_id_theirs`, `interface_index`) itself.
- It does not talk to USB, serial links or GPIO pins. Reports are passed
  in as bytes and out through a callback; GPIO and potentiometer targets
  only set bits in `gpio_out_state` and `digipot_state`.
- It has no handler for the configuration interface and does not store
  configuration; `ConfigCommand` only names the commands.
- Output reports to connected devices are not produced.