"""The remapping engine: turns received input reports into outgoing reports."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict, deque
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, replace

from .bits import get_bits, put_bits, rlencode, sign_extend
from .expressions import ExpressionEngine
from .inputs import array_range_hits, decode_midi, is_rollover, read_value
from .monitor import Monitor
from .state import OutOfStateSlots, StateSlot, StateStore
from .types import (
    DIGIPOT_USAGE_PAGE,
    EXPR_USAGE_PAGE,
    GPIO_USAGE_PAGE,
    H_SCROLL_USAGE,
    LAYERS_USAGE_PAGE,
    MACRO_USAGE_PAGE,
    NLAYERS,
    NREGISTERS,
    OUR_OUT_INTERFACE,
    REGISTER_USAGE_PAGE,
    ROLLOVER_USAGE,
    USAGE_PAGE_MASK,
    V_SCROLL_USAGE,
    ExprElem,
    MapSource,
    MappingConfig,
    Op,
    OutUsageDef,
    ReverseMapping,
    UsageDef,
    UsageRle,
)

logger = logging.getLogger(__name__)

OUTGOING_QUEUE_SIZE = 8
RESOLUTION_MULTIPLIER = 120
V_RESOLUTION_BITMASK = 1 << 0
H_RESOLUTION_BITMASK = 1 << 2
_RESOLUTION_MASKS = (V_RESOLUTION_BITMASK, H_RESOLUTION_BITMASK)

SendReport = Callable[[int, bytes], bool]


def _page(usage: int) -> int:
    return usage & USAGE_PAGE_MASK


def _tdiv(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


@dataclass
class _TapHoldUsage:
    slot: StateSlot
    pressed_at: int = 0


@dataclass
class _StickyUsage:
    slot: StateSlot
    layer_mask: int


@dataclass
class _MacroEntry:
    duration_left: int
    items: list[int]


class Remapper:
    """Maps inputs from connected devices onto the reports of our own device.

    ``clock`` returns the current time in microseconds.
    """

    def __init__(self, clock: Callable[[], int]) -> None:
        self.clock = clock
        self.state = StateStore()
        self.expr = ExpressionEngine(self.state)
        self.monitor = Monitor()
        self.macros: list[list[list[int]]] = []
        self.mappings: list[MappingConfig] = []

        self.suspended = False
        self.partial_scroll_timeout = 1_000_000
        self.tap_hold_threshold = 200_000
        self.macro_entry_duration = 1
        self.unmapped_passthrough_layer_mask = 0
        self.resolution_multiplier = 0

        self.our_usages: dict[int, dict[int, UsageDef]] = {}
        self.our_usages_flat: dict[int, UsageDef] = {}
        self.our_usages_rle: list[UsageRle] = []
        self.reports: dict[int, bytearray] = {}
        self.prev_reports: dict[int, bytearray] = {}
        self.report_masks_relative: dict[int, bytearray] = {}
        self.report_masks_absolute: dict[int, bytearray] = {}
        self.report_ids: list[int] = []

        self.their_usages: dict[int, dict[int, dict[int, UsageDef]]] = {}
        self.their_usages_rle: list[UsageRle] = []
        self.has_report_id_theirs: dict[int, bool] = {}
        self.interface_index: dict[int, int] = {}
        self.hub_ports: dict[int, int] = {}

        self.gpio_out_state = bytearray(4)
        self.digipot_state = bytearray(8)
        self.gpio_in_mask = 0
        self.gpio_out_mask = 0

        self.reverse_mapping: list[ReverseMapping] = []
        self.reverse_mapping_macros: list[ReverseMapping] = []
        self.reverse_mapping_layers: list[ReverseMapping] = []
        self._tap_hold_usages: list[_TapHoldUsage] = []
        self._sticky_usages: list[_StickyUsage] = []
        self._tap_sticky_usages: list[_StickyUsage] = []

        self._their_used: dict[int, dict[int, list[tuple[int, UsageDef]]]] = {}
        self._array_range: dict[int, dict[int, list[StateSlot]]] = {}
        self._rollover: dict[int, dict[int, list[UsageDef]]] = {}
        self._relative_slots: list[StateSlot] = []

        self._accumulated: dict[int, int] = defaultdict(int)
        self._macro_queue: deque[_MacroEntry] = deque()
        self._outgoing: deque[tuple[int, bytearray]] = deque()
        self.frame_counter = 0
        self.reports_received = 0
        self.reports_sent = 0

        self._usages_lock = threading.Lock()
        self._macros_lock = threading.Lock()

    @property
    def expressions(self) -> list[list[ExprElem]]:
        return self.expr.expressions

    @expressions.setter
    def expressions(self, value: Sequence[Sequence[ExprElem]]) -> None:
        self.expr.expressions = [list(e) for e in value]
        self.expr.validate()

    @property
    def layer_state_mask(self) -> int:
        return self.expr.layer_state_mask

    @property
    def registers(self) -> list[int]:
        return self.expr.registers

    def set_our_descriptor(self, usages: Mapping[int, Mapping[int, UsageDef]], report_sizes: Mapping[int, int]) -> None:
        """Install the usages and input report sizes of the device we present."""
        self.our_usages = {rid: dict(m) for rid, m in usages.items()}
        self.reports, self.prev_reports = {}, {}
        self.report_masks_relative, self.report_masks_absolute = {}, {}
        self.report_ids = []
        for report_id, size in report_sizes.items():
            self.reports[report_id] = bytearray(size)
            self.prev_reports[report_id] = bytearray(size)
            self.report_masks_relative[report_id] = bytearray(size)
            self.report_masks_absolute[report_id] = bytearray(size)
            self.report_ids.append(report_id)
        self.our_usages_flat = {}
        ranges = set()
        for report_id, usage_map in self.our_usages.items():
            for usage, usage_def in usage_map.items():
                self.our_usages_flat[usage] = usage_def
                ranges.add((usage, usage_def.usage_maximum or usage))
                masks = self.report_masks_relative if usage_def.is_relative else self.report_masks_absolute
                if report_id in masks:
                    put_bits(masks[report_id], usage_def.bitpos, usage_def.size, 0xFFFFFFFF)
        self.our_usages_rle = rlencode(ranges)

    def _assign(self, usage: int, hub_port: int) -> StateSlot | None:
        try:
            return self.state.assign(usage, hub_port)
        except OutOfStateSlots:
            logger.warning("out of input state slots")
            return None

    def set_mapping(self, mappings: Iterable[MappingConfig]) -> None:
        """Rebuild all mapping tables from the configured mappings."""
        self.mappings = list(mappings)
        self.expr.validate()
        reverse_map: dict[tuple[int, int], list[MapSource]] = {}
        sticky_map: dict[tuple[int, int], int] = defaultdict(int)
        tap_sticky_map: dict[tuple[int, int], int] = defaultdict(int)
        tap_hold_set: dict[tuple[int, int], None] = {}
        mapped_on_layers: dict[int, int] = defaultdict(int)
        all_layers = (1 << NLAYERS) - 1

        self.state.clear()
        gpio_in = gpio_out = 0

        for m in self.mappings:
            layer_mask = m.layer_mask & 0xFF
            sp, tp = m.source_port, m.target_port
            if _page(m.target_usage) == LAYERS_USAGE_PAGE:
                layer = m.target_usage & 0xFFFF
                if m.sticky:
                    layer_mask &= ~(1 << layer) & 0xFF
                    mapped_on_layers[m.source_usage] |= (1 << layer) & all_layers
                else:
                    layer_mask |= (1 << layer) & all_layers
            if _page(m.target_usage) == GPIO_USAGE_PAGE:
                gpio_out |= 1 << (m.target_usage & 0xFFFF)
            if _page(m.source_usage) == GPIO_USAGE_PAGE:
                gpio_in |= 1 << (m.source_usage & 0xFFFF)

            slot = self._assign(m.source_usage, sp)
            if slot is not None:
                reverse_map.setdefault((tp, m.target_usage), []).append(MapSource(
                    usage=m.source_usage, scaling=m.scaling, sticky=m.sticky,
                    layer_mask=layer_mask, tap=m.tap, hold=m.hold, slot=slot,
                ))
            if _page(m.source_usage) == EXPR_USAGE_PAGE:
                idx = (m.source_usage & 0xFFFF) - 1
                if 0 <= idx < len(self.expressions):
                    for elem in self.expressions[idx]:
                        if elem.op == Op.PUSH_USAGE:
                            mapped_on_layers[elem.val] |= layer_mask
                            if _page(elem.val) == GPIO_USAGE_PAGE:
                                gpio_in |= 1 << (elem.val & 0xFFFF)
            mapped_on_layers[m.source_usage] |= layer_mask
            key = (sp, m.source_usage)
            if m.sticky:
                if m.tap:
                    tap_sticky_map[key] |= layer_mask
                else:
                    sticky_map[key] |= layer_mask
            if m.tap or m.hold:
                tap_hold_set[key] = None

        for expr in self.expressions:
            for elem in expr:
                if elem.op == Op.PUSH_USAGE:
                    self._assign(elem.val, 0)

        with self._macros_lock:
            for macro in self.macros:
                for usages in macro:
                    for usage in usages:
                        if _page(usage) == GPIO_USAGE_PAGE:
                            gpio_out |= 1 << (usage & 0xFFFF)

        self._sticky_usages = [
            _StickyUsage(slot, mask) for (port, usage), mask in sticky_map.items()
            if (slot := self.state.get(usage, port)) is not None
        ]
        self._tap_sticky_usages = [
            _StickyUsage(slot, mask) for (port, usage), mask in tap_sticky_map.items()
            if (slot := self.state.get(usage, port)) is not None
        ]
        self._tap_hold_usages = [
            _TapHoldUsage(slot) for (port, usage) in tap_hold_set
            if (slot := self.state.get(usage, port)) is not None
        ]

        if self.unmapped_passthrough_layer_mask:
            candidates = list(self.our_usages_flat)
            for usage_map in self.their_usages.get(OUR_OUT_INTERFACE, {}).values():
                candidates.extend(usage_map)
            for usage in candidates:
                unmapped = self.unmapped_passthrough_layer_mask & ~mapped_on_layers[usage] & 0xFF
                if unmapped:
                    slot = self._assign(usage, 0)
                    if slot is not None:
                        reverse_map.setdefault((0, usage), []).append(
                            MapSource(usage=usage, layer_mask=unmapped, slot=slot)
                        )

        self.reverse_mapping, self.reverse_mapping_macros, self.reverse_mapping_layers = [], [], []
        for (hub_port, target), sources in reverse_map.items():
            rev = ReverseMapping(target=target, hub_port=hub_port, sources=sources)
            if _page(target) == GPIO_USAGE_PAGE:
                rev.our_usages.append(OutUsageDef(self.gpio_out_state, 1, target & 0xFFFF))
            elif _page(target) == DIGIPOT_USAGE_PAGE:
                rev.our_usages.append(OutUsageDef(self.digipot_state, 9, (target & 0xFFFF) * 16))
            else:
                our = self.our_usages_flat.get(target)
                if our is not None and our.report_id in self.reports:
                    rev.our_usages.append(OutUsageDef(self.reports[our.report_id], our.size, our.bitpos))
                    rev.is_relative = our.is_relative
            if _page(target) == MACRO_USAGE_PAGE:
                self.reverse_mapping_macros.append(rev)
            elif _page(target) == LAYERS_USAGE_PAGE:
                self.reverse_mapping_layers.append(rev)
            else:
                self.reverse_mapping.append(rev)

        self.gpio_in_mask, self.gpio_out_mask = gpio_in, gpio_out
        self.update_their_descriptor_derivates()

    def update_their_descriptor_derivates(self) -> None:
        """Rebuild the lookup tables derived from the connected devices' usages."""
        relative_set: set[int] = set()
        ranges: set[tuple[int, int]] = set()
        self._relative_slots = []
        self._their_used = {}
        self._array_range = {}
        self._rollover = {}

        for interface, by_report in self.their_usages.items():
            hub_port = self.hub_ports.get(interface >> 8, 0)
            for report_id, usage_map in by_report.items():
                used = self._their_used.setdefault(interface, {}).setdefault(report_id, [])
                arr = self._array_range.setdefault(interface, {}).setdefault(report_id, [])
                roll = self._rollover.setdefault(interface, {}).setdefault(report_id, [])
                for usage, usage_def in usage_map.items():
                    if usage_def.usage_maximum == 0:
                        s0 = self.state.get(usage, 0)
                        sn = self.state.get(usage, hub_port)
                        ranges.add((usage, usage))
                        if usage_def.is_relative:
                            self._relative_slots.extend(s for s in (s0, sn) if s is not None)
                            relative_set.add(usage)
                        if s0 is not None or sn is not None:
                            used.append((usage, replace(usage_def, input_state_0=s0, input_state_n=sn)))
                        if usage == ROLLOVER_USAGE:
                            roll.append(usage_def)
                    else:
                        ranges.add((usage, usage_def.usage_maximum))
                        any_used = False
                        for actual in range(usage, usage_def.usage_maximum + 1):
                            for slot in (self.state.get(actual, 0), self.state.get(actual, hub_port)):
                                if slot is not None:
                                    any_used = True
                                    arr.append(slot)
                            if actual == ROLLOVER_USAGE:
                                roll.append(UsageDef(
                                    size=usage_def.size, bitpos=usage_def.bitpos, is_array=True,
                                    index=usage_def.logical_minimum + actual - usage, count=usage_def.count,
                                ))
                        if any_used:
                            used.append((usage, usage_def))

        self.their_usages_rle = rlencode(ranges)
        for rev in self.reverse_mapping:
            for source in rev.sources:
                source.is_relative = source.usage in relative_set
        # Non-array inputs first, so usages present both ways read correctly.
        for by_report in self._their_used.values():
            for used in by_report.values():
                used.sort(key=lambda item: item[1].is_array)
        self.state.new_slots_assigned = False

    def handle_received_report(self, report: bytes, interface: int, external_report_id: int = 0) -> None:
        """Read the input values carried by a report from a connected device."""
        self.reports_received += 1
        with self._usages_lock:
            report_id = 0
            if self.has_report_id_theirs.get(interface, False):
                if external_report_id != 0:
                    report_id = external_report_id
                else:
                    report_id, report = report[0], report[1:]
            idx = self.interface_index.get(interface, 0)
            hub_port = self.hub_ports.get(interface >> 8, 0)

            if not is_rollover(report, self._rollover.get(interface, {}).get(report_id, ())):
                for slot in self._array_range.get(interface, {}).get(report_id, ()):
                    slot.value &= ~(1 << idx)
                for usage, usage_def in self._their_used.get(interface, {}).get(report_id, ()):
                    if usage_def.usage_maximum == 0:
                        self._read_input(report, usage_def, idx)
                    else:
                        self._read_input_range(report, usage, usage_def, idx, hub_port)

            if self.monitor.enabled:
                for usage, usage_def in self.their_usages.get(interface, {}).get(report_id, {}).items():
                    if usage_def.usage_maximum == 0:
                        value = read_value(report, usage_def)
                        self.monitor.observe(usage, value, idx, hub_port, usage_def.is_relative, usage_def.size)
                    else:
                        for actual in array_range_hits(report, usage_def, usage):
                            if actual & 0xFFFF:
                                self.monitor.queue(actual, 1, hub_port)

    def _read_input(self, report: bytes, usage_def: UsageDef, idx: int) -> None:
        value = read_value(report, usage_def)
        s0, sn = usage_def.input_state_0, usage_def.input_state_n
        if usage_def.is_relative:
            if s0 is not None:
                s0.value += value
            if sn is not None:
                sn.value = value
            return
        if s0 is not None:
            if usage_def.size == 1:
                s0.value = s0.value | (1 << idx) if value else s0.value & ~(1 << idx)
            else:
                s0.value = value
        if sn is not None:
            sn.value = value

    def _read_input_range(self, report: bytes, usage: int, usage_def: UsageDef, idx: int, hub_port: int) -> None:
        for actual in array_range_hits(report, usage_def, usage):
            s0 = self.state.get(actual, 0)
            if s0 is not None:
                s0.value |= 1 << idx
            sn = self.state.get(actual, hub_port)
            if sn is not None:
                sn.value = 1 << idx

    def handle_received_midi(self, hub_port: int, msg: bytes) -> None:
        """Apply a USB MIDI event packet to the input state."""
        decoded = decode_midi(msg)
        if decoded is None:
            return
        usage, value = decoded
        self.set_input_state(usage, value, 0)
        self.set_input_state(usage, value, hub_port)
        if self.monitor.enabled:
            self.monitor.queue(usage, value, hub_port)

    def set_input_state(self, usage: int, state: int, hub_port: int = 0) -> None:
        """Set the state of an input that has a slot; other inputs are ignored."""
        slot = self.state.get(usage, hub_port)
        if slot is not None:
            slot.value = state

    def _handle_scroll(self, source: MapSource, target: int, movement: int, now: int) -> int:
        if self.resolution_multiplier & _RESOLUTION_MASKS[target == H_RESOLUTION_BITMASK]:
            return movement
        if source.accumulated_scroll != 0 and now - source.last_scroll_timestamp > self.partial_scroll_timeout:
            source.accumulated_scroll = 0
        source.last_scroll_timestamp = now
        source.accumulated_scroll += movement
        ticks = _tdiv(source.accumulated_scroll, 1000 * RESOLUTION_MULTIPLIER)
        source.accumulated_scroll -= ticks * 1000 * RESOLUTION_MULTIPLIER
        return ticks * 1000

    def _register(self, usage: int) -> int | None:
        reg = (usage & 0xFFFF) - 1
        return self.registers[reg] if 0 <= reg < NREGISTERS else None

    def process_mapping(self, auto_repeat: bool = False) -> None:
        """Run one frame: update tap/hold, layers, expressions, macros and fill reports."""
        if self.suspended:
            return
        now = self.clock()
        self.frame_counter += 1

        for th in self._tap_hold_usages:
            s = th.slot
            elapsed = now - th.pressed_at
            s.tap_hold.tap = s.value == 0 and s.prev != 0 and elapsed < self.tap_hold_threshold
            s.tap_hold.prev_hold = s.tap_hold.hold
            s.tap_hold.hold = s.value != 0 and s.prev != 0 and elapsed >= self.tap_hold_threshold
            if s.value != 0 and s.prev == 0:
                th.pressed_at = now

        layers = self.expr.layer_state_mask
        for sticky in self._sticky_usages:
            if layers & sticky.layer_mask and sticky.slot.prev == 0 and sticky.slot.value != 0:
                sticky.slot.sticky ^= layers & sticky.layer_mask
        for sticky in self._tap_sticky_usages:
            if layers & sticky.layer_mask and sticky.slot.tap_hold.tap:
                sticky.slot.sticky ^= layers & sticky.layer_mask

        new_layers = 0
        for rev in self.reverse_mapping_layers:
            bit = 1 << (rev.target & 0xFFFF)
            for src in rev.sources:
                s = src.slot
                if not src.sticky:
                    active = s.tap_hold.hold if src.hold else s.value
                    if src.layer_mask & layers and active:
                        new_layers |= bit
                else:
                    pressed = (not src.tap and s.prev == 0 and s.value != 0) or (src.tap and s.tap_hold.tap)
                    if pressed and s.sticky & src.layer_mask and layers & bit:
                        s.sticky &= ~src.layer_mask
                    if s.sticky & src.layer_mask:
                        new_layers |= bit
        layers = (new_layers & 0xFF) or 1
        self.expr.layer_state_mask = layers

        self.expr.port_register = 0
        for i in range(len(self.expressions)):
            result = self.expr.evaluate(i, self.frame_counter * 1000, auto_repeat)
            slot = self.state.get(EXPR_USAGE_PAGE | (i + 1), 0)
            if slot is not None:
                slot.value = result
        if self.state.new_slots_assigned:
            self.update_their_descriptor_derivates()

        for rev in self.reverse_mapping_macros:
            macro = (rev.target & 0xFFFF) - 1
            if not 0 <= macro < len(self.macros):
                continue
            for src in rev.sources:
                s = src.slot
                triggered = (
                    (not src.tap and not src.hold and s.prev == 0 and s.value != 0)
                    or (src.hold and s.tap_hold.hold and not s.tap_hold.prev_hold)
                    or (src.tap and s.tap_hold.tap)
                )
                if layers & src.layer_mask and triggered:
                    with self._macros_lock:
                        for usages in self.macros[macro]:
                            self._macro_queue.append(_MacroEntry(self.macro_entry_duration, list(usages)))

        self.state.snapshot_previous()

        for rev in self.reverse_mapping:
            if rev.is_relative:
                self._apply_relative(rev, layers, auto_repeat, now)
            else:
                self._apply_absolute(rev, layers)

        if self._macro_queue:
            entry = self._macro_queue[0]
            for usage in entry.items:
                if _page(usage) == GPIO_USAGE_PAGE:
                    put_bits(self.gpio_out_state, usage & 0xFFFF, 1, 1)
                else:
                    our = self.our_usages_flat.get(usage)
                    if our is not None and our.report_id in self.reports:
                        put_bits(self.reports[our.report_id], our.bitpos, our.size, 1)
            if entry.duration_left > 0:
                entry.duration_left -= 1
            elif not self._outgoing:
                self._macro_queue.popleft()

        for slot in self._relative_slots:
            slot.value = 0

        for usage, acc in self._accumulated.items():
            if acc == 0:
                continue
            our = self.our_usages_flat.get(usage)
            if our is None or our.report_id not in self.reports:
                continue
            report = self.reports[our.report_id]
            existing = get_bits(report, our.bitpos, our.size)
            if our.logical_minimum < 0:
                existing = sign_extend(existing, our.size)
            truncated = _tdiv(acc, 1000)
            self._accumulated[usage] = acc - truncated * 1000
            if truncated:
                put_bits(report, our.bitpos, our.size, existing + truncated)

        for report_id in self.report_ids:
            report = self.reports[report_id]
            if self._needs_to_be_sent(report_id):
                if len(self._outgoing) == OUTGOING_QUEUE_SIZE:
                    logger.warning("outgoing report queue overflow")
                    break
                last = self._outgoing[-1] if self._outgoing else None
                if last is not None and last[0] == report_id and not self._differ_on_absolute(last[1], report, report_id):
                    self._aggregate_relative(last[1], report, report_id)
                else:
                    self._outgoing.append((report_id, bytearray(report)))
                    self.prev_reports[report_id][:] = report
            report[:] = bytes(len(report))

    def _apply_relative(self, rev: ReverseMapping, layers: int, auto_repeat: bool, now: int) -> None:
        target = rev.target
        for src in rev.sources:
            value = 0
            s = src.slot
            if _page(src.usage) == EXPR_USAGE_PAGE:
                if layers & src.layer_mask:
                    value = s.value
            elif _page(src.usage) == REGISTER_USAGE_PAGE:
                value = self._register(src.usage) or 0
            elif auto_repeat or src.is_relative:
                if src.sticky:
                    value = src.scaling if s.sticky & src.layer_mask else 0
                elif layers & src.layer_mask:
                    state = int(s.tap_hold.hold) if src.hold else s.value
                    value = (state if src.is_relative else int(state != 0)) * src.scaling
            if value:
                if target in (V_SCROLL_USAGE, H_SCROLL_USAGE):
                    self._accumulated[target] += self._handle_scroll(src, target, value * RESOLUTION_MULTIPLIER, now)
                else:
                    self._accumulated[target] += value

    def _apply_absolute(self, rev: ReverseMapping, layers: int) -> None:
        value = 0
        for src in rev.sources:
            s = src.slot
            if _page(src.usage) == EXPR_USAGE_PAGE:
                if layers & src.layer_mask:
                    value = _tdiv(s.value, 1000)
            elif _page(src.usage) == REGISTER_USAGE_PAGE:
                reg = self._register(src.usage)
                if reg is not None:
                    value = _tdiv(reg, 1000)
            elif src.sticky:
                if s.sticky & src.layer_mask:
                    value = 1
            elif layers & src.layer_mask:
                if (src.tap and s.tap_hold.tap) or (src.hold and s.tap_hold.hold):
                    value = 1
                if not src.tap and not src.hold:
                    if src.is_relative:
                        if s.value * src.scaling > 0:
                            value = 1
                    elif s.value:
                        value = s.value
        if value:
            for out in rev.our_usages:
                if out.size == 1:
                    value = 1
                put_bits(out.data, out.bitpos, out.size, value)

    def _needs_to_be_sent(self, report_id: int) -> bool:
        return any(
            (r & rel) or ((r & ab) != (p & ab))
            for r, p, rel, ab in zip(
                self.reports[report_id], self.prev_reports[report_id],
                self.report_masks_relative[report_id], self.report_masks_absolute[report_id],
            )
        )

    def _differ_on_absolute(self, a: bytes, b: bytes, report_id: int) -> bool:
        return any((x & m) != (y & m) for x, y, m in zip(a, b, self.report_masks_absolute[report_id]))

    def _aggregate_relative(self, prev: bytearray, report: bytes, report_id: int) -> None:
        for usage_def in self.our_usages.get(report_id, {}).values():
            if not usage_def.is_relative:
                continue
            val1 = get_bits(report, usage_def.bitpos, usage_def.size)
            if usage_def.logical_minimum < 0:
                val1 = sign_extend(val1, usage_def.size)
            if val1:
                val2 = get_bits(prev, usage_def.bitpos, usage_def.size)
                if usage_def.logical_minimum < 0:
                    val2 = sign_extend(val2, usage_def.size)
                put_bits(prev, usage_def.bitpos, usage_def.size, val1 + val2)

    @property
    def outgoing_count(self) -> int:
        return len(self._outgoing)

    def send_report(self, do_send_report: SendReport) -> bool:
        """Hand the oldest queued report (prefixed with its id) to ``do_send_report``."""
        if self.suspended or not self._outgoing:
            return False
        report_id, data = self._outgoing.popleft()
        sent = do_send_report(0, bytes([report_id]) + bytes(data))
        self.reports_sent += 1
        return bool(sent)

    def send_monitor_report(self, do_send_report: SendReport) -> bool:
        """Send the pending monitor report on interface 1, if any."""
        if self.suspended or not self.monitor.pending:
            return False
        report = self.monitor.take_report()
        return bool(do_send_report(1, report))

    def device_connected(self, interface: int, hub_port: int) -> None:
        """Remember which hub port a newly connected device sits on."""
        self.hub_ports[interface >> 8] = hub_port if hub_port != 0 else 1

    def device_disconnected(self, dev_addr: int) -> None:
        """Forget everything about a disconnected device."""
        with self._usages_lock:
            for interface in [i for i in self.their_usages if i != OUR_OUT_INTERFACE and i >> 8 == dev_addr]:
                del self.their_usages[interface]
                self.has_report_id_theirs.pop(interface, None)
                self.interface_index.pop(interface, None)
        self.hub_ports.pop(dev_addr, None)
        self.update_their_descriptor_derivates()

    def stats(self) -> tuple[int, int]:
        """Return (reports received, reports sent) since the last call and reset them."""
        result = (self.reports_received, self.reports_sent)
        self.reports_received = 0
        self.reports_sent = 0
        return result