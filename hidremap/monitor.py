"""Collection of input changes for the monitoring report."""

from __future__ import annotations

import struct
from dataclasses import dataclass

MONITOR_ITEMS_PER_REPORT = 7

_ITEM = struct.Struct("<IiB")
_HEADER = struct.Struct("<B")


@dataclass(frozen=True)
class MonitorItem:
    """One observed input change."""

    usage: int
    value: int
    hub_port: int


class Monitor:
    """Tracks input state and queues changed usages for a monitor report."""

    def __init__(self, report_id: int = 0) -> None:
        self.report_id = report_id
        self.enabled = False
        self._input_state: dict[int, int] = {}
        self._items: list[MonitorItem] = []

    @property
    def pending(self) -> tuple[MonitorItem, ...]:
        """Items queued for the next report."""
        return tuple(self._items)

    def set_enabled(self, enabled: bool) -> None:
        """Turn monitoring on or off; a change forgets the tracked input state."""
        if self.enabled != enabled:
            self._input_state.clear()
            self.enabled = enabled

    def queue(self, usage: int, value: int, hub_port: int) -> bool:
        """Queue an item; returns False when the report is already full."""
        if len(self._items) >= MONITOR_ITEMS_PER_REPORT:
            return False
        self._items.append(MonitorItem(usage, value, hub_port))
        return True

    def observe(self, usage: int, value: int, interface_idx: int, hub_port: int, is_relative: bool, size: int) -> None:
        """Record a value read from a report, queueing it when it changed.

        Relative usages are queued whenever they are non-zero. One-bit
        absolute usages are tracked per interface as bits of a mask.
        """
        if is_relative:
            if value != 0:
                self.queue(usage, value, hub_port)
            return
        previous = self._input_state.get(usage, 0)
        if size == 1:
            if value != (1 & (previous >> interface_idx)):
                self.queue(usage, value, hub_port)
            if value:
                self._input_state[usage] = previous | (1 << interface_idx)
            else:
                self._input_state[usage] = previous & ~(1 << interface_idx)
        else:
            if value != previous:
                self.queue(usage, value, hub_port)
            self._input_state[usage] = value

    def take_report(self) -> bytes | None:
        """Return the packed monitor report and start a new one, or None if nothing is queued."""
        if not self._items:
            return None
        items = self._items + [MonitorItem(0, 0, 0)] * (MONITOR_ITEMS_PER_REPORT - len(self._items))
        report = _HEADER.pack(self.report_id) + b"".join(
            _ITEM.pack(item.usage & 0xFFFFFFFF, item.value, item.hub_port & 0xFF) for item in items
        )
        self._items = []
        return report