"""Per-usage input state slots keyed by usage and hub port."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from .types import TapHoldState

MAX_INPUT_STATES = 1024


class OutOfStateSlots(Exception):
    """Raised when every input state slot is already in use."""


@dataclass
class StateSlot:
    """Current and previous value of one input, plus its tap/hold and sticky state."""

    value: int = 0
    prev: int = 0
    tap_hold: TapHoldState = field(default_factory=TapHoldState)
    sticky: int = 0


def _key(usage: int, hub_port: int) -> tuple[int, int]:
    return (hub_port & 0xFF, usage & 0xFFFFFFFF)


class StateStore:
    """A bounded collection of input state slots.

    ``new_slots_assigned`` becomes true whenever :meth:`get` creates a slot on
    demand, so that derived lookup tables can be rebuilt.
    """

    def __init__(self, capacity: int = MAX_INPUT_STATES) -> None:
        self.capacity = capacity
        self._slots: dict[tuple[int, int], StateSlot] = {}
        self.new_slots_assigned = False

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[StateSlot]:
        return iter(self._slots.values())

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        usage, hub_port = key
        return _key(usage, hub_port) in self._slots

    def assign(self, usage: int, hub_port: int) -> StateSlot:
        """Return the slot for ``usage`` on ``hub_port``, creating it if needed."""
        key = _key(usage, hub_port)
        slot = self._slots.get(key)
        if slot is None:
            if len(self._slots) >= self.capacity:
                raise OutOfStateSlots(f"out of input state slots ({self.capacity} in use)")
            slot = StateSlot()
            self._slots[key] = slot
        return slot

    def get(self, usage: int, hub_port: int, assign_if_absent: bool = False) -> StateSlot | None:
        """Return the slot for ``usage`` on ``hub_port`` or None.

        With ``assign_if_absent`` a missing slot is created when capacity allows.
        """
        slot = self._slots.get(_key(usage, hub_port))
        if slot is not None or not assign_if_absent:
            return slot
        try:
            slot = self.assign(usage, hub_port)
        except OutOfStateSlots:
            return None
        self.new_slots_assigned = True
        return slot

    def clear(self) -> None:
        """Drop every slot."""
        self._slots.clear()

    def snapshot_previous(self) -> None:
        """Copy every slot's current value into its previous value."""
        for slot in self._slots.values():
            slot.prev = slot.value