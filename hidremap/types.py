"""Core data types shared by the remapping engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any

OUR_OUT_INTERFACE = 0xFFFF

GPIO_USAGE_PAGE = 0xFFF40000
DIGIPOT_USAGE_PAGE = 0xFFF60000
LAYERS_USAGE_PAGE = 0xFFF10000
MACRO_USAGE_PAGE = 0xFFF20000
EXPR_USAGE_PAGE = 0xFFF30000
REGISTER_USAGE_PAGE = 0xFFF50000
MIDI_USAGE_PAGE = 0xFFF70000
USAGE_PAGE_MASK = 0xFFFF0000

ROLLOVER_USAGE = 0x00070001
V_SCROLL_USAGE = 0x00010038
H_SCROLL_USAGE = 0x000C0238

MAPPING_FLAG_STICKY = 1 << 0
MAPPING_FLAG_TAP = 1 << 1
MAPPING_FLAG_HOLD = 1 << 2

NLAYERS = 4
STACK_SIZE = 16
NREGISTERS = 32
NPORTS = 15


class ConfigCommand(IntEnum):
    """Commands accepted on the configuration interface."""

    NO_COMMAND = 0
    RESET_INTO_BOOTSEL = 1
    SET_CONFIG = 2
    GET_CONFIG = 3
    CLEAR_MAPPING = 4
    ADD_MAPPING = 5
    GET_MAPPING = 6
    PERSIST_CONFIG = 7
    GET_OUR_USAGES = 8
    GET_THEIR_USAGES = 9
    SUSPEND = 10
    RESUME = 11
    PAIR_NEW_DEVICE = 12
    CLEAR_BONDS = 13
    FLASH_B_SIDE = 14
    CLEAR_MACROS = 15
    APPEND_TO_MACRO = 16
    GET_MACRO = 17
    INVALID_COMMAND = 18
    CLEAR_EXPRESSIONS = 19
    APPEND_TO_EXPRESSION = 20
    GET_EXPRESSION = 21
    SET_MONITOR_ENABLED = 22


class Op(IntEnum):
    """Operations of the stack-based expression language."""

    PUSH = 0
    PUSH_USAGE = 1
    INPUT_STATE = 2
    ADD = 3
    MUL = 4
    EQ = 5
    TIME = 6
    MOD = 7
    GT = 8
    NOT = 9
    INPUT_STATE_BINARY = 10
    ABS = 11
    DUP = 12
    SIN = 13
    COS = 14
    DEBUG = 15
    AUTO_REPEAT = 16
    RELU = 17
    CLAMP = 18
    SCALING = 19
    LAYER_STATE = 20
    STICKY_STATE = 21
    TAP_STATE = 22
    HOLD_STATE = 23
    BITWISE_OR = 24
    BITWISE_AND = 25
    BITWISE_NOT = 26
    PREV_INPUT_STATE = 27
    PREV_INPUT_STATE_BINARY = 28
    STORE = 29
    RECALL = 30
    SQRT = 31
    ATAN2 = 32
    ROUND = 33
    PORT = 34
    DPAD = 35


class MutexId(Enum):
    """Identifiers of the shared resources guarded by locks."""

    THEIR_USAGES = 0
    MACROS = 1
    EXPRESSIONS = 2


@dataclass
class UsageDef:
    """Where a usage lives inside a report and how to interpret it."""

    report_id: int = 0
    size: int = 0
    bitpos: int = 0
    is_relative: bool = False
    is_array: bool = False
    logical_minimum: int = 0
    index: int = 0
    count: int = 0
    usage_maximum: int = 0
    input_state_0: Any = None
    input_state_n: Any = None


@dataclass
class MappingConfig:
    """One configured mapping from a source usage to a target usage."""

    target_usage: int
    source_usage: int
    scaling: int = 1000
    layer_mask: int = 1
    flags: int = 0
    hub_ports: int = 0

    @property
    def source_port(self) -> int:
        return self.hub_ports & 0x0F

    @property
    def target_port(self) -> int:
        return (self.hub_ports >> 4) & 0x0F

    @property
    def sticky(self) -> bool:
        return bool(self.flags & MAPPING_FLAG_STICKY)

    @property
    def tap(self) -> bool:
        return bool(self.flags & MAPPING_FLAG_TAP)

    @property
    def hold(self) -> bool:
        return bool(self.flags & MAPPING_FLAG_HOLD)


@dataclass(frozen=True)
class ExprElem:
    """A single element of an expression: an operation and its operand."""

    op: Op
    val: int = 0


@dataclass
class TapHoldState:
    """Tap/hold detection state of one input."""

    tap: bool = False
    hold: bool = False
    prev_hold: bool = False


@dataclass
class MapSource:
    """A source feeding a target usage in a reverse mapping."""

    usage: int
    scaling: int = 1000
    sticky: bool = False
    layer_mask: int = 1
    tap: bool = False
    hold: bool = False
    slot: Any = None
    is_relative: bool = False
    accumulated_scroll: int = 0
    last_scroll_timestamp: int = 0


@dataclass
class OutUsageDef:
    """A bit field inside an output buffer that a target usage writes to."""

    data: bytearray
    size: int
    bitpos: int


@dataclass
class ReverseMapping:
    """A target usage together with all the sources that drive it."""

    target: int
    hub_port: int = 0
    is_relative: bool = False
    our_usages: list[OutUsageDef] = field(default_factory=list)
    sources: list[MapSource] = field(default_factory=list)


@dataclass(frozen=True)
class UsageRle:
    """A run of consecutive usages."""

    usage: int
    count: int