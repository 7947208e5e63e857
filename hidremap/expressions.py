"""Stack-based expression language evaluated once per frame."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence

from .state import StateStore
from .types import NPORTS, NREGISTERS, STACK_SIZE, ExprElem, Op

logger = logging.getLogger(__name__)

_DPAD_TABLE = (8, 6, 2, 8, 0, 7, 1, 0, 4, 5, 3, 4, 8, 6, 2, 8)

_PUSHING = (Op.PUSH, Op.PUSH_USAGE, Op.AUTO_REPEAT, Op.TIME, Op.SCALING, Op.LAYER_STATE)
_UNARY = (
    Op.NOT, Op.INPUT_STATE, Op.INPUT_STATE_BINARY, Op.ABS, Op.SIN, Op.COS, Op.RELU,
    Op.STICKY_STATE, Op.TAP_STATE, Op.HOLD_STATE, Op.BITWISE_NOT, Op.PREV_INPUT_STATE,
    Op.PREV_INPUT_STATE_BINARY, Op.RECALL, Op.SQRT, Op.ROUND,
)
_BINARY = (Op.ADD, Op.MUL, Op.EQ, Op.GT, Op.MOD, Op.BITWISE_OR, Op.BITWISE_AND, Op.ATAN2)

# op -> (operands required on the stack, change in stack depth)
_STACK_EFFECT: dict[Op, tuple[int, int]] = {
    Op.DEBUG: (0, 0),
    Op.DUP: (1, 1),
    Op.CLAMP: (3, -2),
    Op.STORE: (2, -2),
    Op.PORT: (1, -1),
    Op.DPAD: (4, -3),
    **{op: (0, 1) for op in _PUSHING},
    **{op: (1, 0) for op in _UNARY},
    **{op: (2, -1) for op in _BINARY},
}


def _i32(value: int) -> int:
    """Wrap to a signed 32-bit integer."""
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _tdiv(a: int, b: int) -> int:
    """Integer division truncating toward zero."""
    if b == 0:
        return 0
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def _tmod(a: int, b: int) -> int:
    """Remainder with the sign of the dividend."""
    if b == 0:
        return 0
    return a - b * _tdiv(a, b)


def dpad(left: bool, right: bool, up: bool, down: bool) -> int:
    """Return the hat switch direction (0-7, 8 for none) for the given buttons."""
    index = bool(left) | (bool(right) << 1) | (bool(up) << 2) | (bool(down) << 3)
    return _DPAD_TABLE[index]


def is_expr_valid(elems: Iterable[ExprElem]) -> bool:
    """Check that an expression never underflows or overflows the stack."""
    on_stack = 0
    for elem in elems:
        try:
            needed, delta = _STACK_EFFECT[Op(elem.op)]
        except (KeyError, ValueError):
            logger.warning("unknown op in expression: %r", elem.op)
            return False
        if on_stack < needed or on_stack + delta > STACK_SIZE:
            return False
        on_stack += delta
    return True


class ExpressionEngine:
    """Evaluates configured expressions against the input state store.

    ``layer_state_mask``, ``port_register`` and ``registers`` are shared with
    the remapping engine, which reads and updates them between evaluations.
    """

    def __init__(self, state: StateStore, expressions: Sequence[Sequence[ExprElem]] = ()) -> None:
        self.state = state
        self.expressions: list[list[ExprElem]] = [list(e) for e in expressions]
        self.valid: list[bool] = []
        self.registers: list[int] = [0] * NREGISTERS
        self.layer_state_mask = 1
        self.port_register = 0
        self.validate()

    def validate(self) -> None:
        """Recompute which expressions are safe to evaluate."""
        self.valid = [is_expr_valid(expr) for expr in self.expressions]

    def _slot(self, usage: int):
        return self.state.get(usage, self.port_register, True)

    def _register_index(self, value: int) -> int | None:
        reg = _tdiv(value, 1000) - 1
        return reg if 0 <= reg < NREGISTERS else None

    def evaluate(self, index: int, now: int, auto_repeat: bool = False) -> int:
        """Evaluate expression ``index`` and return the value on top of the stack (or 0)."""
        if not 0 <= index < len(self.expressions) or not self.valid[index]:
            return 0
        stack: list[int] = []
        debug = False
        for elem in self.expressions[index]:
            op = elem.op
            if op in (Op.PUSH, Op.PUSH_USAGE):
                stack.append(_i32(elem.val))
            elif op is Op.INPUT_STATE:
                slot = self._slot(stack[-1])
                stack[-1] = _i32(slot.value * 1000) if slot is not None else 0
            elif op is Op.INPUT_STATE_BINARY:
                slot = self._slot(stack[-1])
                stack[-1] = 1000 if slot is not None and slot.value else 0
            elif op is Op.PREV_INPUT_STATE:
                slot = self._slot(stack[-1])
                stack[-1] = _i32(slot.prev * 1000) if slot is not None else 0
            elif op is Op.PREV_INPUT_STATE_BINARY:
                slot = self._slot(stack[-1])
                stack[-1] = 1000 if slot is not None and slot.prev else 0
            elif op is Op.STICKY_STATE:
                slot = self._slot(stack[-1])
                if slot is not None:
                    stack[-1] = slot.sticky
            elif op is Op.TAP_STATE:
                slot = self._slot(stack[-1])
                if slot is not None:
                    stack[-1] = 1000 if slot.tap_hold.tap else 0
            elif op is Op.HOLD_STATE:
                slot = self._slot(stack[-1])
                if slot is not None:
                    stack[-1] = 1000 if slot.tap_hold.hold else 0
            elif op in _BINARY:
                b = stack.pop()
                a = stack[-1]
                stack[-1] = self._binary(op, a, b)
            elif op is Op.TIME:
                stack.append(now & 0x7FFFFFFF)
            elif op is Op.NOT:
                stack[-1] = 0 if stack[-1] else 1000
            elif op is Op.ABS:
                stack[-1] = _i32(abs(stack[-1]))
            elif op is Op.DUP:
                stack.append(stack[-1])
            elif op is Op.SIN:
                stack[-1] = int(math.sin(stack[-1] * math.pi / 180000.0) * 1000)
            elif op is Op.COS:
                stack[-1] = int(math.cos(stack[-1] * math.pi / 180000.0) * 1000)
            elif op is Op.DEBUG:
                debug = True
                logger.info("expr %d", index + 1)
            elif op is Op.AUTO_REPEAT:
                stack.append(1000 if auto_repeat else 0)
            elif op is Op.RELU:
                stack[-1] = max(stack[-1], 0)
            elif op is Op.SCALING:
                stack.append(1000)
            elif op is Op.CLAMP:
                upper = stack.pop()
                lower = stack.pop()
                value = stack[-1]
                if value < lower:
                    value = lower
                if value > upper:
                    value = upper
                stack[-1] = value
            elif op is Op.LAYER_STATE:
                stack.append(self.layer_state_mask)
            elif op is Op.BITWISE_NOT:
                stack[-1] = ~stack[-1]
            elif op is Op.STORE:
                reg = self._register_index(stack.pop())
                value = stack.pop()
                if reg is not None:
                    self.registers[reg] = value
            elif op is Op.RECALL:
                reg = self._register_index(stack[-1])
                if reg is not None:
                    stack[-1] = self.registers[reg]
            elif op is Op.SQRT:
                if stack[-1] >= 0:
                    stack[-1] = int(math.sqrt(stack[-1]) * 31.622776601683793)
            elif op is Op.ROUND:
                value = _i32(stack[-1] + 500)
                stack[-1] = _i32(value - value % 1000)
            elif op is Op.PORT:
                port = _tdiv(stack.pop(), 1000) & 0xFF
                self.port_register = port if port <= NPORTS else 0
            elif op is Op.DPAD:
                down = stack.pop()
                up = stack.pop()
                right = stack.pop()
                stack[-1] = 1000 * dpad(stack[-1] != 0, right != 0, up != 0, down != 0)
            else:
                logger.warning("unknown op: %r", op)
                return 0
            if debug:
                logger.info(" ".join(f"0x{v & 0xFFFFFFFF:08x}" for v in stack))
        return stack[-1] if stack else 0

    @staticmethod
    def _binary(op: Op, a: int, b: int) -> int:
        if op is Op.ADD:
            return _i32(a + b)
        if op is Op.MUL:
            return _i32(_tdiv(a * b, 1000))
        if op is Op.EQ:
            return 1000 if a == b else 0
        if op is Op.GT:
            return 1000 if a > b else 0
        if op is Op.MOD:
            return _tmod(a, b)
        if op is Op.BITWISE_OR:
            return _i32(a | b)
        if op is Op.BITWISE_AND:
            return _i32(a & b)
        # ATAN2, result in thousandths of a degree
        return _i32(int(math.atan2(a, b) * 57295.779513))