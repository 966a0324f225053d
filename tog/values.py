"""TOG runtime values.

Primitives are plain Python objects: ``int``, ``float``, ``str`` and
``bool``. The unit value is the singleton ``UNIT`` and prints as ``none``.

Composite values (arrays, struct instances, enum instances, closures) are
Python objects shared by reference: every binding that holds one observes
the same storage. Struct fields live in a fixed slot list whose layout is
resolved once from the struct definition.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Callable, Iterator, Optional, Union

from tog.ast_nodes import BlockExpr, Param


class Unit:
    """The distinguished unit / ``none`` value."""

    _instance: Optional[Unit] = None

    def __new__(cls) -> Unit:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNIT"


UNIT = Unit()


# ---------------------------------------------------------------------------
# Composite values
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class ArrayValue:
    items: list[Any] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.items)


@dataclass(frozen=True)
class StructLayout:
    """Field names of a struct in declaration order, with slot indices."""
    name: str
    field_names: tuple[str, ...]

    def slot(self, field_name: str) -> Optional[int]:
        try:
            return self.field_names.index(field_name)
        except ValueError:
            return None


@dataclass(eq=False)
class StructValue:
    layout: StructLayout
    slots: list[Any]

    @property
    def type_name(self) -> str:
        return self.layout.name

    def fields(self) -> Iterator[tuple[str, Any]]:
        return zip(self.layout.field_names, self.slots)


@dataclass(eq=False)
class EnumValue:
    """An enum instance. ``payload`` is None for variants without data."""
    enum_name: str
    variant_name: str
    payload: Any = None

    @property
    def has_payload(self) -> bool:
        return self.payload is not None

    def is_variant(self, enum_name: str, variant_name: str) -> bool:
        return self.enum_name == enum_name and self.variant_name == variant_name


@dataclass(eq=False)
class FunctionValue:
    """A user function or closure over its defining environment."""
    name: str
    params: list[Param]
    body: BlockExpr
    closure: Any  # Environment
    bound_self: Any = None

    def bind(self, receiver: Any) -> FunctionValue:
        return replace(self, bound_self=receiver)


@dataclass(eq=False)
class BuiltinFunction:
    """A native function. ``arity`` is an exact count, a (min, max) pair,
    or None for variadic builtins."""
    name: str
    impl: Callable[..., Any]
    arity: Union[int, tuple[int, int], None] = None

    def accepts(self, count: int) -> bool:
        if self.arity is None:
            return True
        if isinstance(self.arity, tuple):
            low, high = self.arity
            return low <= count <= high
        return count == self.arity

    def describe_arity(self) -> str:
        if isinstance(self.arity, tuple):
            return f"{self.arity[0]} to {self.arity[1]}"
        return str(self.arity)


@dataclass(frozen=True)
class RangeValue:
    """Lazy integer sequence [start, end); iterating it twice restarts it."""
    start: int
    end: int

    def __iter__(self) -> Iterator[int]:
        return iter(range(self.start, self.end))

    def __len__(self) -> int:
        return max(self.end - self.start, 0)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_callable(value: Any) -> bool:
    return isinstance(value, (FunctionValue, BuiltinFunction))


def type_name(value: Any) -> str:
    """The name used for method dispatch and in error messages."""
    if isinstance(value, StructValue):
        return value.type_name
    if isinstance(value, EnumValue):
        return value.enum_name
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "string"
    if isinstance(value, ArrayValue):
        return "array"
    if isinstance(value, RangeValue):
        return "range"
    if is_callable(value):
        return "function"
    return "none"


def is_truthy(value: Any) -> bool:
    return value is not False and value is not UNIT


# ---------------------------------------------------------------------------
# Display
# ---------------------------------------------------------------------------

def format_float(value: float) -> str:
    """Shortest round-trippable decimal, never in exponent form.

    Integral floats print without a fractional part: 2.0 -> "2".
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    if value.is_integer():
        return str(int(value))
    text = repr(value)
    if "e" in text or "E" in text:
        text = format(Decimal(text), "f")
    return text


def display(value: Any) -> str:
    """Canonical text of a value, as printed and used by string coercion."""
    if value is UNIT or value is None:
        return "none"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return format_float(value)
    if isinstance(value, str):
        return value
    if isinstance(value, ArrayValue):
        return "[" + ", ".join(display(v) for v in value.items) + "]"
    if isinstance(value, StructValue):
        if not value.slots:
            return f"{value.type_name} {{}}"
        inner = ", ".join(f"{name}: {display(v)}" for name, v in value.fields())
        return f"{value.type_name} {{ {inner} }}"
    if isinstance(value, EnumValue):
        text = f"{value.enum_name}::{value.variant_name}"
        if value.has_payload:
            text += f"({display(value.payload)})"
        return text
    if isinstance(value, FunctionValue):
        return f"<function {value.name}>"
    if isinstance(value, BuiltinFunction):
        return f"<builtin {value.name}>"
    if isinstance(value, RangeValue):
        return f"range({value.start}, {value.end})"
    return repr(value)


# ---------------------------------------------------------------------------
# Equality
# ---------------------------------------------------------------------------

def values_equal(a: Any, b: Any) -> bool:
    """Structural equality. Numbers compare across int/float; bools never
    equal numbers; functions compare by identity."""
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if is_number(a) and is_number(b):
        return a == b
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    if a is UNIT or b is UNIT:
        return a is b
    if isinstance(a, ArrayValue) and isinstance(b, ArrayValue):
        return len(a.items) == len(b.items) and all(
            values_equal(x, y) for x, y in zip(a.items, b.items)
        )
    if isinstance(a, StructValue) and isinstance(b, StructValue):
        return a.layout == b.layout and all(
            values_equal(x, y) for x, y in zip(a.slots, b.slots)
        )
    if isinstance(a, EnumValue) and isinstance(b, EnumValue):
        if not a.is_variant(b.enum_name, b.variant_name):
            return False
        if a.has_payload != b.has_payload:
            return False
        return not a.has_payload or values_equal(a.payload, b.payload)
    if isinstance(a, RangeValue) and isinstance(b, RangeValue):
        return a == b
    return a is b
