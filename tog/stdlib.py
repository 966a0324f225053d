"""TOG builtin functions.

Every builtin is registered with the ``@builtin`` decorator, which records
its name and arity. ``BUILTINS`` is a read-only view of that table.
Implementations receive a ``CallContext`` first, giving them the output
stream and a way to call back into TOG functions (for map/filter/reduce),
followed by the evaluated arguments.

The gpu_* and parallel_* reductions are sequential reference
implementations: each works on a snapshot of its input array.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, TextIO, Union

from tog.errors import PanicError, SourceLocation, TogRuntimeError, TogTypeError
from tog.values import (
    UNIT, ArrayValue, BuiltinFunction, EnumValue, RangeValue,
    display, is_callable, is_int, is_number, is_truthy, type_name, values_equal,
)


BATCH_SIZE = 1024


@dataclass
class CallContext:
    output: TextIO
    call: Callable[[Any, list[Any]], Any]
    location: Optional[SourceLocation] = None


_registry: dict[str, BuiltinFunction] = {}

# Read-only view; only the decorator below adds entries, at import time.
BUILTINS: Mapping[str, BuiltinFunction] = MappingProxyType(_registry)


def builtin(name: str, arity: Union[int, tuple[int, int], None]):
    """Register the decorated function as the builtin ``name``."""
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        _registry[name] = BuiltinFunction(name=name, impl=fn, arity=arity)
        return fn
    return decorator


# ---------------------------------------------------------------------------
# Argument helpers
# ---------------------------------------------------------------------------

def _type_error(fn: str, expected: str, value: Any, ctx: CallContext) -> TogTypeError:
    return TogTypeError(
        f"{fn}() expects {expected}, got {type_name(value)}",
        ctx.location,
        {"function": fn, "expected": expected, "actual": type_name(value)},
    )


def _array(fn: str, value: Any, ctx: CallContext) -> ArrayValue:
    if not isinstance(value, ArrayValue):
        raise _type_error(fn, "an array", value, ctx)
    return value


def _string(fn: str, value: Any, ctx: CallContext) -> str:
    if not isinstance(value, str):
        raise _type_error(fn, "a string", value, ctx)
    return value


def _int(fn: str, value: Any, ctx: CallContext) -> int:
    if not is_int(value):
        raise _type_error(fn, "an int", value, ctx)
    return value


def _number(fn: str, value: Any, ctx: CallContext) -> Union[int, float]:
    if not is_number(value):
        raise _type_error(fn, "a number", value, ctx)
    return value


def _function(fn: str, value: Any, ctx: CallContext) -> Any:
    if not is_callable(value):
        raise _type_error(fn, "a function", value, ctx)
    return value


def _numeric_snapshot(fn: str, value: Any, ctx: CallContext) -> list[float]:
    items = list(_array(fn, value, ctx).items)
    for item in items:
        if not is_number(item):
            raise TogTypeError(
                f"{fn}() requires an array of numbers, found {type_name(item)}",
                ctx.location,
                {"function": fn, "actual": type_name(item)},
            )
    return [float(x) for x in items]


def _enum(fn: str, value: Any, enum_name: str, ctx: CallContext) -> EnumValue:
    if not isinstance(value, EnumValue) or value.enum_name != enum_name:
        raise _type_error(fn, f"a {enum_name}", value, ctx)
    return value


def _option_or_result(fn: str, value: Any, ctx: CallContext) -> EnumValue:
    if not isinstance(value, EnumValue) or value.enum_name not in ("Option", "Result"):
        raise _type_error(fn, "an Option or Result", value, ctx)
    return value


def _is_success(value: EnumValue) -> bool:
    return value.variant_name in ("Some", "Ok")


# ---------------------------------------------------------------------------
# I/O and core
# ---------------------------------------------------------------------------

@builtin("print", None)
def _print(ctx: CallContext, *args: Any) -> Any:
    ctx.output.write("".join(display(a) for a in args) + "\n")
    ctx.output.flush()
    return UNIT


@builtin("len", 1)
def _len(ctx: CallContext, value: Any) -> int:
    if isinstance(value, (str, ArrayValue, RangeValue)):
        return len(value)
    raise _type_error("len", "a string or array", value, ctx)


@builtin("to_string", 1)
def _to_string(ctx: CallContext, value: Any) -> str:
    return display(value)


@builtin("range", (1, 2))
def _range(ctx: CallContext, *args: Any) -> RangeValue:
    if len(args) == 1:
        start, end = 0, _int("range", args[0], ctx)
        if end < 0:
            raise TogRuntimeError("range() end must be non-negative", ctx.location, {"end": end})
    else:
        start, end = _int("range", args[0], ctx), _int("range", args[1], ctx)
        if start > end:
            raise TogRuntimeError(
                f"range() start must be <= end, got {start} > {end}",
                ctx.location,
                {"start": start, "end": end},
            )
    return RangeValue(start, end)


# ---------------------------------------------------------------------------
# Arrays
# ---------------------------------------------------------------------------

@builtin("first", 1)
def _first(ctx: CallContext, arr: Any) -> Any:
    items = _array("first", arr, ctx).items
    if not items:
        raise TogRuntimeError("first() called on an empty array", ctx.location)
    return items[0]


@builtin("last", 1)
def _last(ctx: CallContext, arr: Any) -> Any:
    items = _array("last", arr, ctx).items
    if not items:
        raise TogRuntimeError("last() called on an empty array", ctx.location)
    return items[-1]


@builtin("slice", 3)
def _slice(ctx: CallContext, arr: Any, start: Any, end: Any) -> ArrayValue:
    items = _array("slice", arr, ctx).items
    n = len(items)
    lo = min(max(_int("slice", start, ctx), 0), n)
    hi = min(max(_int("slice", end, ctx), lo), n)
    return ArrayValue(items[lo:hi])


@builtin("flatten", 1)
def _flatten(ctx: CallContext, arr: Any) -> ArrayValue:
    result: list[Any] = []
    for item in _array("flatten", arr, ctx).items:
        if isinstance(item, ArrayValue):
            result.extend(item.items)
        else:
            result.append(item)
    return ArrayValue(result)


@builtin("unique", 1)
def _unique(ctx: CallContext, arr: Any) -> ArrayValue:
    result: list[Any] = []
    for item in _array("unique", arr, ctx).items:
        if not any(values_equal(item, seen) for seen in result):
            result.append(item)
    return ArrayValue(result)


@builtin("sort", 1)
def _sort(ctx: CallContext, arr: Any) -> ArrayValue:
    items = list(_array("sort", arr, ctx).items)
    if all(is_number(x) for x in items) or all(isinstance(x, str) for x in items):
        return ArrayValue(sorted(items))
    raise TogTypeError("sort() requires an array of numbers or of strings", ctx.location)


@builtin("reverse", 1)
def _reverse(ctx: CallContext, arr: Any) -> ArrayValue:
    return ArrayValue(list(reversed(_array("reverse", arr, ctx).items)))


@builtin("push", 2)
def _push(ctx: CallContext, arr: Any, value: Any) -> Any:
    _array("push", arr, ctx).items.append(value)
    return UNIT


@builtin("pop", 1)
def _pop(ctx: CallContext, arr: Any) -> Any:
    items = _array("pop", arr, ctx).items
    if not items:
        raise TogRuntimeError("pop() called on an empty array", ctx.location)
    return items.pop()


@builtin("append", 2)
def _append(ctx: CallContext, arr: Any, value: Any) -> ArrayValue:
    return ArrayValue(_array("append", arr, ctx).items + [value])


@builtin("contains", 2)
def _contains(ctx: CallContext, haystack: Any, needle: Any) -> bool:
    if isinstance(haystack, str):
        return _string("contains", needle, ctx) in haystack
    if isinstance(haystack, ArrayValue):
        return any(values_equal(item, needle) for item in haystack.items)
    raise _type_error("contains", "a string or array", haystack, ctx)


# ---------------------------------------------------------------------------
# Strings
# ---------------------------------------------------------------------------

@builtin("split", 2)
def _split(ctx: CallContext, s: Any, delimiter: Any) -> ArrayValue:
    text = _string("split", s, ctx)
    delim = _string("split", delimiter, ctx)
    if delim == "":
        raise TogRuntimeError("split() delimiter must not be empty", ctx.location)
    return ArrayValue(text.split(delim))


@builtin("join", 2)
def _join(ctx: CallContext, arr: Any, delimiter: Any) -> str:
    items = _array("join", arr, ctx).items
    return _string("join", delimiter, ctx).join(display(v) for v in items)


@builtin("substring", 3)
def _substring(ctx: CallContext, s: Any, start: Any, end: Any) -> str:
    text = _string("substring", s, ctx)
    lo, hi = _int("substring", start, ctx), _int("substring", end, ctx)
    if lo < 0 or hi < lo or hi > len(text):
        raise TogRuntimeError(
            f"substring() invalid indices: start={lo}, end={hi}, len={len(text)}",
            ctx.location,
            {"start": lo, "end": hi, "length": len(text)},
        )
    return text[lo:hi]


# ---------------------------------------------------------------------------
# Math
# ---------------------------------------------------------------------------

@builtin("min", 2)
def _min(ctx: CallContext, a: Any, b: Any) -> Any:
    return min(_number("min", a, ctx), _number("min", b, ctx))


@builtin("max", 2)
def _max(ctx: CallContext, a: Any, b: Any) -> Any:
    return max(_number("max", a, ctx), _number("max", b, ctx))


@builtin("abs", 1)
def _abs(ctx: CallContext, n: Any) -> Any:
    return abs(_number("abs", n, ctx))


@builtin("sqrt", 1)
def _sqrt(ctx: CallContext, n: Any) -> float:
    value = _number("sqrt", n, ctx)
    if value < 0:
        raise TogRuntimeError("sqrt() of negative number", ctx.location, {"value": value})
    return math.sqrt(value)


@builtin("pow", 2)
def _pow(ctx: CallContext, base: Any, exponent: Any) -> Any:
    b = _number("pow", base, ctx)
    e = _number("pow", exponent, ctx)
    if is_int(b) and is_int(e):
        return b ** e if e >= 0 else float(b) ** e
    try:
        return math.pow(b, e)
    except (OverflowError, ValueError) as exc:
        raise TogRuntimeError(f"pow() failed: {exc}", ctx.location) from exc


# ---------------------------------------------------------------------------
# Higher order
# ---------------------------------------------------------------------------

@builtin("map", 2)
def _map(ctx: CallContext, arr: Any, fn: Any) -> ArrayValue:
    items = list(_array("map", arr, ctx).items)
    f = _function("map", fn, ctx)
    return ArrayValue([ctx.call(f, [item]) for item in items])


@builtin("filter", 2)
def _filter(ctx: CallContext, arr: Any, fn: Any) -> ArrayValue:
    items = list(_array("filter", arr, ctx).items)
    f = _function("filter", fn, ctx)
    return ArrayValue([item for item in items if is_truthy(ctx.call(f, [item]))])


@builtin("reduce", 3)
def _reduce(ctx: CallContext, arr: Any, initial: Any, fn: Any) -> Any:
    items = list(_array("reduce", arr, ctx).items)
    f = _function("reduce", fn, ctx)
    acc = initial
    for item in items:
        acc = ctx.call(f, [acc, item])
    return acc


@builtin("parallel_map", 2)
def _parallel_map(ctx: CallContext, arr: Any, fn: Any) -> ArrayValue:
    return _map(ctx, arr, fn)


@builtin("parallel_filter", 2)
def _parallel_filter(ctx: CallContext, arr: Any, fn: Any) -> ArrayValue:
    return _filter(ctx, arr, fn)


@builtin("parallel_reduce", 3)
def _parallel_reduce(ctx: CallContext, arr: Any, initial: Any, fn: Any) -> Any:
    return _reduce(ctx, arr, initial, fn)


# ---------------------------------------------------------------------------
# Option / Result
# ---------------------------------------------------------------------------

@builtin("unwrap", 1)
def _unwrap(ctx: CallContext, value: Any) -> Any:
    v = _option_or_result("unwrap", value, ctx)
    if _is_success(v):
        return v.payload if v.has_payload else UNIT
    if v.enum_name == "Result":
        raise PanicError(
            "unwrap() called on Result::Err",
            ctx.location,
            {"value": display(v)},
        )
    raise PanicError("unwrap() called on Option::None", ctx.location)


@builtin("unwrap_or", 2)
def _unwrap_or(ctx: CallContext, value: Any, default: Any) -> Any:
    v = _option_or_result("unwrap_or", value, ctx)
    if _is_success(v):
        return v.payload if v.has_payload else UNIT
    return default


@builtin("expect", 2)
def _expect(ctx: CallContext, value: Any, message: Any) -> Any:
    v = _option_or_result("expect", value, ctx)
    if _is_success(v):
        return v.payload if v.has_payload else UNIT
    raise PanicError(display(message), ctx.location, {"value": display(v)})


@builtin("is_ok", 1)
def _is_ok(ctx: CallContext, value: Any) -> bool:
    return _enum("is_ok", value, "Result", ctx).variant_name == "Ok"


@builtin("is_err", 1)
def _is_err(ctx: CallContext, value: Any) -> bool:
    return _enum("is_err", value, "Result", ctx).variant_name == "Err"


@builtin("is_some", 1)
def _is_some(ctx: CallContext, value: Any) -> bool:
    return _enum("is_some", value, "Option", ctx).variant_name == "Some"


@builtin("is_none", 1)
def _is_none(ctx: CallContext, value: Any) -> bool:
    return _enum("is_none", value, "Option", ctx).variant_name == "None"


# ---------------------------------------------------------------------------
# Reductions
# ---------------------------------------------------------------------------

@builtin("gpu_sum", 1)
def _gpu_sum(ctx: CallContext, arr: Any) -> float:
    return math.fsum(_numeric_snapshot("gpu_sum", arr, ctx))


@builtin("gpu_mean", 1)
def _gpu_mean(ctx: CallContext, arr: Any) -> float:
    values = _numeric_snapshot("gpu_mean", arr, ctx)
    if not values:
        raise TogRuntimeError("gpu_mean() of an empty array", ctx.location)
    return math.fsum(values) / len(values)


@builtin("gpu_product", 1)
def _gpu_product(ctx: CallContext, arr: Any) -> float:
    result = 1.0
    for x in _numeric_snapshot("gpu_product", arr, ctx):
        result *= x
    return result


@builtin("parallel_sum", 1)
def _parallel_sum(ctx: CallContext, arr: Any) -> float:
    values = _numeric_snapshot("parallel_sum", arr, ctx)
    chunk = max(len(values) // 4, 1)
    total = 0.0
    for i in range(0, len(values), chunk):
        total += sum(values[i:i + chunk])
    return total


@builtin("batch_size", 0)
def _batch_size(ctx: CallContext) -> int:
    return BATCH_SIZE


def builtin_names() -> list[str]:
    return sorted(BUILTINS)
