"""TOG Interpreter — tree-walking evaluator.

Evaluates a loaded program against a chain of environments. Every
``_eval``/``_exec`` returns either a value or a control signal
(``Return``, ``Break``, ``Continue``); callers hand signals upwards until
the construct that consumes them (a function call or a loop). Python
exceptions are used only for TOG errors, which abort the run.

    evaluate(program, entry="main")   -> final value
    run_source(source)                -> final value
"""

from __future__ import annotations

import logging
import math
import sys
from dataclasses import dataclass
from typing import Any, Optional, TextIO

from tog.ast_nodes import (
    Program, FunctionDef, Statement, LetStmt, AssignStmt, ExprStmt, ReturnStmt,
    WhileStmt, ForStmt, BreakStmt, ContinueStmt,
    Expr, IntLiteral, FloatLiteral, StringLiteral, BoolLiteral, NoneLiteral,
    Identifier, BinaryOp, UnaryOp, FunctionCall, FieldAccess, MethodCall,
    IndexExpr, ArrayLiteral, StructLiteral, EnumVariantExpr, BlockExpr, IfExpr,
    MatchExpr, LambdaExpr,
    Pattern, WildcardPattern, LiteralPattern, IdentPattern, VariantPattern,
    declared_params,
)
from tog.config import TogConfig
from tog.environment import Environment
from tog.errors import (
    MatchError, SourceLocation, TogNameError, TogRuntimeError, TogTypeError,
    arity_mismatch, undefined_name,
)
from tog.loader import ProgramContext, load_program
from tog.parser import parse
from tog.stdlib import CallContext
from tog.values import (
    UNIT, ArrayValue, BuiltinFunction, EnumValue, FunctionValue, RangeValue,
    StructValue, display, is_int, is_number, is_truthy, type_name, values_equal,
)

logger = logging.getLogger(__name__)

# Python frames consumed per TOG call, used to size the host recursion limit.
_FRAMES_PER_CALL = 50


# ---------------------------------------------------------------------------
# Control signals
# ---------------------------------------------------------------------------

class Signal:
    pass


@dataclass
class Return(Signal):
    value: Any


@dataclass
class Break(Signal):
    location: Optional[SourceLocation]


@dataclass
class Continue(Signal):
    location: Optional[SourceLocation]


def _escaped_signal(signal: Signal) -> TogRuntimeError:
    if isinstance(signal, Return):
        return TogRuntimeError("'return' outside of a function")
    keyword = "break" if isinstance(signal, Break) else "continue"
    return TogRuntimeError(f"'{keyword}' outside of a loop", signal.location, {"statement": keyword})


# ---------------------------------------------------------------------------
# Arithmetic
# ---------------------------------------------------------------------------

_COERCIBLE = (str, int, float, bool)


def _int_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return -q if (a < 0) != (b < 0) else q


def _operand_error(op: str, left: Any, right: Any, loc: Optional[SourceLocation]) -> TogTypeError:
    return TogTypeError(
        f"Unsupported operand types for '{op}': {type_name(left)} and {type_name(right)}",
        loc,
        {"operator": op, "left": type_name(left), "right": type_name(right)},
    )


def _arithmetic(op: str, left: Any, right: Any, loc: Optional[SourceLocation]) -> Any:
    if op == "+" and (isinstance(left, str) or isinstance(right, str)):
        if isinstance(left, _COERCIBLE) and isinstance(right, _COERCIBLE):
            return display(left) + display(right)
        raise _operand_error(op, left, right, loc)

    if not (is_number(left) and is_number(right)):
        raise _operand_error(op, left, right, loc)

    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right

    if right == 0:
        raise TogRuntimeError(
            "Division by zero" if op == "/" else "Modulo by zero",
            loc,
            {"operator": op},
        )
    if is_int(left) and is_int(right):
        q = _int_div(left, right)
        return q if op == "/" else left - right * q
    if op == "/":
        return left / right
    return math.fmod(left, right)


def _compare(op: str, left: Any, right: Any, loc: Optional[SourceLocation]) -> bool:
    comparable = (is_number(left) and is_number(right)) or (
        isinstance(left, str) and isinstance(right, str)
    )
    if not comparable:
        raise _operand_error(op, left, right, loc)
    if op == "<":
        return left < right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    return left >= right


# ---------------------------------------------------------------------------
# Interpreter
# ---------------------------------------------------------------------------

class Interpreter:
    """Evaluates one loaded program."""

    def __init__(self, context: ProgramContext, output: Optional[TextIO] = None,
                 max_call_depth: int = 400):
        self.context = context
        self.registry = context.registry
        self.builtins = context.builtins
        self.output = output if output is not None else sys.stdout
        self.max_call_depth = max_call_depth
        self.call_depth = 0
        self.globals = Environment()
        for fn in context.functions.values():
            self.globals.define(fn.name, self._make_function(fn, self.globals))

    def run(self, entry: Optional[str] = "main") -> Any:
        """Run top-level statements, then call ``entry`` if it is defined."""
        result: Any = UNIT
        for stmt in self.context.statements:
            value = self._exec(stmt, self.globals)
            if isinstance(value, Signal):
                raise _escaped_signal(value)
            result = value if isinstance(stmt, ExprStmt) and not stmt.terminated else UNIT

        if entry and self.globals.contains(entry):
            target = self.globals.lookup(entry)
            logger.debug("Calling entry function '%s'", entry)
            return self.call(target, [])
        return result

    def call(self, callee: Any, args: list[Any], location: Optional[SourceLocation] = None) -> Any:
        if isinstance(callee, FunctionValue):
            return self._call_function(callee, args, location)
        if isinstance(callee, BuiltinFunction):
            if not callee.accepts(len(args)):
                raise arity_mismatch(callee.name, callee.describe_arity(), len(args), location)
            ctx = CallContext(
                output=self.output,
                call=lambda f, a: self.call(f, a, location),
                location=location,
            )
            return callee.impl(ctx, *args)
        raise TogTypeError(
            f"Value of type '{type_name(callee)}' is not callable",
            location,
            {"type": type_name(callee)},
        )

    @staticmethod
    def _make_function(fn: FunctionDef, closure: Environment) -> FunctionValue:
        return FunctionValue(name=fn.name, params=fn.params, body=fn.body, closure=closure)

    def _call_function(self, fn: FunctionValue, args: list[Any],
                       location: Optional[SourceLocation]) -> Any:
        params = declared_params(fn.params)
        if len(args) != len(params):
            raise arity_mismatch(fn.name, len(params), len(args), location)
        if self.call_depth >= self.max_call_depth:
            raise TogRuntimeError(
                f"Maximum call depth of {self.max_call_depth} exceeded in '{fn.name}'",
                location,
                {"function": fn.name, "max_call_depth": self.max_call_depth},
            )

        scope = fn.closure.child()
        if fn.bound_self is not None:
            scope.define("self", fn.bound_self)
        for param, arg in zip(params, args):
            scope.define(param.name, arg)

        self.call_depth += 1
        try:
            result = self._eval_block(fn.body, scope)
        finally:
            self.call_depth -= 1

        if isinstance(result, Return):
            return result.value
        if isinstance(result, Signal):
            raise _escaped_signal(result)
        return result

    # -------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------

    def _exec(self, stmt: Statement, env: Environment) -> Any:
        if isinstance(stmt, ExprStmt):
            return self._eval(stmt.expr, env)

        if isinstance(stmt, LetStmt):
            value = self._eval(stmt.value, env)
            if isinstance(value, Signal):
                return value
            env.define(stmt.name, value)
            return UNIT

        if isinstance(stmt, AssignStmt):
            return self._exec_assign(stmt, env)

        if isinstance(stmt, ReturnStmt):
            if stmt.value is None:
                return Return(UNIT)
            value = self._eval(stmt.value, env)
            if isinstance(value, Signal):
                return value
            return Return(value)

        if isinstance(stmt, WhileStmt):
            return self._exec_while(stmt, env)

        if isinstance(stmt, ForStmt):
            return self._exec_for(stmt, env)

        if isinstance(stmt, BreakStmt):
            return Break(stmt.location)

        if isinstance(stmt, ContinueStmt):
            return Continue(stmt.location)

        if isinstance(stmt, FunctionDef):
            env.define(stmt.name, self._make_function(stmt, env))
            return UNIT

        raise TogRuntimeError(f"Cannot execute {type(stmt).__name__}", stmt.location)

    def _exec_assign(self, stmt: AssignStmt, env: Environment) -> Any:
        value = self._eval(stmt.value, env)
        if isinstance(value, Signal):
            return value
        target = stmt.target

        if isinstance(target, Identifier):
            env.assign(target.name, value, target.location)
            return UNIT

        obj = self._eval(target.obj, env)
        if isinstance(obj, Signal):
            return obj

        if isinstance(target, FieldAccess):
            obj.slots[self._field_slot(obj, target.field_name, target.location)] = value
            return UNIT

        index = self._eval(target.index, env)
        if isinstance(index, Signal):
            return index
        if not isinstance(obj, ArrayValue):
            raise TogTypeError(
                f"Cannot assign by index into a value of type '{type_name(obj)}'",
                target.location,
                {"type": type_name(obj)},
            )
        obj.items[self._checked_index(index, len(obj.items), target.location)] = value
        return UNIT

    def _exec_while(self, stmt: WhileStmt, env: Environment) -> Any:
        while True:
            cond = self._eval(stmt.condition, env)
            if isinstance(cond, Signal):
                return cond
            if not is_truthy(cond):
                return UNIT
            result = self._eval_block(stmt.body, env)
            if isinstance(result, Break):
                return UNIT
            if isinstance(result, Return):
                return result

    def _exec_for(self, stmt: ForStmt, env: Environment) -> Any:
        iterable = self._eval(stmt.iterable, env)
        if isinstance(iterable, Signal):
            return iterable
        if isinstance(iterable, ArrayValue):
            elements: Any = list(iterable.items)
        elif isinstance(iterable, (RangeValue, str)):
            elements = iterable
        else:
            raise TogTypeError(
                f"Cannot iterate over a value of type '{type_name(iterable)}'",
                stmt.iterable.location,
                {"type": type_name(iterable)},
            )

        for element in elements:
            scope = env.child()
            scope.define(stmt.var_name, element)
            result = self._eval_block(stmt.body, scope)
            if isinstance(result, Break):
                break
            if isinstance(result, Return):
                return result
        return UNIT

    # -------------------------------------------------------------------
    # Expressions
    # -------------------------------------------------------------------

    def _eval_block(self, block: BlockExpr, env: Environment) -> Any:
        scope = env.child()
        value: Any = UNIT
        for stmt in block.statements:
            result = self._exec(stmt, scope)
            if isinstance(result, Signal):
                return result
            value = result if isinstance(stmt, ExprStmt) and not stmt.terminated else UNIT
        return value

    def _eval_all(self, exprs: list[Expr], env: Environment) -> Any:
        """Evaluate left to right; returns a list, or the first signal."""
        values: list[Any] = []
        for expr in exprs:
            value = self._eval(expr, env)
            if isinstance(value, Signal):
                return value
            values.append(value)
        return values

    def _eval(self, expr: Expr, env: Environment) -> Any:
        if isinstance(expr, (IntLiteral, FloatLiteral, StringLiteral, BoolLiteral)):
            return expr.value

        if isinstance(expr, NoneLiteral):
            return UNIT

        if isinstance(expr, Identifier):
            if env.contains(expr.name):
                return env.lookup(expr.name)
            builtin = self.builtins.get(expr.name)
            if builtin is not None:
                return builtin
            raise undefined_name(expr.name, expr.location)

        if isinstance(expr, BinaryOp):
            return self._eval_binary(expr, env)

        if isinstance(expr, UnaryOp):
            operand = self._eval(expr.operand, env)
            if isinstance(operand, Signal):
                return operand
            if expr.op == "!":
                return not is_truthy(operand)
            if not is_number(operand):
                raise TogTypeError(
                    f"Cannot negate a value of type '{type_name(operand)}'",
                    expr.location,
                    {"operator": "-", "operand": type_name(operand)},
                )
            return -operand

        if isinstance(expr, FunctionCall):
            callee = self._eval(expr.callee, env)
            if isinstance(callee, Signal):
                return callee
            args = self._eval_all(expr.args, env)
            if isinstance(args, Signal):
                return args
            return self.call(callee, args, expr.location)

        if isinstance(expr, MethodCall):
            return self._eval_method_call(expr, env)

        if isinstance(expr, FieldAccess):
            obj = self._eval(expr.obj, env)
            if isinstance(obj, Signal):
                return obj
            return obj.slots[self._field_slot(obj, expr.field_name, expr.location)]

        if isinstance(expr, IndexExpr):
            return self._eval_index(expr, env)

        if isinstance(expr, ArrayLiteral):
            items = self._eval_all(expr.elements, env)
            if isinstance(items, Signal):
                return items
            return ArrayValue(items)

        if isinstance(expr, StructLiteral):
            return self._eval_struct_literal(expr, env)

        if isinstance(expr, EnumVariantExpr):
            if expr.payload is None:
                return EnumValue(expr.enum_name, expr.variant_name)
            payload = self._eval(expr.payload, env)
            if isinstance(payload, Signal):
                return payload
            return EnumValue(expr.enum_name, expr.variant_name, payload)

        if isinstance(expr, BlockExpr):
            return self._eval_block(expr, env)

        if isinstance(expr, IfExpr):
            cond = self._eval(expr.condition, env)
            if isinstance(cond, Signal):
                return cond
            if is_truthy(cond):
                return self._eval_block(expr.then_block, env)
            if expr.else_branch is None:
                return UNIT
            return self._eval(expr.else_branch, env)

        if isinstance(expr, MatchExpr):
            return self._eval_match(expr, env)

        if isinstance(expr, LambdaExpr):
            return FunctionValue(name="anonymous", params=expr.params, body=expr.body, closure=env)

        raise TogRuntimeError(f"Cannot evaluate {type(expr).__name__}", expr.location)

    def _eval_binary(self, expr: BinaryOp, env: Environment) -> Any:
        left = self._eval(expr.left, env)
        if isinstance(left, Signal):
            return left

        if expr.op in ("&&", "||"):
            if is_truthy(left) == (expr.op == "||"):
                return expr.op == "||"
            right = self._eval(expr.right, env)
            if isinstance(right, Signal):
                return right
            return is_truthy(right)

        right = self._eval(expr.right, env)
        if isinstance(right, Signal):
            return right

        if expr.op == "==":
            return values_equal(left, right)
        if expr.op == "!=":
            return not values_equal(left, right)
        if expr.op in ("<", "<=", ">", ">="):
            return _compare(expr.op, left, right, expr.location)
        return _arithmetic(expr.op, left, right, expr.location)

    def _eval_method_call(self, expr: MethodCall, env: Environment) -> Any:
        receiver = self._eval(expr.obj, env)
        if isinstance(receiver, Signal):
            return receiver
        args = self._eval_all(expr.args, env)
        if isinstance(args, Signal):
            return args

        resolved = self.registry.resolve_method(type_name(receiver), expr.method_name, expr.location)
        logger.debug(
            "Resolved %s.%s to %s",
            resolved.type_name, expr.method_name,
            f"impl {resolved.trait_name}" if resolved.trait_name else "inherent impl",
        )
        method = self._make_function(resolved.function, self.globals).bind(receiver)
        return self._call_function(method, args, expr.location)

    def _eval_index(self, expr: IndexExpr, env: Environment) -> Any:
        obj = self._eval(expr.obj, env)
        if isinstance(obj, Signal):
            return obj
        index = self._eval(expr.index, env)
        if isinstance(index, Signal):
            return index
        if isinstance(obj, ArrayValue):
            return obj.items[self._checked_index(index, len(obj.items), expr.location)]
        if isinstance(obj, str):
            return obj[self._checked_index(index, len(obj), expr.location)]
        raise TogTypeError(
            f"Cannot index into a value of type '{type_name(obj)}'",
            expr.location,
            {"type": type_name(obj)},
        )

    @staticmethod
    def _checked_index(index: Any, length: int, location: Optional[SourceLocation]) -> int:
        if not is_int(index):
            raise TogTypeError(
                f"Index must be an int, got {type_name(index)}",
                location,
                {"type": type_name(index)},
            )
        if not 0 <= index < length:
            raise TogRuntimeError(
                f"Index {index} out of bounds for length {length}",
                location,
                {"index": index, "length": length},
            )
        return index

    @staticmethod
    def _field_slot(obj: Any, field_name: str, location: Optional[SourceLocation]) -> int:
        if not isinstance(obj, StructValue):
            raise TogTypeError(
                f"Cannot access field '{field_name}' on a value of type '{type_name(obj)}'",
                location,
                {"field": field_name, "type": type_name(obj)},
            )
        slot = obj.layout.slot(field_name)
        if slot is None:
            raise TogTypeError(
                f"Struct '{obj.type_name}' has no field '{field_name}'",
                location,
                {"struct": obj.type_name, "field": field_name},
            )
        return slot

    def _eval_struct_literal(self, expr: StructLiteral, env: Environment) -> Any:
        layout = self.registry.layout(expr.type_name)
        if layout is None:
            raise TogNameError(
                f"Unknown struct '{expr.type_name}'",
                expr.location,
                {"name": expr.type_name},
            )
        slots: list[Any] = [None] * len(layout.field_names)
        for name, value_expr in expr.fields:
            slot = layout.slot(name)
            if slot is None:
                raise TogTypeError(
                    f"Struct '{expr.type_name}' has no field '{name}'",
                    value_expr.location or expr.location,
                    {"struct": expr.type_name, "field": name},
                )
            if slots[slot] is not None:
                raise TogTypeError(
                    f"Field '{name}' given more than once in '{expr.type_name}' literal",
                    expr.location,
                    {"struct": expr.type_name, "field": name},
                )
            value = self._eval(value_expr, env)
            if isinstance(value, Signal):
                return value
            slots[slot] = value

        missing = [n for n, v in zip(layout.field_names, slots) if v is None]
        if missing:
            raise TogTypeError(
                f"Missing field(s) {', '.join(missing)} in '{expr.type_name}' literal",
                expr.location,
                {"struct": expr.type_name, "missing": missing},
            )
        return StructValue(layout, slots)

    # -------------------------------------------------------------------
    # Pattern matching
    # -------------------------------------------------------------------

    def _eval_match(self, expr: MatchExpr, env: Environment) -> Any:
        subject = self._eval(expr.subject, env)
        if isinstance(subject, Signal):
            return subject
        for arm in expr.arms:
            bindings = match_pattern(arm.pattern, subject)
            if bindings is None:
                continue
            scope = env.child()
            for name, value in bindings.items():
                scope.define(name, value)
            return self._eval(arm.body, scope)
        raise MatchError(
            f"No match arm matched value {display(subject)}",
            expr.location,
            {"value": display(subject), "type": type_name(subject)},
        )


def match_pattern(pattern: Pattern, value: Any) -> Optional[dict[str, Any]]:
    """Bindings produced by matching ``value`` against ``pattern``, or None."""
    if isinstance(pattern, WildcardPattern):
        return {}
    if isinstance(pattern, IdentPattern):
        return {pattern.name: value}
    if isinstance(pattern, LiteralPattern):
        if pattern.value is None:
            return {} if value is UNIT else None
        return {} if values_equal(pattern.value, value) else None
    if isinstance(pattern, VariantPattern):
        if not isinstance(value, EnumValue):
            return None
        if not value.is_variant(pattern.enum_name, pattern.variant_name):
            return None
        if pattern.has_payload != value.has_payload:
            return None
        if pattern.binder is not None:
            return {pattern.binder: value.payload}
        return {}
    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def evaluate(program: Program, entry: Optional[str] = "main", *,
             output: Optional[TextIO] = None,
             config: Optional[TogConfig] = None) -> Any:
    """Load and evaluate a parsed program; returns the final value."""
    config = config or TogConfig()
    context = load_program(program)
    interpreter = Interpreter(context, output=output, max_call_depth=config.max_call_depth)

    limit = config.max_call_depth * _FRAMES_PER_CALL + 1000
    previous = sys.getrecursionlimit()
    if previous < limit:
        sys.setrecursionlimit(limit)
    try:
        return interpreter.run(entry)
    except RecursionError as exc:
        raise TogRuntimeError(
            "Expression nesting too deep to evaluate",
            details={"max_call_depth": config.max_call_depth},
        ) from exc
    finally:
        sys.setrecursionlimit(previous)


def run_source(source: str, filename: str = "<stdin>", entry: Optional[str] = None, *,
               output: Optional[TextIO] = None,
               config: Optional[TogConfig] = None) -> Any:
    """Lex, parse, load and evaluate TOG source code."""
    config = config or TogConfig()
    program = parse(source, filename)
    return evaluate(program, entry if entry is not None else config.entry,
                    output=output, config=config)
