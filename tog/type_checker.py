"""TOG gradual type checker.

Optional static pass used by ``tog check`` (and by ``tog run`` for
warnings). Annotations are optional: anything unannotated or not inferable
gets the dynamic type ``?``, which is consistent with every type. Only
conflicts between two known types are reported.

  ? ~ T            for every T
  T ~ T
  array[A] ~ array[B]   iff A ~ B
  int  -> float    accepted where a float is expected (numeric promotion)

Reported:
  - let bindings whose value is inconsistent with the declared type
  - calls to known functions with the wrong argument count or with
    arguments inconsistent with parameter annotations
  - returned / trailing values inconsistent with the declared return type
  - arithmetic and comparisons between inconsistent known types
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from tog.ast_nodes import (
    Program, FunctionDef, StructDef, ImplBlock, TypeAnnotation,
    Statement, LetStmt, AssignStmt, ExprStmt, ReturnStmt, WhileStmt, ForStmt,
    Expr, IntLiteral, FloatLiteral, StringLiteral, BoolLiteral, NoneLiteral,
    Identifier, BinaryOp, UnaryOp, FunctionCall, FieldAccess, MethodCall,
    IndexExpr, ArrayLiteral, StructLiteral, EnumVariantExpr, BlockExpr, IfExpr,
    MatchExpr, LambdaExpr, VariantPattern, IdentPattern,
    declared_params,
)
from tog.errors import Diagnostic, ErrorKind, SourceLocation, TogError


# ---------------------------------------------------------------------------
# Gradual Type Representation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GradualType:
    """A type that may be partly unknown. ``?`` is the dynamic type."""
    base_name: str
    type_args: Tuple[GradualType, ...] = ()

    @staticmethod
    def dynamic() -> GradualType:
        return GradualType(base_name="?")

    @staticmethod
    def concrete(name: str) -> GradualType:
        return GradualType(base_name=name)

    @staticmethod
    def array(element: GradualType) -> GradualType:
        return GradualType(base_name="array", type_args=(element,))

    def is_dynamic(self) -> bool:
        return self.base_name == "?"

    def is_numeric(self) -> bool:
        return self.base_name in ("int", "float")

    @property
    def element(self) -> GradualType:
        if self.base_name == "array" and self.type_args:
            return self.type_args[0]
        return GradualType.dynamic()

    def __str__(self) -> str:
        if self.type_args:
            args = ", ".join(str(a) for a in self.type_args)
            return f"{self.base_name}[{args}]"
        return self.base_name


DYNAMIC = GradualType.dynamic()
INT = GradualType.concrete("int")
FLOAT = GradualType.concrete("float")
STRING = GradualType.concrete("string")
BOOL = GradualType.concrete("bool")
NONE = GradualType.concrete("none")

_DYNAMIC_NAMES = ("?", "any", "dynamic", "T", "E")
_COERCIBLE = ("string", "int", "float", "bool")

# Result types of builtins whose result does not depend on their arguments.
_BUILTIN_RESULTS: Dict[str, GradualType] = {
    "print": NONE,
    "len": INT,
    "to_string": STRING,
    "join": STRING,
    "substring": STRING,
    "sqrt": FLOAT,
    "gpu_sum": FLOAT,
    "gpu_mean": FLOAT,
    "gpu_product": FLOAT,
    "parallel_sum": FLOAT,
    "batch_size": INT,
    "contains": BOOL,
    "is_ok": BOOL,
    "is_err": BOOL,
    "is_some": BOOL,
    "is_none": BOOL,
    "push": NONE,
    "range": GradualType.concrete("range"),
}


# ---------------------------------------------------------------------------
# Lattice operations
# ---------------------------------------------------------------------------

def consistent(t1: GradualType, t2: GradualType) -> bool:
    """Type consistency: equal up to the dynamic parts."""
    if t1.is_dynamic() or t2.is_dynamic():
        return True
    if t1.base_name != t2.base_name:
        return False
    if not t1.type_args or not t2.type_args:
        return True
    if len(t1.type_args) != len(t2.type_args):
        return False
    return all(consistent(a1, a2) for a1, a2 in zip(t1.type_args, t2.type_args))


def assignable(actual: GradualType, expected: GradualType) -> bool:
    """Whether a value of ``actual`` type may flow where ``expected`` is declared."""
    if actual == INT and expected == FLOAT:
        return True
    if actual.base_name == "array" and expected.base_name == "array":
        return assignable(actual.element, expected.element)
    return consistent(actual, expected)


def precision_meet(t1: GradualType, t2: GradualType) -> Optional[GradualType]:
    """The more precise of two consistent types; None if inconsistent."""
    if t1.is_dynamic():
        return t2
    if t2.is_dynamic():
        return t1
    if t1.base_name != t2.base_name:
        return None
    if not t1.type_args:
        return t2
    if not t2.type_args:
        return t1
    args = []
    for a1, a2 in zip(t1.type_args, t2.type_args):
        m = precision_meet(a1, a2)
        if m is None:
            return None
        args.append(m)
    return GradualType(base_name=t1.base_name, type_args=tuple(args))


def precision_join(t1: GradualType, t2: GradualType) -> GradualType:
    """The least precise type covering both; incompatible types give ``?``."""
    if t1.is_dynamic() or t2.is_dynamic():
        return DYNAMIC
    if {t1.base_name, t2.base_name} == {"int", "float"}:
        return FLOAT
    if t1.base_name != t2.base_name:
        return DYNAMIC
    if len(t1.type_args) != len(t2.type_args):
        return GradualType.concrete(t1.base_name)
    args = tuple(precision_join(a1, a2) for a1, a2 in zip(t1.type_args, t2.type_args))
    return GradualType(base_name=t1.base_name, type_args=args)


def annotation_to_gradual(ann: Optional[TypeAnnotation]) -> GradualType:
    if ann is None or ann.name in _DYNAMIC_NAMES:
        return DYNAMIC
    if ann.name == "array":
        return GradualType.array(annotation_to_gradual(ann.element))
    return GradualType.concrete(ann.name)


# ---------------------------------------------------------------------------
# Checker
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FunctionSignature:
    name: str
    params: Tuple[GradualType, ...]
    return_type: GradualType


TypeEnv = Dict[str, GradualType]


class TypeChecker:
    def __init__(self, program: Program):
        self.program = program
        self.diagnostics: List[Diagnostic] = []
        self.signatures: Dict[str, FunctionSignature] = {}
        self.struct_fields: Dict[str, Dict[str, GradualType]] = {}
        self._return_types: List[GradualType] = []

    def _report(self, message: str, location: Optional[SourceLocation],
                kind: ErrorKind = ErrorKind.TYPE_ERROR, **details) -> None:
        self.diagnostics.append(Diagnostic(kind=kind, message=message, location=location, details=details))

    @staticmethod
    def _signature(fn: FunctionDef) -> FunctionSignature:
        params = tuple(annotation_to_gradual(p.type_annotation) for p in declared_params(fn.params))
        return FunctionSignature(fn.name, params, annotation_to_gradual(fn.return_type))

    def check(self) -> List[Diagnostic]:
        for item in self.program.items:
            if isinstance(item, FunctionDef):
                self.signatures[item.name] = self._signature(item)
            elif isinstance(item, StructDef):
                self.struct_fields[item.name] = {
                    f.name: annotation_to_gradual(f.type_annotation) for f in item.fields
                }

        globals_env: TypeEnv = {}
        for item in self.program.items:
            if isinstance(item, FunctionDef):
                self._check_function(item, globals_env)
            elif isinstance(item, StructDef):
                for method in item.methods:
                    self._check_function(method, globals_env, self_type=item.name)
            elif isinstance(item, ImplBlock):
                for method in item.methods:
                    self._check_function(method, globals_env, self_type=item.type_name)
            elif isinstance(item, Statement):
                self._check_stmt(item, globals_env)
        return self.diagnostics

    def _check_function(self, fn: FunctionDef, outer: TypeEnv, self_type: Optional[str] = None) -> None:
        env: TypeEnv = dict(outer)
        if self_type is not None:
            env["self"] = GradualType.concrete(self_type)
        for param in declared_params(fn.params):
            env[param.name] = annotation_to_gradual(param.type_annotation)
        expected = annotation_to_gradual(fn.return_type)
        self._check_body(fn.name, fn.body, env, expected)

    def _check_body(self, name: str, body: BlockExpr, env: TypeEnv, expected: GradualType) -> None:
        self._return_types.append(expected)
        try:
            actual = self._infer_block(body, env)
        finally:
            self._return_types.pop()
        if body.statements and not assignable(actual, expected) and _has_trailing_value(body):
            self._report(
                f"'{name}' declares return type {expected} but its body evaluates to {actual}",
                body.statements[-1].location,
                function=name, expected=str(expected), actual=str(actual),
            )

    # -------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------

    def _check_stmt(self, stmt: Statement, env: TypeEnv) -> GradualType:
        if isinstance(stmt, ExprStmt):
            t = self._infer(stmt.expr, env)
            return NONE if stmt.terminated else t

        if isinstance(stmt, LetStmt):
            actual = self._infer(stmt.value, env)
            declared = annotation_to_gradual(stmt.type_annotation)
            if not assignable(actual, declared):
                self._report(
                    f"let binding '{stmt.name}' declared as {declared} "
                    f"but assigned value of type {actual}",
                    stmt.location,
                    name=stmt.name, expected=str(declared), actual=str(actual),
                )
            env[stmt.name] = precision_meet(actual, declared) or declared
            return NONE

        if isinstance(stmt, AssignStmt):
            actual = self._infer(stmt.value, env)
            if isinstance(stmt.target, Identifier):
                existing = env.get(stmt.target.name, DYNAMIC)
                if not assignable(actual, existing):
                    self._report(
                        f"assignment to '{stmt.target.name}' changes its type from "
                        f"{existing} to {actual}",
                        stmt.location,
                        name=stmt.target.name, expected=str(existing), actual=str(actual),
                    )
            else:
                self._infer(stmt.target, env)
            return NONE

        if isinstance(stmt, ReturnStmt):
            actual = self._infer(stmt.value, env) if stmt.value is not None else NONE
            if self._return_types:
                expected = self._return_types[-1]
                if not assignable(actual, expected):
                    self._report(
                        f"return value of type {actual} is inconsistent with "
                        f"declared return type {expected}",
                        stmt.location,
                        expected=str(expected), actual=str(actual),
                    )
            return NONE

        if isinstance(stmt, WhileStmt):
            self._infer(stmt.condition, env)
            self._infer_block(stmt.body, env)
            return NONE

        if isinstance(stmt, ForStmt):
            iterable = self._infer(stmt.iterable, env)
            inner = dict(env)
            if iterable.base_name == "array":
                inner[stmt.var_name] = iterable.element
            elif iterable.base_name == "range":
                inner[stmt.var_name] = INT
            elif iterable == STRING:
                inner[stmt.var_name] = STRING
            else:
                inner[stmt.var_name] = DYNAMIC
            self._infer_block(stmt.body, inner)
            return NONE

        if isinstance(stmt, FunctionDef):
            env[stmt.name] = DYNAMIC
            self._check_function(stmt, env)
            return NONE

        return NONE

    # -------------------------------------------------------------------
    # Expressions
    # -------------------------------------------------------------------

    def _infer_block(self, block: BlockExpr, env: TypeEnv) -> GradualType:
        scope = dict(env)
        result = NONE
        for stmt in block.statements:
            result = self._check_stmt(stmt, scope)
        return result

    def _infer(self, expr: Expr, env: TypeEnv) -> GradualType:
        if isinstance(expr, IntLiteral):
            return INT
        if isinstance(expr, FloatLiteral):
            return FLOAT
        if isinstance(expr, StringLiteral):
            return STRING
        if isinstance(expr, BoolLiteral):
            return BOOL
        if isinstance(expr, NoneLiteral):
            return NONE

        if isinstance(expr, Identifier):
            return env.get(expr.name, DYNAMIC)

        if isinstance(expr, BinaryOp):
            return self._infer_binary(expr, env)

        if isinstance(expr, UnaryOp):
            operand = self._infer(expr.operand, env)
            if expr.op == "!":
                return BOOL
            if not operand.is_dynamic() and not operand.is_numeric():
                self._report(f"cannot negate a value of type {operand}", expr.location,
                             operator="-", operand=str(operand))
            return operand

        if isinstance(expr, FunctionCall):
            return self._infer_call(expr, env)

        if isinstance(expr, MethodCall):
            self._infer(expr.obj, env)
            for arg in expr.args:
                self._infer(arg, env)
            return DYNAMIC

        if isinstance(expr, FieldAccess):
            obj = self._infer(expr.obj, env)
            return self.struct_fields.get(obj.base_name, {}).get(expr.field_name, DYNAMIC)

        if isinstance(expr, IndexExpr):
            obj = self._infer(expr.obj, env)
            self._infer(expr.index, env)
            if obj == STRING:
                return STRING
            return obj.element

        if isinstance(expr, ArrayLiteral):
            element: Optional[GradualType] = None
            for e in expr.elements:
                t = self._infer(e, env)
                element = t if element is None else precision_join(element, t)
            return GradualType.array(element or DYNAMIC)

        if isinstance(expr, StructLiteral):
            fields = self.struct_fields.get(expr.type_name, {})
            for name, value in expr.fields:
                actual = self._infer(value, env)
                declared = fields.get(name, DYNAMIC)
                if not assignable(actual, declared):
                    self._report(
                        f"field '{name}' of '{expr.type_name}' declared as {declared} "
                        f"but given value of type {actual}",
                        value.location or expr.location,
                        struct=expr.type_name, field=name, expected=str(declared), actual=str(actual),
                    )
            return GradualType.concrete(expr.type_name)

        if isinstance(expr, EnumVariantExpr):
            if expr.payload is not None:
                self._infer(expr.payload, env)
            return GradualType.concrete(expr.enum_name)

        if isinstance(expr, BlockExpr):
            return self._infer_block(expr, env)

        if isinstance(expr, IfExpr):
            self._infer(expr.condition, env)
            then_t = self._infer_block(expr.then_block, env)
            if expr.else_branch is None:
                return DYNAMIC
            return precision_join(then_t, self._infer(expr.else_branch, env))

        if isinstance(expr, MatchExpr):
            self._infer(expr.subject, env)
            result: Optional[GradualType] = None
            for arm in expr.arms:
                scope = dict(env)
                if isinstance(arm.pattern, IdentPattern):
                    scope[arm.pattern.name] = DYNAMIC
                elif isinstance(arm.pattern, VariantPattern) and arm.pattern.binder:
                    scope[arm.pattern.binder] = DYNAMIC
                t = self._infer(arm.body, scope)
                result = t if result is None else precision_join(result, t)
            return result or DYNAMIC

        if isinstance(expr, LambdaExpr):
            scope = dict(env)
            for param in expr.params:
                scope[param.name] = annotation_to_gradual(param.type_annotation)
            self._return_types.append(DYNAMIC)
            try:
                self._infer_block(expr.body, scope)
            finally:
                self._return_types.pop()
            return GradualType.concrete("function")

        return DYNAMIC

    def _infer_binary(self, expr: BinaryOp, env: TypeEnv) -> GradualType:
        lt = self._infer(expr.left, env)
        rt = self._infer(expr.right, env)
        op = expr.op

        if op in ("&&", "||", "==", "!="):
            return BOOL

        if op == "+" and (lt == STRING or rt == STRING):
            other = rt if lt == STRING else lt
            if not (other.is_dynamic() or other.base_name in _COERCIBLE):
                self._report_operands(expr, lt, rt)
            return STRING

        if lt.is_dynamic() or rt.is_dynamic():
            return BOOL if op in ("<", "<=", ">", ">=") else DYNAMIC

        if op in ("<", "<=", ">", ">="):
            if not ((lt.is_numeric() and rt.is_numeric()) or (lt == STRING and rt == STRING)):
                self._report_operands(expr, lt, rt)
            return BOOL

        if lt.is_numeric() and rt.is_numeric():
            return INT if lt == INT and rt == INT else FLOAT
        self._report_operands(expr, lt, rt)
        return DYNAMIC

    def _report_operands(self, expr: BinaryOp, lt: GradualType, rt: GradualType) -> None:
        self._report(
            f"operator '{expr.op}' applied to inconsistent types {lt} and {rt}",
            expr.location,
            operator=expr.op, left=str(lt), right=str(rt),
        )

    def _infer_call(self, expr: FunctionCall, env: TypeEnv) -> GradualType:
        arg_types = [self._infer(arg, env) for arg in expr.args]
        if not isinstance(expr.callee, Identifier):
            self._infer(expr.callee, env)
            return DYNAMIC

        name = expr.callee.name
        if name in env:
            return DYNAMIC  # a local binding shadows the function
        sig = self.signatures.get(name)
        if sig is None:
            return _BUILTIN_RESULTS.get(name, DYNAMIC)

        if len(arg_types) != len(sig.params):
            self._report(
                f"'{name}' expects {len(sig.params)} argument(s), got {len(arg_types)}",
                expr.location,
                kind=ErrorKind.ARITY_ERROR,
                callee=name, expected=len(sig.params), actual=len(arg_types),
            )
            return sig.return_type

        for i, (actual, expected) in enumerate(zip(arg_types, sig.params)):
            if not assignable(actual, expected):
                self._report(
                    f"argument {i + 1} of '{name}' has type {actual}, expected {expected}",
                    expr.args[i].location or expr.location,
                    callee=name, position=i + 1, expected=str(expected), actual=str(actual),
                )
        return sig.return_type


def _has_trailing_value(body: BlockExpr) -> bool:
    last = body.statements[-1]
    return isinstance(last, ExprStmt) and not last.terminated


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def check_types(program: Program) -> List[Diagnostic]:
    """Run the gradual type checker over a parsed program."""
    return TypeChecker(program).check()


def check_source(source: str, filename: str = "<stdin>") -> List[Diagnostic]:
    """Lex, parse, run definition checks and type checks.

    A lex, parse or definition error is returned as the single diagnostic.
    """
    from tog.loader import load_program
    from tog.parser import parse

    try:
        program = parse(source, filename)
        load_program(program)
    except TogError as e:
        return [e.diagnostic]
    return check_types(program)
