"""TOG AST Node definitions.

Top-level items: fn, struct, enum, trait, impl, plus top-level statements.
Expressions include blocks, if and match, so every construct has a value.
Pure data: no behavior lives here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from tog.errors import SourceLocation


# ---------------------------------------------------------------------------
# Type Annotations (in source)
# ---------------------------------------------------------------------------

@dataclass
class TypeAnnotation:
    """A named type; ``element`` is set for ``array[T]``."""
    name: str
    element: Optional[TypeAnnotation] = None
    location: Optional[SourceLocation] = None

    def __str__(self) -> str:
        if self.element is not None:
            return f"{self.name}[{self.element}]"
        return self.name


@dataclass
class Param:
    name: str
    type_annotation: Optional[TypeAnnotation] = None
    location: Optional[SourceLocation] = None


# ---------------------------------------------------------------------------
# Patterns (for match expressions)
# ---------------------------------------------------------------------------

@dataclass
class Pattern:
    """Base class for patterns."""
    location: Optional[SourceLocation] = None


@dataclass
class WildcardPattern(Pattern):
    """The _ pattern: matches anything, binds nothing."""
    pass


@dataclass
class LiteralPattern(Pattern):
    """Matches by value equality (int, float, string, bool, none)."""
    value: Union[int, float, str, bool, None] = None


@dataclass
class IdentPattern(Pattern):
    """Matches anything and binds the whole scrutinee to a name."""
    name: str = ""


@dataclass
class VariantPattern(Pattern):
    """Type::Variant  |  Type::Variant(binder)"""
    enum_name: str = ""
    variant_name: str = ""
    binder: Optional[str] = None
    has_payload: bool = False


@dataclass
class MatchArm:
    """A single arm of a match expression:  pattern => expr"""
    pattern: Pattern = field(default_factory=Pattern)
    body: Expr = field(default_factory=lambda: Expr())
    location: Optional[SourceLocation] = None


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------

@dataclass
class Expr:
    location: Optional[SourceLocation] = None


@dataclass
class IntLiteral(Expr):
    value: int = 0


@dataclass
class FloatLiteral(Expr):
    value: float = 0.0


@dataclass
class StringLiteral(Expr):
    value: str = ""


@dataclass
class BoolLiteral(Expr):
    value: bool = False


@dataclass
class NoneLiteral(Expr):
    pass


@dataclass
class Identifier(Expr):
    name: str = ""


@dataclass
class BinaryOp(Expr):
    op: str = ""
    left: Expr = field(default_factory=Expr)
    right: Expr = field(default_factory=Expr)


@dataclass
class UnaryOp(Expr):
    op: str = ""
    operand: Expr = field(default_factory=Expr)


@dataclass
class FunctionCall(Expr):
    callee: Expr = field(default_factory=Expr)
    args: list[Expr] = field(default_factory=list)


@dataclass
class FieldAccess(Expr):
    obj: Expr = field(default_factory=Expr)
    field_name: str = ""


@dataclass
class MethodCall(Expr):
    obj: Expr = field(default_factory=Expr)
    method_name: str = ""
    args: list[Expr] = field(default_factory=list)


@dataclass
class IndexExpr(Expr):
    obj: Expr = field(default_factory=Expr)
    index: Expr = field(default_factory=Expr)


@dataclass
class ArrayLiteral(Expr):
    elements: list[Expr] = field(default_factory=list)


@dataclass
class StructLiteral(Expr):
    type_name: str = ""
    fields: list[tuple[str, Expr]] = field(default_factory=list)


@dataclass
class EnumVariantExpr(Expr):
    """Type::Variant  |  Type::Variant(expr)"""
    enum_name: str = ""
    variant_name: str = ""
    payload: Optional[Expr] = None


@dataclass
class BlockExpr(Expr):
    statements: list[Statement] = field(default_factory=list)


@dataclass
class IfExpr(Expr):
    condition: Expr = field(default_factory=Expr)
    then_block: BlockExpr = field(default_factory=BlockExpr)
    else_branch: Optional[Expr] = None  # BlockExpr or IfExpr


@dataclass
class MatchExpr(Expr):
    """Pattern match expression:  match expr { Pat => body, ... }"""
    subject: Expr = field(default_factory=Expr)
    arms: list[MatchArm] = field(default_factory=list)


@dataclass
class LambdaExpr(Expr):
    """Anonymous function:  fn(x, y) { x + y }"""
    params: list[Param] = field(default_factory=list)
    body: BlockExpr = field(default_factory=BlockExpr)


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------

@dataclass
class Statement:
    location: Optional[SourceLocation] = None


@dataclass
class LetStmt(Statement):
    name: str = ""
    type_annotation: Optional[TypeAnnotation] = None
    value: Expr = field(default_factory=Expr)


@dataclass
class AssignStmt(Statement):
    target: Expr = field(default_factory=Expr)
    value: Expr = field(default_factory=Expr)


@dataclass
class ExprStmt(Statement):
    expr: Expr = field(default_factory=Expr)
    terminated: bool = False


@dataclass
class ReturnStmt(Statement):
    value: Optional[Expr] = None


@dataclass
class WhileStmt(Statement):
    condition: Expr = field(default_factory=Expr)
    body: BlockExpr = field(default_factory=BlockExpr)


@dataclass
class ForStmt(Statement):
    """for x in collection { ... }"""
    var_name: str = ""
    iterable: Expr = field(default_factory=Expr)
    body: BlockExpr = field(default_factory=BlockExpr)


@dataclass
class BreakStmt(Statement):
    pass


@dataclass
class ContinueStmt(Statement):
    pass


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------

@dataclass
class Item:
    location: Optional[SourceLocation] = None


@dataclass
class FunctionDef(Item, Statement):
    name: str = ""
    params: list[Param] = field(default_factory=list)
    return_type: Optional[TypeAnnotation] = None
    body: BlockExpr = field(default_factory=BlockExpr)


@dataclass
class FieldDef:
    name: str
    type_annotation: Optional[TypeAnnotation] = None
    location: Optional[SourceLocation] = None


@dataclass
class StructDef(Item):
    name: str = ""
    fields: list[FieldDef] = field(default_factory=list)
    methods: list[FunctionDef] = field(default_factory=list)


@dataclass
class VariantDef:
    """A single variant of an enum: Circle(float) or Empty"""
    name: str = ""
    payload_type: Optional[TypeAnnotation] = None
    location: Optional[SourceLocation] = None

    @property
    def arity(self) -> int:
        return 0 if self.payload_type is None else 1


@dataclass
class EnumDef(Item):
    """enum Shape { Circle(float), Square(float), Empty }"""
    name: str = ""
    variants: list[VariantDef] = field(default_factory=list)

    def variant(self, name: str) -> Optional[VariantDef]:
        for v in self.variants:
            if v.name == name:
                return v
        return None


@dataclass
class MethodSig:
    """A trait method signature (no body)."""
    name: str = ""
    params: list[Param] = field(default_factory=list)
    return_type: Optional[TypeAnnotation] = None
    location: Optional[SourceLocation] = None


@dataclass
class TraitDef(Item):
    """trait Shape { fn area(self) -> float }"""
    name: str = ""
    methods: list[MethodSig] = field(default_factory=list)


@dataclass
class ImplBlock(Item):
    """impl Shape for Circle { ... }  or  impl Circle { ... }"""
    trait_name: Optional[str] = None
    type_name: str = ""
    methods: list[FunctionDef] = field(default_factory=list)

    @property
    def is_trait_impl(self) -> bool:
        return self.trait_name is not None


# ---------------------------------------------------------------------------
# Program (root node)
# ---------------------------------------------------------------------------

@dataclass
class Program:
    items: list[Union[Item, Statement]] = field(default_factory=list)
    filename: str = "<stdin>"


def declared_params(params: list[Param]) -> list[Param]:
    """Parameters excluding a leading explicit ``self``."""
    if params and params[0].name == "self":
        return params[1:]
    return params
