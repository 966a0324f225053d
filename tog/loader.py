"""Program loader: registers every definition and runs definition-time checks.

Loading turns a parsed Program into an immutable ProgramContext before any
code runs. All items are registered first, so items may refer to each other
regardless of order. Checks performed here:

  - duplicate type, trait and function names
  - trait conformance of every ``impl Trait for Type`` block
  - enum shape: variant constructions and patterns naming a declared enum
    must name an existing variant with the declared payload arity
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional

from tog.ast_nodes import (
    Program, FunctionDef, StructDef, EnumDef, TraitDef, ImplBlock, Statement,
    EnumVariantExpr, VariantPattern, declared_params,
)
from tog.errors import ArityError, TogNameError, TogTypeError, TraitConformanceError
from tog.registry import TypeRegistry
from tog.values import BuiltinFunction

logger = logging.getLogger(__name__)


PRELUDE_SOURCE = """
enum Option { Some(T), None }
enum Result { Ok(T), Err(E) }
"""


@lru_cache(maxsize=1)
def _prelude_enums() -> tuple[EnumDef, ...]:
    from tog.parser import parse
    program = parse(PRELUDE_SOURCE, filename="<prelude>")
    return tuple(item for item in program.items if isinstance(item, EnumDef))


@dataclass(frozen=True)
class ProgramContext:
    """Everything the evaluator needs besides the environment.

    Built once by ``load_program`` and never mutated afterwards.
    """
    registry: TypeRegistry
    functions: Mapping[str, FunctionDef]
    statements: tuple[Statement, ...]
    builtins: Mapping[str, BuiltinFunction]
    filename: str = "<stdin>"


def load_program(program: Program,
                 builtins: Optional[Mapping[str, BuiltinFunction]] = None) -> ProgramContext:
    """Register all items of ``program`` and check them."""
    if builtins is None:
        from tog.stdlib import BUILTINS
        builtins = BUILTINS

    registry = TypeRegistry()
    for enum in _prelude_enums():
        registry.register_prelude_enum(enum)

    functions: dict[str, FunctionDef] = {}
    statements: list[Statement] = []
    impls: list[ImplBlock] = []

    for item in program.items:
        if isinstance(item, StructDef):
            registry.register_struct(item)
        elif isinstance(item, EnumDef):
            registry.register_enum(item)
        elif isinstance(item, TraitDef):
            registry.register_trait(item)
        elif isinstance(item, ImplBlock):
            impls.append(item)
        elif isinstance(item, FunctionDef):
            if item.name in functions:
                raise TogTypeError(
                    f"Function '{item.name}' is defined more than once",
                    item.location,
                    {"name": item.name},
                )
            functions[item.name] = item
        else:
            statements.append(item)

    for struct in registry.structs.values():
        for method in struct.methods:
            registry.add_inherent_method(struct.name, method)

    for impl in impls:
        if impl.is_trait_impl:
            _check_conformance(registry, impl)
            registry.add_trait_impl(impl.trait_name, impl.type_name, impl.methods, impl.location)
        else:
            for method in impl.methods:
                registry.add_inherent_method(impl.type_name, method)

    _check_enum_shapes(registry, program)

    registry.freeze()
    logger.debug(
        "Loaded %s: %d function(s), %d struct(s), %d enum(s), %d trait(s), %d impl(s)",
        program.filename, len(functions), len(registry.structs),
        len(registry.enums), len(registry.traits), len(impls),
    )
    return ProgramContext(
        registry=registry,
        functions=MappingProxyType(functions),
        statements=tuple(statements),
        builtins=MappingProxyType(dict(builtins)),
        filename=program.filename,
    )


# ---------------------------------------------------------------------------
# Trait conformance
# ---------------------------------------------------------------------------

def _check_conformance(registry: TypeRegistry, impl: ImplBlock) -> None:
    trait = registry.traits.get(impl.trait_name)
    if trait is None:
        raise TraitConformanceError(
            f"Unknown trait '{impl.trait_name}' in impl for '{impl.type_name}'",
            impl.location,
            {"trait": impl.trait_name, "type": impl.type_name},
        )

    provided = {m.name: m for m in impl.methods}
    for sig in trait.methods:
        method = provided.get(sig.name)
        if method is None:
            raise TraitConformanceError(
                f"impl {trait.name} for {impl.type_name} is missing method '{sig.name}'",
                impl.location,
                {"trait": trait.name, "type": impl.type_name, "method": sig.name},
            )
        expected = len(declared_params(sig.params))
        actual = len(declared_params(method.params))
        if expected != actual:
            raise TraitConformanceError(
                f"Method '{sig.name}' in impl {trait.name} for {impl.type_name} takes "
                f"{actual} parameter(s), trait declares {expected}",
                method.location,
                {"trait": trait.name, "type": impl.type_name, "method": sig.name,
                 "expected": expected, "actual": actual},
            )

    declared = {sig.name for sig in trait.methods}
    for method in impl.methods:
        if method.name not in declared:
            raise TraitConformanceError(
                f"Method '{method.name}' is not a member of trait '{trait.name}'",
                method.location,
                {"trait": trait.name, "type": impl.type_name, "method": method.name},
            )


# ---------------------------------------------------------------------------
# Enum shape
# ---------------------------------------------------------------------------

def _walk(node: Any) -> Iterator[Any]:
    """Yield every AST node reachable from ``node``."""
    if isinstance(node, (list, tuple)):
        for child in node:
            yield from _walk(child)
        return
    if not dataclasses.is_dataclass(node) or isinstance(node, type):
        return
    yield node
    for f in dataclasses.fields(node):
        if f.name == "location":
            continue
        yield from _walk(getattr(node, f.name))


def _check_enum_shapes(registry: TypeRegistry, program: Program) -> None:
    for node in _walk(program.items):
        if isinstance(node, EnumVariantExpr):
            arity = 0 if node.payload is None else 1
            what = "constructed"
        elif isinstance(node, VariantPattern):
            arity = 1 if node.has_payload else 0
            what = "matched"
        else:
            continue

        enum = registry.enums.get(node.enum_name)
        if enum is None:
            continue
        variant = enum.variant(node.variant_name)
        if variant is None:
            raise TogNameError(
                f"Enum '{node.enum_name}' has no variant '{node.variant_name}'",
                node.location,
                {"enum": node.enum_name, "variant": node.variant_name},
            )
        if variant.arity != arity:
            raise ArityError(
                f"Variant {node.enum_name}::{node.variant_name} carries {variant.arity} "
                f"value(s) but is {what} with {arity}",
                node.location,
                {"enum": node.enum_name, "variant": node.variant_name,
                 "expected": variant.arity, "actual": arity},
            )
