"""Type registry: structs, enums, traits, and the method tables.

Inherent methods are keyed by type name; trait methods by
(trait name, type name). ``resolve_method`` implements the dispatch order:

  1. an inherent method on the receiver type;
  2. the single trait method of that name among the traits the type
     implements (two or more candidates is a DispatchError);
  3. otherwise MethodNotFoundError.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from tog.ast_nodes import EnumDef, FunctionDef, StructDef, TraitDef
from tog.errors import (
    DispatchError, MethodNotFoundError, SourceLocation, TogRuntimeError,
    TogTypeError, TraitConformanceError,
)
from tog.values import StructLayout


@dataclass(frozen=True)
class ResolvedMethod:
    function: FunctionDef
    type_name: str
    trait_name: Optional[str] = None  # None for inherent methods


class TypeRegistry:
    def __init__(self) -> None:
        self.structs: dict[str, StructDef] = {}
        self.layouts: dict[str, StructLayout] = {}
        self.enums: dict[str, EnumDef] = {}
        self.traits: dict[str, TraitDef] = {}
        self.inherent: dict[str, dict[str, FunctionDef]] = {}
        self.trait_impls: dict[tuple[str, str], dict[str, FunctionDef]] = {}
        self._prelude: set[str] = set()
        self._frozen = False

    # -------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------

    def _check_mutable(self) -> None:
        if self._frozen:
            raise TogRuntimeError("Type registry is frozen after program load")

    def freeze(self) -> None:
        self._frozen = True

    def _check_type_name_free(self, name: str, location: Optional[SourceLocation]) -> None:
        if name in self.structs or (name in self.enums and name not in self._prelude):
            raise TogTypeError(
                f"Type '{name}' is defined more than once",
                location,
                {"name": name},
            )

    def register_prelude_enum(self, enum: EnumDef) -> None:
        self._check_mutable()
        self.enums[enum.name] = enum
        self._prelude.add(enum.name)

    def register_struct(self, struct: StructDef) -> None:
        self._check_mutable()
        self._check_type_name_free(struct.name, struct.location)
        seen: set[str] = set()
        for fd in struct.fields:
            if fd.name in seen:
                raise TogTypeError(
                    f"Struct '{struct.name}' declares field '{fd.name}' more than once",
                    fd.location,
                    {"struct": struct.name, "field": fd.name},
                )
            seen.add(fd.name)
        if struct.name in self._prelude:
            del self.enums[struct.name]
            self._prelude.discard(struct.name)
        self.structs[struct.name] = struct
        self.layouts[struct.name] = StructLayout(struct.name, tuple(f.name for f in struct.fields))

    def register_enum(self, enum: EnumDef) -> None:
        self._check_mutable()
        self._check_type_name_free(enum.name, enum.location)
        seen: set[str] = set()
        for v in enum.variants:
            if v.name in seen:
                raise TogTypeError(
                    f"Enum '{enum.name}' declares variant '{v.name}' more than once",
                    v.location,
                    {"enum": enum.name, "variant": v.name},
                )
            seen.add(v.name)
        self.enums[enum.name] = enum
        self._prelude.discard(enum.name)

    def register_trait(self, trait: TraitDef) -> None:
        self._check_mutable()
        if trait.name in self.traits:
            raise TogTypeError(
                f"Trait '{trait.name}' is defined more than once",
                trait.location,
                {"name": trait.name},
            )
        self.traits[trait.name] = trait

    def add_inherent_method(self, type_name: str, method: FunctionDef) -> None:
        self._check_mutable()
        table = self.inherent.setdefault(type_name, {})
        if method.name in table:
            raise TraitConformanceError(
                f"Method '{method.name}' is defined more than once for '{type_name}'",
                method.location,
                {"type": type_name, "method": method.name},
            )
        table[method.name] = method

    def add_trait_impl(self, trait_name: str, type_name: str, methods: list[FunctionDef],
                       location: Optional[SourceLocation] = None) -> None:
        self._check_mutable()
        key = (trait_name, type_name)
        if key in self.trait_impls:
            raise TraitConformanceError(
                f"Trait '{trait_name}' is implemented more than once for '{type_name}'",
                location,
                {"trait": trait_name, "type": type_name},
            )
        table: dict[str, FunctionDef] = {}
        for m in methods:
            if m.name in table:
                raise TraitConformanceError(
                    f"Method '{m.name}' appears more than once in impl {trait_name} for {type_name}",
                    m.location,
                    {"trait": trait_name, "type": type_name, "method": m.name},
                )
            table[m.name] = m
        self.trait_impls[key] = table

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------

    def layout(self, struct_name: str) -> Optional[StructLayout]:
        return self.layouts.get(struct_name)

    def traits_for(self, type_name: str) -> list[str]:
        return sorted(t for (t, ty) in self.trait_impls if ty == type_name)

    def resolve_method(self, type_name: str, method_name: str,
                       location: Optional[SourceLocation] = None) -> ResolvedMethod:
        inherent = self.inherent.get(type_name, {})
        if method_name in inherent:
            return ResolvedMethod(inherent[method_name], type_name)

        candidates: list[tuple[str, FunctionDef]] = []
        for trait_name in self.traits_for(type_name):
            fn = self.trait_impls[(trait_name, type_name)].get(method_name)
            if fn is not None:
                candidates.append((trait_name, fn))

        if len(candidates) == 1:
            trait_name, fn = candidates[0]
            return ResolvedMethod(fn, type_name, trait_name)
        if len(candidates) > 1:
            names = [t for t, _ in candidates]
            raise DispatchError(
                f"Ambiguous method '{method_name}' on '{type_name}': "
                f"provided by traits {', '.join(names)}",
                location,
                {"type": type_name, "method": method_name, "traits": names},
            )
        raise MethodNotFoundError(
            f"No method '{method_name}' found for type '{type_name}'",
            location,
            {"type": type_name, "method": method_name},
        )
