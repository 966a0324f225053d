"""Lexically scoped variable bindings.

Each scope maps names to values and falls through to its parent on a miss.
Closures keep a reference to the scope they were created in.
"""

from __future__ import annotations

from typing import Any, Optional

from tog.errors import SourceLocation, TogNameError, undefined_name


class Environment:
    def __init__(self, parent: Optional[Environment] = None):
        self.parent = parent
        self.store: dict[str, Any] = {}

    def child(self) -> Environment:
        return Environment(self)

    def define(self, name: str, value: Any) -> None:
        """Bind in this scope, shadowing any outer binding."""
        self.store[name] = value

    def _find(self, name: str) -> Optional[Environment]:
        scope: Optional[Environment] = self
        while scope is not None:
            if name in scope.store:
                return scope
            scope = scope.parent
        return None

    def contains(self, name: str) -> bool:
        return self._find(name) is not None

    def lookup(self, name: str, location: Optional[SourceLocation] = None) -> Any:
        scope = self._find(name)
        if scope is None:
            raise undefined_name(name, location)
        return scope.store[name]

    def assign(self, name: str, value: Any, location: Optional[SourceLocation] = None) -> None:
        """Rebind an existing name in the nearest scope that defines it."""
        scope = self._find(name)
        if scope is None:
            raise TogNameError(
                f"Cannot assign to undefined variable '{name}'",
                location,
                {"name": name},
            )
        scope.store[name] = value

    def __repr__(self) -> str:
        depth = 0
        scope = self.parent
        while scope is not None:
            depth += 1
            scope = scope.parent
        return f"Environment(names={sorted(self.store)}, depth={depth})"
