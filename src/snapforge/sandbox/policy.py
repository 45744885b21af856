"""Static policy check and restricted built-ins for candidate code.

Candidates run with a whitelisted ``__builtins__`` and must pass an AST
scan first. The scan rejects imports, calls to code-execution and
introspection built-ins, and any underscore-prefixed attribute access,
which closes the usual ``obj.__class__.__subclasses__()`` escape routes.
"""

from __future__ import annotations

import ast
import builtins

FORBIDDEN_NAMES = frozenset({
    "eval", "exec", "compile", "open", "input", "__import__",
    "getattr", "setattr", "delattr", "globals", "locals", "vars", "dir",
    "breakpoint", "exit", "quit", "help", "memoryview", "type", "object",
    "super", "classmethod", "staticmethod", "property",
})

FORBIDDEN_ATTRIBUTES = frozenset({
    "gi_frame", "gi_code", "cr_frame", "cr_code", "ag_frame", "ag_code",
    "f_globals", "f_locals", "f_builtins", "f_back", "tb_frame",
    "co_code", "func_globals", "format", "format_map",
})

_SAFE_BUILTIN_NAMES = (
    # Constructors
    "bool", "int", "float", "str", "list", "dict", "tuple", "set", "frozenset",
    # Iteration
    "range", "enumerate", "zip", "map", "filter", "sorted", "reversed", "iter", "next",
    # Aggregation and math
    "len", "min", "max", "sum", "any", "all", "abs", "round", "divmod", "pow",
    # Inspection that cannot reach attributes
    "isinstance", "callable", "repr", "ord", "chr", "hash",
    # Exceptions candidates may raise or catch
    "Exception", "ValueError", "TypeError", "KeyError", "IndexError",
    "AttributeError", "LookupError", "RuntimeError", "ZeroDivisionError",
    "StopIteration",
)


def safe_builtins() -> dict[str, object]:
    """A fresh whitelist of built-ins for one execution context."""
    return {name: getattr(builtins, name) for name in _SAFE_BUILTIN_NAMES}


class PolicyVisitor(ast.NodeVisitor):
    """Collects policy violations in a candidate's AST."""

    def __init__(self) -> None:
        self.violations: list[str] = []

    def _flag(self, node: ast.AST, message: str) -> None:
        line = getattr(node, "lineno", None)
        self.violations.append(f"line {line}: {message}" if line else message)

    def visit_Import(self, node: ast.Import) -> None:
        names = ", ".join(alias.name for alias in node.names)
        self._flag(node, f"import statements are not allowed: 'import {names}'")

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        self._flag(node, f"import statements are not allowed: 'from {node.module} import ...'")

    def visit_Name(self, node: ast.Name) -> None:
        if node.id in FORBIDDEN_NAMES:
            self._flag(node, f"forbidden name '{node.id}'")
        elif node.id.startswith("__"):
            self._flag(node, f"forbidden name '{node.id}'")
        self.generic_visit(node)

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if node.attr.startswith("_"):
            self._flag(node, f"private attribute access '.{node.attr}'")
        elif node.attr in FORBIDDEN_ATTRIBUTES:
            self._flag(node, f"forbidden attribute '.{node.attr}'")
        self.generic_visit(node)

    def visit_Global(self, node: ast.Global) -> None:
        self._flag(node, "'global' statements are not allowed")

    def visit_Nonlocal(self, node: ast.Nonlocal) -> None:
        self._flag(node, "'nonlocal' statements are not allowed")

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        self._flag(node, "async functions are not supported")
        self.generic_visit(node)


def check_source(source: str) -> list[str]:
    """Return policy violations for ``source`` (empty list means allowed).

    Raises:
        SyntaxError: If the source does not parse.
    """
    tree = ast.parse(source, filename="<candidate>", mode="exec")
    visitor = PolicyVisitor()
    visitor.visit(tree)
    return visitor.violations
