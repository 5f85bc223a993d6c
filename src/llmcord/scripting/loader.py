from __future__ import annotations

import ast
from dataclasses import dataclass
from types import CodeType
from typing import Union

from ..core.exceptions import CompileError, ScriptRejected

ENTRYPOINT = "__script__"
SCRIPT_FILENAME = "<script>"

_ENTRY_TEMPLATE = f"async def {ENTRYPOINT}():\n    pass\n"

# Attribute prefixes that reach interpreter internals (frames, tracebacks,
# generator/coroutine state).
_BLOCKED_ATTRIBUTE_PREFIXES = ("_", "gi_", "cr_", "ag_", "f_", "tb_")
_BLOCKED_ATTRIBUTES = frozenset({"format", "format_map", "mro"})


@dataclass(frozen=True)
class CompiledScript:
    code: CodeType
    mode: str
    source: str


class _CapabilityValidator(ast.NodeVisitor):
    def visit_Import(self, node: ast.Import) -> None:
        raise ScriptRejected(f"line {node.lineno}: imports are not available")

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        raise ScriptRejected(f"line {node.lineno}: imports are not available")

    def visit_Name(self, node: ast.Name) -> None:
        if node.id.startswith("__"):
            raise ScriptRejected(f"line {node.lineno}: name `{node.id}` is reserved")

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if (
            node.attr.startswith(_BLOCKED_ATTRIBUTE_PREFIXES)
            or node.attr in _BLOCKED_ATTRIBUTES
        ):
            raise ScriptRejected(
                f"line {node.lineno}: attribute `{node.attr}` is not available"
            )
        self.generic_visit(node)


class _ReturnToYield(ast.NodeTransformer):
    """Turn top-level ``return X`` into ``yield X`` followed by a bare return."""

    def _skip(self, node: ast.AST) -> ast.AST:
        return node

    visit_FunctionDef = _skip
    visit_AsyncFunctionDef = _skip
    visit_Lambda = _skip
    visit_ClassDef = _skip

    def visit_Return(self, node: ast.Return) -> Union[ast.AST, list[ast.stmt]]:
        if node.value is None:
            return node
        emit = ast.copy_location(ast.Expr(value=ast.Yield(value=node.value)), node)
        stop = ast.copy_location(ast.Return(value=None), node)
        return [emit, stop]


def _wrap(body: list[ast.stmt]) -> ast.Module:
    module = ast.parse(_ENTRY_TEMPLATE)
    entry = module.body[0]
    assert isinstance(entry, ast.AsyncFunctionDef)
    entry.body = body or [ast.Pass()]
    return ast.fix_missing_locations(module)


def _compile_expression(source: str) -> CodeType:
    tree = ast.parse(source.strip(), filename=SCRIPT_FILENAME, mode="eval")
    _CapabilityValidator().visit(tree)
    body: list[ast.stmt] = [
        ast.copy_location(ast.Expr(value=ast.Yield(value=tree.body)), tree.body)
    ]
    return compile(_wrap(body), SCRIPT_FILENAME, "exec")


def _compile_statements(source: str) -> CodeType:
    tree = ast.parse(source, filename=SCRIPT_FILENAME, mode="exec")
    _CapabilityValidator().visit(tree)
    transformer = _ReturnToYield()
    body: list[ast.stmt] = []
    for statement in tree.body:
        result = transformer.visit(statement)
        if isinstance(result, list):
            body.extend(result)
        elif result is not None:
            body.append(result)
    return compile(_wrap(body), SCRIPT_FILENAME, "exec")


def compile_script(source: str) -> CompiledScript:
    """Compile as an expression with implicit return, else as statements."""
    try:
        return CompiledScript(
            code=_compile_expression(source), mode="expression", source=source
        )
    except SyntaxError as exc:
        expression_error = exc
    try:
        return CompiledScript(
            code=_compile_statements(source), mode="statements", source=source
        )
    except SyntaxError as exc:
        raise CompileError(
            "Failed to load script as an expression: "
            f"{expression_error} | as statements: {exc}",
            expression_error=expression_error,
            statement_error=exc,
        ) from exc
