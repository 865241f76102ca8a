"""Serialize a resolved unit tree into one self-contained Python source.

Each code block is written out as its function definition (decorators
removed) followed by a call that passes its constants. Units appear in
execution order, dependencies first. Only code blocks are exported; other
top-level statements of a unit belong to its declarative body and are not
part of the output.
"""

__all__ = ["export_tree", "block_source"]

import ast
import textwrap

import scriptload


_HEADER = '''\
# Exported by scriptload from {root}
# environment: {environment}
import types as _sl_types

SL_ENVIRONMENT = {environment!r}
SL_GLOBAL = _sl_types.SimpleNamespace()


def _sl_ensure(scope, dotted):
    for name in dotted.split("."):
        if not hasattr(scope, name):
            setattr(scope, name, _sl_types.SimpleNamespace())
        scope = getattr(scope, name)
'''


def export_tree(tree, namespaces, environment):
    """Render the whole tree as Python source.

    Guards are not evaluated and constants are written as literals or
    references to the exported globals. Blocks whose environment filter
    excludes environment are left out.

    Args:
        tree: Resolved UnitTree
        namespaces: NamespaceTree merged from every unit
        environment: (Environment) Environment the export targets

    Returns:
        (str) Python source

    Raises:
        ExportError: A block body cannot be turned back into source
    """
    parts = [_HEADER.format(root=tree.root.key, environment=environment.value)]
    preamble = namespaces.render()
    if preamble:
        parts.append(preamble + "\n")

    for unit in tree.walk_postorder():
        blocks = [block for block in unit.blocks if block.runs_in(environment)]
        if not blocks:
            continue
        lines = [f"# --- {unit.key}"]
        for block in blocks:
            lines.append(block_source(unit, block).rstrip())
            lines.append(_render_call(unit, block, environment))
        parts.append("\n".join(lines) + "\n")

    return "\n\n".join(parts)


def block_source(unit, block):
    """Source text of a block's function definition, without decorators.

    Args:
        unit: Unit whose source defines the block
        block: CodeBlock to extract

    Returns:
        (str) Dedented ``def`` statement

    Raises:
        ExportError: body is not a named function defined in the unit source
    """
    body = block.body
    code = getattr(body, "__code__", None)
    name = getattr(body, "__name__", None)
    if code is None or name is None or name == "<lambda>":
        raise scriptload.ExportError(
            f"cannot export code block {block.name} in {unit.key}: "
            f"only functions defined with def can be exported")
    if not unit.source:
        raise scriptload.ExportError(f"no source recorded for {unit.key}")

    try:
        module = ast.parse(unit.source, filename=unit.key)
    except SyntaxError as e:
        raise scriptload.ExportError(f"cannot parse {unit.key}: {e}") from e

    first_line = code.co_firstlineno
    for node in ast.walk(module):
        if not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            continue
        if node.name != name:
            continue
        starts = [node.lineno] + [d.lineno for d in node.decorator_list]
        if first_line not in starts:
            continue
        lines = unit.source.splitlines()[node.lineno - 1:node.end_lineno]
        return textwrap.dedent("\n".join(lines))

    raise scriptload.ExportError(
        f"cannot find the definition of {block.name} in {unit.key}")


def _render_call(unit, block, environment):
    args = []
    for constant in block.constants:
        args.append(f"{constant}={_render_constant(unit, constant, environment)}")
    return f"{block.body.__name__}({', '.join(args)})"


def _render_constant(unit, name, environment):
    if name == "SL_DIRECTORY":
        return repr(unit.directory)
    if name in ("SL_GLOBAL", "SL_ENVIRONMENT"):
        return name
    if name == "SL_FOREGROUND":
        return repr(environment is scriptload.Environment.FOREGROUND)
    if name == "SL_BACKGROUND":
        return repr(environment is scriptload.Environment.BACKGROUND)
    return "None"
