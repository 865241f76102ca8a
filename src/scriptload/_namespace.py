"""Namespace tree merged from every unit's declarations."""

__all__ = ["NamespaceTree"]

import json
import types
from collections.abc import MutableMapping

import scriptload




class NamespaceTree:
    """Dotted namespace names declared by units during a load.

    Each declared name is a path of placeholder objects. Declarations from
    every unit merge into one tree, which is materialized into the shared
    scope once resolution completes. Materializing never replaces an
    existing value, so it is safe to repeat.

    ## Examples

    Declaring and merging:
        >>> tree = NamespaceTree()
        >>> tree.declare("app.widgets")
        >>> tree.declare("app.models")
        >>> tree.to_dict()
        {'app': {'widgets': {}, 'models': {}}}

    Materializing into a scope:
        >>> scope = types.SimpleNamespace()
        >>> tree.materialize(scope)
        >>> scope.app.widgets
        namespace()
    """

    def __init__(self):
        self._root = {}

    def __bool__(self):
        return bool(self._root)

    def __contains__(self, dotted_name):
        node = self._root
        for name in dotted_name.split("."):
            if name not in node:
                return False
            node = node[name]
        return True

    def __repr__(self):
        return f"NamespaceTree({self.names()})"

    def declare(self, dotted_name):
        """Declare a dotted name, creating missing intermediate names.

        Args:
            dotted_name: (str) Name like "app.widgets.buttons"

        Raises:
            InvalidNamespaceName: Empty name or empty segment
        """
        if not isinstance(dotted_name, str):
            raise TypeError(f"namespace name must be a str, got {type(dotted_name).__name__}")
        names = dotted_name.split(".")
        if any(name == "" for name in names):
            raise scriptload.InvalidNamespaceName(
                f"empty namespace cannot be declared: {dotted_name!r}")

        node = self._root
        for name in names:
            node = node.setdefault(name, {})

    def merge(self, other):
        """Merge every name from another NamespaceTree into this one."""
        _merge(self._root, other._root)

    def names(self):
        """List of every declared dotted name, leaves and intermediates."""
        result = []

        def walk(node, prefix):
            for name, child in node.items():
                dotted = f"{prefix}{name}"
                result.append(dotted)
                walk(child, dotted + ".")

        walk(self._root, "")
        return result

    def to_dict(self):
        """Nested dict copy of the tree."""
        return json.loads(json.dumps(self._root))

    def materialize(self, scope):
        """Ensure every declared path exists as a nested object under scope.

        Mappings are filled by item, other objects by attribute. Missing
        names become ``types.SimpleNamespace`` placeholders; existing values
        are kept as they are.

        Args:
            scope: Object or mapping to populate
        """
        _materialize(scope, self._root)

    def leaves(self):
        """Dotted names with no declared children."""
        return [name for name in self.names() if not self._lookup(name)]

    def render(self, scope_name="SL_GLOBAL", ensure_name="_sl_ensure"):
        """Python source that builds the placeholders for export.

        The exported header defines ``ensure_name(scope, dotted)``; each leaf
        path gets one call, then every top-level name is bound as a module
        global so exported blocks can refer to it directly.

        Args:
            scope_name: (str) Name of the scope variable in the exported code
            ensure_name: (str) Name of the helper that creates placeholders

        Returns:
            (str) Source lines, empty when nothing was declared
        """
        lines = [f"{ensure_name}({scope_name}, {name!r})" for name in self.leaves()]
        for name in self._root:
            if name.isidentifier():
                lines.append(f"{name} = {scope_name}.{name}")
        return "\n".join(lines)

    def _lookup(self, dotted_name):
        node = self._root
        for name in dotted_name.split("."):
            node = node[name]
        return node


def _merge(dest, src):
    for name, child in src.items():
        _merge(dest.setdefault(name, {}), child)


def _materialize(scope, node):
    for name, child in node.items():
        if isinstance(scope, MutableMapping):
            if name not in scope:
                scope[name] = types.SimpleNamespace()
            value = scope[name]
        else:
            if not hasattr(scope, name):
                setattr(scope, name, types.SimpleNamespace())
            value = getattr(scope, name)
        _materialize(value, child)
