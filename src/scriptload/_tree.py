"""Arena of units forming the dependency tree of one session.

Units are stored in a list and addressed by index. Parent links live in a
separate index -> parent index map, so moving a unit to a new parent is a
map update plus removing it from the old parent's child list.
"""

__all__ = ["UnitTree"]

import scriptload


class UnitTree:
    """Dependency tree for one session.

    Every key maps to at most one Unit. A Unit is in exactly one parent's
    children at a time; the root has no parent.
    """

    def __init__(self):
        self._units = []        # index -> Unit
        self._registry = {}     # key -> index
        self._parents = {}      # index -> parent index (None for root)
        self._children = {}     # index -> [child index] in declaration order
        self._cursors = {}      # index -> next child position to fetch
        self.root = None

    def __len__(self):
        return len(self._units)

    def __contains__(self, key):
        return key in self._registry

    def __iter__(self):
        return iter(self._units)

    def get(self, key):
        """(Unit | None) Unit registered for key."""
        index = self._registry.get(key)
        if index is None:
            return None
        return self._units[index]

    def create(self, key, parent=None):
        """Register a new PENDING unit for key.

        Args:
            key: (str) Canonical key, must not already be registered
            parent: Unit to attach under; None creates the root

        Returns:
            Unit

        Raises:
            ValueError: key already registered, or a second root
        """
        if key in self._registry:
            raise ValueError(f"unit already registered: {key}")
        if parent is None and self.root is not None:
            raise ValueError("tree already has a root")

        index = len(self._units)
        unit = scriptload.Unit(self, index, key)
        self._units.append(unit)
        self._registry[key] = index
        self._children[index] = []
        self._cursors[index] = 0
        self._parents[index] = None
        if parent is None:
            self.root = unit
        else:
            self.attach(unit, parent)
        return unit

    def attach(self, unit, parent):
        """Make unit the last child of parent, detaching it from any other.

        Raises:
            ValueError: unit has already been fetched
        """
        if unit.is_loaded:
            raise ValueError(f"cannot move {unit.key}, it is already loaded")
        old = self._parents[unit.index]
        if old is not None:
            self._children[old].remove(unit.index)
        self._parents[unit.index] = parent.index
        self._children[parent.index].append(unit.index)

    def parent_of(self, unit):
        index = self._parents.get(unit.index)
        if index is None:
            return None
        return self._units[index]

    def children_of(self, unit):
        return tuple(self._units[i] for i in self._children.get(unit.index, ()))

    def cursor_of(self, unit):
        return self._cursors.get(unit.index, 0)

    def next_pending(self, frontier):
        """Find the next child to fetch, walking upward from frontier.

        At each unit the child under its cursor is taken and the cursor
        advanced. A unit with no children left passes the search to its
        parent.

        Args:
            frontier: Unit to start from

        Returns:
            (Unit | None, Unit | None): the unit to fetch and the unit that is
            now the frontier, or (None, None) once the whole tree is loaded
        """
        node = frontier
        while node is not None:
            index = node.index
            cursor = self._cursors[index]
            children = self._children[index]
            if cursor < len(children):
                self._cursors[index] = cursor + 1
                return self._units[children[cursor]], node
            node = self.parent_of(node)
        return None, None

    def walk_postorder(self, unit=None):
        """Yield every unit below unit (default root), children first.

        Uses an explicit stack, so deep trees do not hit the recursion limit.
        """
        if unit is None:
            unit = self.root
        if unit is None:
            return
        stack = [(unit.index, 0)]
        while stack:
            index, position = stack.pop()
            children = self._children[index]
            if position < len(children):
                stack.append((index, position + 1))
                stack.append((children[position], 0))
            else:
                yield self._units[index]

    def clear(self):
        """Discard every unit."""
        self._units.clear()
        self._registry.clear()
        self._parents.clear()
        self._children.clear()
        self._cursors.clear()
        self.root = None
