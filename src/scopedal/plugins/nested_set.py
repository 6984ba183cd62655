"""
NestedSet plugin: stores a tree as (left, right) pairs, optionally one tree per group.
"""

import typing as t

from ..constants import NESTED_SET_OFFSET
from ..define import fetcher
from ..exceptions import GroupMismatch, InvalidMove
from ..types import ScopeFn
from . import ModelPlugin

if t.TYPE_CHECKING:
    from ..models import Model
    from ..static_model import StaticModel


class NestedSetNode:
    """
    In-memory tree built from elements ordered by 'left' (see NestedSet.get_nested_set).
    """

    def __init__(self, element: t.Any, parent: t.Optional["NestedSetNode"] = None) -> None:
        """
        Create a node; attaching it to the parent is done by add_child.
        """
        self.element = element
        self.parent = parent
        self.children: list["NestedSetNode"] = []

    def __repr__(self) -> str:
        """
        Show the element and the number of children.
        """
        return f"<NestedSetNode {self.element!r} ({len(self.children)} children)>"

    def __str__(self) -> str:
        """
        Indented outline of this subtree.
        """
        return "\n".join(f"{'  ' * (node.get_depth() - self.get_depth())}{node.element}" for node in self._walk())

    def _walk(self) -> t.Iterator["NestedSetNode"]:
        yield self
        for child in self.children:
            yield from child._walk()

    def add_child(self, node: "NestedSetNode") -> "NestedSetNode":
        """
        Append a child node.
        """
        node.parent = self
        self.children.append(node)
        return node

    def get_depth(self) -> int:
        """
        Number of ancestors of this node in the built tree.
        """
        depth, node = 0, self.parent
        while node is not None:
            depth += 1
            node = node.parent
        return depth

    def get_nodes_at_depth(self, depth: int) -> list["NestedSetNode"]:
        """
        Descendants exactly `depth` levels below this node (0 is the node itself).
        """
        if depth <= 0:
            return [self]
        return [node for child in self.children for node in child.get_nodes_at_depth(depth - 1)]

    def has_child(self, element: "Model") -> bool:
        """
        Is the element a direct child?
        """
        identifier = element.get_unique_identifier()
        return any(child.element.get_unique_identifier() == identifier for child in self.children)

    def has_descendant(self, element: "Model") -> bool:
        """
        Is the element anywhere below this node?
        """
        return any(child.has_child(element) or child.has_descendant(element) for child in self.children)

    def is_leaf(self) -> bool:
        """
        A node without children.
        """
        return not self.children

    def get_element_node(self, element: "Model") -> t.Optional["NestedSetNode"]:
        """
        The node of an element in this subtree, or None.
        """
        identifier = element.get_unique_identifier()
        for node in self._walk():
            if node.element.get_unique_identifier() == identifier:
                return node
        return None

    def get_path(self) -> list[t.Any]:
        """
        Elements from the top of the built tree down to (and including) this node.
        """
        path, node = [], t.cast(t.Optional[NestedSetNode], self)
        while node is not None:
            path.append(node.element)
            node = node.parent
        return path[::-1]

    def flatten(self) -> list[t.Any]:
        """
        Elements of this subtree in 'left' order.
        """
        return [node.element for node in self._walk()]

    @classmethod
    def from_elements(cls, elements: t.Sequence[t.Any]) -> t.Optional["NestedSetNode"]:
        """
        Build the tree from elements ordered by 'left'; the first element is the top.
        """
        if not elements:
            return None

        top = cls(elements[0])
        stack = [top]
        for element in elements[1:]:
            while len(stack) > 1 and element["right"] > stack[-1].element["right"]:
                stack.pop()
            stack.append(stack[-1].add_child(cls(element)))
        return top


class NestedSet(ModelPlugin):
    """
    Adds the fields 'left' and 'right'; a new node starts at -1/-1 until it is placed with insert_at & co.

    Example:
        class Category(Model, plugins=[NestedSet], nested_set_group_fields=["site_id"]):
            id: int
            site_id: int
            name: str

        root = manager.Category.get_root()
        root.append_child(Category(site_id=1, name="Shoes").set_manager(manager))
    """

    fields = ("left", "right")
    settings = ("nested_set_group_fields",)

    @property
    def group_fields(self) -> list[str]:
        """
        Fields that separate the trees.
        """
        return list(self.setting("nested_set_group_fields") or ())

    def local_scope(self) -> ScopeFn:
        """
        Restrict a query to the tree of this node.
        """
        return self.group_scope(self.group_fields)

    @property
    def size(self) -> int:
        """
        Number of left/right positions this subtree takes.
        """
        return t.cast(int, self.model.right - self.model.left + 1)

    # -- reading --

    @fetcher
    def get_root(static_model: "StaticModel", assoc: bool = False) -> t.Any:
        """
        The node with the lowest 'left' within the pending scopes.
        """
        return static_model.query().order("@left", "ASC").first(assoc=assoc)

    def get_path(self, assoc: bool = False) -> list[t.Any]:
        """
        Ancestors from the top down to this node (included).
        """
        return t.cast(
            list[t.Any],
            self.model.select()
            .scope(self.local_scope())
            .where("@left <= ?", [self.model.left])
            .where("@right >= ?", [self.model.right])
            .order("@left", "ASC")
            .all(assoc=assoc),
        )

    def get_parent(self, assoc: bool = False) -> t.Any:
        """
        The closest ancestor, None for the top node.
        """
        return (
            self.model.select()
            .scope(self.local_scope())
            .where("@left < ?", [self.model.left])
            .where("@right > ?", [self.model.right])
            .order("@left", "DESC")
            .first(assoc=assoc)
        )

    def get_depth(self) -> int:
        """
        Number of ancestors.
        """
        row = (
            self.model.select()
            .scope(self.local_scope())
            .alias("COUNT(@left)", "@depth")
            .where("@left < ?", [self.model.left])
            .where("@right > ?", [self.model.right])
            .first(assoc=True)
        )
        if not row or row.get("depth") is None:
            return 0
        return int(row["depth"])

    def get_leaf_nodes(self, assoc: bool = False) -> list[t.Any]:
        """
        Every node without children in this node's tree (its group), in 'left' order.
        """
        return t.cast(
            list[t.Any],
            self.model.select()
            .scope(self.local_scope())
            .where("@right = @left + 1")
            .order("@left", "ASC")
            .all(assoc=assoc),
        )

    def get_nested_set(self) -> t.Optional[NestedSetNode]:
        """
        This node and its descendants as an in-memory tree.
        """
        elements = (
            self.model.select()
            .scope(self.local_scope())
            .where("@left >= ?", [self.model.left])
            .where("@right <= ?", [self.model.right])
            .order("@left", "ASC")
            .all()
        )
        return NestedSetNode.from_elements(elements)

    def is_leaf(self) -> bool:
        """
        A node without descendants.
        """
        return bool(self.model.right - self.model.left == 1)

    def descendant_count(self) -> int:
        """
        Number of nodes below this one.
        """
        return t.cast(int, (self.model.right - self.model.left - 1) // 2)

    # -- writing --

    def increase_indexes(self, amount: int) -> bool:
        """
        Shift this subtree (by its current in-memory bounds) by amount.
        """
        return t.cast(
            bool,
            self.model.select()
            .scope(self.local_scope())
            .set("@left = @left + ?", [amount])
            .set("@right = @right + ?", [amount])
            .where("@left >= ?", [self.model.left])
            .where("@right <= ?", [self.model.right])
            .update(),
        )

    def create_space(self) -> None:
        """
        Open a gap of this subtree's size at its current 'left'.
        """
        size, left = self.size, self.model.left
        self.model.select().scope(self.local_scope()).set("@right = @right + ?", [size]).where(
            "@right >= ?", [left]
        ).update()
        self.model.select().scope(self.local_scope()).set("@left = @left + ?", [size]).where(
            "@left >= ?", [left]
        ).update()

    def remove_space(self) -> None:
        """
        Close the gap this subtree leaves behind its current 'right'.
        """
        size, right = self.size, self.model.right
        self.model.select().scope(self.local_scope()).set("@right = @right - ?", [size]).where(
            "@right > ?", [right]
        ).update()
        self.model.select().scope(self.local_scope()).set("@left = @left - ?", [size]).where(
            "@left > ?", [right]
        ).update()

    def compare_group(self, node: "Model") -> None:
        """
        A new node joins the group of node; an existing node may not switch groups.
        """
        for field in self.group_fields:
            if self.model.is_new():
                setattr(self.model, field, getattr(node, field))
            elif getattr(self.model, field) != getattr(node, field):
                raise GroupMismatch()

    def insert_at(self, new_left: int) -> None:
        """
        Place a new node, or move an existing subtree, so that its 'left' becomes new_left.

        An existing subtree is parked at a large offset, the gap is closed, space is opened at
        the target and the subtree is shifted into it.
        """
        model = self.model
        left, right = model.left, model.right
        if left <= new_left <= right:
            raise InvalidMove()

        is_new = model.is_new()
        decrease = 0
        if not is_new:
            self.increase_indexes(NESTED_SET_OFFSET)
            self.remove_space()
            if new_left >= left:
                new_left -= right - left + 1
            decrease = NESTED_SET_OFFSET - (new_left - left)

        width = 1 if is_new else right - left
        model.left, model.right = new_left, new_left + width
        self.create_space()

        if is_new:
            model.save()
            return

        model.left, model.right = left + NESTED_SET_OFFSET, right + NESTED_SET_OFFSET
        self.increase_indexes(-decrease)

        model.left, model.right = new_left, new_left + width
        model.mark_as_saved()

    def insert_after(self, node: "Model") -> None:
        """
        Become the next sibling of node.
        """
        self.compare_group(node)
        self.insert_at(node.right + 1)

    def insert_before(self, node: "Model") -> None:
        """
        Become the previous sibling of node.
        """
        self.compare_group(node)
        self.insert_at(node.left)

    def prepend_child(self, child: "Model") -> None:
        """
        Place child as first child of this node.
        """
        child.compare_group(self.model)
        child.insert_at(self.model.left + 1)
        self._refresh()

    def append_child(self, child: "Model") -> None:
        """
        Place child as last child of this node.
        """
        child.compare_group(self.model)
        child.insert_at(self.model.right)
        self._refresh()

    def _refresh(self) -> None:
        if not self.model.is_new():
            self.model.refresh()

    # -- events --

    def after_construct(self) -> None:
        """
        Not placed in a tree yet.
        """
        self.model.left = -1
        self.model.right = -1

    def after_delete(self) -> None:
        """
        Delete the descendants and close the gap.
        """
        (
            self.model.select()
            .scope(self.local_scope())
            .where("@left > ?", [self.model.left])
            .where("@right < ?", [self.model.right])
            .delete()
        )
        self.remove_space()
