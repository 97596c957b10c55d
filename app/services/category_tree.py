# app/services/category_tree.py
"""
Category tree materialization.

Turns nested plain mappings into trees of typed instances, and expands the
children of new category records right before they are written.
"""
import logging
from collections.abc import Mapping
from typing import Any, Callable, List, Optional, Sequence

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

CHILD_FIELD = "children"

# Session.info key holding the hook attached to that session
HOOK_INFO_KEY = "category_tree_hook"

ModelFactory = Callable[[Mapping], Any]


class TreeStructureError(ValueError):
    """Raised when a node or its child field has the wrong shape."""

    pass


def build_tree(model_factory: ModelFactory, node: Mapping, child_field: str = CHILD_FIELD) -> Any:
    """
    Recursively convert a plain nested mapping into a typed instance.

    Every element found under ``child_field`` is built first, depth-first and
    in order, then the node itself is wrapped with ``model_factory``. The input
    mapping is not mutated: the factory receives a shallow copy whose child
    field holds the typed children.

    Args:
        model_factory: Callable turning a plain mapping into a typed instance
        node: Plain mapping, optionally holding a list under ``child_field``
        child_field: Name of the recursive field

    Returns:
        The typed instance for ``node``

    Raises:
        TreeStructureError: If a node is not a mapping or its child field is not a list
        Exception: Whatever ``model_factory`` raises, unchanged
    """
    if not isinstance(node, Mapping):
        raise TreeStructureError(
            f"Category node must be a mapping, got {type(node).__name__}"
        )

    children = node.get(child_field)
    if children is None or (isinstance(children, (list, tuple)) and len(children) == 0):
        return model_factory(dict(node))

    expanded = dict(node)
    expanded[child_field] = build_children(model_factory, children, child_field)
    return model_factory(expanded)


def build_children(
    model_factory: ModelFactory, children: Optional[Sequence], child_field: str = CHILD_FIELD
) -> List[Any]:
    """Build every element of a child list, preserving order."""
    if children is None:
        return []
    if not isinstance(children, (list, tuple)):
        raise TreeStructureError(
            f"Field '{child_field}' must be a list, got {type(children).__name__}"
        )
    return [build_tree(model_factory, child, child_field) for child in children]


def _node_children(node: Any, child_field: str) -> Sequence:
    if isinstance(node, Mapping):
        return node.get(child_field) or []
    return getattr(node, child_field, None) or []


def count_nodes(node: Any, child_field: str = CHILD_FIELD) -> int:
    """Count a node and all of its descendants (plain or typed)."""
    return 1 + sum(count_nodes(child, child_field) for child in _node_children(node, child_field))


def tree_depth(node: Any, child_field: str = CHILD_FIELD) -> int:
    """Depth of a tree, a lone node having depth 1."""
    children = _node_children(node, child_field)
    if not children:
        return 1
    return 1 + max(tree_depth(child, child_field) for child in children)


def is_new_record(instance: Any) -> bool:
    """True while an ORM instance has never been flushed to the database."""
    return inspect(instance).key is None


class TreeExpansionHook:
    """
    Pre-write hook that materializes the child tree of new records.

    Records that already have a durable identity are left untouched, even if
    their child field changed, so stored sub-trees are never expanded twice.
    """

    def __init__(
        self,
        model: type,
        node_factory: ModelFactory,
        is_new: Callable[[Any], bool] = is_new_record,
        child_field: str = CHILD_FIELD,
    ):
        self.model = model
        self.node_factory = node_factory
        self.is_new = is_new
        self.child_field = child_field

    def expand(self, record: Any) -> bool:
        """
        Expand ``record``'s children if the record is new.

        Returns:
            True if the tree was built, False if the record already exists
        """
        if not self.is_new(record):
            return False

        children = getattr(record, self.child_field, None)
        typed_children = build_children(self.node_factory, children, self.child_field)
        setattr(record, self.child_field, typed_children)

        logger.debug(
            f"Expanded {sum(count_nodes(c, self.child_field) for c in typed_children)} "
            f"nested node(s) for new {self.model.__name__} '{getattr(record, 'name', '')}'"
        )
        return True

    def before_flush(self, session: Session, flush_context, instances) -> None:
        for record in list(session.new) + list(session.dirty):
            if isinstance(record, self.model):
                self.expand(record)

    def attach(self, session: Session) -> "TreeExpansionHook":
        """
        Register on ``session``'s before_flush event.

        A session carries at most one hook; the one already attached is returned.
        """
        attached = session.info.get(HOOK_INFO_KEY)
        if attached is not None:
            return attached

        event.listen(session, "before_flush", self.before_flush)
        session.info[HOOK_INFO_KEY] = self
        return self
