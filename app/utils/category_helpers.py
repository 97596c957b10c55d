# app/utils/category_helpers.py
"""Helpers operating on plain category trees (dicts with a children list)"""
import copy
import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.services.category_tree import CHILD_FIELD, TreeStructureError

# Fields of a nested category that an update never overwrites
STRUCTURAL_FIELDS = {
    "id",
    "parent",
    CHILD_FIELD,
    "created_at",
    "create_created_date",
    "create_uuid",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _same_id(left: Any, right: Any) -> bool:
    return left is not None and right is not None and str(left) == str(right)


def _checked_children(node: Mapping) -> List[Any]:
    children = node.get(CHILD_FIELD)
    if children is None:
        return []
    if not isinstance(children, (list, tuple)):
        raise TreeStructureError(
            f"Field '{CHILD_FIELD}' must be a list, got {type(children).__name__}"
        )
    return list(children)


def _checked_node(node: Any) -> Mapping:
    if not isinstance(node, Mapping):
        raise TreeStructureError(f"Category node must be a mapping, got {type(node).__name__}")
    return node


def link_parents(children: Any, parent_id: Any) -> Any:
    """
    Copy plain child nodes, giving each an ``id`` and its enclosing ``parent``
    where they are missing.

    Values that are not plain trees are returned as they are, for the tree
    builder to reject.
    """
    if not isinstance(children, (list, tuple)):
        return children

    linked = []
    for child in children:
        if not isinstance(child, Mapping):
            linked.append(child)
            continue
        node = dict(child)
        node["id"] = node.get("id") or uuid.uuid4()
        node["parent"] = node.get("parent") or parent_id
        if node.get(CHILD_FIELD) is not None:
            node[CHILD_FIELD] = link_parents(node[CHILD_FIELD], node["id"])
        linked.append(node)
    return linked


def filter_inactive_children(category: Dict[str, Any]) -> Dict[str, Any]:
    """
    Drop inactive children at every depth.

    The category itself is kept whatever its state; it is modified in place
    and returned.
    """
    children = category.get("children")
    if isinstance(children, list):
        category["children"] = [
            filter_inactive_children(child) for child in children if child.get("active", True)
        ]
    return category


def build_breadcrumbs(category: Dict[str, Any], parent_crumb: str = "") -> Dict[str, Any]:
    """Set ``bread_crumb`` to the path of names from the root, e.g. 'Chess > Openings'"""
    name = category.get("name") or ""
    category["bread_crumb"] = f"{parent_crumb} > {name}" if parent_crumb else name

    for child in category.get("children") or []:
        build_breadcrumbs(child, category["bread_crumb"])

    return category


def flatten_descendants(categories: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Flatten every descendant of the given roots, depth-first.

    Roots themselves are not included.
    """
    rows = []

    def flatten(node):
        rows.append(
            {
                "name": node.get("name"),
                "bread_crumb": node.get("bread_crumb", node.get("name")),
                "created_at": node.get("created_at"),
                "active": node.get("active", True),
            }
        )
        for child in node.get("children") or []:
            flatten(child)

    for category in categories:
        for child in category.get("children") or []:
            flatten(child)

    return rows


def flatten_tree(categories: List[Dict[str, Any]], parent_crumb: str = "", depth: int = 0) -> List[Dict[str, Any]]:
    """
    Flatten roots and all their descendants into grid rows, depth-first.

    Each row carries its ``bread_crumb``, its ``depth`` (0 for roots) and the
    number of immediate children instead of the sub-tree itself.
    """
    rows = []
    for node in categories:
        crumb = f"{parent_crumb} > {node.get('name')}" if parent_crumb else node.get("name")
        children = node.get(CHILD_FIELD) or []
        row = {key: value for key, value in node.items() if key != CHILD_FIELD}
        row.update(bread_crumb=crumb, depth=depth, children_count=len(children))
        rows.append(row)
        rows.extend(flatten_tree(children, crumb, depth + 1))
    return rows


def find_in_tree(categories: List[Dict[str, Any]], target_id: Any) -> Optional[Dict[str, Any]]:
    """Find the node with ``target_id`` among ``categories`` and their descendants"""
    for category in categories:
        if _same_id(category.get("id"), target_id):
            return category
        found = find_in_tree(category.get(CHILD_FIELD) or [], target_id)
        if found is not None:
            return found
    return None


def shallow_children(category: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Immediate children of ``category`` with their child counts, without grandchildren"""
    return [
        {
            "id": child.get("id"),
            "name": child.get("name"),
            "active": child.get("active", True),
            "children_count": len(child.get(CHILD_FIELD) or []),
        }
        for child in category.get(CHILD_FIELD) or []
    ]


def apply_node_update(node: Dict[str, Any], values: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge ``values`` into a nested category in place.

    Structural fields (id, parent, children, creation data) are kept, and
    ``updated_at`` is stamped.
    """
    for key, value in values.items():
        if key not in STRUCTURAL_FIELDS:
            node[key] = value
    node["updated_at"] = utcnow()
    return node


def _find_by_create_uuid(children: List[Dict[str, Any]], create_uuid: Optional[str]) -> int:
    if create_uuid is None:
        return -1
    for index, child in enumerate(children):
        if child.get("create_uuid") == create_uuid:
            return index
    return -1


def merge_category(existing: Dict[str, Any], incoming: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge an incoming category tree into an existing one.

    Matching is done on ``create_uuid`` at every level. Existing ids and
    creation dates are kept; ``name``, ``active`` and ``create_created_date``
    come from the incoming node. Incoming children without a match are added
    under the merged node; existing children absent from the incoming tree are
    deactivated. Neither argument is modified.

    Raises:
        TreeStructureError: If an incoming node is not a mapping or its
            children are not a list
    """
    incoming = _checked_node(incoming)
    incoming_children = _checked_children(incoming)

    merged = copy.deepcopy(existing)
    merged["id"] = merged.get("id") or uuid.uuid4()
    merged["created_at"] = merged.get("created_at") or utcnow()
    merged["name"] = incoming.get("name", merged.get("name"))
    merged["create_created_date"] = incoming.get("create_created_date")
    merged["active"] = incoming.get("active", True)
    if incoming.get("create_uuid") is not None:
        merged["create_uuid"] = incoming["create_uuid"]

    children = merged.get("children") or []
    unmatched = list(range(len(children)))

    for incoming_child in incoming_children:
        incoming_child = _checked_node(incoming_child)
        index = _find_by_create_uuid(children, incoming_child.get("create_uuid"))
        if index != -1:
            child = merge_category(children[index], incoming_child)
            child["updated_at"] = utcnow()
            children[index] = child
            if index in unmatched:
                unmatched.remove(index)
        else:
            new_child = {"parent": merged["id"], "create_uuid": incoming_child.get("create_uuid"), "children": []}
            children.append(merge_category(new_child, incoming_child))

    for index in unmatched:
        children[index]["active"] = False

    merged["children"] = children
    return merged
