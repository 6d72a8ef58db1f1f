"""
Three-level category tree.

Invariants kept by every write in this module:
  - ``category_name`` is unique across the whole tree (not just siblings).
  - ``level`` ≤ 2 and ``category_type`` mirrors the level.
  - ``ancestry_path == parent.ancestry_path + [parent.id]`` ([] at the root).
  - ``parent_id`` is the only parent/child link; children are queried.

Writes run under the tree-wide document lock and inside one database
transaction, so a failed create/delete leaves no partial subtree behind.
Subtrees are walked with explicit stacks bounded by the depth cap.
"""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional, Sequence

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, func, select

from backoffice.core.database import unit_of_work
from backoffice.core.errors import (
    BackofficeError,
    DuplicateName,
    InvariantViolation,
    MaxDepthExceeded,
    NotFound,
    ValidationError,
)
from backoffice.core.locks import CATEGORY_TREE, document_lock
from backoffice.core.timeutil import utcnow
from backoffice.models.catalog import Product
from backoffice.models.category import (
    CATEGORY_TYPES,
    DESC_MAX_LENGTH,
    MAX_LEVEL,
    NAME_MAX_LENGTH,
    NAME_MIN_LENGTH,
    Category,
)
from backoffice.schemas.requests import CategoryNodeIn
from backoffice.services import catalog


@dataclass
class CategoryNode:
    """A category with its (active) descendants attached."""

    category: Category
    subcategories: list[CategoryNode] = field(default_factory=list)


@dataclass
class BulkError:
    index: int
    category_name: str
    error: str
    detail: str


# ── Validation helpers ────────────────────────────────────────────────────────


def _validate_name(name: Optional[str]) -> str:
    clean = (name or "").strip()
    if len(clean) < NAME_MIN_LENGTH:
        raise ValidationError(
            f"Category name must be at least {NAME_MIN_LENGTH} characters",
            context={"category_name": name},
        )
    if len(clean) > NAME_MAX_LENGTH:
        raise ValidationError(
            f"Category name cannot exceed {NAME_MAX_LENGTH} characters",
            context={"category_name": name},
        )
    return clean


def _validate_description(description: Optional[str]) -> Optional[str]:
    if description is None:
        return None
    clean = description.strip()
    if len(clean) > DESC_MAX_LENGTH:
        raise ValidationError(f"Description cannot exceed {DESC_MAX_LENGTH} characters")
    return clean


def _plan_subtree(specs: Sequence[CategoryNodeIn], level: int) -> list[str]:
    """
    Validate a requested subtree whose top nodes sit at ``level`` and return every
    name in it (pre-order). Raises before anything is written.
    """
    names: list[str] = []
    stack = [(level, spec) for spec in reversed(specs)]
    while stack:
        node_level, spec = stack.pop()
        if node_level > MAX_LEVEL:
            raise MaxDepthExceeded(
                "Maximum category nesting level exceeded",
                context={"category_name": spec.category_name, "max_depth": MAX_LEVEL + 1},
            )
        names.append(_validate_name(spec.category_name))
        _validate_description(spec.description)
        stack.extend((node_level + 1, child) for child in reversed(spec.subcategories or []))
    return names


def _ensure_names_free(session: Session, names: list[str]) -> None:
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise DuplicateName(
                f'Category name "{name}" appears more than once in the request',
                context={"category_name": name},
            )
        seen.add(name)

    taken = session.exec(
        select(Category.category_name).where(col(Category.category_name).in_(names))
    ).all()
    if taken:
        raise DuplicateName(
            f'Category name "{taken[0]}" already exists',
            context={"category_names": sorted(taken)},
        )


def _name_taken(session: Session, name: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(Category.id).where(Category.category_name == name)
    if exclude_id is not None:
        stmt = stmt.where(Category.id != exclude_id)
    return session.exec(stmt).first() is not None


@contextmanager
def _tree_write(session: Session) -> Iterator[None]:
    with document_lock("category", CATEGORY_TREE):
        try:
            with unit_of_work(session):
                yield
        except IntegrityError as exc:
            # Unique index on category_name is the last line of defence
            raise DuplicateName("Category with this name already exists") from exc


# ── Node construction ─────────────────────────────────────────────────────────


def _new_node(name: str, description: Optional[str], parent: Optional[Category]) -> Category:
    level = 0 if parent is None else parent.level + 1
    return Category(
        category_name=_validate_name(name),
        description=_validate_description(description),
        level=level,
        category_type=CATEGORY_TYPES[level],
        parent_id=None if parent is None else parent.id,
        ancestry_path=[] if parent is None else [*parent.ancestry_path, parent.id],
    )


def _materialize(
    session: Session, parent: Category, specs: Sequence[CategoryNodeIn]
) -> list[Category]:
    """Insert ``specs`` beneath ``parent``; returns the direct children created."""
    direct: list[Category] = []
    stack = [(parent, spec) for spec in reversed(specs)]
    while stack:
        owner, spec = stack.pop()
        node = _new_node(spec.category_name, spec.description, owner)
        session.add(node)
        session.flush()  # need the id for the grandchildren's ancestry
        if owner is parent:
            direct.append(node)
        stack.extend((node, child) for child in reversed(spec.subcategories or []))
    return direct


# ── Reads ─────────────────────────────────────────────────────────────────────


def get_category(session: Session, category_id: int) -> Category:
    category = session.get(Category, category_id)
    if category is None:
        raise NotFound("Category not found", context={"category_id": category_id})
    return category


def _by_name(categories: Iterable[Category]) -> list[Category]:
    return sorted(categories, key=lambda c: c.category_name)


def _active_children_map(session: Session) -> dict[Optional[int], list[Category]]:
    rows = session.exec(select(Category).where(Category.is_active == True)).all()  # noqa: E712
    children: dict[Optional[int], list[Category]] = {}
    for row in _by_name(rows):
        children.setdefault(row.parent_id, []).append(row)
    return children


def _build_node(root: Category, children: dict[Optional[int], list[Category]]) -> CategoryNode:
    node = CategoryNode(root)
    stack = [node]
    while stack:
        current = stack.pop()
        current.subcategories = [CategoryNode(c) for c in children.get(current.category.id, [])]
        stack.extend(current.subcategories)
    return node


def list_tree(session: Session) -> list[CategoryNode]:
    """Active top-level categories with active descendants, by name at every level."""
    children = _active_children_map(session)
    roots = [c for c in children.get(None, []) if c.level == 0]
    return [_build_node(root, children) for root in roots]


def get_category_tree(session: Session, category_id: int) -> CategoryNode:
    category = get_category(session, category_id)
    return _build_node(category, _active_children_map(session))


def _child_counts(session: Session, parent_ids: list[int]) -> dict[int, int]:
    if not parent_ids:
        return {}
    rows = session.exec(
        select(Category.parent_id, func.count())
        .where(col(Category.parent_id).in_(parent_ids), Category.is_active == True)  # noqa: E712
        .group_by(Category.parent_id)
    ).all()
    return {parent_id: count for parent_id, count in rows}


def list_by_parent(session: Session, parent_id: int) -> list[tuple[Category, int]]:
    """Active children of ``parent_id`` with each child's own active child count."""
    get_category(session, parent_id)
    children = _by_name(
        session.exec(
            select(Category).where(
                Category.parent_id == parent_id,
                Category.is_active == True,  # noqa: E712
            )
        ).all()
    )
    counts = _child_counts(session, [c.id for c in children])
    return [(c, counts.get(c.id, 0)) for c in children]


def list_parents(session: Session) -> list[tuple[Category, int, int]]:
    """Active level-0 categories as (category, subcategory count, product count)."""
    parents = _by_name(
        session.exec(
            select(Category).where(Category.level == 0, Category.is_active == True)  # noqa: E712
        ).all()
    )
    ids = [p.id for p in parents]
    sub_counts = _child_counts(session, ids)
    product_counts: dict[int, int] = {}
    if ids:
        rows = session.exec(
            select(Product.main_category_id, func.count())
            .where(col(Product.main_category_id).in_(ids))
            .group_by(Product.main_category_id)
        ).all()
        product_counts = {category_id: count for category_id, count in rows}
    return [(p, sub_counts.get(p.id, 0), product_counts.get(p.id, 0)) for p in parents]


def list_dropdown(session: Session) -> list[Category]:
    return _by_name(
        session.exec(select(Category).where(Category.is_active == True)).all()  # noqa: E712
    )


# ── Writes ────────────────────────────────────────────────────────────────────


def create_category(
    session: Session,
    name: str,
    description: Optional[str] = None,
    subcategories: Optional[Sequence[CategoryNodeIn]] = None,
) -> Category:
    """
    Create a top-level category together with an optional subtree.

    Every name in the request is checked against the whole tree before the
    first insert; the subtree is written in one transaction.
    """
    subcategories = subcategories or []
    with _tree_write(session):
        names = [_validate_name(name), *_plan_subtree(subcategories, 1)]
        _ensure_names_free(session, names)

        root = _new_node(name, description, None)
        session.add(root)
        session.flush()
        _materialize(session, root, subcategories)

    session.refresh(root)
    logger.info(f"category: created '{root.category_name}' (id={root.id}) with {len(names) - 1} descendant(s)")
    return root


def add_children(
    session: Session, parent_id: int, specs: Sequence[CategoryNodeIn]
) -> list[Category]:
    """Attach ``specs`` (and their own subtrees) beneath ``parent_id``. All or nothing."""
    if not specs:
        raise ValidationError("At least one subcategory is required")
    with _tree_write(session):
        parent = get_category(session, parent_id)
        if parent.level >= MAX_LEVEL:
            raise MaxDepthExceeded(
                "Maximum category nesting level exceeded",
                context={"parent_id": parent_id, "parent_level": parent.level},
            )
        _ensure_names_free(session, _plan_subtree(specs, parent.level + 1))
        children = _materialize(session, parent, specs)

    for child in children:
        session.refresh(child)
    logger.info(f"category: added {len(children)} child(ren) under id={parent_id}")
    return children


def add_sub_subcategory(
    session: Session, subcategory_id: int, name: str, description: Optional[str] = None
) -> Category:
    parent = get_category(session, subcategory_id)
    if parent.level != 1:
        raise ValidationError("Parent must be a subcategory", context={"parent_level": parent.level})
    spec = CategoryNodeIn(category_name=name, description=description)
    return add_children(session, subcategory_id, [spec])[0]


def rename(
    session: Session,
    category_id: int,
    new_name: Optional[str] = None,
    new_description: Optional[str] = None,
) -> Category:
    with _tree_write(session):
        category = get_category(session, category_id)
        if new_name is not None:
            name = _validate_name(new_name)
            if name != category.category_name and _name_taken(session, name, exclude_id=category.id):
                raise DuplicateName(
                    "Category with this name already exists", context={"category_name": name}
                )
            category.category_name = name
        if new_description is not None:
            category.description = _validate_description(new_description)
        category.updated_at = utcnow()
        session.add(category)

    session.refresh(category)
    return category


def _collect_subtree(session: Session, root: Category) -> list[Category]:
    """Root first, then each level below it (breadth-first)."""
    subtree = [root]
    frontier = [root]
    for _ in range(MAX_LEVEL - root.level):
        frontier = list(
            session.exec(
                select(Category).where(col(Category.parent_id).in_([n.id for n in frontier]))
            ).all()
        )
        if not frontier:
            break
        subtree.extend(frontier)

    if frontier:
        deeper = session.exec(
            select(Category.id).where(col(Category.parent_id).in_([n.id for n in frontier]))
        ).first()
        if deeper is not None:
            raise InvariantViolation(
                "Category tree is deeper than the maximum depth",
                context={"category_id": root.id},
            )
    return subtree


def delete_category(session: Session, category_id: int) -> list[int]:
    """
    Delete a category and every descendant, deepest first, in one transaction.

    Deletion always cascades. Products filed under any removed node keep
    existing with that category slot cleared. Returns the deleted ids.
    """
    with _tree_write(session):
        root = get_category(session, category_id)
        subtree = _collect_subtree(session, root)
        deleted = [node.id for node in subtree]
        for node in reversed(subtree):
            catalog.clear_category_reference(session, node.id)
            session.delete(node)
            session.flush()

    logger.info(f"category: deleted id={category_id} and {len(deleted) - 1} descendant(s)")
    return deleted


def create_bulk(
    session: Session, specs: Sequence[CategoryNodeIn]
) -> tuple[list[Category], list[BulkError]]:
    """
    Best-effort bulk creation: each entry is its own all-or-nothing
    ``create_category``; failures are reported per entry, not raised.
    """
    created: list[Category] = []
    errors: list[BulkError] = []
    for index, spec in enumerate(specs):
        try:
            created.append(
                create_category(session, spec.category_name, spec.description, spec.subcategories)
            )
        except BackofficeError as exc:
            logger.warning(f"category bulk: entry {index} '{spec.category_name}' failed: {exc.message}")
            errors.append(BulkError(index, spec.category_name, exc.kind, exc.message))
    return created, errors
