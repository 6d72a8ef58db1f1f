"""
Category tree API routes.

Endpoints:
  GET    /api/categories                          – active tree, by name at every level
  GET    /api/categories/dropdown                 – flat list of active categories
  GET    /api/categories/parents                  – top level with sub/product counts
  GET    /api/categories/{id}                     – one category with its subtree
  POST   /api/categories                          – create a top-level category (+ subtree)
  POST   /api/categories/bulk                     – best-effort bulk create
  PUT    /api/categories/{id}                     – rename / re-describe
  DELETE /api/categories/{id}                     – cascading delete
  GET    /api/categories/{id}/children            – direct children with child counts
  POST   /api/categories/{id}/children            – attach subcategories
  POST   /api/categories/{id}/sub-subcategories   – attach one leaf under a subcategory
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from backoffice.core.database import get_session
from backoffice.schemas.requests import (
    CategoryChildrenIn,
    CategoryLeafIn,
    CategoryNodeIn,
    CategoryUpdate,
)
from backoffice.schemas.responses import (
    BulkCategoryError,
    BulkCategoryResponse,
    CategoryChildRead,
    CategoryDeleteResponse,
    CategoryRead,
    CategoryTreeNode,
    DropdownCategory,
    ParentCategoryRead,
)
from backoffice.services import category_tree
from backoffice.services.category_tree import CategoryNode

category_router = APIRouter(prefix="/api/categories", tags=["categories"])


def _tree_node(node: CategoryNode) -> CategoryTreeNode:
    return CategoryTreeNode(
        **CategoryRead.model_validate(node.category).model_dump(),
        subcategories=[_tree_node(child) for child in node.subcategories],
    )


# ── Reads ─────────────────────────────────────────────────────────────────────


@category_router.get("/", response_model=list[CategoryTreeNode])
def list_tree(session: Session = Depends(get_session)):
    return [_tree_node(node) for node in category_tree.list_tree(session)]


@category_router.get("/dropdown", response_model=list[DropdownCategory])
def list_dropdown(session: Session = Depends(get_session)):
    return [DropdownCategory.model_validate(c) for c in category_tree.list_dropdown(session)]


@category_router.get("/parents", response_model=list[ParentCategoryRead])
def list_parents(session: Session = Depends(get_session)):
    return [
        ParentCategoryRead(
            **CategoryRead.model_validate(category).model_dump(),
            subcategory_count=sub_count,
            product_count=product_count,
        )
        for category, sub_count, product_count in category_tree.list_parents(session)
    ]


@category_router.get("/{category_id}", response_model=CategoryTreeNode)
def get_category(category_id: int, session: Session = Depends(get_session)):
    return _tree_node(category_tree.get_category_tree(session, category_id))


@category_router.get("/{category_id}/children", response_model=list[CategoryChildRead])
def list_children(category_id: int, session: Session = Depends(get_session)):
    return [
        CategoryChildRead(**CategoryRead.model_validate(child).model_dump(), child_count=count)
        for child, count in category_tree.list_by_parent(session, category_id)
    ]


# ── Writes ────────────────────────────────────────────────────────────────────


@category_router.post("/", response_model=CategoryTreeNode, status_code=status.HTTP_201_CREATED)
def create_category(body: CategoryNodeIn, session: Session = Depends(get_session)):
    root = category_tree.create_category(
        session, body.category_name, body.description, body.subcategories
    )
    return _tree_node(category_tree.get_category_tree(session, root.id))


@category_router.post("/bulk", response_model=BulkCategoryResponse)
def create_bulk(body: list[CategoryNodeIn], session: Session = Depends(get_session)):
    created, errors = category_tree.create_bulk(session, body)
    return BulkCategoryResponse(
        created=[CategoryRead.model_validate(c) for c in created],
        errors=[BulkCategoryError(**vars(e)) for e in errors],
    )


@category_router.put("/{category_id}", response_model=CategoryRead)
def update_category(
    category_id: int, body: CategoryUpdate, session: Session = Depends(get_session)
):
    return category_tree.rename(session, category_id, body.category_name, body.description)


@category_router.delete("/{category_id}", response_model=CategoryDeleteResponse)
def delete_category(category_id: int, session: Session = Depends(get_session)):
    return CategoryDeleteResponse(deleted_ids=category_tree.delete_category(session, category_id))


@category_router.post(
    "/{category_id}/children",
    response_model=list[CategoryRead],
    status_code=status.HTTP_201_CREATED,
)
def add_children(
    category_id: int, body: CategoryChildrenIn, session: Session = Depends(get_session)
):
    return category_tree.add_children(session, category_id, body.subcategories)


@category_router.post(
    "/{category_id}/sub-subcategories",
    response_model=CategoryRead,
    status_code=status.HTTP_201_CREATED,
)
def add_sub_subcategory(
    category_id: int, body: CategoryLeafIn, session: Session = Depends(get_session)
):
    return category_tree.add_sub_subcategory(
        session, category_id, body.category_name, body.description
    )
