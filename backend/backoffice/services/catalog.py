"""
Product catalog.

The category tree only needs two things from here:
``count_products_in_category`` and ``clear_category_reference``. The rest is
plain product CRUD used by the admin UI and by quotation line items that
reference a catalog product.
"""
from __future__ import annotations

import uuid
from typing import Optional, Sequence

from loguru import logger
from sqlalchemy import or_, update
from sqlmodel import Session, col, func, select

from backoffice.core.database import unit_of_work
from backoffice.core.errors import DuplicateName, NotFound, ValidationError
from backoffice.core.storage import LocalAssetStorage
from backoffice.core.timeutil import utcnow
from backoffice.models.catalog import Product
from backoffice.models.category import Category
from backoffice.schemas.requests import ProductIn, ProductUpdate

_CATEGORY_SLOTS = ("main_category_id", "sub_category_id", "sub_sub_category_id")


# ── Category collaborator ─────────────────────────────────────────────────────


def count_products_in_category(session: Session, category_id: int) -> int:
    """Products filed under ``category_id`` in any of their three slots."""
    stmt = select(func.count()).select_from(Product).where(
        or_(*(getattr(Product, slot) == category_id for slot in _CATEGORY_SLOTS))
    )
    return session.exec(stmt).one()


def clear_category_reference(session: Session, category_id: int) -> int:
    """
    Detach every product from ``category_id``. Products themselves are kept.
    Runs inside the caller's transaction; returns the number of slots cleared.
    """
    cleared = 0
    for slot in _CATEGORY_SLOTS:
        column = getattr(Product, slot)
        result = session.exec(
            update(Product).where(column == category_id).values({slot: None})
        )
        cleared += result.rowcount or 0
    if cleared:
        logger.info(f"catalog: cleared {cleared} product reference(s) to category {category_id}")
    return cleared


# ── Helpers ───────────────────────────────────────────────────────────────────


def _validate_category_slots(
    session: Session,
    main_id: Optional[int],
    sub_id: Optional[int],
    sub_sub_id: Optional[int],
) -> None:
    """Each slot must hold a node of the matching level under the slot above."""
    if main_id is None:
        raise ValidationError("Main category is required")
    main = session.get(Category, main_id)
    if main is None or main.level != 0:
        raise ValidationError("Main category must be an existing parent category")

    if sub_id is None:
        if sub_sub_id is not None:
            raise ValidationError("Sub-subcategory requires a subcategory")
        return
    sub = session.get(Category, sub_id)
    if sub is None or sub.level != 1 or sub.parent_id != main.id:
        raise ValidationError("Subcategory must belong to the main category")

    if sub_sub_id is None:
        return
    sub_sub = session.get(Category, sub_sub_id)
    if sub_sub is None or sub_sub.level != 2 or sub_sub.parent_id != sub.id:
        raise ValidationError("Sub-subcategory must belong to the subcategory")


def _ensure_code_free(session: Session, code: str, exclude_id: Optional[int] = None) -> None:
    stmt = select(Product.id).where(Product.code == code)
    if exclude_id is not None:
        stmt = stmt.where(Product.id != exclude_id)
    if session.exec(stmt).first() is not None:
        raise DuplicateName(f'Product code "{code}" already exists')


# ── CRUD ──────────────────────────────────────────────────────────────────────


def get_product(session: Session, product_id: int) -> Product:
    product = session.get(Product, product_id)
    if product is None:
        raise NotFound("Product not found", context={"product_id": product_id})
    return product


def category_name_for(session: Session, product: Product) -> Optional[str]:
    """Name of the product's main category, if it still has one."""
    if product.main_category_id is None:
        return None
    category = session.get(Category, product.main_category_id)
    return category.category_name if category else None


def create_product(session: Session, data: ProductIn) -> Product:
    with unit_of_work(session):
        _ensure_code_free(session, data.code)
        _validate_category_slots(
            session, data.main_category_id, data.sub_category_id, data.sub_sub_category_id
        )
        product = Product(**data.model_dump())
        session.add(product)
    session.refresh(product)
    logger.info(f"catalog: created product {product.code} (id={product.id})")
    return product


def list_products(
    session: Session,
    *,
    category_id: Optional[int] = None,
    search: Optional[str] = None,
    active_only: bool = True,
    page: int = 1,
    page_size: int = 50,
) -> tuple[int, list[Product]]:
    stmt = select(Product)
    if active_only:
        stmt = stmt.where(Product.is_active == True)  # noqa: E712
    if category_id is not None:
        stmt = stmt.where(
            or_(*(getattr(Product, slot) == category_id for slot in _CATEGORY_SLOTS))
        )
    if search:
        stmt = stmt.where(
            (col(Product.product_name).contains(search))
            | (col(Product.code).contains(search))
        )

    total = session.exec(select(func.count()).select_from(stmt.subquery())).one()
    stmt = stmt.order_by(Product.product_name).offset((page - 1) * page_size).limit(page_size)
    return total, list(session.exec(stmt).all())


def update_product(
    session: Session, product_id: int, patch: ProductUpdate, storage: LocalAssetStorage
) -> Product:
    changes = patch.model_dump(exclude_unset=True)
    with unit_of_work(session):
        product = get_product(session, product_id)
        old_assets = {product.product_image, *product.product_gallery} - {None}

        if "code" in changes and changes["code"] != product.code:
            _ensure_code_free(session, changes["code"], exclude_id=product.id)
        if any(slot in changes for slot in _CATEGORY_SLOTS):
            _validate_category_slots(
                session,
                changes.get("main_category_id", product.main_category_id),
                changes.get("sub_category_id", product.sub_category_id),
                changes.get("sub_sub_category_id", product.sub_sub_category_id),
            )

        for key, value in changes.items():
            setattr(product, key, value)
        product.updated_at = utcnow()
        session.add(product)

    # Only drop files once the new references are committed
    kept = {product.product_image, *product.product_gallery} - {None}
    storage.delete_assets(sorted(old_assets - kept))
    session.refresh(product)
    return product


def attach_image(
    session: Session,
    product_id: int,
    filename: str,
    data: bytes,
    storage: LocalAssetStorage,
) -> Product:
    """Store ``data`` as the product's main image, replacing any previous one."""
    product = get_product(session, product_id)
    stored = storage.save_asset(f"{product.id}-{filename}", data)
    previous = product.product_image
    with unit_of_work(session):
        product.product_image = stored
        product.updated_at = utcnow()
        session.add(product)
    if previous and previous != stored and previous not in product.product_gallery:
        storage.delete_asset(previous)
    session.refresh(product)
    return product


# ── Gallery ───────────────────────────────────────────────────────────────────


def get_gallery(session: Session, product_id: int) -> list[str]:
    return list(get_product(session, product_id).product_gallery)


def add_gallery_images(
    session: Session,
    product_id: int,
    uploads: Sequence[tuple[str, bytes]],
    storage: LocalAssetStorage,
) -> Product:
    """Append uploaded images to the gallery, in upload order."""
    if not uploads:
        raise ValidationError("No images uploaded")
    product = get_product(session, product_id)
    stored = [
        storage.save_asset(f"{product.id}-{uuid.uuid4().hex[:8]}-{filename}", data)
        for filename, data in uploads
    ]
    try:
        with unit_of_work(session):
            product.product_gallery = [*product.product_gallery, *stored]
            product.updated_at = utcnow()
            session.add(product)
    except Exception:
        storage.delete_assets(stored)
        raise
    session.refresh(product)
    logger.info(f"catalog: added {len(stored)} gallery image(s) to product {product.id}")
    return product


def remove_gallery_image(
    session: Session, product_id: int, index: int, storage: LocalAssetStorage
) -> Product:
    """Drop the gallery image at ``index`` and delete its file."""
    with unit_of_work(session):
        product = get_product(session, product_id)
        gallery = list(product.product_gallery)
        if not 0 <= index < len(gallery):
            raise ValidationError(
                "Invalid image index", context={"index": index, "gallery_size": len(gallery)}
            )
        removed = gallery.pop(index)
        product.product_gallery = gallery
        product.updated_at = utcnow()
        session.add(product)

    if removed != product.product_image and removed not in gallery:
        storage.delete_asset(removed)
    session.refresh(product)
    return product


def delete_product(session: Session, product_id: int, storage: LocalAssetStorage) -> None:
    with unit_of_work(session):
        product = get_product(session, product_id)
        assets = [product.product_image, *product.product_gallery]
        session.delete(product)
    storage.delete_assets(assets)
    logger.info(f"catalog: deleted product {product_id}")
