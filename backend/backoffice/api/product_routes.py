"""
Product catalog API routes.

Endpoints:
  GET    /api/products              – paginated list (category / search filters)
  GET    /api/products/{id}
  POST   /api/products
  PUT    /api/products/{id}
  DELETE /api/products/{id}         – also removes the product's image files
  POST   /api/products/{id}/image   – multipart upload of the main image
  GET    /api/products/{id}/gallery
  POST   /api/products/{id}/gallery – multipart upload, appended to the gallery
  DELETE /api/products/{id}/gallery/{index}
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlmodel import Session

from backoffice.core.database import get_session
from backoffice.core.storage import LocalAssetStorage, get_storage
from backoffice.models.catalog import Product
from backoffice.schemas.requests import ProductIn, ProductUpdate
from backoffice.schemas.responses import ProductGalleryRead, ProductListResponse, ProductRead
from backoffice.services import catalog

product_router = APIRouter(prefix="/api/products", tags=["products"])


def _read(product: Product, storage: LocalAssetStorage) -> ProductRead:
    read = ProductRead.model_validate(product)
    read.image_url = storage.url_for(product.product_image)
    read.gallery_urls = [storage.url_for(name) for name in product.product_gallery]
    return read


@product_router.get("/", response_model=ProductListResponse)
def list_products(
    category_id: Optional[int] = Query(default=None),
    search: Optional[str] = Query(default=None, description="Search name or code"),
    include_inactive: bool = Query(default=False),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=500),
    session: Session = Depends(get_session),
    storage: LocalAssetStorage = Depends(get_storage),
):
    total, items = catalog.list_products(
        session,
        category_id=category_id,
        search=search,
        active_only=not include_inactive,
        page=page,
        page_size=page_size,
    )
    return ProductListResponse(
        total=total,
        page=page,
        page_size=page_size,
        items=[_read(p, storage) for p in items],
    )


@product_router.get("/{product_id}", response_model=ProductRead)
def get_product(
    product_id: int,
    session: Session = Depends(get_session),
    storage: LocalAssetStorage = Depends(get_storage),
):
    return _read(catalog.get_product(session, product_id), storage)


@product_router.post("/", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
def create_product(
    body: ProductIn,
    session: Session = Depends(get_session),
    storage: LocalAssetStorage = Depends(get_storage),
):
    return _read(catalog.create_product(session, body), storage)


@product_router.put("/{product_id}", response_model=ProductRead)
def update_product(
    product_id: int,
    body: ProductUpdate,
    session: Session = Depends(get_session),
    storage: LocalAssetStorage = Depends(get_storage),
):
    return _read(catalog.update_product(session, product_id, body, storage), storage)


@product_router.delete("/{product_id}")
def delete_product(
    product_id: int,
    session: Session = Depends(get_session),
    storage: LocalAssetStorage = Depends(get_storage),
) -> dict:
    catalog.delete_product(session, product_id, storage)
    return {"deleted": product_id}


@product_router.post("/{product_id}/image", response_model=ProductRead)
async def upload_image(
    product_id: int,
    file: UploadFile = File(...),
    session: Session = Depends(get_session),
    storage: LocalAssetStorage = Depends(get_storage),
):
    content = await file.read()
    product = catalog.attach_image(
        session, product_id, file.filename or "image", content, storage
    )
    return _read(product, storage)


# ── Gallery ───────────────────────────────────────────────────────────────────


@product_router.get("/{product_id}/gallery", response_model=ProductGalleryRead)
def get_gallery(
    product_id: int,
    session: Session = Depends(get_session),
    storage: LocalAssetStorage = Depends(get_storage),
):
    gallery = catalog.get_gallery(session, product_id)
    return ProductGalleryRead(
        product_id=product_id,
        gallery=gallery,
        gallery_urls=[storage.url_for(name) for name in gallery],
    )


@product_router.post("/{product_id}/gallery", response_model=ProductRead)
async def upload_gallery(
    product_id: int,
    files: list[UploadFile] = File(...),
    session: Session = Depends(get_session),
    storage: LocalAssetStorage = Depends(get_storage),
):
    uploads = [(f.filename or "image", await f.read()) for f in files]
    product = catalog.add_gallery_images(session, product_id, uploads, storage)
    return _read(product, storage)


@product_router.delete("/{product_id}/gallery/{image_index}", response_model=ProductRead)
def delete_gallery_image(
    product_id: int,
    image_index: int,
    session: Session = Depends(get_session),
    storage: LocalAssetStorage = Depends(get_storage),
):
    return _read(catalog.remove_gallery_image(session, product_id, image_index, storage), storage)
