"""
Product catalog endpoints for API v1.

Reads and the view/like counters are public.  Create, update and
delete require an admin.  Create and update accept
``multipart/form-data`` with up to five files in ``images``; update
also accepts a JSON body when no images are sent.  Repeated form
fields (``features``, ``tags``, ``removePublicIds``) are passed to the
service as lists and folded into a single shape there.
"""

from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, Query, Request, status
from starlette.datastructures import UploadFile

from catalog_api.app.core.errors import ValidationFailed
from catalog_api.app.core.query import parse_id
from catalog_api.app.core.security import optional_user, require_admin
from catalog_api.app.core.storage import ImageUpload
from catalog_api.app.schemas.product import Availability, Category, Condition, ProductType
from catalog_api.app.schemas.user import UserRead
from catalog_api.app.services.product_service import ProductService

router = APIRouter()

REMOVE_KEYS = ("removePublicIds", "remove_public_ids")


async def _read_payload(request: Request) -> Tuple[Dict[str, Any], List[ImageUpload]]:
    """Split a create/update request into plain fields and image files."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError as exc:
            raise ValidationFailed("Request body is not valid JSON") from exc
        if not isinstance(body, dict):
            raise ValidationFailed("Request body must be a JSON object")
        return body, []

    form = await request.form()
    fields: Dict[str, Any] = {}
    images: List[ImageUpload] = []
    for key in form.keys():
        values = form.getlist(key)
        files = [value for value in values if isinstance(value, UploadFile)]
        if key == "images":
            for upload in files:
                images.append(
                    ImageUpload(
                        filename=upload.filename or "upload",
                        content=await upload.read(),
                        content_type=upload.content_type or "application/octet-stream",
                    )
                )
            continue
        texts = [value for value in values if not isinstance(value, UploadFile)]
        if texts:
            fields[key] = texts if len(texts) > 1 else texts[0]
    return fields, images


@router.get("/")
async def list_products(
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    sort: Optional[str] = None,
    category: Optional[Category] = None,
    condition: Optional[Condition] = None,
    type: Optional[ProductType] = None,
    availability: Optional[Availability] = None,
    min_price: Optional[float] = Query(None, ge=0, alias="minPrice"),
    max_price: Optional[float] = Query(None, ge=0, alias="maxPrice"),
    search: Optional[str] = None,
    tags: Optional[str] = None,
    is_active: Optional[bool] = Query(None, alias="isActive"),
    fields: Optional[str] = None,
) -> dict:
    """List the catalog with filters, search, sorting and pagination.

    Soft‑deleted products are hidden unless ``isActive=false`` is
    passed.  ``limit`` defaults to 12 and is capped at 100.
    """
    return await ProductService.list_products(
        page=page,
        limit=limit,
        sort=sort,
        category=category,
        condition=condition,
        product_type=type,
        availability=availability,
        min_price=min_price,
        max_price=max_price,
        search=search,
        tags=tags,
        is_active=is_active,
        fields=fields,
    )


@router.get("/{product_id}")
async def get_product(product_id: str) -> dict:
    product = await ProductService.get_product(parse_id(product_id, "product"))
    return {"product": product}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_product(request: Request, current_user: UserRead = Depends(require_admin)) -> dict:
    fields, images = await _read_payload(request)
    product = await ProductService.create_product(fields, images, current_user)
    return {"message": "Product created successfully", "product": product}


@router.put("/{product_id}")
async def update_product(
    product_id: str,
    request: Request,
    current_user: UserRead = Depends(require_admin),
) -> dict:
    """Update fields, append uploaded images and remove listed ones.

    ``removePublicIds`` may be repeated, a comma‑separated string or a
    JSON array of storage identifiers.
    """
    pid = parse_id(product_id, "product")
    fields, images = await _read_payload(request)
    remove_ids = None
    for key in REMOVE_KEYS:
        if key in fields:
            remove_ids = fields.pop(key)
    product = await ProductService.update_product(pid, fields, images, current_user, remove_public_ids=remove_ids)
    return {"message": "Product updated successfully", "product": product}


@router.delete("/{product_id}")
async def delete_product(product_id: str, current_user: UserRead = Depends(require_admin)) -> dict:
    await ProductService.soft_delete(parse_id(product_id, "product"), current_user)
    return {"message": "Product deleted successfully"}


@router.patch("/{product_id}/view")
async def increment_view(product_id: str, current_user: Optional[UserRead] = Depends(optional_user)) -> dict:
    views = await ProductService.increment_view(parse_id(product_id, "product"))
    return {"views": views}


@router.post("/{product_id}/like")
async def like_product(product_id: str, current_user: Optional[UserRead] = Depends(optional_user)) -> dict:
    likes = await ProductService.toggle_like(parse_id(product_id, "product"))
    return {"likes": likes}
