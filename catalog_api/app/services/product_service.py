"""
Business logic for the product catalog.

Reads are public.  Listing hides soft‑deleted products unless the
caller explicitly asks for ``isActive=false`` (there is no role check
on that override).  Writes are admin‑only and enforced by the
endpoints.

Multipart forms deliver list‑ and mapping‑shaped fields in several
shapes: ``features`` and ``tags`` may be repeated form fields, a
single comma‑separated string or a JSON array; ``specifications`` may
be a mapping or JSON text.  ``normalise_fields`` folds every shape into
the structured form before validation so all of them behave the same.

``images`` and ``image_public_ids`` are kept index‑aligned: an image
is always added or removed together with its storage identifier.
"""

import asyncio
import json
import logging
import sqlite3
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from catalog_api.app.core import storage
from catalog_api.app.core.config import settings
from catalog_api.app.core.db import get_connection
from catalog_api.app.core.errors import (
    InternalError,
    MissingImages,
    NotFound,
    StorageError,
    ValidationFailed,
)
from catalog_api.app.core.query import ListQuery, PageRequest, pagination_meta
from catalog_api.app.schemas.common import validation_errors
from catalog_api.app.schemas.product import (
    Availability,
    Category,
    Condition,
    ProductCreate,
    ProductRead,
    ProductType,
    ProductUpdate,
)
from catalog_api.app.schemas.user import UserRead

logger = logging.getLogger(__name__)

PRODUCTS_MAX_LIMIT = 100
PRODUCTS_DEFAULT_LIMIT = 12
PRODUCT_SORTS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "name": "name",
    "price": "price",
    "discount": "discount",
    "stock": "stock",
    "views": "views",
    "likes": "likes",
}
JSON_COLUMNS = ("features", "specifications", "tags", "images", "image_public_ids")
SEARCH_COLUMNS = ("name", "description", "tags")
# Names accepted by the ``fields`` projection parameter, camelCase or snake_case.
PROJECTABLE_FIELDS = {
    **{name: name for name in ProductRead.model_fields},
    **{to_camel(name): name for name in ProductRead.model_fields},
}


# ---------------------------------------------------------------------------
# Input coercion
# ---------------------------------------------------------------------------

def coerce_list(value: Any, field: str, lowercase: bool = False) -> Optional[List[str]]:
    """Normalise a list‑shaped form field.

    Accepts a list of strings, a comma‑separated string or a JSON array
    string.  A one‑element list is treated like a plain string, which
    is how a single form field arrives.  Items are trimmed and empty
    items dropped.
    """
    if value is None:
        return None
    if isinstance(value, (list, tuple)) and len(value) == 1 and isinstance(value[0], str):
        value = value[0]
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            try:
                value = json.loads(text)
            except json.JSONDecodeError as exc:
                raise ValidationFailed.for_field(field, f"{field} is not valid JSON") from exc
            if not isinstance(value, list):
                raise ValidationFailed.for_field(field, f"{field} must be a list")
        else:
            value = text.split(",")
    if not isinstance(value, (list, tuple)):
        raise ValidationFailed.for_field(field, f"{field} must be a list or a comma-separated string")
    items = []
    for item in value:
        text = str(item).strip()
        if lowercase:
            text = text.lower()
        if text:
            items.append(text)
    if lowercase:
        # Tags behave as a set.
        items = list(dict.fromkeys(items))
    return items


def coerce_mapping(value: Any, field: str) -> Optional[Dict[str, Any]]:
    """Normalise a mapping‑shaped field given as a dict or JSON text."""
    if value is None:
        return None
    if isinstance(value, (list, tuple)) and len(value) == 1:
        value = value[0]
    if isinstance(value, str):
        if not value.strip():
            return {}
        try:
            value = json.loads(value)
        except json.JSONDecodeError as exc:
            raise ValidationFailed.for_field(field, f"{field} is not valid JSON") from exc
    if not isinstance(value, dict):
        raise ValidationFailed.for_field(field, f"{field} must be an object")
    return value


def normalise_fields(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``raw`` with list/mapping fields structured."""
    fields = {key: value for key, value in raw.items() if value is not None}
    if "features" in fields:
        fields["features"] = coerce_list(fields["features"], "features")
    if "tags" in fields:
        fields["tags"] = coerce_list(fields["tags"], "tags", lowercase=True)
    if "specifications" in fields:
        fields["specifications"] = coerce_mapping(fields["specifications"], "specifications")
    return fields


def _validate(model, fields: Dict[str, Any]):
    try:
        return model.model_validate(fields)
    except ValidationError as exc:
        raise ValidationFailed(errors=validation_errors(exc)) from exc


def _to_product(row: sqlite3.Row) -> ProductRead:
    data = {key: row[key] for key in row.keys()}
    for column in JSON_COLUMNS:
        data[column] = json.loads(data[column]) if data[column] else None
    return ProductRead.model_validate({key: value for key, value in data.items() if value is not None})


def _column_value(value: Any) -> Any:
    if isinstance(value, (Category, Condition, ProductType, Availability)):
        return value.value
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return value


class ProductService:
    """Service for catalog products."""

    @classmethod
    def _fetch(cls, conn: sqlite3.Connection, product_id: int) -> ProductRead:
        row = conn.execute("SELECT * FROM products WHERE id = ?", (product_id,)).fetchone()
        if not row:
            raise NotFound("Product not found")
        return _to_product(row)

    @classmethod
    async def get_product(cls, product_id: int) -> ProductRead:
        """Return a product by id, including soft‑deleted ones."""
        conn = get_connection()
        try:
            return cls._fetch(conn, product_id)
        finally:
            conn.close()

    @classmethod
    async def list_products(
        cls,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        sort: Optional[str] = None,
        category: Optional[Category] = None,
        condition: Optional[Condition] = None,
        product_type: Optional[ProductType] = None,
        availability: Optional[Availability] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        search: Optional[str] = None,
        tags: Optional[str] = None,
        is_active: Optional[bool] = None,
        fields: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Filter, sort and paginate the catalog.

        ``tags`` is a comma‑separated list; a product matches if it has
        any of them.  ``search`` matches any whitespace‑separated term
        against name, description and tags.  ``fields`` restricts the
        returned attributes to a comma‑separated allow‑list (``id`` is
        always included; unknown names are ignored).
        """
        page_request = PageRequest.build(page, limit, PRODUCTS_DEFAULT_LIMIT, PRODUCTS_MAX_LIMIT)
        query = (
            ListQuery("products", sortable=PRODUCT_SORTS, default_sort="-createdAt")
            .visible(is_active, default=True)
            .equals("category", category.value if category else None)
            .equals("condition", condition.value if condition else None)
            .equals("type", product_type.value if product_type else None)
            .equals("availability", availability.value if availability else None)
            .between("price", min_price, max_price)
            .contains_any(SEARCH_COLUMNS, search, split_terms=True)
            .json_array_overlaps("tags", coerce_list(tags, "tags", lowercase=True) or [])
            .sort(sort)
        )
        conn = get_connection()
        try:
            total = conn.execute(*query.count_sql()).fetchone()[0]
            rows = conn.execute(*query.select_sql(page_request)).fetchall()
        finally:
            conn.close()
        products: List[Any] = [_to_product(row) for row in rows]
        include = cls._projection(fields)
        if include is not None:
            products = [p.model_dump(mode="json", by_alias=True, include=include) for p in products]
        return {"products": products, "pagination": pagination_meta(page_request, total)}

    @staticmethod
    def _projection(fields: Optional[str]) -> Optional[set]:
        if not fields:
            return None
        selected = {PROJECTABLE_FIELDS[name.strip()] for name in fields.split(",") if name.strip() in PROJECTABLE_FIELDS}
        selected.add("id")
        return selected

    @classmethod
    async def create_product(
        cls,
        raw_fields: Dict[str, Any],
        images: List[storage.ImageUpload],
        actor: UserRead,
    ) -> ProductRead:
        """Validate, upload images and insert a product.

        Raises ``ValidationFailed`` for invalid fields and
        ``MissingImages`` if no image was supplied.
        """
        data = _validate(ProductCreate, normalise_fields(raw_fields))
        if not images:
            raise MissingImages()
        cls._check_images(images)
        stored = await cls._upload_all(images)

        values = data.model_dump()
        values.update(
            images=[image.url for image in stored],
            image_public_ids=[image.public_id for image in stored],
            created_by=actor.id,
        )
        columns = list(values)
        conn = get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                f"INSERT INTO products ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
                tuple(_column_value(values[c]) for c in columns),
            )
            product_id = cursor.lastrowid
            conn.commit()
            logger.info("Admin %s created product %s (%s)", actor.id, product_id, data.name)
            return cls._fetch(conn, product_id)
        finally:
            conn.close()

    @classmethod
    async def update_product(
        cls,
        product_id: int,
        raw_fields: Dict[str, Any],
        new_images: List[storage.ImageUpload],
        actor: UserRead,
        remove_public_ids: Any = None,
    ) -> ProductRead:
        """Update allow‑listed fields and add or remove images.

        Each identifier in ``remove_public_ids`` is deleted from storage
        and dropped from the product together with its URL.  Storage
        failures during removal are logged and ignored so metadata
        updates go through; the stored object may then be orphaned.
        New images are appended after the remaining ones.
        """
        data = _validate(ProductUpdate, normalise_fields(raw_fields))
        updates = {key: value for key, value in data.model_dump(exclude_unset=True).items() if value is not None}
        requested = coerce_list(remove_public_ids, "removePublicIds") or []
        if new_images:
            cls._check_images(new_images)

        product = await cls.get_product(product_id)
        # Identifiers that do not belong to this product are ignored.
        to_remove = [pid for pid in dict.fromkeys(requested) if pid in product.image_public_ids]
        pairs = list(zip(product.images, product.image_public_ids))
        if to_remove:
            backend = storage.get_storage()
            for public_id in to_remove:
                try:
                    await asyncio.to_thread(backend.delete, public_id)
                except StorageError as exc:
                    logger.warning("Could not delete image %s of product %s: %s", public_id, product_id, exc)
            pairs = [pair for pair in pairs if pair[1] not in to_remove]
        if new_images:
            stored = await cls._upload_all(new_images)
            pairs.extend((image.url, image.public_id) for image in stored)
        if to_remove or new_images:
            updates["images"] = [url for url, _ in pairs]
            updates["image_public_ids"] = [public_id for _, public_id in pairs]

        conn = get_connection()
        try:
            if updates:
                assignments = ", ".join(f"{column} = ?" for column in updates)
                conn.execute(
                    f"UPDATE products SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                    tuple(_column_value(v) for v in updates.values()) + (product_id,),
                )
                conn.commit()
            logger.info("Admin %s updated product %s: %s", actor.id, product_id, sorted(updates))
            return cls._fetch(conn, product_id)
        finally:
            conn.close()

    @classmethod
    async def soft_delete(cls, product_id: int, actor: UserRead) -> None:
        """Hide a product from default listings and mark it discontinued."""
        conn = get_connection()
        try:
            cursor = conn.execute(
                "UPDATE products SET is_active = 0, availability = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (Availability.DISCONTINUED.value, product_id),
            )
            if cursor.rowcount == 0:
                raise NotFound("Product not found")
            conn.commit()
            logger.info("Admin %s deleted product %s", actor.id, product_id)
        finally:
            conn.close()

    @classmethod
    async def increment_view(cls, product_id: int) -> int:
        """Atomically add one view and return the new count."""
        return cls._increment(product_id, "views")

    @classmethod
    async def toggle_like(cls, product_id: int) -> int:
        """Atomically add one like and return the new count.

        No per‑caller like state is stored, so every call increments.
        """
        return cls._increment(product_id, "likes")

    @staticmethod
    def _increment(product_id: int, column: str) -> int:
        conn = get_connection()
        try:
            # The UPDATE takes the write lock, so the SELECT in the same
            # transaction reads our own increment.
            cursor = conn.execute(f"UPDATE products SET {column} = {column} + 1 WHERE id = ?", (product_id,))
            if cursor.rowcount == 0:
                raise NotFound("Product not found")
            count = conn.execute(f"SELECT {column} FROM products WHERE id = ?", (product_id,)).fetchone()[0]
            conn.commit()
            return count
        finally:
            conn.close()

    @staticmethod
    def _check_images(images: Iterable[storage.ImageUpload]) -> None:
        images = list(images)
        if len(images) > settings.max_images_per_request:
            raise ValidationFailed.for_field("images", f"At most {settings.max_images_per_request} images are allowed")
        for image in images:
            if image.content_type not in storage.ALLOWED_CONTENT_TYPES:
                raise ValidationFailed.for_field("images", f"{image.filename}: only image files are allowed")

    @staticmethod
    async def _upload_all(images: List[storage.ImageUpload]) -> List[storage.StoredImage]:
        backend = storage.get_storage()
        stored: List[storage.StoredImage] = []
        try:
            for image in images:
                stored.append(await asyncio.to_thread(backend.upload, image))
        except StorageError as exc:
            for image in stored:
                try:
                    await asyncio.to_thread(backend.delete, image.public_id)
                except StorageError:
                    logger.warning("Could not roll back uploaded image %s", image.public_id)
            raise InternalError("Failed to upload images") from exc
        return stored
