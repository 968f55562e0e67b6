"""
Pydantic models for catalog products.

The enumerations below are the single source of truth for the values
accepted in ``category``, ``condition``, ``type`` and ``availability``.
``ProductCreate`` and ``ProductUpdate`` are validated inside the
service after multipart form fields have been normalised (see
``ProductService.normalise_fields``), so list‑ and mapping‑shaped
fields arrive here already structured.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from .common import ApiModel


class Category(str, Enum):
    LAPTOPS = "Laptops"
    DESKTOPS = "Desktops"
    SECURITY = "Security"
    ACCESSORIES = "Accessories"
    AUDIO = "Audio"
    NETWORKING = "Networking"
    COMPONENTS = "Components"
    MONITORS = "Monitors"
    STORAGE = "Storage"
    GAMING = "Gaming"


class Condition(str, Enum):
    NEW = "New"
    EXCELLENT = "Excellent"
    VERY_GOOD = "Very Good"
    GOOD = "Good"
    FAIR = "Fair"


class ProductType(str, Enum):
    SECOND_HAND = "Second Hand"
    NEW_REFURBISHED = "New/Refurbished"
    SPARE_PARTS = "Spare Parts"
    REFURBISHED = "Refurbished"


class Availability(str, Enum):
    AVAILABLE = "Available"
    OUT_OF_STOCK = "Out of Stock"
    DISCONTINUED = "Discontinued"


class ProductCreate(ApiModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: str = Field(..., min_length=5, max_length=1000)
    category: Category
    condition: Condition
    type: ProductType
    availability: Availability = Availability.AVAILABLE
    features: List[str] = Field(default_factory=list)
    price: float = Field(0, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    discount: float = Field(0, ge=0, le=100)
    stock: int = Field(0, ge=0)
    specifications: Dict[str, Any] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)


class ProductUpdate(ApiModel):
    """Allow‑list of fields an administrator may change.

    Every field is optional; only the ones present are written.
    """

    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, min_length=5, max_length=1000)
    category: Optional[Category] = None
    condition: Optional[Condition] = None
    type: Optional[ProductType] = None
    availability: Optional[Availability] = None
    features: Optional[List[str]] = None
    price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    discount: Optional[float] = Field(None, ge=0, le=100)
    stock: Optional[int] = Field(None, ge=0)
    specifications: Optional[Dict[str, Any]] = None
    tags: Optional[List[str]] = None
    is_active: Optional[bool] = None


class ProductRead(ApiModel):
    id: int
    name: str
    description: str
    category: Category
    condition: Condition
    type: ProductType
    availability: Availability
    features: List[str] = Field(default_factory=list)
    price: float = 0
    original_price: Optional[float] = None
    discount: float = 0
    stock: int = 0
    specifications: Dict[str, Any] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    image_public_ids: List[str] = Field(default_factory=list)
    is_active: bool = True
    views: int = 0
    likes: int = 0
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
