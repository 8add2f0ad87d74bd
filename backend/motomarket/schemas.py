"""Request and response models shared by the API routes and services."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from motomarket.models.listing import Brakes, Condition, Fuel, ItemState, Tires, Transmission


# Accounts

class AccountCreate(BaseModel):
    email: EmailStr
    password: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    city: Optional[str] = None
    department: Optional[str] = None
    accepts_policy: bool = False


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class AccountSummary(BaseModel):
    """Owner block embedded in listing responses"""
    id: int
    first_name: str
    last_name: str
    rating: float
    total_sales: int = 0
    city: Optional[str] = None
    department: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class AccountResponse(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    city: Optional[str] = None
    department: Optional[str] = None
    address: Optional[str] = None
    avatar_url: Optional[str] = None
    role: str
    email_verified: bool
    phone_verified: bool
    id_verified: bool
    rating: float
    total_sales: int
    total_purchases: int
    policy_accepted_at: Optional[datetime] = None
    last_access_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# Listings

class ImageResponse(BaseModel):
    id: int
    url: str
    alt: Optional[str] = None
    position: int

    model_config = ConfigDict(from_attributes=True)


class ListingCreate(BaseModel):
    title: str
    description: str
    price: float = Field(allow_inf_nan=False)
    negotiable: bool = True
    brand: str
    model: str
    year: int
    displacement: int
    mileage: int
    color: str
    fuel: Fuel = Fuel.GASOLINE
    transmission: Transmission = Transmission.MANUAL
    state: ItemState = ItemState.USED
    condition: Condition = Condition.GOOD
    soat_valid: bool = False
    inspection_valid: bool = False
    papers_in_order: bool = False
    brakes: Optional[Brakes] = None
    tires: Optional[Tires] = None
    maintenance: Optional[str] = None
    accessories: Optional[str] = None
    city: str
    department: str
    neighborhood: Optional[str] = None
    images: List[str] = Field(default_factory=list)

    # "model" is a listing field, not pydantic's namespace
    model_config = ConfigDict(protected_namespaces=())


class ListingUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, allow_inf_nan=False)
    negotiable: Optional[bool] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    displacement: Optional[int] = None
    mileage: Optional[int] = None
    color: Optional[str] = None
    fuel: Optional[Fuel] = None
    transmission: Optional[Transmission] = None
    state: Optional[ItemState] = None
    condition: Optional[Condition] = None
    soat_valid: Optional[bool] = None
    inspection_valid: Optional[bool] = None
    papers_in_order: Optional[bool] = None
    brakes: Optional[Brakes] = None
    tires: Optional[Tires] = None
    maintenance: Optional[str] = None
    accessories: Optional[str] = None
    city: Optional[str] = None
    department: Optional[str] = None
    neighborhood: Optional[str] = None

    model_config = ConfigDict(protected_namespaces=())


class ListingResponse(BaseModel):
    id: int
    owner_id: int
    title: str
    description: str
    price: float
    negotiable: bool
    brand: str
    model: str
    year: int
    displacement: int
    mileage: int
    color: str
    fuel: Fuel
    transmission: Transmission
    state: ItemState
    condition: Condition
    brakes: Optional[Brakes] = None
    tires: Optional[Tires] = None
    soat_valid: bool
    inspection_valid: bool
    papers_in_order: bool
    maintenance: Optional[str] = None
    accessories: Optional[str] = None
    city: str
    department: str
    neighborhood: Optional[str] = None
    primary_image_url: Optional[str] = None
    is_active: bool
    is_sold: bool
    is_featured: bool
    views: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    owner: Optional[AccountSummary] = None
    images: List[ImageResponse] = Field(default_factory=list)
    favorites_count: int = 0
    is_favorite: bool = False

    model_config = ConfigDict(from_attributes=True, protected_namespaces=())


def listing_response(listing, favorites_count: int = 0, is_favorite: bool = False,
                     image_limit: Optional[int] = None) -> ListingResponse:
    """Serialize a Listing row with its computed per-viewer fields"""
    item = ListingResponse.model_validate(listing)
    item.favorites_count = favorites_count
    item.is_favorite = is_favorite
    if image_limit is not None:
        item.images = item.images[:image_limit]
    return item


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


class ListingPageResponse(BaseModel):
    motos: List[ListingResponse]
    pagination: Pagination
    filters: Dict[str, Any] = Field(default_factory=dict)


class ListingDetailResponse(BaseModel):
    moto: ListingResponse
    similar: List[ListingResponse]
    seller_verified: bool


class ListingStats(BaseModel):
    total: int
    active: int
    sold: int
    inactive: int
    total_views: int
    total_favorites: int


class MyListingsResponse(BaseModel):
    motos: List[ListingResponse]
    stats: ListingStats


class FavoriteToggleResponse(BaseModel):
    message: str
    result: str
    is_favorite: bool
