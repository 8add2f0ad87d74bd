from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile, status
from sqlalchemy.orm import Session

from motomarket.api.dependencies import get_current_account, get_optional_account, user_rate_limit
from motomarket.core.database import get_db
from motomarket.models.account import Account
from motomarket.schemas import (
    FavoriteToggleResponse, ImageResponse, ListingCreate, ListingDetailResponse,
    ListingPageResponse, ListingUpdate, MyListingsResponse, listing_response,
)
from motomarket.services.facet_service import facet_service
from motomarket.services.favorite_service import ADDED, favorite_service
from motomarket.services.image_service import image_service
from motomarket.services.listing_service import listing_service
from motomarket.services.search_filters import build_listing_query

router = APIRouter(prefix="/motos", tags=["motos"])

# Static paths are declared before "/{listing_id}" so they are matched first


@router.get("", response_model=ListingPageResponse)
async def list_listings(
    request: Request,
    viewer: Optional[Account] = Depends(get_optional_account),
    db: Session = Depends(get_db)
):
    """Search available listings with filters, sorting and pagination"""
    query = build_listing_query(request.query_params)
    page = listing_service.search(db, query, viewer)
    return {
        "motos": [
            listing_response(
                item,
                favorites_count=page.favorite_counts.get(item.id, 0),
                is_favorite=item.id in page.favorited,
                image_limit=1,
            )
            for item in page.items
        ],
        "pagination": page.pagination(),
        "filters": query.applied(),
    }


@router.get("/me/all", response_model=MyListingsResponse)
async def my_listings(
    status_filter: str = Query("all", alias="status", pattern="^(all|active|sold|inactive)$"),
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    """All listings of the current account, including deactivated ones"""
    listings, counts, stats = listing_service.list_mine(db, current_account, status_filter)
    return {
        "motos": [
            listing_response(item, favorites_count=counts.get(item.id, 0), image_limit=1)
            for item in listings
        ],
        "stats": stats,
    }


@router.get("/me/favoritos")
async def my_favorites(
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    """Listings favorited by the current account"""
    listings = favorite_service.list_for(db, current_account)
    counts = favorite_service.counts(db, [item.id for item in listings])
    return {
        "favoritos": [
            listing_response(item, favorites_count=counts.get(item.id, 0), is_favorite=True, image_limit=1)
            for item in listings
        ],
        "total": len(listings),
    }


@router.get("/search/marcas")
async def search_brands(db: Session = Depends(get_db)):
    """Brands of available listings with counts"""
    return {"brands": facet_service.brands(db)}


@router.get("/search/modelos/{brand}")
async def search_models(brand: str, db: Session = Depends(get_db)):
    """Models available for a brand with counts"""
    return {"brand": brand, "models": facet_service.models(db, brand)}


@router.get("/search/ubicaciones")
async def search_locations(db: Session = Depends(get_db)):
    """Departments and cities with available listings"""
    return facet_service.locations(db)


@router.get("/search/estadisticas")
async def search_statistics(db: Session = Depends(get_db)):
    """Marketplace-wide statistics"""
    return facet_service.statistics(db)


@router.get("/info")
async def listings_info():
    """Listings API overview"""
    return {
        "name": "MotoMarket Listings API",
        "version": "1.0.0",
        "endpoints": {
            "public": {
                "GET /": "Search listings with filters",
                "GET /{id}": "Listing detail with similar listings",
                "GET /search/marcas": "Available brands",
                "GET /search/modelos/{marca}": "Models of a brand",
                "GET /search/ubicaciones": "Available locations",
                "GET /search/estadisticas": "Marketplace statistics",
            },
            "protected": {
                "POST /": "Publish a listing",
                "GET /me/all": "My listings",
                "GET /me/favoritos": "My favorites",
                "PUT /{id}": "Update my listing",
                "DELETE /{id}": "Deactivate my listing",
                "PATCH /{id}/vender": "Mark my listing as sold",
                "POST /{id}/favorito": "Toggle favorite",
                "POST /{id}/imagenes": "Upload images",
            },
        },
        "example_search": "GET /api/motos?brand=Honda&price_max=10000000&city=Medellin",
    }


@router.get("/{listing_id}", response_model=ListingDetailResponse)
async def get_listing(
    listing_id: int,
    viewer: Optional[Account] = Depends(get_optional_account),
    db: Session = Depends(get_db)
):
    """Listing detail; counts a view unless the viewer is the owner"""
    detail = listing_service.get_by_id(db, listing_id, viewer)
    return {
        "moto": listing_response(detail.listing, detail.favorites_count, detail.is_favorite),
        "similar": [listing_response(item, image_limit=1) for item in detail.similar],
        "seller_verified": detail.seller_verified,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_listing(
    payload: ListingCreate,
    current_account: Account = Depends(user_rate_limit),
    db: Session = Depends(get_db)
):
    """Publish a new listing"""
    fields = payload.model_dump(exclude={"images"})
    listing = listing_service.create(db, current_account, fields, payload.images)
    return {
        "message": "Listing published successfully",
        "moto": listing_response(listing),
    }


@router.put("/{listing_id}")
async def update_listing(
    listing_id: int,
    payload: ListingUpdate,
    current_account: Account = Depends(user_rate_limit),
    db: Session = Depends(get_db)
):
    """Update fields of a listing owned by the caller"""
    listing = listing_service.update(
        db, listing_id, current_account, payload.model_dump(exclude_unset=True)
    )
    return {"message": "Listing updated successfully", "moto": listing_response(listing)}


@router.delete("/{listing_id}")
async def delete_listing(
    listing_id: int,
    current_account: Account = Depends(user_rate_limit),
    db: Session = Depends(get_db)
):
    """Deactivate a listing owned by the caller"""
    listing_service.soft_delete(db, listing_id, current_account)
    return {
        "message": "Listing deleted successfully",
        "note": "The listing was deactivated and remains in your history",
    }


@router.patch("/{listing_id}/vender")
async def mark_listing_sold(
    listing_id: int,
    current_account: Account = Depends(user_rate_limit),
    db: Session = Depends(get_db)
):
    """Mark a listing owned by the caller as sold"""
    listing = listing_service.mark_sold(db, listing_id, current_account)
    return {"message": "Listing marked as sold", "moto": listing_response(listing)}


@router.post("/{listing_id}/favorito", response_model=FavoriteToggleResponse)
async def toggle_favorite(
    listing_id: int,
    current_account: Account = Depends(user_rate_limit),
    db: Session = Depends(get_db)
):
    """Add the listing to favorites, or remove it if already there"""
    result = favorite_service.toggle(db, current_account, listing_id)
    added = result == ADDED
    return {
        "message": "Listing added to favorites" if added else "Listing removed from favorites",
        "result": result,
        "is_favorite": added,
    }


@router.post("/{listing_id}/imagenes", status_code=status.HTTP_201_CREATED)
async def upload_listing_images(
    listing_id: int,
    imagenes: List[UploadFile] = File(...),
    current_account: Account = Depends(user_rate_limit),
    db: Session = Depends(get_db)
):
    """Upload up to MAX_FILES_PER_UPLOAD images for a listing owned by the caller"""
    images = await image_service.add_images(db, listing_id, current_account, imagenes)
    return {
        "message": "Images uploaded successfully",
        "images": [ImageResponse.model_validate(image) for image in images],
    }
