from typing import Any, Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from motomarket.models.listing import Listing

TOP_BRANDS_LIMIT = 5


def _available():
    """Criteria for listings shown in search: active and not sold"""
    return (Listing.is_active.is_(True), Listing.is_sold.is_(False))


class FacetService:
    """Grouped aggregates that feed the search filters"""

    @staticmethod
    def brands(db: Session, limit: int | None = None) -> List[Dict[str, Any]]:
        count = func.count(Listing.id)
        q = db.query(Listing.brand, count).filter(*_available()).group_by(
            Listing.brand
        ).order_by(count.desc(), Listing.brand.asc())
        if limit:
            q = q.limit(limit)
        return [{"brand": brand, "count": total} for brand, total in q.all()]

    @staticmethod
    def models(db: Session, brand: str) -> List[Dict[str, Any]]:
        rows = db.query(Listing.model, func.count(Listing.id)).filter(
            *_available(),
            func.lower(Listing.brand) == brand.strip().lower()
        ).group_by(Listing.model).order_by(Listing.model.asc()).all()
        return [{"model": model, "count": total} for model, total in rows]

    @staticmethod
    def locations(db: Session) -> Dict[str, List[Dict[str, Any]]]:
        departments = db.query(Listing.department, func.count(Listing.id)).filter(
            *_available()
        ).group_by(Listing.department).order_by(Listing.department.asc()).all()

        cities = db.query(Listing.city, Listing.department, func.count(Listing.id)).filter(
            *_available()
        ).group_by(Listing.city, Listing.department).order_by(
            Listing.city.asc(), Listing.department.asc()
        ).all()

        return {
            "departments": [
                {"department": department, "count": total} for department, total in departments
            ],
            "cities": [
                {"city": city, "department": department, "count": total}
                for city, department, total in cities
            ],
        }

    @staticmethod
    def statistics(db: Session) -> Dict[str, Any]:
        active = db.query(func.count(Listing.id)).filter(*_available()).scalar() or 0
        sold = db.query(func.count(Listing.id)).filter(Listing.is_sold.is_(True)).scalar() or 0
        average = db.query(func.avg(Listing.price)).filter(*_available()).scalar()

        return {
            "active_listings": active,
            "sold_listings": sold,
            "average_price": int(round(float(average))) if average is not None else 0,
            "top_brands": FacetService.brands(db, limit=TOP_BRANDS_LIMIT),
        }


facet_service = FacetService()
