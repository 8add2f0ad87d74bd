"""
Translate flat query-string parameters into a listing search descriptor.

build_listing_query() is pure: it takes any mapping of strings (usually
request.query_params) and returns a ListingQuery holding the filters, the
sort and the clamped pagination. ListingQuery.apply() turns it into
SQLAlchemy criteria.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Type

from sqlalchemy import and_, or_
from sqlalchemy.orm import Query

from motomarket.core.errors import ValidationFailed
from motomarket.models.listing import Condition, Fuel, ItemState, Listing, Transmission

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 50

# Public sort keys and the column each one orders by
SORT_COLUMNS = {
    "createdAt": Listing.created_at,
    "created_at": Listing.created_at,
    "price": Listing.price,
    "year": Listing.year,
    "mileage": Listing.mileage,
    "views": Listing.views,
}
DEFAULT_SORT = "createdAt"

TEXT_FILTERS = {
    "brand": Listing.brand,
    "model": Listing.model,
    "city": Listing.city,
    "department": Listing.department,
}
ENUM_FILTERS: Dict[str, tuple] = {
    "fuel": (Listing.fuel, Fuel),
    "transmission": (Listing.transmission, Transmission),
    "state": (Listing.state, ItemState),
    "condition": (Listing.condition, Condition),
}
BOOL_FILTERS = {
    "soat_valid": Listing.soat_valid,
    "inspection_valid": Listing.inspection_valid,
    "papers_in_order": Listing.papers_in_order,
}
# (parameter, column, operator, type)
RANGE_FILTERS = [
    ("year_min", Listing.year, ">=", int),
    ("year_max", Listing.year, "<=", int),
    ("price_min", Listing.price, ">=", float),
    ("price_max", Listing.price, "<=", float),
    ("displacement_min", Listing.displacement, ">=", int),
    ("displacement_max", Listing.displacement, "<=", int),
    ("mileage_max", Listing.mileage, "<=", int),
]
SEARCH_COLUMNS = [Listing.title, Listing.description, Listing.brand, Listing.model, Listing.color]
LIKE_ESCAPE = "\\"


def contains_pattern(value: str) -> str:
    """LIKE pattern matching value as a literal substring"""
    escaped = (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


@dataclass
class ListingQuery:
    text: Dict[str, str] = field(default_factory=dict)
    enums: Dict[str, enum.Enum] = field(default_factory=dict)
    flags: Dict[str, bool] = field(default_factory=dict)
    ranges: Dict[str, Any] = field(default_factory=dict)
    search: Optional[str] = None
    order_by: str = DEFAULT_SORT
    descending: bool = True
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def criteria(self) -> List[Any]:
        """SQL criteria for public search: always active and not sold"""
        clauses = [Listing.is_active.is_(True), Listing.is_sold.is_(False)]

        for name, value in self.text.items():
            clauses.append(TEXT_FILTERS[name].ilike(contains_pattern(value), escape=LIKE_ESCAPE))
        for name, value in self.enums.items():
            clauses.append(ENUM_FILTERS[name][0] == value)
        for name, value in self.flags.items():
            clauses.append(BOOL_FILTERS[name].is_(value))
        for name, column, operator, _ in RANGE_FILTERS:
            if name not in self.ranges:
                continue
            value = self.ranges[name]
            clauses.append(column >= value if operator == ">=" else column <= value)

        if self.search:
            pattern = contains_pattern(self.search)
            clauses.append(or_(*[column.ilike(pattern, escape=LIKE_ESCAPE) for column in SEARCH_COLUMNS]))
        return clauses

    def ordering(self) -> List[Any]:
        column = SORT_COLUMNS[self.order_by]
        # id breaks ties so pages never overlap
        if self.descending:
            return [column.desc(), Listing.id.desc()]
        return [column.asc(), Listing.id.asc()]

    def apply(self, query: Query) -> Query:
        return query.filter(and_(*self.criteria()))

    def applied(self) -> Dict[str, Any]:
        """Echo of the filters that were actually applied"""
        applied: Dict[str, Any] = {}
        applied.update(self.text)
        applied.update({name: value.value for name, value in self.enums.items()})
        applied.update(self.flags)
        applied.update(self.ranges)
        if self.search:
            applied["q"] = self.search
        return applied


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _parse_int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def _parse_number(name: str, raw: str, cast: Type) -> Any:
    try:
        return cast(raw)
    except ValueError:
        raise ValidationFailed(
            f"Parameter '{name}' must be a number",
            extra={"fields": {name: "must be a number"}},
        )


def _parse_enum(name: str, raw: str, enum_cls: Type[enum.Enum]) -> enum.Enum:
    try:
        return enum_cls(raw.upper())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationFailed(
            f"Parameter '{name}' must be one of: {allowed}",
            extra={"fields": {name: f"must be one of: {allowed}"}},
        )


def clamp_pagination(page: Optional[str], limit: Optional[str]) -> tuple[int, int]:
    """page is at least 1; limit is kept within [1, MAX_LIMIT]"""
    page_num = max(1, _parse_int(page, DEFAULT_PAGE))
    limit_num = min(MAX_LIMIT, max(1, _parse_int(limit, DEFAULT_LIMIT)))
    return page_num, limit_num


def build_listing_query(params: Mapping[str, str]) -> ListingQuery:
    """Build a ListingQuery from query-string parameters"""
    query = ListingQuery()

    for name in TEXT_FILTERS:
        value = _clean(params.get(name))
        if value:
            query.text[name] = value

    for name, (_, enum_cls) in ENUM_FILTERS.items():
        value = _clean(params.get(name))
        if value:
            query.enums[name] = _parse_enum(name, value, enum_cls)

    for name in BOOL_FILTERS:
        value = _clean(params.get(name))
        if value is not None:
            query.flags[name] = value.lower() == "true"

    for name, _, _, cast in RANGE_FILTERS:
        value = _clean(params.get(name))
        if value is not None:
            query.ranges[name] = _parse_number(name, value, cast)

    query.search = _clean(params.get("q")) or _clean(params.get("query"))

    order_by = _clean(params.get("order_by"))
    query.order_by = order_by if order_by in SORT_COLUMNS else DEFAULT_SORT
    query.descending = (_clean(params.get("order")) or "desc").lower() != "asc"

    query.page, query.limit = clamp_pagination(params.get("page"), params.get("limit"))
    return query
