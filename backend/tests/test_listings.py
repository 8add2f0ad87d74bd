import json
from datetime import datetime, timezone

import pytest

from motomarket.core.errors import ValidationFailed
from motomarket.models.listing import Listing, ListingImage
from motomarket.services.listing_service import validate_listing_fields

from conftest import LISTING


def test_create_listing_with_images(client, register, create_listing, db):
    headers, body = register()

    listing = create_listing(headers, images=["https://cdn.motomail.com/a.jpg", "https://cdn.motomail.com/b.jpg"])

    assert listing["owner_id"] == body["user"]["id"]
    assert listing["price"] == 9500000
    assert listing["views"] == 0
    assert listing["is_active"] is True
    assert listing["is_sold"] is False
    assert listing["primary_image_url"] == "https://cdn.motomail.com/a.jpg"
    assert [image["position"] for image in listing["images"]] == [0, 1]
    assert listing["images"][1]["alt"] == "Honda CB 190R - Image 2"
    assert db.query(ListingImage).count() == 2


def test_create_listing_trims_text(client, register, create_listing):
    headers, _ = register()

    listing = create_listing(headers, title="  Yamaha MT-03  ", brand=" Yamaha ")

    assert listing["title"] == "Yamaha MT-03"
    assert listing["brand"] == "Yamaha"


def test_create_listing_requires_auth(client, db):
    response = client.post("/api/motos", json=LISTING)

    assert response.status_code == 401
    assert db.query(Listing).count() == 0


def test_year_out_of_range_persists_nothing(client, register, db):
    headers, _ = register()
    too_new = datetime.now(timezone.utc).year + 2

    for year in (1949, too_new):
        response = client.post("/api/motos", json={**LISTING, "year": year}, headers=headers)
        assert response.status_code == 400
        assert "year" in response.json()["fields"]

    assert db.query(Listing).count() == 0


def test_next_model_year_is_accepted(client, register, create_listing):
    headers, _ = register()
    next_year = datetime.now(timezone.utc).year + 1

    assert create_listing(headers, year=next_year)["year"] == next_year


def test_invalid_numbers_are_reported_per_field(client, register, db):
    headers, _ = register()

    response = client.post(
        "/api/motos",
        json={**LISTING, "price": 0, "displacement": 6000, "mileage": -1, "title": "  "},
        headers=headers,
    )

    fields = response.json()["fields"]
    assert response.status_code == 400
    assert set(fields) == {"price", "displacement", "mileage", "title"}
    assert db.query(Listing).count() == 0


@pytest.mark.parametrize("price", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_price_is_rejected(client, register, db, price):
    headers, _ = register()
    body = json.dumps(LISTING)[:-1] + f', "price": {price}}}'

    response = client.post(
        "/api/motos",
        content=body,
        headers={**headers, "Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"
    assert "price" in response.json()["fields"]
    assert db.query(Listing).count() == 0


def test_validator_rejects_non_finite_price():
    with pytest.raises(ValidationFailed) as excinfo:
        validate_listing_fields({"price": float("nan")}, partial=True)

    assert "price" in excinfo.value.extra["fields"]


def test_non_owner_view_counts_once_and_owner_view_does_not(client, register, create_listing):
    owner_headers, _ = register(email="ana@motomail.com")
    visitor_headers, _ = register(email="juan@motomail.com")
    listing = create_listing(owner_headers)

    anonymous = client.get(f"/api/motos/{listing['id']}")
    assert anonymous.json()["moto"]["views"] == 1

    visitor = client.get(f"/api/motos/{listing['id']}", headers=visitor_headers)
    assert visitor.json()["moto"]["views"] == 2

    owner = client.get(f"/api/motos/{listing['id']}", headers=owner_headers)
    assert owner.json()["moto"]["views"] == 2


def test_detail_includes_similar_and_seller_flag(client, register, create_listing, db):
    headers, _ = register()
    listing = create_listing(headers)
    create_listing(headers, title="Honda XR 190L", model="XR 190L", department="Cundinamarca", city="Bogota")
    create_listing(
        headers, title="Vespa Primavera", brand="Vespa", model="Primavera", price=30000000,
        displacement=150, department="Valle", city="Cali",
    )

    response = client.get(f"/api/motos/{listing['id']}")
    body = response.json()

    assert response.status_code == 200
    assert [item["model"] for item in body["similar"]] == ["XR 190L"]
    assert body["seller_verified"] is False
    assert body["moto"]["owner"]["first_name"] == "Ana"


def test_unknown_listing_is_not_found(client, db):
    response = client.get("/api/motos/999")

    assert response.status_code == 404
    assert response.json()["error"] == "ListingNotFound"


def test_update_own_listing(client, register, create_listing):
    headers, _ = register()
    listing = create_listing(headers)

    response = client.put(f"/api/motos/{listing['id']}", json={"price": 9000000, "negotiable": False},
                          headers=headers)

    moto = response.json()["moto"]
    assert response.status_code == 200
    assert moto["price"] == 9000000
    assert moto["negotiable"] is False
    assert moto["title"] == LISTING["title"]


def test_update_ignores_protected_fields(client, register, create_listing):
    headers, _ = register()
    listing = create_listing(headers)

    response = client.put(f"/api/motos/{listing['id']}", json={"views": 500, "color": "Negro"},
                          headers=headers)

    assert response.json()["moto"]["views"] == 0
    assert response.json()["moto"]["color"] == "Negro"


def test_update_validates_ranges(client, register, create_listing):
    headers, _ = register()
    listing = create_listing(headers)

    response = client.put(f"/api/motos/{listing['id']}", json={"year": 1900}, headers=headers)

    assert response.status_code == 400
    assert "year" in response.json()["fields"]


def test_update_rejects_null_for_required_columns(client, register, create_listing, db):
    headers, _ = register()
    listing = create_listing(headers)

    response = client.put(f"/api/motos/{listing['id']}", json={"fuel": None, "negotiable": None}, headers=headers)

    assert response.status_code == 400
    assert set(response.json()["fields"]) == {"fuel", "negotiable"}
    db.expire_all()
    assert db.get(Listing, listing["id"]).fuel.value == "GASOLINE"


def test_only_owner_can_modify(client, register, create_listing):
    owner_headers, _ = register(email="ana@motomail.com")
    other_headers, _ = register(email="juan@motomail.com")
    listing = create_listing(owner_headers)
    path = f"/api/motos/{listing['id']}"

    update = client.put(path, json={"price": 1}, headers=other_headers)
    delete = client.delete(path, headers=other_headers)
    sold = client.patch(f"{path}/vender", headers=other_headers)

    for response in (update, delete, sold):
        assert response.status_code == 403
        assert response.json()["error"] == "NotListingOwner"
    assert client.get(path).json()["moto"]["price"] == LISTING["price"]


def test_soft_deleted_listing_leaves_search_but_stays_in_my_listings(client, register, create_listing, db):
    headers, _ = register()
    listing = create_listing(headers)

    response = client.delete(f"/api/motos/{listing['id']}", headers=headers)
    assert response.status_code == 200

    assert client.get("/api/motos").json()["pagination"]["total"] == 0
    assert client.get(f"/api/motos/{listing['id']}").status_code == 404

    mine = client.get("/api/motos/me/all", headers=headers).json()
    assert [item["id"] for item in mine["motos"]] == [listing["id"]]
    assert mine["motos"][0]["is_active"] is False
    assert mine["stats"]["inactive"] == 1
    assert db.query(Listing).count() == 1


def test_mark_sold(client, register, create_listing):
    headers, _ = register()
    listing = create_listing(headers)

    response = client.patch(f"/api/motos/{listing['id']}/vender", headers=headers)

    assert response.status_code == 200
    assert response.json()["moto"]["is_sold"] is True
    assert client.get("/api/motos").json()["motos"] == []


def test_my_listings_status_filter(client, register, create_listing):
    headers, _ = register()
    active = create_listing(headers)
    sold = create_listing(headers, title="Honda XR 150L")
    client.patch(f"/api/motos/{sold['id']}/vender", headers=headers)

    all_mine = client.get("/api/motos/me/all", headers=headers).json()
    only_sold = client.get("/api/motos/me/all?status=sold", headers=headers).json()
    only_active = client.get("/api/motos/me/all?status=active", headers=headers).json()

    assert all_mine["stats"]["total"] == 2
    assert [item["id"] for item in only_sold["motos"]] == [sold["id"]]
    assert [item["id"] for item in only_active["motos"]] == [active["id"]]
    assert client.get("/api/motos/me/all?status=bogus", headers=headers).status_code == 400


def test_profile_lists_active_listings(client, register, create_listing):
    headers, _ = register()
    create_listing(headers)

    body = client.get("/api/auth/me", headers=headers).json()

    assert body["stats"]["active_listings"] == 1
    assert len(body["motos"]) == 1


def test_info(client):
    assert "GET /search/marcas" in client.get("/api/motos/info").json()["endpoints"]["public"]
