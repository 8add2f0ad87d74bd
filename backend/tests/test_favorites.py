from motomarket.models.favorite import Favorite


def test_toggle_twice_restores_original_state(client, register, create_listing, db):
    owner_headers, _ = register(email="ana@motomail.com")
    headers, _ = register(email="juan@motomail.com")
    listing = create_listing(owner_headers)
    path = f"/api/motos/{listing['id']}/favorito"

    added = client.post(path, headers=headers).json()
    assert added["is_favorite"] is True
    assert added["result"] == "added"
    assert db.query(Favorite).count() == 1

    removed = client.post(path, headers=headers).json()
    assert removed["is_favorite"] is False
    assert removed["result"] == "removed"
    assert db.query(Favorite).count() == 0


def test_detail_reports_favorite_state(client, register, create_listing):
    owner_headers, _ = register(email="ana@motomail.com")
    headers, _ = register(email="juan@motomail.com")
    listing = create_listing(owner_headers)
    client.post(f"/api/motos/{listing['id']}/favorito", headers=headers)

    mine = client.get(f"/api/motos/{listing['id']}", headers=headers).json()["moto"]
    owners = client.get(f"/api/motos/{listing['id']}", headers=owner_headers).json()["moto"]

    assert mine["is_favorite"] is True
    assert mine["favorites_count"] == 1
    assert owners["is_favorite"] is False
    assert owners["favorites_count"] == 1


def test_my_favorites(client, register, create_listing):
    owner_headers, _ = register(email="ana@motomail.com")
    headers, _ = register(email="juan@motomail.com")
    first = create_listing(owner_headers)
    create_listing(owner_headers, title="Honda XR 150L")
    client.post(f"/api/motos/{first['id']}/favorito", headers=headers)
    client.post(f"/api/motos/{first['id']}/favorito", headers=owner_headers)

    body = client.get("/api/motos/me/favoritos", headers=headers).json()

    assert body["total"] == 1
    assert body["favoritos"][0]["id"] == first["id"]
    assert body["favoritos"][0]["is_favorite"] is True
    assert body["favoritos"][0]["favorites_count"] == 2


def test_cannot_favorite_inactive_or_missing_listing(client, register, create_listing, db):
    headers, _ = register()
    listing = create_listing(headers)
    client.delete(f"/api/motos/{listing['id']}", headers=headers)

    inactive = client.post(f"/api/motos/{listing['id']}/favorito", headers=headers)
    missing = client.post("/api/motos/999/favorito", headers=headers)

    assert inactive.status_code == missing.status_code == 404
    assert inactive.json()["error"] == "ListingNotFound"
    assert db.query(Favorite).count() == 0


def test_favorite_requires_auth(client, register, create_listing):
    headers, _ = register()
    listing = create_listing(headers)

    response = client.post(f"/api/motos/{listing['id']}/favorito")

    assert response.status_code == 401
