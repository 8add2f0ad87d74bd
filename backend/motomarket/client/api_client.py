from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import requests

from motomarket.client.session_store import SessionStore


class ApiUnavailable(RuntimeError):
    """Raised when the API cannot be reached."""


class ApiError(RuntimeError):
    """Raised for non-2xx API responses with the parsed error envelope."""

    def __init__(self, status_code: int, payload: Dict[str, Any] | None = None):
        safe_payload = payload if isinstance(payload, dict) else {}
        self.status_code = int(status_code)
        self.payload = safe_payload
        self.error = str(safe_payload.get("error") or "").strip() or "HTTPError"
        self.message = str(safe_payload.get("message") or "").strip() or f"Request failed ({status_code})"
        super().__init__(f"{self.status_code} {self.error}: {self.message}")


class MotoMarketClient:
    """
    HTTP client for the MotoMarket API.

    Attaches the stored bearer token to every request and keeps the session
    store in sync: login/register save the token and user, logout and any
    401 response clear them.
    """

    def __init__(self, base_url: str, store: SessionStore, *, timeout: float = 10.0,
                 session: requests.Session | None = None):
        base = base_url.rstrip("/")
        self.base_url = base if base.endswith("/api") else f"{base}/api"
        self.store = store
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, *, params: Dict[str, Any] | None = None,
                 json_body: Dict[str, Any] | None = None, files: Any = None) -> Any:
        headers = {}
        token = self.store.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method=method, url=url, params=params, json=json_body,
                files=files, headers=headers, timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise ApiUnavailable("MotoMarket API request timed out") from exc
        except requests.RequestException as exc:
            raise ApiUnavailable(f"MotoMarket API request failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.status_code == 401:
            # Expired or invalid token: drop the local session
            self.store.clear()
        if not 200 <= response.status_code < 300:
            raise ApiError(response.status_code, payload)
        return payload

    def _remember(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.store.save(payload["auth"]["token"], payload["user"])
        return payload

    # Auth

    def register(self, **account_data: Any) -> Dict[str, Any]:
        return self._remember(self._request("POST", "/auth/register", json_body=account_data))

    def login(self, email: str, password: str) -> Dict[str, Any]:
        payload = self._request("POST", "/auth/login", json_body={"email": email, "password": password})
        return self._remember(payload)

    def logout(self) -> None:
        try:
            self._request("POST", "/auth/logout")
        finally:
            self.store.clear()

    def me(self) -> Dict[str, Any]:
        return self._request("GET", "/auth/me")["user"]

    # Listings

    def list_listings(self, **filters: Any) -> Dict[str, Any]:
        params = {key: value for key, value in filters.items() if value not in (None, "")}
        return self._request("GET", "/motos", params=params)

    def get_listing(self, listing_id: int) -> Dict[str, Any]:
        return self._request("GET", f"/motos/{listing_id}")["moto"]

    def create_listing(self, **fields: Any) -> Dict[str, Any]:
        return self._request("POST", "/motos", json_body=fields)["moto"]

    def update_listing(self, listing_id: int, **fields: Any) -> Dict[str, Any]:
        return self._request("PUT", f"/motos/{listing_id}", json_body=fields)["moto"]

    def delete_listing(self, listing_id: int) -> Dict[str, Any]:
        return self._request("DELETE", f"/motos/{listing_id}")

    def mark_sold(self, listing_id: int) -> Dict[str, Any]:
        return self._request("PATCH", f"/motos/{listing_id}/vender")["moto"]

    def my_listings(self, status: str = "all") -> list:
        payload = self._request("GET", "/motos/me/all", params={"status": status})
        return payload.get("motos", []) if isinstance(payload, dict) else []

    def favorites(self) -> list:
        return self._request("GET", "/motos/me/favoritos")["favoritos"]

    def toggle_favorite(self, listing_id: int) -> bool:
        return bool(self._request("POST", f"/motos/{listing_id}/favorito")["is_favorite"])

    def upload_images(self, listing_id: int, images: Iterable[tuple[str, bytes, str]]) -> list:
        """images: (filename, content, content_type) tuples"""
        files = [("imagenes", image) for image in images]
        return self._request("POST", f"/motos/{listing_id}/imagenes", files=files)["images"]

    # Facets

    def brands(self) -> list:
        return self._request("GET", "/motos/search/marcas")["brands"]

    def models(self, brand: str) -> list:
        return self._request("GET", f"/motos/search/modelos/{brand}")["models"]

    def statistics(self) -> Dict[str, Any]:
        return self._request("GET", "/motos/search/estadisticas")

    @property
    def current_user(self) -> Optional[Dict[str, Any]]:
        return self.store.get_user()
