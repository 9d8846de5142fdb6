# src/api/endpoints.py
from __future__ import annotations

from typing import List, Optional

from api import normalize
from api.client import ApiClient
from api.models import (
    Address,
    Cart,
    CreatedOrder,
    Order,
    OrderPage,
    SlipFile,
    SlipResult,
    TokenBundle,
    UserProfile,
)

# ---------------------------
# Auth
# ---------------------------


async def login(client: ApiClient, email: str, password: str) -> TokenBundle:
    data = await client.request_json(
        "POST", "/auth/login", auth=False, json={"email": email, "password": password}
    )
    return normalize.token_bundle(data or {})


async def register(client: ApiClient, email: str, password: str, name: str) -> Optional[TokenBundle]:
    """Create an account. Returns tokens only if the backend logs the user in right away."""
    data = await client.request_json(
        "POST",
        "/auth/register",
        auth=False,
        json={"email": email, "password": password, "name": name},
    )
    bundle = normalize.token_bundle(data or {})
    return bundle if bundle.access_token else None


async def refresh(client: ApiClient, refresh_token: str) -> TokenBundle:
    """Exchange a refresh token. Never goes through the 401 replay path."""
    data = await client.request_json(
        "POST", "/auth/refresh", auth=False, retry=False, json={"refreshToken": refresh_token}
    )
    return normalize.token_bundle(data or {})


async def me(client: ApiClient, token: Optional[str] = None) -> UserProfile:
    """Current profile. With token given, that token is used and no refresh is attempted."""
    if token is not None:
        data = await client.request_json("GET", "/auth/me", token=token)
    else:
        data = await client.request_json("GET", "/auth/me")
    return normalize.profile(data)


async def request_password_otp(client: ApiClient, email: str) -> None:
    await client.request("POST", "/auth/password/otp", auth=False, json={"email": email})


async def reset_password(client: ApiClient, email: str, otp: str, new_password: str) -> None:
    await client.request(
        "POST",
        "/auth/password/reset",
        auth=False,
        json={"email": email, "otp": otp, "newPassword": new_password},
    )


async def change_password(client: ApiClient, current_password: str, new_password: str) -> str:
    data = await client.request_json(
        "PUT",
        "/auth/password/change",
        json={"currentPassword": current_password, "newPassword": new_password},
    )
    return normalize.first(data, "message", default="Password changed")


async def delete_account(client: ApiClient) -> str:
    data = await client.request_json("DELETE", "/auth/me")
    return normalize.first(data, "message", default="Account deleted")


# ---------------------------
# Cart
# ---------------------------


async def get_cart(client: ApiClient) -> Cart:
    return normalize.cart(await client.request_json("GET", "/cart"))


async def add_cart_item(
    client: ApiClient, product_id: str, color: str, size: str, quantity: int
) -> None:
    await client.request(
        "POST",
        "/cart/items",
        json={"productId": product_id, "color": color, "size": size, "quantity": quantity},
    )


async def update_cart_item(
    client: ApiClient, product_id: str, color: str, size: str, quantity: int
) -> None:
    await client.request(
        "PUT",
        "/cart/items",
        json={"productId": product_id, "color": color, "size": size, "quantity": quantity},
    )


async def remove_cart_item(client: ApiClient, product_id: str, color: str, size: str) -> None:
    """The composite key travels as query parameters."""
    await client.request(
        "DELETE",
        "/cart/items",
        params={"productId": product_id, "color": color, "size": size},
    )


async def clear_cart(client: ApiClient) -> None:
    await client.request("DELETE", "/cart")


# ---------------------------
# Orders
# ---------------------------


async def create_order(
    client: ApiClient, address_id: str, payment_method: str = "PROMPTPAY"
) -> CreatedOrder:
    data = await client.request_json(
        "POST", "/orders", json={"paymentMethod": payment_method, "addressId": address_id}
    )
    return normalize.created_order(data or {})


async def get_order(client: ApiClient, order_id: str) -> Order:
    return normalize.order(await client.request_json("GET", f"/orders/{order_id}") or {})


async def upload_slip(client: ApiClient, order_id: str, slip: SlipFile) -> SlipResult:
    data = await client.request_json(
        "POST",
        f"/orders/{order_id}/slip",
        files={"file": (slip.filename, slip.data, slip.content_type)},
    )
    return normalize.slip_result(data or {})


async def restore_cart(client: ApiClient, order_id: str) -> None:
    await client.request("POST", f"/orders/{order_id}/restore-cart")


async def list_my_orders(
    client: ApiClient, page: int = 0, size: int = 20, statuses: Optional[str] = None
) -> OrderPage:
    """
    Paginated order history, newest first (server order).
    statuses is a CSV of OrderStatus values, or None for all.
    """
    params = {"page": str(page), "size": str(size)}
    if statuses:
        params["status"] = statuses
    data = await client.request_json("GET", "/orders/my", params=params)
    return normalize.order_page(data, page=page, size=size)


# ---------------------------
# Addresses
# ---------------------------


async def list_addresses(client: ApiClient) -> List[Address]:
    data = await client.request_json("GET", "/addresses")
    if isinstance(data, dict):
        data = normalize.first(data, "items", "content", default=[])
    if not isinstance(data, list):
        return []
    return [normalize.address(a) for a in data if isinstance(a, dict)]


async def create_address(client: ApiClient, address: Address) -> Address:
    data = await client.request_json("POST", "/addresses", json=address.to_payload())
    return normalize.address(data) if isinstance(data, dict) else address


async def update_address(client: ApiClient, address: Address) -> Address:
    data = await client.request_json(
        "PUT", f"/addresses/{address.id}", json=address.to_payload()
    )
    return normalize.address(data) if isinstance(data, dict) else address


async def delete_address(client: ApiClient, address_id: str) -> None:
    await client.request("DELETE", f"/addresses/{address_id}")
