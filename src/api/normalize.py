"""
Adapters from backend JSON to api.models.

Backend field names drifted across endpoints, so every adapter is tolerant:
each model field lists the JSON keys it accepts, in priority order, and the
first key holding a non-null value wins. Missing values fall back to an empty
string, zero, or None. Nothing here raises on a malformed payload.

    cart line     product_id  <- productId
                  image       <- imageUrl, image
                  price       <- unitPrice, price
    cart          sub_total   <- subTotal, subtotal
    order         id          <- id, orderId
                  sub_total   <- subTotal, subtotal
                  qr url      <- promptpayQrUrl, hostedQrUrl
    order item    image_url   <- imageUrl, image
                  unit_price  <- unitPrice, price
    profile       id          <- id, sub
    address       line1       <- addressLine1, line1
                  is_default  <- isDefault, default
    order page    items       <- items, content
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from api.models import (
    Address,
    Cart,
    CartItem,
    CreatedOrder,
    Order,
    OrderItem,
    OrderPage,
    OrderStatus,
    SlipResult,
    TokenBundle,
    UserProfile,
)


def first(raw: Optional[Mapping[str, Any]], *keys: str, default: Any = None) -> Any:
    """Value of the first key whose value is not None."""
    if not isinstance(raw, Mapping):
        return default
    for key in keys:
        val = raw.get(key)
        if val is not None:
            return val
    return default


def _to_int(val) -> int:
    try:
        return int(val)
    except (TypeError, ValueError):
        pass
    try:
        return int(float(val))
    except (TypeError, ValueError, OverflowError):
        return 0


def _to_str(val) -> str:
    return "" if val is None else str(val)


def _opt_str(val) -> Optional[str]:
    if val is None:
        return None
    val = str(val)
    return val or None


def _list(val) -> list:
    return val if isinstance(val, list) else []


def parse_timestamp(val) -> Optional[datetime]:
    """
    ISO-8601 string (or epoch milliseconds) to an aware UTC datetime.
    Naive timestamps are taken as UTC.
    """
    if val is None or val == "" or isinstance(val, bool):
        return None
    if isinstance(val, datetime):
        dt = val
    elif isinstance(val, (int, float)):
        try:
            return datetime.fromtimestamp(val / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        try:
            dt = datetime.fromisoformat(str(val).strip())
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    try:
        return dt.astimezone(timezone.utc)
    except OverflowError:
        # e.g. year 9999 with a negative offset
        return None


def parse_status(val) -> OrderStatus | str:
    """Known statuses become OrderStatus; unknown ones are kept as the raw string."""
    text = _to_str(val).strip().upper()
    try:
        return OrderStatus(text)
    except ValueError:
        return text


def cart_item(raw: Mapping[str, Any]) -> CartItem:
    return CartItem(
        product_id=_to_str(first(raw, "productId")),
        name=_to_str(first(raw, "name")),
        image=_to_str(first(raw, "imageUrl", "image")),
        price=_to_int(first(raw, "unitPrice", "price", default=0)),
        color=_to_str(first(raw, "color")),
        size=_to_str(first(raw, "size")),
        quantity=_to_int(first(raw, "quantity", default=0)),
    )


def cart(raw: Optional[Mapping[str, Any]]) -> Cart:
    items = tuple(cart_item(i) for i in _list(first(raw, "items")) if isinstance(i, Mapping))
    return Cart(
        items=items,
        sub_total=_to_int(first(raw, "subTotal", "subtotal", default=0)),
        shipping_fee=_to_int(first(raw, "shippingFee", default=0)),
    )


def order_item(raw: Mapping[str, Any]) -> OrderItem:
    return OrderItem(
        product_id=_to_str(first(raw, "productId")),
        name=_to_str(first(raw, "name")),
        image_url=_to_str(first(raw, "imageUrl", "image")),
        unit_price=_to_int(first(raw, "unitPrice", "price", default=0)),
        color=_to_str(first(raw, "color")),
        size=_to_str(first(raw, "size")),
        quantity=_to_int(first(raw, "quantity", default=0)),
    )


def order(raw: Mapping[str, Any]) -> Order:
    items = tuple(
        order_item(i) for i in _list(first(raw, "items")) if isinstance(i, Mapping)
    )
    return Order(
        id=_to_str(first(raw, "id", "orderId")),
        status=parse_status(first(raw, "status")),
        items=items,
        user_id=_to_str(first(raw, "userId")),
        sub_total=_to_int(first(raw, "subTotal", "subtotal", default=0)),
        shipping_fee=_to_int(first(raw, "shippingFee", default=0)),
        total=_to_int(first(raw, "total", default=0)),
        payment_method=_opt_str(first(raw, "paymentMethod")),
        expires_at=parse_timestamp(first(raw, "expiresAt")),
        payment_slip_url=_opt_str(first(raw, "paymentSlipUrl")),
        promptpay_target=_opt_str(first(raw, "promptpayTarget")),
        promptpay_qr_url=_opt_str(first(raw, "promptpayQrUrl", "hostedQrUrl")),
        created_at=parse_timestamp(first(raw, "createdAt")),
        updated_at=parse_timestamp(first(raw, "updatedAt")),
        status_note=_opt_str(first(raw, "statusNote", "rejectReason")),
        rejected_at=parse_timestamp(first(raw, "rejectedAt")),
        canceled_at=parse_timestamp(first(raw, "canceledAt")),
        tracking_tag=_opt_str(first(raw, "trackingTag")),
    )


def created_order(raw: Mapping[str, Any]) -> CreatedOrder:
    return CreatedOrder(
        order_id=_to_str(first(raw, "orderId", "id")),
        total=_to_int(first(raw, "total", default=0)),
        promptpay_target=_opt_str(first(raw, "promptpayTarget")),
        promptpay_qr_url=_opt_str(first(raw, "promptpayQrUrl", "hostedQrUrl")),
        expires_at=parse_timestamp(first(raw, "expiresAt")),
    )


def slip_result(raw: Mapping[str, Any]) -> SlipResult:
    return SlipResult(
        status=parse_status(first(raw, "status")),
        payment_slip_url=_opt_str(first(raw, "paymentSlipUrl")),
    )


def order_page(raw: Optional[Mapping[str, Any]], page: int = 0, size: int = 20) -> OrderPage:
    items = tuple(
        order(o) for o in _list(first(raw, "items", "content")) if isinstance(o, Mapping)
    )
    return OrderPage(
        items=items,
        page=_to_int(first(raw, "page", "number", default=page)),
        size=_to_int(first(raw, "size", default=size)),
        total_elements=_to_int(first(raw, "totalElements", default=len(items))),
        total_pages=max(1, _to_int(first(raw, "totalPages", default=1))),
    )


def _roles(raw: Mapping[str, Any]) -> tuple[str, ...]:
    val = first(raw, "roles")
    if isinstance(val, str):
        return tuple(val.split())
    if isinstance(val, Iterable):
        return tuple(str(r) for r in val)
    return ()


def profile(raw: Optional[Mapping[str, Any]]) -> UserProfile:
    raw = raw if isinstance(raw, Mapping) else {}
    return UserProfile(
        id=_to_str(first(raw, "id", "sub")),
        email=_to_str(first(raw, "email")),
        username=_to_str(first(raw, "username")),
        first_name=_to_str(first(raw, "firstName")),
        last_name=_to_str(first(raw, "lastName")),
        display_name=_to_str(first(raw, "displayName", "name")),
        phone=_to_str(first(raw, "phone")),
        profile_image_url=_to_str(first(raw, "profileImageUrl", "avatarUrl")),
        email_verified=bool(first(raw, "emailVerified", default=False)),
        roles=_roles(raw),
        raw=dict(raw),
    )


def token_bundle(raw: Mapping[str, Any]) -> TokenBundle:
    """Login/refresh response; tokens may be top-level or nested under "tokens"."""
    tokens = first(raw, "tokens", default=raw)
    user = first(raw, "user")
    return TokenBundle(
        access_token=_to_str(first(tokens, "accessToken", "token")),
        refresh_token=_opt_str(first(tokens, "refreshToken")),
        user=profile(user) if isinstance(user, Mapping) else None,
    )


def address(raw: Mapping[str, Any]) -> Address:
    return Address(
        id=_to_str(first(raw, "id")),
        full_name=_to_str(first(raw, "fullName", "recipientName", "name")),
        phone=_to_str(first(raw, "phone")),
        line1=_to_str(first(raw, "addressLine1", "line1")),
        line2=_to_str(first(raw, "addressLine2", "line2")),
        subdistrict=_to_str(first(raw, "subdistrict", "subdistrictCode")),
        district=_to_str(first(raw, "district", "districtCode")),
        province=_to_str(first(raw, "province", "provinceCode")),
        postal_code=_to_str(first(raw, "postalCode")),
        is_default=bool(first(raw, "isDefault", "default", default=False)),
    )
