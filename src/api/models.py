# provide dataclass models for the storefront API
from __future__ import annotations

import mimetypes
import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Tuple


class OrderStatus(str, Enum):
    PENDING_PAYMENT = "PENDING_PAYMENT"
    SLIP_UPLOADED = "SLIP_UPLOADED"
    PAID = "PAID"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    CANCELED = "CANCELED"


RESTORABLE_STATUSES = frozenset({OrderStatus.EXPIRED, OrderStatus.REJECTED})


@dataclass(frozen=True)
class UserProfile:
    id: str
    email: str
    username: str = ""
    first_name: str = ""
    last_name: str = ""
    display_name: str = ""
    phone: str = ""
    profile_image_url: str = ""
    email_verified: bool = False
    roles: Tuple[str, ...] = ()
    # untouched backend payload; role derivation reads authorities/permissions from it
    raw: dict = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class TokenBundle:
    access_token: str
    refresh_token: Optional[str]
    user: Optional[UserProfile]


@dataclass(frozen=True)
class Session:
    access_token: str
    refresh_token: Optional[str]
    user: UserProfile
    is_admin: bool


@dataclass(frozen=True)
class CartItem:
    product_id: str
    name: str
    image: str
    price: int  # unit price, whole baht
    color: str
    size: str
    quantity: int

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.product_id, self.color, self.size)


@dataclass(frozen=True)
class Cart:
    items: Tuple[CartItem, ...] = ()
    sub_total: int = 0
    shipping_fee: int = 0

    @property
    def total(self) -> int:
        return self.sub_total + self.shipping_fee

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)


@dataclass(frozen=True)
class OrderItem:
    product_id: str
    name: str
    image_url: str
    unit_price: int
    color: str
    size: str
    quantity: int


@dataclass(frozen=True)
class Order:
    id: str
    status: OrderStatus | str
    items: Tuple[OrderItem, ...] = ()
    user_id: str = ""
    sub_total: int = 0
    shipping_fee: int = 0
    total: int = 0
    payment_method: Optional[str] = None
    expires_at: Optional[datetime] = None
    payment_slip_url: Optional[str] = None
    promptpay_target: Optional[str] = None
    promptpay_qr_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    status_note: Optional[str] = None
    rejected_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    tracking_tag: Optional[str] = None


@dataclass(frozen=True)
class CreatedOrder:
    order_id: str
    total: int
    promptpay_target: Optional[str]
    promptpay_qr_url: Optional[str]
    expires_at: Optional[datetime]


@dataclass(frozen=True)
class SlipResult:
    status: OrderStatus | str
    payment_slip_url: Optional[str]


@dataclass(frozen=True)
class OrderPage:
    items: Tuple[Order, ...]
    page: int
    size: int
    total_elements: int
    total_pages: int


@dataclass(frozen=True)
class Address:
    id: str
    full_name: str
    phone: str
    line1: str
    line2: str = ""
    subdistrict: str = ""
    district: str = ""
    province: str = ""
    postal_code: str = ""
    is_default: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "fullName": self.full_name,
            "phone": self.phone,
            "addressLine1": self.line1,
            "addressLine2": self.line2,
            "subdistrict": self.subdistrict,
            "district": self.district,
            "province": self.province,
            "postalCode": self.postal_code,
            "isDefault": self.is_default,
        }


@dataclass(frozen=True)
class SlipFile:
    filename: str
    content_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: str, content_type: Optional[str] = None) -> "SlipFile":
        """Read a local image; the MIME type is guessed from the extension if not given."""
        if content_type is None:
            content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        with open(path, "rb") as f:
            data = f.read()
        return cls(filename=os.path.basename(path), content_type=content_type, data=data)
