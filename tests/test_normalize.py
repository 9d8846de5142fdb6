import unittest
from datetime import datetime, timezone

from api import normalize
from api.models import OrderStatus


class NormalizeTestCase(unittest.TestCase):
    # ---------- Cart shapes ----------

    def test_cart_accepts_both_historical_shapes(self):
        current = {
            "items": [
                {"productId": "p1", "name": "Tee", "imageUrl": "a.png", "unitPrice": 500,
                 "color": "black", "size": "M", "quantity": 2},
            ],
            "subTotal": 1000,
            "shippingFee": 50,
        }
        legacy = {
            "items": [
                {"productId": "p1", "name": "Tee", "image": "a.png", "price": "500",
                 "color": "black", "size": "M", "quantity": "2"},
            ],
            "subtotal": 1000,
            "shippingFee": 50,
        }
        a = normalize.cart(current)
        b = normalize.cart(legacy)
        self.assertEqual(a, b)
        self.assertEqual(a.total, 1050)
        self.assertEqual(a.item_count, 2)
        self.assertEqual(a.items[0].key, ("p1", "black", "M"))

    def test_cart_priority_prefers_first_key(self):
        item = normalize.cart_item({"unitPrice": 300, "price": 999, "imageUrl": "x", "image": "y"})
        self.assertEqual(item.price, 300)
        self.assertEqual(item.image, "x")

        # a null in the preferred key falls through to the next one
        item = normalize.cart_item({"unitPrice": None, "price": 120})
        self.assertEqual(item.price, 120)

    def test_cart_tolerates_garbage(self):
        self.assertEqual(normalize.cart(None).items, ())
        cart = normalize.cart({"items": "nope", "subTotal": "abc"})
        self.assertEqual(cart.items, ())
        self.assertEqual(cart.sub_total, 0)
        self.assertEqual(cart.shipping_fee, 0)
        self.assertEqual(normalize.cart({"items": [1, None, {"productId": "p"}]}).items[0].product_id, "p")

    # ---------- Orders ----------

    def test_order_fields_and_fallbacks(self):
        o = normalize.order(
            {
                "orderId": "o9",
                "status": "slip_uploaded",
                "total": 550.0,
                "hostedQrUrl": "https://qr",
                "rejectReason": "blurry",
                "expiresAt": "2025-11-01T12:15:00Z",
                "items": [{"productId": "p1", "price": 500, "quantity": 1, "color": "w", "size": "L"}],
            }
        )
        self.assertEqual(o.id, "o9")
        self.assertEqual(o.status, OrderStatus.SLIP_UPLOADED)
        self.assertEqual(o.total, 550)
        self.assertEqual(o.promptpay_qr_url, "https://qr")
        self.assertEqual(o.status_note, "blurry")
        self.assertEqual(o.expires_at, datetime(2025, 11, 1, 12, 15, tzinfo=timezone.utc))
        self.assertEqual(o.items[0].unit_price, 500)

    def test_unknown_status_is_kept_verbatim(self):
        self.assertEqual(normalize.parse_status("paid"), OrderStatus.PAID)
        self.assertEqual(normalize.parse_status("REFUNDED"), "REFUNDED")
        self.assertEqual(normalize.parse_status(None), "")

    def test_timestamps(self):
        utc = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        self.assertEqual(normalize.parse_timestamp("2025-01-02T03:04:05Z"), utc)
        self.assertEqual(normalize.parse_timestamp("2025-01-02T10:04:05+07:00"), utc)
        # naive is read as UTC
        self.assertEqual(normalize.parse_timestamp("2025-01-02T03:04:05"), utc)
        self.assertEqual(normalize.parse_timestamp(int(utc.timestamp() * 1000)), utc)
        self.assertIsNone(normalize.parse_timestamp(""))
        self.assertIsNone(normalize.parse_timestamp("yesterday"))

    def test_out_of_range_timestamps_are_dropped(self):
        for bad in (10**20, -(10**20), float("nan"), float("inf"), True, "9999-12-31T23:59:59-05:00"):
            self.assertIsNone(normalize.parse_timestamp(bad), bad)

        order = normalize.order(
            {"id": "o1", "status": "PENDING_PAYMENT", "expiresAt": 10**20, "createdAt": False}
        )
        self.assertEqual(order.status, OrderStatus.PENDING_PAYMENT)
        self.assertIsNone(order.expires_at)
        self.assertIsNone(order.created_at)

    def test_order_page_spring_style(self):
        page = normalize.order_page(
            {"content": [{"id": "o1", "status": "PAID"}], "number": 2, "totalPages": 0}
        )
        self.assertEqual(page.page, 2)
        self.assertEqual(page.total_pages, 1)
        self.assertEqual(page.total_elements, 1)
        self.assertEqual(page.items[0].status, OrderStatus.PAID)

    def test_created_order(self):
        c = normalize.created_order(
            {"orderId": "A123", "total": 550, "promptpayTarget": "0812345678",
             "expiresAt": "2025-11-01T12:15:00Z"}
        )
        self.assertEqual(c.order_id, "A123")
        self.assertIsNone(c.promptpay_qr_url)
        self.assertEqual(c.expires_at.tzinfo, timezone.utc)

    # ---------- Auth & profile ----------

    def test_token_bundle_top_level_and_nested(self):
        flat = normalize.token_bundle({"accessToken": "a", "refreshToken": "r", "user": {"id": 7}})
        nested = normalize.token_bundle({"tokens": {"token": "a", "refreshToken": "r"}, "user": {"id": 7}})
        self.assertEqual(flat.access_token, "a")
        self.assertEqual(nested.access_token, "a")
        self.assertEqual(nested.refresh_token, "r")
        self.assertEqual(flat.user.id, "7")

        bare = normalize.token_bundle({"accessToken": "a"})
        self.assertIsNone(bare.refresh_token)
        self.assertIsNone(bare.user)

    def test_profile_from_claims_and_raw_kept(self):
        p = normalize.profile({"sub": "u1", "name": "Alice", "roles": "USER ADMIN", "authorities": ["x"]})
        self.assertEqual(p.id, "u1")
        self.assertEqual(p.display_name, "Alice")
        self.assertEqual(p.roles, ("USER", "ADMIN"))
        self.assertEqual(p.raw["authorities"], ["x"])

    def test_address_aliases(self):
        a = normalize.address(
            {"id": 3, "recipientName": "Bob", "line1": "1 Rd", "provinceCode": "10",
             "postalCode": "10110", "default": True}
        )
        self.assertEqual(a.id, "3")
        self.assertEqual(a.full_name, "Bob")
        self.assertEqual(a.line1, "1 Rd")
        self.assertEqual(a.province, "10")
        self.assertTrue(a.is_default)
        self.assertEqual(a.to_payload()["addressLine1"], "1 Rd")


if __name__ == "__main__":
    unittest.main()
