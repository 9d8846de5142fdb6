import unittest

from fakes import BASE_URL, FakeBackend

from api.client import ApiClient
from api.errors import AuthenticationError, ValidationError
from api.models import Address, OrderStatus
from state.orders import AddressBook, OrderHistory, validate_address
from state.session import SessionManager
from storage.tokens import TokenStore


class OrdersTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.backend = FakeBackend()
        self.tokens = TokenStore()
        self.client = ApiClient(BASE_URL, self.tokens, transport=self.backend.transport())
        self.session = SessionManager(self.client, self.tokens)
        self.history = OrderHistory(self.client, page_size=2)
        self.book = AddressBook(self.client)
        await self.session.sign_in("alice@example.com", "secret")

        for i, status in enumerate(
            ["PENDING_PAYMENT", "SLIP_UPLOADED", "PAID", "REJECTED", "EXPIRED"]
        ):
            self.backend.seed_order(f"o{i}", status)

    async def asyncTearDown(self):
        await self.client.close()

    # ---------- Order history ----------

    async def test_tabs_filter_by_status(self):
        page = await self.history.fetch(tab="processing")
        self.assertEqual(
            [o.status for o in page.items],
            [OrderStatus.PENDING_PAYMENT, OrderStatus.SLIP_UPLOADED],
        )

        page = await self.history.switch_tab("failed")
        self.assertEqual(page.total_elements, 2)
        self.assertEqual(self.history.tab, "failed")

        page = await self.history.switch_tab("success")
        self.assertEqual([o.id for o in page.items], ["o2"])

        with self.assertRaises(ValueError):
            await self.history.switch_tab("archived")

    async def test_paging(self):
        first = await self.history.fetch()
        self.assertEqual(first.total_pages, 3)
        self.assertIsNone(await self.history.previous_page())

        second = await self.history.next_page()
        self.assertEqual(second.page, 1)
        self.assertEqual([o.id for o in second.items], ["o2", "o3"])

        third = await self.history.next_page()
        self.assertEqual([o.id for o in third.items], ["o4"])
        self.assertIsNone(await self.history.next_page())

        back = await self.history.previous_page()
        self.assertEqual(back.page, 1)

    async def test_forbidden_maps_to_sign_in_again(self):
        self.backend.fail("GET", "/orders/my", 403, {"message": "Forbidden"})
        with self.assertRaises(AuthenticationError) as ctx:
            await self.history.fetch()
        self.assertEqual(ctx.exception.status, 403)
        self.assertEqual(str(ctx.exception), "Please sign in again.")

    # ---------- Address book ----------

    async def test_list_and_default(self):
        addresses = await self.book.list()
        self.assertEqual([a.id for a in addresses], ["A100", "A123"])
        self.assertEqual(self.book.default().id, "A123")
        self.assertEqual(addresses[1].district, "Bang Rak")

        self.backend.addresses[1]["isDefault"] = False
        await self.book.list()
        self.assertEqual(self.book.default().id, "A100")

    async def test_create_update_remove(self):
        created = await self.book.create(
            Address(id="", full_name=" Bob ", phone="0899999999", line1="5 Lane",
                    subdistrict="Khlong Tan", district="Khlong Toei", province="Bangkok",
                    postal_code="10110")
        )
        self.assertTrue(created.id)
        self.assertEqual(created.full_name, "Bob")
        self.assertEqual(len(self.book.addresses), 3)

        updated = await self.book.update(
            Address(id=created.id, full_name="Bob B", phone="0899999999", line1="5 Lane",
                    subdistrict="Khlong Tan", district="Khlong Toei", province="Bangkok",
                    postal_code="10110")
        )
        self.assertEqual(updated.full_name, "Bob B")

        await self.book.remove(created.id)
        self.assertNotIn(created.id, [a.id for a in self.book.addresses])

    async def test_invalid_address_is_not_sent(self):
        bad = Address(id="", full_name="Bob", phone="12345", line1="5 Lane",
                      subdistrict="x", district="y", province="z", postal_code="10110")
        with self.assertRaises(ValidationError) as ctx:
            await self.book.create(bad)
        self.assertEqual(ctx.exception.field, "phone")
        self.assertEqual(self.backend.count("POST", "/addresses"), 0)

        with self.assertRaises(ValueError):
            await self.book.update(validate_address(
                Address(id="", full_name="Bob", phone="0812345678", line1="1",
                        subdistrict="x", district="y", province="z", postal_code="10110")
            ))


if __name__ == "__main__":
    unittest.main()
