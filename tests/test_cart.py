import unittest

from fakes import BASE_URL, FakeBackend

from api.client import ApiClient
from api.models import CartItem
from state.cart import CartStore
from state.session import SessionManager
from storage.tokens import TokenStore
from utils.messages import CartChanged


def tee(product_id="p1", color="black", size="M", quantity=1):
    return CartItem(
        product_id=product_id, name="", image="", price=0, color=color, size=size, quantity=quantity
    )


class CartStoreTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.backend = FakeBackend()
        self.messages = []
        self.tokens = TokenStore()
        self.client = ApiClient(BASE_URL, self.tokens, transport=self.backend.transport())
        self.session = SessionManager(self.client, self.tokens)
        self.cart = CartStore(self.client, self.tokens, post_message=self.messages.append)
        await self.session.sign_in("alice@example.com", "secret")

    async def asyncTearDown(self):
        await self.client.close()

    # ---------- Sync ----------

    async def test_signed_out_cart_is_empty_without_network(self):
        await self.session.logout()
        self.backend.calls.clear()
        cart = await self.cart.refresh()
        self.assertTrue(self.cart.is_empty)
        self.assertEqual(cart.total, 0)
        self.assertEqual(self.backend.calls, [])
        self.assertEqual(self.messages[-1], CartChanged(item_count=0, total=0))

    async def test_mutation_then_read_matches_server(self):
        cart = await self.cart.add_item(tee(quantity=2))
        self.assertEqual(cart, self.cart.snapshot)
        self.assertEqual(self.cart.item_count, 2)
        self.assertEqual(self.cart.sub_total, 1000)
        self.assertEqual(self.cart.shipping_fee, 50)
        self.assertEqual(self.cart.total, 1050)
        self.assertEqual(self.cart.find("p1", "black", "M").price, 500)

        await self.cart.update_item("p1", "black", "M", 3)
        self.assertEqual(self.cart.item_count, 3)

        await self.cart.remove_item("p1", "black", "M")
        self.assertTrue(self.cart.is_empty)
        self.assertEqual(self.cart.total, 0)
        # every mutation is followed by a full re-fetch
        self.assertEqual(self.backend.count("GET", "/cart"), 3)

    async def test_composite_key_merges_same_line(self):
        await self.cart.add_item(tee(quantity=1))
        await self.cart.add_item(tee(quantity=2))
        await self.cart.add_item(tee(size="L"))
        await self.cart.add_item(tee(product_id="p2", quantity=1))

        keys = [i.key for i in self.cart.items]
        self.assertEqual(len(keys), len(set(keys)))
        self.assertEqual(len(keys), 3)
        self.assertEqual(self.cart.find("p1", "black", "M").quantity, 3)
        self.assertIsNone(self.cart.find("p1", "white", "M"))

    async def test_remove_sends_key_as_query_params(self):
        await self.cart.add_item(tee(color="navy blue", size="XL"))
        await self.cart.remove_item("p1", "navy blue", "XL")
        self.assertTrue(self.cart.is_empty)
        self.assertIn(("DELETE", "/cart/items"), self.backend.calls)

    async def test_failed_mutation_is_logged_and_state_resynced(self):
        await self.cart.add_item(tee())
        cart = await self.cart.add_item(tee(product_id="missing"))
        self.assertEqual(cart.item_count, 1)
        self.assertEqual(self.backend.count("GET", "/cart"), 2)

    async def test_failed_refresh_keeps_last_state(self):
        await self.cart.add_item(tee(quantity=2))
        self.backend.fail("GET", "/cart", 500, {"message": "boom"})
        cart = await self.cart.refresh()
        self.assertEqual(cart.item_count, 2)

    async def test_server_side_auth_loss_empties_cart(self):
        await self.cart.add_item(tee())
        self.backend.access_tokens.clear()
        self.backend.refresh_tokens.clear()
        cart = await self.cart.refresh()
        self.assertTrue(self.cart.is_empty)
        self.assertEqual(cart.total, 0)
        self.assertFalse(self.session.is_authenticated)

    async def test_clear_cart(self):
        await self.cart.add_item(tee())
        await self.cart.add_item(tee(product_id="p2"))
        await self.cart.clear_cart()
        self.assertTrue(self.cart.is_empty)
        self.assertEqual(self.messages[-1], CartChanged(item_count=0, total=0))


if __name__ == "__main__":
    unittest.main()
