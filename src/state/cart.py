from __future__ import annotations

import asyncio
from typing import Optional, Tuple

from api import endpoints
from api.client import ApiClient
from api.errors import AuthenticationError, ShopError
from api.models import Cart, CartItem
from storage.tokens import TokenStore
from utils.logger import get_logger
from utils.messages import CartChanged, MessageSink, post_to

_logger = get_logger(__name__)


class CartStore:
    """
    Local mirror of the server's cart.

    Every mutation is sent to the server and followed by a full re-fetch;
    local items are never patched. Mutation errors are logged, not raised,
    and the re-fetch still runs, so the mirror always ends on what the
    server holds. Money fields come from the server as-is.
    """

    def __init__(
        self,
        client: ApiClient,
        tokens: TokenStore,
        post_message: Optional[MessageSink] = None,
    ) -> None:
        self._client = client
        self._tokens = tokens
        self._post = post_message
        self._cart = Cart()
        # one operation at a time, so awaiting callers see their own post-refresh state
        self._lock = asyncio.Lock()

    # derived values

    @property
    def snapshot(self) -> Cart:
        return self._cart

    @property
    def items(self) -> Tuple[CartItem, ...]:
        return self._cart.items

    @property
    def sub_total(self) -> int:
        return self._cart.sub_total

    @property
    def shipping_fee(self) -> int:
        return self._cart.shipping_fee

    @property
    def total(self) -> int:
        return self._cart.total

    @property
    def item_count(self) -> int:
        return self._cart.item_count

    @property
    def is_empty(self) -> bool:
        return not self._cart.items

    def find(self, product_id: str, color: str, size: str) -> Optional[CartItem]:
        key = (product_id, color, size)
        return next((i for i in self._cart.items if i.key == key), None)

    # ---------------------------
    # Sync
    # ---------------------------

    async def refresh(self) -> Cart:
        async with self._lock:
            return await self._refresh()

    async def _refresh(self) -> Cart:
        if not self._tokens.access_token:
            self._replace(Cart())
            return self._cart
        try:
            cart = await endpoints.get_cart(self._client)
        except AuthenticationError:
            _logger.info("[cart] session ended; clearing local cart")
            self._replace(Cart())
            return self._cart
        except ShopError as e:
            _logger.error(f"[cart] GET /cart failed: {e}")
            return self._cart
        self._replace(cart)
        return self._cart

    def _replace(self, cart: Cart) -> None:
        self._cart = cart
        post_to(self._post, CartChanged(item_count=cart.item_count, total=cart.total))

    async def _mutate(self, label: str, call) -> Cart:
        async with self._lock:
            try:
                await call()
            except ShopError as e:
                _logger.error(f"[cart] {label} failed: {e}")
            return await self._refresh()

    # ---------------------------
    # Mutations
    # ---------------------------

    async def add_item(self, item: CartItem) -> Cart:
        return await self._mutate(
            "POST /cart/items",
            lambda: endpoints.add_cart_item(
                self._client, item.product_id, item.color, item.size, item.quantity
            ),
        )

    async def update_item(self, product_id: str, color: str, size: str, quantity: int) -> Cart:
        """Set the quantity for one line. Callers clamp to >= 1 beforehand."""
        return await self._mutate(
            "PUT /cart/items",
            lambda: endpoints.update_cart_item(self._client, product_id, color, size, quantity),
        )

    async def remove_item(self, product_id: str, color: str, size: str) -> Cart:
        return await self._mutate(
            "DELETE /cart/items",
            lambda: endpoints.remove_cart_item(self._client, product_id, color, size),
        )

    async def clear_cart(self) -> Cart:
        return await self._mutate("DELETE /cart", lambda: endpoints.clear_cart(self._client))
