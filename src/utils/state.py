from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import httpx

from api.client import ApiClient
from state.cart import CartStore
from state.checkout import CheckoutOrchestrator
from state.orders import AddressBook, OrderHistory
from state.session import SessionManager
from storage.tokens import TokenStore
from utils.config import Settings
from utils.messages import MessageSink


@dataclass
class GlobalState:
    """
    Centralized client state shared by whatever UI sits on top.

    Fields:
      - settings: where the API and the durable store live
      - tokens: the only process-wide credential store
      - client: HTTP client reading tokens through on every request
      - session / cart / orders / addresses: the stateful components
    """

    settings: Settings = field(default_factory=Settings.from_env)
    post_message: Optional[MessageSink] = None
    transport: Optional[httpx.AsyncBaseTransport] = None

    tokens: TokenStore = field(init=False)
    client: ApiClient = field(init=False)
    session: SessionManager = field(init=False)
    cart: CartStore = field(init=False)
    orders: OrderHistory = field(init=False)
    addresses: AddressBook = field(init=False)

    def __post_init__(self) -> None:
        self.tokens = TokenStore(self.settings.db_path)
        self.client = ApiClient(
            self.settings.api_url,
            self.tokens,
            timeout=self.settings.request_timeout,
            transport=self.transport,
        )
        self.session = SessionManager(self.client, self.tokens, self.post_message)
        self.cart = CartStore(self.client, self.tokens, self.post_message)
        self.orders = OrderHistory(self.client)
        self.addresses = AddressBook(self.client)

    async def start_session(self) -> bool:
        """Restore any persisted session and sync the cart. True if signed in."""
        await self.session.initialize()
        await self.cart.refresh()
        return self.session.is_authenticated

    async def end_session(self) -> None:
        """Sign out and drop the local cart mirror."""
        await self.session.logout()
        await self.cart.refresh()

    def checkout(self) -> CheckoutOrchestrator:
        """A fresh orchestrator; the caller owns it and must close() it."""
        return CheckoutOrchestrator(
            self.client, self.cart, self.settings, post_message=self.post_message
        )

    async def close(self) -> None:
        await self.client.close()

    async def __aenter__(self) -> "GlobalState":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()
