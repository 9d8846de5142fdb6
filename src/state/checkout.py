"""
PromptPay checkout and payment-window tracking.

    (none) --place_order--> PENDING_PAYMENT --slip--> SLIP_UPLOADED --admin--> PAID --admin--> CANCELED
                                  |                          |
                                  +--window closes--> EXPIRED +--admin--> REJECTED

Only order creation, slip upload and restore-to-cart are client actions; every
other transition is observed through polling. The countdown is advisory: the
server enforces the deadline.
"""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Union

from api import endpoints
from api.client import ApiClient
from api.errors import CheckoutError
from api.models import (
    RESTORABLE_STATUSES,
    Address,
    Cart,
    CreatedOrder,
    Order,
    OrderStatus,
    SlipFile,
)
from state.cart import CartStore
from state.poller import OrderStatusPoller, PollHandle
from utils.config import Settings
from utils.logger import get_logger
from utils.messages import CountdownTick, MessageSink, NavigateTo, OrderUpdated, post_to
from utils.pure import format_address
from utils.validators import validate_slip

_logger = get_logger(__name__)

PAYMENT_METHOD = "PROMPTPAY"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CheckoutSummary:
    """What the user confirms before an order is committed."""

    total: int
    sub_total: int
    shipping_fee: int
    item_count: int
    address: Address
    address_text: str


ConfirmStep = Callable[[CheckoutSummary], Union[bool, Awaitable[bool]]]


@dataclass(frozen=True)
class _Fetched:
    generation: int
    order: Order


class CheckoutOrchestrator:
    """
    Drives one order at a time: creation, then the payment window.

    While an order is held, two timers run: a poller replacing the order
    snapshot every poll_interval seconds, and a countdown recomputing
    time_left every countdown_interval seconds. close() stops both.
    """

    def __init__(
        self,
        client: ApiClient,
        cart: CartStore,
        settings: Optional[Settings] = None,
        post_message: Optional[MessageSink] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._client = client
        self._cart = cart
        self._settings = settings or Settings()
        self._post = post_message
        self._clock = clock

        self._order: Optional[Order] = None
        self._time_left = 0
        self._poller: Optional[OrderStatusPoller[_Fetched]] = None
        self._poll_handle: Optional[PollHandle[_Fetched]] = None
        self._countdown_task: Optional[asyncio.Task] = None
        # bumped on every local merge; fetches started earlier are discarded
        self._generation = 0
        self.last_created: Optional[CreatedOrder] = None

    async def __aenter__(self) -> "CheckoutOrchestrator":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    # ---------------------------
    # Derived state
    # ---------------------------

    @property
    def order(self) -> Optional[Order]:
        return self._order

    @property
    def time_left(self) -> int:
        return self._time_left

    @property
    def can_upload_slip(self) -> bool:
        order = self._order
        if order is None or order.expires_at is None or self._time_left <= 0:
            return False
        return order.status == OrderStatus.PENDING_PAYMENT

    @property
    def can_restore(self) -> bool:
        return self._order is not None and self._order.status in RESTORABLE_STATUSES

    @property
    def polling(self) -> bool:
        return self._poll_handle is not None and not self._poll_handle.stopped

    @property
    def counting_down(self) -> bool:
        return self._countdown_task is not None and not self._countdown_task.done()

    # ---------------------------
    # Creation
    # ---------------------------

    def summary(self, address: Address) -> CheckoutSummary:
        return CheckoutSummary(
            total=self._cart.total,
            sub_total=self._cart.sub_total,
            shipping_fee=self._cart.shipping_fee,
            item_count=self._cart.item_count,
            address=address,
            address_text=format_address(address),
        )

    async def place_order(
        self, address: Optional[Address], confirm: Optional[ConfirmStep] = None
    ) -> Optional[CreatedOrder]:
        """
        Create a PromptPay order for the current cart.

        Returns None when the confirm step declines; nothing is sent then.
        Server errors propagate unchanged and no state changes.
        """
        if address is None or not address.id:
            raise CheckoutError("Please select a shipping address.")
        if self._cart.is_empty or self._cart.total <= 0:
            raise CheckoutError("Your cart is empty.")

        if confirm is not None:
            answer = confirm(self.summary(address))
            if inspect.isawaitable(answer):
                answer = await answer
            if not answer:
                _logger.info("Checkout cancelled at confirmation")
                return None

        created = await endpoints.create_order(self._client, address.id, PAYMENT_METHOD)
        _logger.info(f"Order {created.order_id} created, total {created.total}")
        self.last_created = created

        # the server empties the cart on order creation; mirror it
        await self._cart.refresh()

        await self._detach()
        self._set_order(
            Order(
                id=created.order_id,
                status=OrderStatus.PENDING_PAYMENT,
                total=created.total,
                payment_method=PAYMENT_METHOD,
                expires_at=created.expires_at,
                promptpay_target=created.promptpay_target,
                promptpay_qr_url=created.promptpay_qr_url,
            )
        )
        self._start_polling(created.order_id, fetch_first=True)
        return created

    async def track(self, order_id: str) -> Optional[Order]:
        """Attach to an existing order, e.g. when opening its detail view."""
        if self._order is not None and self._order.id == order_id and self.polling:
            return self._order
        await self._detach()
        self._order = None
        self._time_left = 0
        poller = self._make_poller(order_id)
        await poller.poll_once()
        self._start_polling(order_id, fetch_first=False, poller=poller)
        return self._order

    async def reload(self) -> Optional[Order]:
        """Fetch the held order now instead of waiting for the next poll."""
        if self._poller is None:
            return None
        await self._poller.poll_once()
        return self._order

    # ---------------------------
    # Snapshot & timers
    # ---------------------------

    def _make_poller(self, order_id: str) -> OrderStatusPoller[_Fetched]:
        return OrderStatusPoller(
            order_id,
            self._fetch_order,
            interval=self._settings.poll_interval,
            on_snapshot=self._on_fetched,
        )

    async def _fetch_order(self, order_id: str) -> _Fetched:
        generation = self._generation
        return _Fetched(generation, await endpoints.get_order(self._client, order_id))

    def _on_fetched(self, fetched: _Fetched) -> None:
        if fetched.generation != self._generation:
            _logger.debug(
                f"Dropping order {fetched.order.id} fetched before the last local update"
            )
            return
        self._set_order(fetched.order)

    def _start_polling(
        self, order_id: str, fetch_first: bool, poller: Optional[OrderStatusPoller[_Fetched]] = None
    ) -> None:
        self._poller = poller or self._make_poller(order_id)
        self._poll_handle = self._poller.start(delay_first=not fetch_first)

    def _set_order(self, order: Order) -> None:
        current = self._order
        if (
            current is not None
            and current.id == order.id
            and current.expires_at is not None
            and order.expires_at is not None
            and order.expires_at != current.expires_at
        ):
            _logger.warning(
                f"Order {order.id} reported a new expiry {order.expires_at}; keeping {current.expires_at}"
            )
            order = dataclasses.replace(order, expires_at=current.expires_at)
        self._order = order
        self._sync_countdown()
        self.tick()
        post_to(self._post, OrderUpdated(order))

    def tick(self) -> int:
        """Recompute time_left from the clock: whole seconds until expiry, never negative."""
        order = self._order
        if order is None or order.expires_at is None:
            self._time_left = 0
        else:
            remaining = (order.expires_at - self._clock()).total_seconds()
            self._time_left = max(0, math.floor(remaining))
        if order is not None:
            post_to(self._post, CountdownTick(order.id, self._time_left))
        return self._time_left

    async def _countdown(self) -> None:
        while True:
            await asyncio.sleep(self._settings.countdown_interval)
            self.tick()

    def _sync_countdown(self) -> None:
        has_deadline = self._order is not None and self._order.expires_at is not None
        if has_deadline and not self.counting_down:
            self._countdown_task = asyncio.create_task(
                self._countdown(), name=f"countdown-{self._order.id}"
            )
        elif not has_deadline and self._countdown_task is not None:
            self._countdown_task.cancel()
            self._countdown_task = None

    async def _detach(self) -> None:
        if self._poll_handle is not None:
            await self._poll_handle.stop()
        self._poll_handle = None
        self._poller = None
        task, self._countdown_task = self._countdown_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def close(self) -> None:
        """Stop the poller and the countdown. Safe to call repeatedly."""
        await self._detach()

    # ---------------------------
    # Slip & restore
    # ---------------------------

    async def submit_slip(self, slip: SlipFile) -> Order:
        """
        Upload a payment slip for the held order.

        Blocked without a network call when the window is closed or the file
        is not an acceptable image. The response's status and slip URL are
        merged into the snapshot; polling carries on.
        """
        self.tick()
        order = self._order
        if order is None:
            raise CheckoutError("There is no order to attach a slip to.")
        if not self.can_upload_slip:
            raise CheckoutError("This order is not accepting a payment slip.")
        validate_slip(slip, self._settings.slip_max_bytes)

        result = await endpoints.upload_slip(self._client, order.id, slip)
        _logger.info(f"Slip uploaded for order {order.id}: {result.status}")

        current = self._order
        if current is None or current.id != order.id:
            return order
        merged = dataclasses.replace(
            current,
            status=result.status or current.status,
            payment_slip_url=result.payment_slip_url or current.payment_slip_url,
        )
        self._generation += 1
        self._order = merged
        self.tick()
        post_to(self._post, OrderUpdated(merged))
        return merged

    async def restore_to_cart(self) -> Cart:
        """Move an expired or rejected order's items back into the cart."""
        order = self._order
        if order is None or not self.can_restore:
            raise CheckoutError("Only expired or rejected orders can be restored to the cart.")
        await endpoints.restore_cart(self._client, order.id)
        await self._cart.refresh()
        post_to(self._post, NavigateTo("cart"))
        return self._cart.snapshot
