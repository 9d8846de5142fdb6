from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from utils.logger import get_logger

_logger = get_logger(__name__)


class Message:
    """
    Base for state-change notifications.
    Components post these through a plain callable supplied by the UI layer.
    """


MessageSink = Callable[[Message], Any]


def post_to(sink: Optional[MessageSink], message: Message) -> None:
    """Deliver a message if anyone is listening. Listener errors never reach the caller."""
    if sink is None:
        return
    try:
        sink(message)
    except Exception:
        _logger.exception(f"Listener failed on {type(message).__name__}")


@dataclass(frozen=True)
class SessionChanged(Message):
    """
    Fired on login, refresh and logout.
    authenticated is False once the session is destroyed.
    """

    authenticated: bool
    is_admin: bool = False


@dataclass(frozen=True)
class SessionExpired(Message):
    """
    Fired when a refresh failed and the user has to sign in again.
    """

    reason: str = "Please sign in again."


@dataclass(frozen=True)
class CartChanged(Message):
    """
    Fired after every cart re-sync, successful mutation or not.
    """

    item_count: int
    total: int


@dataclass(frozen=True)
class OrderUpdated(Message):
    """
    Fired when the held order snapshot is replaced or merged.
    """

    order: Any


@dataclass(frozen=True)
class CountdownTick(Message):
    """
    Fired on each payment-window countdown tick.
    """

    order_id: str
    time_left: int


@dataclass(frozen=True)
class NavigateTo(Message):
    """
    Asks the UI layer to show another view, e.g. "cart" or "login".
    """

    view: str
