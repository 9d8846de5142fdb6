from __future__ import annotations

import dataclasses
from typing import List, Optional

from api import endpoints
from api.client import ApiClient
from api.errors import ApiError, AuthenticationError
from api.models import Address, OrderPage
from utils.logger import get_logger
from utils.pure import statuses_for_tab
from utils.validators import validate_phone, validate_postal_code, validate_required

_logger = get_logger(__name__)


class OrderHistory:
    """
    Paginated list of the signed-in user's orders, filtered by history tab.
    """

    def __init__(self, client: ApiClient, page_size: int = 20) -> None:
        self._client = client
        self.page_size = page_size
        self.tab = "all"
        self.page = 0
        self.last: Optional[OrderPage] = None

    async def fetch(self, page: int = 0, size: Optional[int] = None, tab: str = "all") -> OrderPage:
        statuses = statuses_for_tab(tab)
        size = size or self.page_size
        try:
            result = await endpoints.list_my_orders(self._client, max(page, 0), size, statuses)
        except ApiError as e:
            if e.status in (401, 403):
                raise AuthenticationError(e.status, e.message) from e
            raise
        self.tab, self.page, self.last = tab, result.page, result
        return result

    async def switch_tab(self, tab: str) -> OrderPage:
        """Changing tab always starts from the first page."""
        return await self.fetch(page=0, tab=tab)

    async def next_page(self) -> Optional[OrderPage]:
        if self.last is None or self.page + 1 >= self.last.total_pages:
            return None
        return await self.fetch(page=self.page + 1, tab=self.tab)

    async def previous_page(self) -> Optional[OrderPage]:
        if self.last is None or self.page <= 0:
            return None
        return await self.fetch(page=self.page - 1, tab=self.tab)


def validate_address(address: Address) -> Address:
    """Field checks done before an address is sent; returns a trimmed copy."""
    return dataclasses.replace(
        address,
        full_name=validate_required("full_name", address.full_name, "Recipient name"),
        phone=validate_phone(address.phone),
        line1=validate_required("line1", address.line1, "Address"),
        province=validate_required("province", address.province, "Province"),
        district=validate_required("district", address.district, "District"),
        subdistrict=validate_required("subdistrict", address.subdistrict, "Subdistrict"),
        postal_code=validate_postal_code(address.postal_code),
    )


class AddressBook:
    """
    The user's saved shipping addresses. Orders snapshot an address when
    created, so edits here never touch existing orders.
    """

    def __init__(self, client: ApiClient) -> None:
        self._client = client
        self.addresses: List[Address] = []

    async def list(self) -> List[Address]:
        self.addresses = await endpoints.list_addresses(self._client)
        return self.addresses

    def default(self) -> Optional[Address]:
        """The address flagged default, else the first one, else None."""
        for a in self.addresses:
            if a.is_default:
                return a
        return self.addresses[0] if self.addresses else None

    async def create(self, address: Address) -> Address:
        created = await endpoints.create_address(self._client, validate_address(address))
        await self.list()
        return created

    async def update(self, address: Address) -> Address:
        if not address.id:
            raise ValueError("Cannot update an address that has no id.")
        updated = await endpoints.update_address(self._client, validate_address(address))
        await self.list()
        return updated

    async def remove(self, address_id: str) -> None:
        await endpoints.delete_address(self._client, address_id)
        _logger.info(f"Address {address_id} removed")
        await self.list()
