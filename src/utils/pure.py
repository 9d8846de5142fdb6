from typing import Optional

from api.models import Address, OrderStatus

STATUS_LABELS = {
    OrderStatus.PENDING_PAYMENT: "Awaiting payment",
    OrderStatus.SLIP_UPLOADED: "Slip under review",
    OrderStatus.PAID: "Paid",
    OrderStatus.REJECTED: "Rejected",
    OrderStatus.EXPIRED: "Expired",
    OrderStatus.CANCELED: "Canceled",
}

# order-history tabs and the status CSV each one filters on
HISTORY_TABS = {
    "all": None,
    "processing": "PENDING_PAYMENT,SLIP_UPLOADED",
    "success": "PAID",
    "failed": "REJECTED,EXPIRED,CANCELED",
}


def format_thb(amount: int) -> str:
    """Whole-baht amount with thousands separators, e.g. 1,250 ฿."""
    return f"{amount:,} ฿"


def format_countdown(seconds: int) -> str:
    """
    m:ss for the payment window; negative input shows 0:00.
    """
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


def format_address(address: Optional[Address]) -> str:
    if address is None:
        return ""
    parts = [
        address.line1,
        address.line2,
        address.subdistrict,
        address.district,
        address.province,
        address.postal_code,
    ]
    body = " ".join(p.strip() for p in parts if p and p.strip())
    head = " ".join(p for p in (address.full_name, address.phone) if p)
    return f"{head}, {body}" if head and body else head or body


def status_label(status) -> str:
    try:
        return STATUS_LABELS[OrderStatus(status)]
    except ValueError:
        return str(status)


def statuses_for_tab(tab: str) -> Optional[str]:
    if tab not in HISTORY_TABS:
        raise ValueError(f"Unknown order tab {tab!r}; expected one of {', '.join(HISTORY_TABS)}.")
    return HISTORY_TABS[tab]
