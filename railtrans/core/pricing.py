"""
Ticket pricing: categories, GST and coupon discounts.

All amounts are whole rupees. Rounding is half-up, which is what the
registration pages have always shown for GST (Math.round on positives).
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional


@dataclass(frozen=True)
class TicketCategory:
    value: str
    label: str
    price: int
    gst_rate: float


@dataclass(frozen=True)
class PriceBreakdown:
    price: int
    gst_rate: float
    gst_amount: int
    total: int
    label: str = ""

    def as_ticket_fields(self) -> Dict[str, int]:
        return {
            "ticket_price": self.price,
            "ticket_gst": self.gst_amount,
            "ticket_total": self.total,
        }


DEFAULT_CATEGORIES: Dict[str, List[TicketCategory]] = {
    "visitor": [
        TicketCategory("free", "Free", 0, 0.0),
        TicketCategory("premium", "Premium", 2500, 0.18),
        TicketCategory("combo", "Combo", 5000, 0.18),
    ],
    "partner": [TicketCategory("premium", "Premium", 15000, 0.18)],
    "exhibitor": [TicketCategory("premium", "Premium", 5000, 0.18)],
    "awardee": [TicketCategory("premium", "Premium", 0, 0.0)],
    "speaker": [TicketCategory("free", "Free", 0, 0.0)],
}


def round_rupees(amount) -> int:
    return int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def gst_breakdown(price, gst_rate: float, label: str = "") -> PriceBreakdown:
    """
    Example: price=2500, gst_rate=0.18 → gst_amount=450, total=2950.
    """
    base = round_rupees(price or 0)
    gst_amount = round_rupees(Decimal(str(base)) * Decimal(str(gst_rate or 0)))
    return PriceBreakdown(price=base, gst_rate=float(gst_rate or 0), gst_amount=gst_amount, total=base + gst_amount, label=label)


def apply_discount(price, discount_percent) -> int:
    """
    Apply a percentage coupon to the amount about to be charged.

    `price` is the GST-inclusive total shown to the buyer; the discount is
    applied to it directly and the result rounded half-up to whole rupees.
    Example: apply_discount(2950, 10) → 2655.
    """
    pct = max(Decimal("0"), min(Decimal("100"), Decimal(str(discount_percent or 0))))
    reduced = Decimal(str(price or 0)) * (Decimal("100") - pct) / Decimal("100")
    return max(0, round_rupees(reduced))


def resolve_category(role: str, value: Optional[str], gst_rate: float = 0.18) -> PriceBreakdown:
    """
    Price a ticket category for a role.

    Configured categories win; unknown values fall back to the keyword
    heuristics the registration pages use (combo/vip/free/premium).
    """
    text = str(value or "").strip().lower()
    for category in DEFAULT_CATEGORIES.get(role, []):
        if category.value == text:
            return gst_breakdown(category.price, category.gst_rate, category.label)

    if not text or "free" in text or "general" in text or text == "0":
        return gst_breakdown(0, 0, "Free")
    if "combo" in text:
        return gst_breakdown(5000, gst_rate, "Combo")
    if "vip" in text:
        return gst_breakdown(7500, gst_rate, "VIP")
    if "premium" in text:
        price = {"partner": 15000, "exhibitor": 5000}.get(role, 2500)
        return gst_breakdown(price, gst_rate, "Premium")
    return gst_breakdown(2500, gst_rate, str(value))
