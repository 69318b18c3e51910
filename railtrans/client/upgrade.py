import logging
from typing import List, Optional
from ..core.normalizers import normalize_role, plural_role
from ..core.pricing import DEFAULT_CATEGORIES, PriceBreakdown, TicketCategory, resolve_category
from .api import ApiClient, ApiError
from .checkout import CouponPaymentStep

logger = logging.getLogger(__name__)


class TicketUpgradeFlow:
    """
    Post-registration category change: load the registrant, pick a
    category, pay through CouponPaymentStep, then record the upgrade.
    The server re-sends the acknowledgement mail.
    """

    def __init__(self, api: ApiClient, entity: str, registrant_id, ticket_code: Optional[str] = None,
                 gst_rate: float = 0.18, **step_kwargs) -> None:
        self.api = api
        self.role = normalize_role(entity) or entity
        self.entity = plural_role(self.role)
        self.registrant_id = registrant_id
        self.ticket_code = ticket_code
        self.gst_rate = gst_rate
        self._step_kwargs = step_kwargs
        self.registrant: Optional[dict] = None
        self.category: Optional[str] = None
        self.breakdown: Optional[PriceBreakdown] = None
        self.step: Optional[CouponPaymentStep] = None
        self.error = ""
        self.done = False

    def load(self) -> bool:
        self.error = ""
        try:
            self.registrant = self.api.get(f"/api/{self.entity}/{self.registrant_id}")
        except ApiError as e:
            self.error = e.message
            return False
        if self.ticket_code and str(self.registrant.get("ticket_code") or "") != str(self.ticket_code):
            self.error = "Ticket code does not match this registration."
            self.registrant = None
            return False
        return True

    def categories(self) -> List[TicketCategory]:
        return list(DEFAULT_CATEGORIES.get(self.role, []))

    def select(self, category: str) -> PriceBreakdown:
        self.category = category
        self.breakdown = resolve_category(self.role, category, self.gst_rate)
        email = (self.registrant or {}).get("email")
        self.step = CouponPaymentStep(
            self.api,
            price=self.breakdown.total,
            reference_id=str(self.registrant_id),
            description=f"Ticket Upgrade - {category}",
            metadata={"entity_type": self.entity, "new_category": category, "email": email},
            used_by=email,
            **self._step_kwargs,
        )
        return self.breakdown

    def apply_coupon(self, code: str) -> bool:
        if self.step is None:
            self.error = "Select a ticket category first."
            return False
        ok = self.step.preview(code)
        self.error = self.step.error
        return ok

    def complete(self) -> bool:
        if self.step is None or self.breakdown is None:
            self.error = "Select a ticket category first."
            return False
        outcome = self.step.pay()
        if not outcome.get("paid"):
            self.error = outcome.get("error") or "Payment was not completed."
            return False

        fields = self.breakdown.as_ticket_fields()
        if self.step.coupon is not None:
            fields["ticket_total"] = self.step.amount_to_pay
        try:
            self.api.post("/api/tickets/upgrade", {
                "entity_type": self.entity,
                "entity_id": self.registrant_id,
                "new_category": self.category,
                "amount": self.step.amount_to_pay,
                "txId": outcome.get("txId"),
                "coupon": (self.step.coupon or {}).get("code"),
                "email": (self.registrant or {}).get("email"),
                **fields,
            })
        except ApiError as e:
            logger.error(f"Upgrade not recorded after payment: id={self.registrant_id}, tx_id={outcome.get('txId')}, error={e.message}")
            self.error = e.message
            return False
        self.done = True
        return True
