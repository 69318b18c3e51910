"""
Coupon and payment step.

A coupon is previewed without side effects, reserved (marked used) right
before checkout and released again whenever the payment does not go
through: order creation failure, blocked popup, failed status or timeout.
"""
import logging
import time
import webbrowser
from typing import Callable, Optional
from ..core.payments import FAILED_STATUSES, PAID_STATUSES
from .api import ApiClient, ApiError

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 3.0
MAX_POLL_ATTEMPTS = 40

POPUP_BLOCKED = "Popup blocked. Please allow popups for this site and try again."
NO_CHECKOUT_URL = "Payment provider did not return a checkout URL."
ORDER_FAILED = "Could not create payment order"
RESERVE_FAILED = "Could not reserve coupon"
PAYMENT_FAILED = "Payment failed or was cancelled."
NOT_CONFIRMED = "Payment not confirmed yet. If you completed the payment, please wait a moment and check again."


class CouponPaymentStep:

    def __init__(
        self,
        api: ApiClient,
        price: int,
        reference_id: str,
        description: Optional[str] = None,
        metadata: Optional[dict] = None,
        used_by: Optional[str] = None,
        open_url: Callable[[str], bool] = webbrowser.open,
        sleep: Callable[[float], None] = time.sleep,
        now_ms: Callable[[], int] = lambda: int(time.time() * 1000),
        poll_interval_s: float = POLL_INTERVAL_SECONDS,
        max_attempts: int = MAX_POLL_ATTEMPTS,
    ) -> None:
        self.api = api
        self.price = price
        self.reference_id = reference_id
        self.description = description
        self.metadata = dict(metadata or {})
        self.used_by = used_by or reference_id
        self._open_url = open_url
        self._sleep = sleep
        self._now_ms = now_ms
        self.poll_interval_s = poll_interval_s
        self.max_attempts = max_attempts

        self.coupon: Optional[dict] = None
        self.discount = 0
        self.reduced_price: Optional[int] = None
        self.reserved_coupon_id: Optional[int] = None
        self.state = "no-coupon"
        self.error = ""
        self.tx_id: Optional[str] = None
        self.checkout_url: Optional[str] = None
        self.order_id: Optional[int] = None

    @property
    def amount_to_pay(self) -> int:
        if self.coupon is not None and self.reduced_price is not None:
            return self.reduced_price
        return self.price

    def _validate(self, code: str, mark_used: bool) -> dict:
        return self.api.post("/api/coupons/validate", {
            "code": code,
            "price": self.price,
            "markUsed": mark_used,
            "used_by": self.used_by,
        })

    def preview(self, code: str) -> bool:
        self.error = ""
        try:
            resp = self._validate(code, mark_used=False)
        except ApiError as e:
            self.clear_coupon()
            self.error = e.message
            return False
        self.coupon = dict(resp.get("coupon") or {})
        self.discount = resp.get("discount") or 0
        self.reduced_price = resp.get("reducedPrice")
        self.state = "validated"
        return True

    def clear_coupon(self) -> None:
        if self.reserved_coupon_id is not None:
            self.release()
        self.coupon = None
        self.discount = 0
        self.reduced_price = None
        self.state = "no-coupon"

    def reserve(self) -> bool:
        if self.coupon is None:
            return True
        if self.reserved_coupon_id is not None:
            return True
        try:
            resp = self._validate(self.coupon.get("code"), mark_used=True)
        except ApiError as e:
            self.error = f"{RESERVE_FAILED}: {e.message}"
            logger.warning(f"Coupon reservation failed: code={self.coupon.get('code')}, status={e.status}")
            return False
        self.coupon = dict(resp.get("coupon") or self.coupon)
        self.reduced_price = resp.get("reducedPrice", self.reduced_price)
        self.reserved_coupon_id = self.coupon.get("id")
        self.state = "reserved"
        return True

    def release(self) -> None:
        """Best-effort unuse of the reserved coupon."""
        coupon_id = self.reserved_coupon_id
        if coupon_id is None:
            return
        self.reserved_coupon_id = None
        if self.coupon is not None:
            self.coupon["used"] = False
            self.state = "validated"
        try:
            self.api.post(f"/api/coupons/{coupon_id}/unuse")
            logger.info(f"Coupon released: id={coupon_id}")
        except ApiError as e:
            logger.warning(f"Coupon release failed: id={coupon_id}, status={e.status}, error={e.message}")

    def _fail(self, message: str) -> dict:
        self.error = message
        self.release()
        self.state = "released" if self.coupon is not None else "failed"
        return {"paid": False, "error": message}

    def pay(self) -> dict:
        """
        Run the step to a terminal state. Returns {"paid": True, "txId": ...}
        or {"paid": False, "error": ...}.
        """
        self.error = ""
        if not self.reserve():
            return {"paid": False, "error": self.error}
        amount = self.amount_to_pay

        if amount <= 0:
            self.tx_id = f"free-{self._now_ms()}"
            self.state = "captured"
            logger.info(f"Free checkout: reference_id={self.reference_id}, tx_id={self.tx_id}")
            return {"paid": True, "txId": self.tx_id, "amount": 0}

        try:
            order = self.api.post("/api/payment/create-order", {
                "amount": amount,
                "reference_id": self.reference_id,
                "description": self.description,
                "metadata": {**self.metadata, "coupon": (self.coupon or {}).get("code")},
            })
        except ApiError as e:
            return self._fail(f"{ORDER_FAILED}: {e.message}")

        self.order_id = order.get("orderId")
        self.checkout_url = order.get("checkoutUrl")
        if not self.checkout_url:
            return self._fail(NO_CHECKOUT_URL)
        if not self._open_url(self.checkout_url):
            return self._fail(POPUP_BLOCKED)

        return self.poll()

    def poll(self) -> dict:
        for attempt in range(1, self.max_attempts + 1):
            self._sleep(self.poll_interval_s)
            try:
                resp = self.api.get("/api/payment/status", params={"reference_id": self.reference_id})
            except ApiError as e:
                logger.debug(f"Payment status not available yet: attempt={attempt}, status={e.status}")
                continue

            status = str(resp.get("status") or "").lower()
            if status in PAID_STATUSES:
                record = resp.get("record") or {}
                self.tx_id = record.get("provider_payment_id") or record.get("provider_order_id") or str(self.order_id or "")
                self.state = "captured"
                logger.info(f"Payment confirmed: reference_id={self.reference_id}, attempts={attempt}")
                return {"paid": True, "txId": self.tx_id, "amount": self.amount_to_pay}
            if status in FAILED_STATUSES:
                return self._fail(PAYMENT_FAILED)

        logger.warning(f"⚠️ Payment polling timed out: reference_id={self.reference_id}, attempts={self.max_attempts}")
        return self._fail(NOT_CONFIRMED)
