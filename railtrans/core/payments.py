import logging
import time
from typing import Optional
from sqlalchemy.orm import Session, sessionmaker
from ..storage.repository import PaymentOrderRepository
from .errors import NotFoundError, PaymentProviderError, ValidationError

logger = logging.getLogger(__name__)

PAID_STATUSES = ("paid", "captured", "completed", "success")
FAILED_STATUSES = ("failed", "cancelled", "void")

# provider callback wording → stored status
_WEBHOOK_STATUS = {
    "credit": "paid",
    "paid": "paid",
    "captured": "paid",
    "completed": "paid",
    "success": "paid",
    "failed": "failed",
    "failure": "failed",
    "cancelled": "cancelled",
    "canceled": "cancelled",
    "void": "cancelled",
}


class PaymentService:
    """
    Payment orders: created → pending → paid|failed|cancelled.

    The client polls status by reference_id; providers push terminal
    states through the webhook.
    """

    def __init__(self, gateway, db_session_factory: sessionmaker) -> None:
        self._gateway = gateway
        self._db_session_factory = db_session_factory

    def create_order(
        self,
        amount,
        reference_id: Optional[str] = None,
        currency: str = "INR",
        description: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> dict:
        try:
            amount = int(round(float(amount)))
        except (TypeError, ValueError):
            raise ValidationError("amount must be a number")
        if amount <= 0:
            raise ValidationError("amount must be greater than zero")
        reference_id = (reference_id or "").strip() or f"guest-{int(time.time() * 1000)}"
        metadata = dict(metadata or {})

        db_session: Session = self._db_session_factory()
        try:
            repo = PaymentOrderRepository(db_session)
            order = repo.create(
                reference_id=reference_id,
                amount=amount,
                currency=currency or "INR",
                description=description,
                provider=self._gateway.name,
                metadata=metadata,
            )
            try:
                checkout = self._gateway.create_checkout(
                    order.id, amount, order.currency, description or "RailTrans Expo ticket",
                    buyer_email=metadata.get("email"), buyer_name=metadata.get("name"),
                )
            except PaymentProviderError:
                repo.update(order, status="failed")
                logger.error(f"Payment order failed at provider: order_id={order.id}, reference_id={reference_id}")
                raise

            order = repo.update(
                order,
                status="pending",
                provider_order_id=checkout.provider_order_id,
                checkout_url=checkout.checkout_url,
            )
            logger.info(
                f"Payment order created: order_id={order.id}, reference_id={reference_id}, "
                f"amount={amount}, provider={order.provider}"
            )
            return {
                "success": True,
                "orderId": order.id,
                "checkoutUrl": order.checkout_url,
                "providerOrderId": order.provider_order_id,
                "raw": checkout.raw,
            }
        finally:
            db_session.close()

    def status(self, reference_id: Optional[str]) -> dict:
        if not reference_id:
            raise ValidationError("reference_id is required")
        db_session: Session = self._db_session_factory()
        try:
            order = PaymentOrderRepository(db_session).latest_for_reference(reference_id)
            if order is None:
                raise NotFoundError("No payment order for reference", reference_id=reference_id)
            return {"success": True, "status": order.status, "record": order.to_dict()}
        finally:
            db_session.close()

    def paid_order_for(self, reference_id: str, tx_id: Optional[str]) -> Optional[dict]:
        """
        The latest order for `reference_id` when it is paid and `tx_id`
        names it (provider payment id, provider order id or our order id).
        """
        tx_id = str(tx_id or "").strip()
        if not reference_id or not tx_id:
            return None
        db_session: Session = self._db_session_factory()
        try:
            order = PaymentOrderRepository(db_session).latest_for_reference(reference_id)
            if order is None or order.status not in PAID_STATUSES:
                return None
            if tx_id not in (order.provider_payment_id, order.provider_order_id, str(order.id)):
                logger.warning(f"⚠️ Transaction id does not match paid order: order_id={order.id}, tx_id={tx_id}")
                return None
            return order.to_dict()
        finally:
            db_session.close()

    def apply_webhook(self, status: Optional[str], reference_id: Optional[str] = None,
                      provider_order_id: Optional[str] = None,
                      provider_payment_id: Optional[str] = None) -> dict:
        new_status = _WEBHOOK_STATUS.get(str(status or "").strip().lower())
        if new_status is None:
            raise ValidationError("Unknown payment status", status=status)
        if not reference_id and not provider_order_id:
            raise ValidationError("reference_id or provider_order_id is required")

        db_session: Session = self._db_session_factory()
        try:
            repo = PaymentOrderRepository(db_session)
            order = (
                repo.get_by_provider_order_id(provider_order_id) if provider_order_id
                else repo.latest_for_reference(reference_id)
            )
            if order is None:
                raise NotFoundError("Payment order not found")
            if order.status in ("paid", "failed", "cancelled") and order.status != new_status:
                logger.warning(
                    f"⚠️ Ignoring webhook for settled order: order_id={order.id}, "
                    f"current={order.status}, incoming={new_status}"
                )
                return {"success": True, "status": order.status, "record": order.to_dict()}
            order = repo.update(order, status=new_status, provider_payment_id=provider_payment_id or order.provider_payment_id)
            logger.info(f"Payment order settled: order_id={order.id}, status={new_status}")
            return {"success": True, "status": order.status, "record": order.to_dict()}
        finally:
            db_session.close()
