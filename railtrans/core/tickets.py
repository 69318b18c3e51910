import base64
import binascii
import json
import logging
import re
from typing import Optional
from .coupons import CouponService
from .errors import NotFoundError, ValidationError
from .normalizers import normalize_role, plural_role
from .payments import PaymentService
from .pricing import apply_discount, resolve_category, round_rupees
from .registrations import RegistrationService

logger = logging.getLogger(__name__)

PREFERRED_KEYS = ("ticket_code", "ticketCode", "ticket_id", "ticketId", "ticket", "code", "c", "id", "t", "tk")

_BASE64_RE = re.compile(r"^[A-Za-z0-9+/=]+$")
_DIGITS_RE = re.compile(r"\d{3,12}")
_PLAIN_RE = re.compile(r"^[A-Za-z0-9\-_.]{3,64}$")
_JSON_BLOCK_RE = re.compile(r"\{.*\}", re.DOTALL)


def _parse_json(text: str):
    try:
        return json.loads(text)
    except ValueError:
        return None


def ticket_code_from_object(obj) -> Optional[str]:
    """Preferred keys first, then nested objects depth-first."""
    if not isinstance(obj, dict):
        return None
    for key in PREFERRED_KEYS:
        value = obj.get(key)
        if value is not None and not isinstance(value, (dict, list)) and str(value).strip():
            return str(value).strip()
    for value in obj.values():
        if isinstance(value, dict):
            found = ticket_code_from_object(value)
            if found:
                return found
    return None


def extract_ticket_code(raw) -> Optional[str]:
    """
    Pull the ticket code out of whatever a scanner read from a badge QR.

    Tried in order: JSON, base64 encoded JSON (or digits inside it), a JSON
    block embedded in text, a plain token, the first run of 3 to 12 digits.

    Examples:
        '{"ticket_code":"123456","id":4}' → "123456"
        "eyJ0aWNrZXRfY29kZSI6IjEyMzQ1NiJ9" → "123456"
        "Ticket #123456 for Jane" → "123456"
    """
    if isinstance(raw, dict):
        return ticket_code_from_object(raw)
    text = str(raw or "").strip()
    if not text:
        return None

    parsed = _parse_json(text)
    if isinstance(parsed, dict):
        return ticket_code_from_object(parsed)
    if parsed is not None and not isinstance(parsed, list):
        return str(parsed).strip() or None

    compact = re.sub(r"\s+", "", text)
    if _BASE64_RE.match(compact) and len(compact) % 4 == 0:
        try:
            decoded = base64.b64decode(compact, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            decoded = ""
        if decoded:
            parsed = _parse_json(decoded)
            found = ticket_code_from_object(parsed) if isinstance(parsed, dict) else None
            if found:
                return found
            match = _DIGITS_RE.search(decoded)
            if match:
                return match.group(0)

    block = _JSON_BLOCK_RE.search(text)
    if block:
        found = ticket_code_from_object(_parse_json(block.group(0)))
        if found:
            return found

    if _PLAIN_RE.match(text):
        return text
    match = _DIGITS_RE.search(text)
    return match.group(0) if match else None


class TicketService:
    """
    Ticket scanning at the venue and post-registration category upgrades.
    """

    def __init__(self, registrations: RegistrationService, payments: PaymentService, gst_rate: float = 0.18,
                 coupons: Optional[CouponService] = None) -> None:
        self._registrations = registrations
        self._payments = payments
        self._coupons = coupons
        self._gst_rate = gst_rate

    def validate(self, ticket_id: Optional[str] = None, raw=None) -> dict:
        code = str(ticket_id or "").strip() or extract_ticket_code(raw)
        if not code:
            raise ValidationError("No ticket id extracted", valid=False)
        registrant = self._registrations.find_by_ticket_code(code)
        if registrant is None:
            logger.info(f"Ticket scan miss: ticket_code={code}")
            raise NotFoundError("Ticket not found", valid=False, ticket_code=code)
        logger.info(f"Ticket scan ok: ticket_code={code}, role={registrant['role']}, id={registrant['id']}")
        return {"success": True, "valid": True, "ticket_code": code, "registrant": registrant}

    def upgrade(self, body: dict) -> dict:
        """
        Move a registrant to another ticket category.

        The amount due is priced here from the category, less a coupon the
        buyer has already reserved. When something is due and no txId is
        given, a payment order is created and its checkout URL returned.
        A txId is only accepted when it names the paid order for this
        registrant and that order covers the amount due.
        """
        body = dict(body or {})
        entity_type = body.get("entity_type") or body.get("entity")
        entity_id = body.get("entity_id") or body.get("id")
        new_category = str(body.get("new_category") or "").strip()
        if not entity_type or not entity_id or not new_category:
            raise ValidationError("entity_type, entity_id and new_category are required")
        role = normalize_role(entity_type)
        if role is None:
            raise ValidationError("Unknown entity_type", entity_type=entity_type)
        try:
            entity_id = int(entity_id)
        except (TypeError, ValueError):
            raise ValidationError("entity_id must be an integer")

        try:
            amount = float(body.get("amount") or 0)
        except (TypeError, ValueError):
            raise ValidationError("amount must be a number")
        tx_id = str(body.get("txId") or "").strip()

        registrant = self._registrations.get(role, entity_id)
        email = body.get("email") or registrant.get("email")

        breakdown = resolve_category(role, new_category, self._gst_rate)
        due = breakdown.total
        coupon_code = str(body.get("coupon") or "").strip()
        if coupon_code and due > 0:
            discount = self._coupons.reserved_discount(coupon_code, used_by=email) if self._coupons else None
            if discount is None:
                raise ValidationError("Coupon is not reserved for this registration", coupon=coupon_code)
            due = apply_discount(due, discount)
        if amount and round_rupees(amount) != due:
            logger.warning(f"⚠️ Upgrade amount differs from price: id={entity_id}, amount={amount}, due={due}")

        if due > 0 and not tx_id:
            order = self._payments.create_order(
                due,
                reference_id=str(entity_id),
                description=f"Ticket Upgrade - {new_category}",
                metadata={
                    "entity_type": plural_role(role),
                    "new_category": new_category,
                    "email": email,
                    "name": registrant.get("name"),
                    "coupon": coupon_code or None,
                },
            )
            logger.info(f"Ticket upgrade awaiting payment: role={role}, id={entity_id}, category={new_category}, order_id={order['orderId']}")
            return {"success": True, "checkoutUrl": order["checkoutUrl"], "order": order}

        if due > 0:
            order = self._payments.paid_order_for(str(entity_id), tx_id)
            if order is None:
                logger.warning(f"⚠️ Upgrade rejected, payment not confirmed: role={role}, id={entity_id}, tx_id={tx_id}")
                raise ValidationError("Payment not confirmed for this upgrade", txId=tx_id)
            if order["amount"] < due:
                raise ValidationError("Paid amount does not cover the ticket", paid=order["amount"], due=due)

        update = {"ticket_category": new_category, **breakdown.as_ticket_fields(), "ticket_total": due}
        if tx_id:
            update["txId"] = tx_id
        self._registrations.confirm(role, entity_id, update)
        logger.info(f"Ticket upgraded: role={role}, id={entity_id}, category={new_category}, tx_id={tx_id or '-'}")
        return {
            "success": True,
            "upgraded": True,
            "entity_type": plural_role(role),
            "entity_id": entity_id,
            "new_category": new_category,
        }

    def notify_upgraded(self, entity_type: str, entity_id: int, new_category: str) -> None:
        role = normalize_role(entity_type)
        try:
            self._registrations.send_ticket_email(
                role, entity_id, subject=f"Your ticket has been upgraded to {new_category}"
            )
        except Exception as e:
            logger.error(
                f"Upgrade mail failed: role={role}, id={entity_id}, error={type(e).__name__}: {e}",
                exc_info=True,
            )
