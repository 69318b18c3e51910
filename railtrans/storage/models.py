from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON, Text
from datetime import datetime
from .database import Base


def _iso(value):
    return value.isoformat() if value else None


class Registrant(Base):
    """
    A registration of any role (visitor, exhibitor, partner, speaker, awardee).

    Identity, ticket and review fields are columns. Admin-configured fields
    promoted to top level live in `extra`; the raw submitted form is kept in
    `data` untouched.
    """
    __tablename__ = "registrants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    role = Column(String(20), nullable=False, index=True)
    name = Column(String(200), nullable=True)
    email = Column(String(200), nullable=True, index=True)
    mobile = Column(String(30), nullable=True)
    company = Column(String(200), nullable=True)
    designation = Column(String(200), nullable=True)
    ticket_category = Column(String(100), nullable=True)
    ticket_code = Column(String(32), nullable=True, unique=True, index=True)
    tx_id = Column(String(200), nullable=True)
    payment_proof_url = Column(String(500), nullable=True)
    ticket_price = Column(Integer, nullable=True)
    ticket_gst = Column(Integer, nullable=True)
    ticket_total = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default="new")
    added_by_admin = Column(Boolean, nullable=False, default=False)
    admin_created_at = Column(DateTime, nullable=True)
    approved_by = Column(String(200), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    cancelled_by = Column(String(200), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    extra = Column(JSON, nullable=False, default=dict)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        row = dict(self.extra or {})
        row.update({
            "id": self.id,
            "role": self.role,
            "name": self.name,
            "email": self.email,
            "mobile": self.mobile,
            "company": self.company,
            "designation": self.designation,
            "ticket_category": self.ticket_category,
            "ticket_code": self.ticket_code,
            "txId": self.tx_id,
            "payment_proof_url": self.payment_proof_url,
            "ticket_price": self.ticket_price,
            "ticket_gst": self.ticket_gst,
            "ticket_total": self.ticket_total,
            "status": self.status,
            "added_by_admin": bool(self.added_by_admin),
            "admin_created_at": _iso(self.admin_created_at),
            "approved_by": self.approved_by,
            "approved_at": _iso(self.approved_at),
            "cancelled_by": self.cancelled_by,
            "cancelled_at": _iso(self.cancelled_at),
            "data": dict(self.data or {}),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        })
        return row


class RegistrationConfig(Base):
    """Form configuration of one registration page (one row per role)."""
    __tablename__ = "registration_configs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    page = Column(String(50), nullable=False, unique=True)
    config = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class AdminSetting(Base):
    __tablename__ = "admin_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(100), nullable=False, unique=True)
    value = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(64), nullable=False, unique=True, index=True)
    discount = Column(Integer, nullable=False)
    used = Column(Boolean, nullable=False, default=False)
    used_by = Column(String(200), nullable=True)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "discount": self.discount,
            "used": bool(self.used),
            "used_by": self.used_by,
            "used_at": _iso(self.used_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class CouponLog(Base):
    __tablename__ = "coupon_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    coupon_id = Column(Integer, nullable=True, index=True)
    code = Column(String(64), nullable=True)
    action = Column(String(30), nullable=False)
    actor = Column(String(200), nullable=True)
    detail = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "coupon_id": self.coupon_id,
            "code": self.code,
            "action": self.action,
            "actor": self.actor,
            "detail": dict(self.detail or {}),
            "created_at": _iso(self.created_at),
        }


class PaymentOrder(Base):
    """
    A checkout order. Status moves created → pending → paid|failed|cancelled.
    """
    __tablename__ = "payment_orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reference_id = Column(String(200), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    currency = Column(String(10), nullable=False, default="INR")
    description = Column(String(500), nullable=True)
    status = Column(String(20), nullable=False, default="created")
    provider = Column(String(30), nullable=False)
    provider_order_id = Column(String(200), nullable=True, index=True)
    provider_payment_id = Column(String(200), nullable=True)
    checkout_url = Column(String(1000), nullable=True)
    # "metadata" is reserved on declarative classes
    order_metadata = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "reference_id": self.reference_id,
            "amount": self.amount,
            "currency": self.currency,
            "description": self.description,
            "status": self.status,
            "provider": self.provider,
            "provider_order_id": self.provider_order_id,
            "provider_payment_id": self.provider_payment_id,
            "checkout_url": self.checkout_url,
            "metadata": dict(self.order_metadata or {}),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class MailLog(Base):
    __tablename__ = "mail_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    to = Column(String(1000), nullable=False)
    subject = Column(String(500), nullable=False)
    status = Column(String(30), nullable=False, default="pending")
    error = Column(Text, nullable=True)
    attachments_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Upload(Base):
    __tablename__ = "uploads"

    id = Column(Integer, primary_key=True, autoincrement=True)
    filename = Column(String(300), nullable=False, unique=True)
    original_name = Column(String(300), nullable=True)
    content_type = Column(String(100), nullable=True)
    size = Column(Integer, nullable=False)
    kind = Column(String(20), nullable=False)
    url = Column(String(1000), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
