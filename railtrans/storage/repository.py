import logging
from datetime import datetime
from typing import List, Optional
from sqlalchemy import or_, func, update
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from .models import (
    AdminSetting,
    Coupon,
    CouponLog,
    MailLog,
    PaymentOrder,
    Registrant,
    RegistrationConfig,
    Upload,
)

logger = logging.getLogger(__name__)


class _BaseRepository:
    def __init__(self, db: Session) -> None:
        self._db = db

    def _commit(self, action: str, /, **context) -> None:
        """Commit, or log, roll back and re-raise."""
        ctx = ", ".join(f"{k}={v}" for k, v in context.items())
        try:
            self._db.commit()
        except IntegrityError as e:
            logger.error(
                f"Integrity error on {action}: {ctx}, error={type(e).__name__}: {e}",
                exc_info=True,
            )
            self._db.rollback()
            raise
        except SQLAlchemyError as e:
            logger.error(
                f"Database error on {action}: {ctx}, error={type(e).__name__}: {e}",
                exc_info=True,
            )
            self._db.rollback()
            raise


class RegistrantRepository(_BaseRepository):
    """
    Persistence of registrants of every role.
    """

    COLUMN_FIELDS = (
        "name", "email", "mobile", "company", "designation", "ticket_category",
        "ticket_code", "tx_id", "payment_proof_url", "ticket_price", "ticket_gst",
        "ticket_total", "status", "added_by_admin", "admin_created_at",
        "approved_by", "approved_at", "cancelled_by", "cancelled_at",
    )

    def create(self, role: str, fields: dict, extra: dict, data: dict) -> Registrant:
        logger.debug(f"Creating registrant: role={role}, email={fields.get('email')}")
        registrant = Registrant(role=role, extra=dict(extra), data=dict(data))
        for key, value in fields.items():
            if key in self.COLUMN_FIELDS:
                setattr(registrant, key, value)
        self._db.add(registrant)
        self._commit("create registrant", role=role, email=fields.get("email"))
        self._db.refresh(registrant)

        assert registrant.id is not None, "Registrant persisted without id!"
        logger.debug(f"Registrant created: id={registrant.id}, role={role}")
        return registrant

    def get(self, role: str, registrant_id: int) -> Optional[Registrant]:
        return (
            self._db.query(Registrant)
            .filter(Registrant.role == role, Registrant.id == registrant_id)
            .first()
        )

    def find_by_email(self, role: str, email: str) -> Optional[Registrant]:
        return (
            self._db.query(Registrant)
            .filter(Registrant.role == role, func.lower(Registrant.email) == email.lower())
            .order_by(Registrant.id.desc())
            .first()
        )

    def find_by_ticket_code(self, ticket_code: str) -> Optional[Registrant]:
        return self._db.query(Registrant).filter(Registrant.ticket_code == ticket_code).first()

    def ticket_code_exists(self, ticket_code: str) -> bool:
        return self.find_by_ticket_code(ticket_code) is not None

    def list(self, role: str, q: Optional[str] = None, limit: int = 200, skip: int = 0) -> List[Registrant]:
        query = self._db.query(Registrant).filter(Registrant.role == role)
        if q:
            like = f"%{q.lower()}%"
            query = query.filter(or_(
                func.lower(Registrant.name).like(like),
                func.lower(Registrant.email).like(like),
                func.lower(Registrant.ticket_code).like(like),
                func.lower(Registrant.company).like(like),
            ))
        return query.order_by(Registrant.id.desc()).offset(skip).limit(limit).all()

    def list_with_email(self, role: str) -> List[Registrant]:
        return (
            self._db.query(Registrant)
            .filter(Registrant.role == role, Registrant.email.isnot(None), Registrant.email != "")
            .order_by(Registrant.id.asc())
            .all()
        )

    def update(self, registrant: Registrant, fields: dict, extra: Optional[dict] = None, data: Optional[dict] = None) -> Registrant:
        for key, value in fields.items():
            if key in self.COLUMN_FIELDS:
                setattr(registrant, key, value)
        # JSON columns are replaced, not mutated in place, so the change is tracked
        if extra is not None:
            registrant.extra = {**(registrant.extra or {}), **extra}
        if data is not None:
            registrant.data = {**(registrant.data or {}), **data}
        self._commit("update registrant", id=registrant.id, role=registrant.role)
        self._db.refresh(registrant)
        return registrant

    def delete(self, registrant: Registrant) -> None:
        self._db.delete(registrant)
        self._commit("delete registrant", id=registrant.id, role=registrant.role)


class ConfigRepository(_BaseRepository):
    """
    Registration page configs and admin settings (both JSON documents).
    """

    def get_page(self, page: str) -> Optional[dict]:
        row = self._db.query(RegistrationConfig).filter(RegistrationConfig.page == page).first()
        return dict(row.config) if row else None

    def save_page(self, page: str, config: dict) -> dict:
        row = self._db.query(RegistrationConfig).filter(RegistrationConfig.page == page).first()
        if row is None:
            row = RegistrationConfig(page=page, config=dict(config))
            self._db.add(row)
        else:
            row.config = dict(config)
        self._commit("save page config", page=page)
        return dict(row.config)

    def delete_page(self, page: str) -> bool:
        deleted = self._db.query(RegistrationConfig).filter(RegistrationConfig.page == page).delete()
        self._commit("delete page config", page=page)
        return bool(deleted)

    def get_setting(self, key: str) -> Optional[dict]:
        row = self._db.query(AdminSetting).filter(AdminSetting.key == key).first()
        return dict(row.value) if row else None

    def save_setting(self, key: str, value: dict) -> dict:
        row = self._db.query(AdminSetting).filter(AdminSetting.key == key).first()
        if row is None:
            row = AdminSetting(key=key, value=dict(value))
            self._db.add(row)
        else:
            row.value = dict(value)
        self._commit("save admin setting", key=key)
        return dict(row.value)


class CouponRepository(_BaseRepository):
    """
    Coupons and their audit log.

    `reserve` is the only path that flips a coupon to used and it is a
    compare-and-swap: the UPDATE only matches rows that are still unused.
    """

    def get(self, coupon_id: int) -> Optional[Coupon]:
        return self._db.query(Coupon).filter(Coupon.id == coupon_id).first()

    def get_by_code(self, code: str) -> Optional[Coupon]:
        return self._db.query(Coupon).filter(Coupon.code == code).first()

    def list(self, status: str = "all") -> List[Coupon]:
        query = self._db.query(Coupon)
        if status == "used":
            query = query.filter(Coupon.used.is_(True))
        elif status == "unused":
            query = query.filter(Coupon.used.is_(False))
        return query.order_by(Coupon.id.desc()).all()

    def create(self, code: str, discount: int) -> Coupon:
        coupon = Coupon(code=code, discount=discount, used=False)
        self._db.add(coupon)
        self._commit("create coupon", code=code)
        self._db.refresh(coupon)
        return coupon

    def code_exists(self, code: str) -> bool:
        return self.get_by_code(code) is not None

    def delete(self, coupon: Coupon) -> None:
        self._db.delete(coupon)
        self._commit("delete coupon", id=coupon.id)

    def reserve(self, coupon_id: int, used_by: Optional[str]) -> bool:
        now = datetime.utcnow()
        result = self._db.execute(
            update(Coupon)
            .where(Coupon.id == coupon_id, Coupon.used.is_(False))
            .values(used=True, used_by=used_by, used_at=now, updated_at=now)
        )
        self._commit("reserve coupon", id=coupon_id)
        return result.rowcount == 1

    def release(self, coupon_id: int) -> bool:
        now = datetime.utcnow()
        result = self._db.execute(
            update(Coupon)
            .where(Coupon.id == coupon_id)
            .values(used=False, used_by=None, used_at=None, updated_at=now)
        )
        self._commit("release coupon", id=coupon_id)
        return result.rowcount == 1

    def refresh(self, coupon: Coupon) -> Coupon:
        self._db.refresh(coupon)
        return coupon

    def add_log(self, action: str, coupon_id: Optional[int], code: Optional[str], actor: Optional[str] = None, detail: Optional[dict] = None) -> CouponLog:
        entry = CouponLog(coupon_id=coupon_id, code=code, action=action, actor=actor, detail=dict(detail or {}))
        self._db.add(entry)
        self._commit("add coupon log", action=action, coupon_id=coupon_id)
        return entry

    def recent_logs(self, limit: int = 200) -> List[CouponLog]:
        return self._db.query(CouponLog).order_by(CouponLog.id.desc()).limit(limit).all()


class PaymentOrderRepository(_BaseRepository):

    def create(self, reference_id: str, amount: int, currency: str, description: Optional[str], provider: str, metadata: Optional[dict] = None) -> PaymentOrder:
        order = PaymentOrder(
            reference_id=reference_id,
            amount=amount,
            currency=currency,
            description=description,
            provider=provider,
            status="created",
            order_metadata=dict(metadata or {}),
        )
        self._db.add(order)
        self._commit("create payment order", reference_id=reference_id)
        self._db.refresh(order)
        return order

    def update(self, order: PaymentOrder, **fields) -> PaymentOrder:
        for key, value in fields.items():
            setattr(order, key, value)
        self._commit("update payment order", id=order.id, status=order.status)
        self._db.refresh(order)
        return order

    def latest_for_reference(self, reference_id: str) -> Optional[PaymentOrder]:
        return (
            self._db.query(PaymentOrder)
            .filter(PaymentOrder.reference_id == reference_id)
            .order_by(PaymentOrder.id.desc())
            .first()
        )

    def get_by_provider_order_id(self, provider_order_id: str) -> Optional[PaymentOrder]:
        return (
            self._db.query(PaymentOrder)
            .filter(PaymentOrder.provider_order_id == provider_order_id)
            .first()
        )


class MailLogRepository(_BaseRepository):

    def create(self, to: str, subject: str, attachments_count: int) -> MailLog:
        entry = MailLog(to=to, subject=subject, status="pending", attachments_count=attachments_count)
        self._db.add(entry)
        self._commit("create mail log", to=to)
        self._db.refresh(entry)
        return entry

    def set_status(self, entry: MailLog, status: str, error: Optional[str] = None) -> MailLog:
        entry.status = status
        entry.error = error
        self._commit("update mail log", id=entry.id, status=status)
        return entry


class UploadRepository(_BaseRepository):

    def create(self, filename: str, original_name: Optional[str], content_type: Optional[str], size: int, kind: str, url: str) -> Upload:
        upload = Upload(
            filename=filename,
            original_name=original_name,
            content_type=content_type,
            size=size,
            kind=kind,
            url=url,
        )
        self._db.add(upload)
        self._commit("create upload", filename=filename)
        self._db.refresh(upload)
        return upload
