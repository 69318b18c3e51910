import logging
import secrets
import string
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from ..storage.repository import CouponRepository
from .errors import ConflictError, NotFoundError, ValidationError
from .normalizers import normalize_coupon_code
from .pricing import apply_discount

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8
MAX_GENERATE = 500
LOG_LIMIT = 200


def random_code(length: int = CODE_LENGTH) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def _parse_discount(raw) -> int:
    try:
        discount = int(raw)
    except (TypeError, ValueError):
        raise ValidationError("discount must be an integer between 1 and 100")
    if not 1 <= discount <= 100:
        raise ValidationError("discount must be an integer between 1 and 100")
    return discount


def _parse_price(raw) -> float:
    try:
        price = float(raw)
    except (TypeError, ValueError):
        raise ValidationError("price must be a number")
    if price < 0:
        raise ValidationError("price must not be negative")
    return price


class CouponService:
    """
    Admin coupon management and the validate/reserve/release protocol used
    by checkout.

    Preview never writes anything. Reservation goes through the repository's
    compare-and-swap, so of two concurrent reservations exactly one wins.
    """

    def __init__(self, db_session_factory: sessionmaker) -> None:
        self._db_session_factory = db_session_factory

    def list(self, status: str = "all") -> List[dict]:
        if status not in ("all", "used", "unused"):
            raise ValidationError("status must be one of all, used, unused")
        db_session: Session = self._db_session_factory()
        try:
            return [c.to_dict() for c in CouponRepository(db_session).list(status)]
        finally:
            db_session.close()

    def create(self, code: Optional[str], discount) -> dict:
        discount = _parse_discount(discount)
        normalized = normalize_coupon_code(code) or random_code()
        db_session: Session = self._db_session_factory()
        try:
            repo = CouponRepository(db_session)
            if repo.code_exists(normalized):
                raise ConflictError("Coupon code already exists", code=normalized)
            try:
                coupon = repo.create(normalized, discount)
            except IntegrityError:
                raise ConflictError("Coupon code already exists", code=normalized)
            repo.add_log("create", coupon.id, coupon.code, detail={"discount": discount})
            logger.info(f"Coupon created: id={coupon.id}, code={coupon.code}, discount={discount}")
            return coupon.to_dict()
        finally:
            db_session.close()

    def generate(self, count, discount) -> List[dict]:
        try:
            count = int(count)
        except (TypeError, ValueError):
            raise ValidationError(f"count must be an integer between 1 and {MAX_GENERATE}")
        if not 1 <= count <= MAX_GENERATE:
            raise ValidationError(f"count must be an integer between 1 and {MAX_GENERATE}")
        discount = _parse_discount(discount)

        created = []
        db_session: Session = self._db_session_factory()
        try:
            repo = CouponRepository(db_session)
            while len(created) < count:
                code = random_code()
                if repo.code_exists(code):
                    continue
                coupon = repo.create(code, discount)
                created.append(coupon.to_dict())
            repo.add_log("generate", None, None, detail={"count": count, "discount": discount})
        finally:
            db_session.close()
        logger.info(f"Coupons generated: count={count}, discount={discount}")
        return created

    def delete(self, coupon_id: int) -> None:
        db_session: Session = self._db_session_factory()
        try:
            repo = CouponRepository(db_session)
            coupon = repo.get(coupon_id)
            if coupon is None:
                raise NotFoundError("Coupon not found")
            code = coupon.code
            repo.delete(coupon)
            repo.add_log("delete", coupon_id, code)
            logger.info(f"Coupon deleted: id={coupon_id}, code={code}")
        finally:
            db_session.close()

    def use(self, coupon_id: int, used_by: Optional[str] = None) -> dict:
        db_session: Session = self._db_session_factory()
        try:
            repo = CouponRepository(db_session)
            coupon = repo.get(coupon_id)
            if coupon is None:
                raise NotFoundError("Coupon not found")
            if not repo.reserve(coupon_id, used_by):
                raise ConflictError("Coupon already used", code=coupon.code)
            repo.add_log("use", coupon_id, coupon.code, actor=used_by)
            logger.info(f"Coupon marked used: id={coupon_id}, used_by={used_by}")
            return repo.refresh(coupon).to_dict()
        finally:
            db_session.close()

    def unuse(self, coupon_id: int) -> dict:
        db_session: Session = self._db_session_factory()
        try:
            repo = CouponRepository(db_session)
            coupon = repo.get(coupon_id)
            if coupon is None:
                raise NotFoundError("Coupon not found")
            repo.release(coupon_id)
            repo.add_log("unuse", coupon_id, coupon.code)
            logger.info(f"Coupon released: id={coupon_id}, code={coupon.code}")
            return repo.refresh(coupon).to_dict()
        finally:
            db_session.close()

    def validate(self, code: Optional[str], price, mark_used: bool = False, used_by: Optional[str] = None) -> dict:
        """
        Price a coupon against the amount about to be charged.

        With mark_used=False nothing changes and a used coupon is still
        reported (used=True) so the caller can tell. With mark_used=True the
        coupon is reserved; losing the race is a ConflictError.
        """
        normalized = normalize_coupon_code(code)
        if not normalized:
            raise ValidationError("code is required", valid=False)
        price = _parse_price(price)

        db_session: Session = self._db_session_factory()
        try:
            repo = CouponRepository(db_session)
            coupon = repo.get_by_code(normalized)
            if coupon is None:
                raise NotFoundError("Invalid coupon code", valid=False)

            if mark_used:
                if not repo.reserve(coupon.id, used_by):
                    raise ConflictError("Coupon already used", valid=False, code=normalized)
                repo.add_log("reserve", coupon.id, coupon.code, actor=used_by, detail={"price": price})
                repo.refresh(coupon)
                logger.info(f"Coupon reserved: id={coupon.id}, used_by={used_by}")

            return {
                "success": True,
                "valid": True,
                "discount": coupon.discount,
                "reducedPrice": apply_discount(price, coupon.discount),
                "coupon": {"id": coupon.id, "code": coupon.code, "used": bool(coupon.used)},
            }
        finally:
            db_session.close()

    def reserved_discount(self, code: Optional[str], used_by: Optional[str] = None) -> Optional[int]:
        """
        Discount of a coupon that has already been reserved, or None when
        the code is unknown, still unused, or reserved by someone else.
        """
        normalized = normalize_coupon_code(code)
        if not normalized:
            return None
        db_session: Session = self._db_session_factory()
        try:
            coupon = CouponRepository(db_session).get_by_code(normalized)
            if coupon is None or not coupon.used:
                return None
            if used_by and coupon.used_by and coupon.used_by.strip().lower() != used_by.strip().lower():
                return None
            return coupon.discount
        finally:
            db_session.close()

    def logs(self, limit: int = LOG_LIMIT) -> List[dict]:
        db_session: Session = self._db_session_factory()
        try:
            return [entry.to_dict() for entry in CouponRepository(db_session).recent_logs(min(limit, LOG_LIMIT))]
        finally:
            db_session.close()
