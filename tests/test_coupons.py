"""Tests for coupon management and the validate/reserve/release protocol."""

import pytest

from railtrans.core.coupons import CouponService
from railtrans.core.errors import ConflictError, NotFoundError, ValidationError


@pytest.fixture
def coupons(db_session_factory):
    return CouponService(db_session_factory)


class TestCouponService:
    """Tests for CouponService."""

    def test_create_normalizes_code(self, coupons):
        coupon = coupons.create(" save10 ", 10)
        assert coupon["code"] == "SAVE10"
        assert coupon["used"] is False

    def test_create_random_code_when_missing(self, coupons):
        coupon = coupons.create(None, 25)
        assert len(coupon["code"]) == 8
        assert coupon["code"] == coupon["code"].upper()

    def test_create_duplicate_code(self, coupons):
        coupons.create("DUP", 5)
        with pytest.raises(ConflictError):
            coupons.create("dup", 5)

    @pytest.mark.parametrize("discount", [0, 101, "abc", None])
    def test_create_rejects_bad_discount(self, coupons, discount):
        with pytest.raises(ValidationError):
            coupons.create("X1", discount)

    def test_generate(self, coupons):
        created = coupons.generate(5, 20)
        assert len(created) == 5
        assert len({c["code"] for c in created}) == 5

    def test_generate_rejects_out_of_range_count(self, coupons):
        with pytest.raises(ValidationError):
            coupons.generate(501, 20)

    def test_preview_does_not_mark_used(self, coupons):
        coupons.create("SAVE10", 10)
        first = coupons.validate("save10", 2950)
        second = coupons.validate("SAVE10", 2950)

        assert first["reducedPrice"] == 2655
        assert first["discount"] == second["discount"]
        assert first["reducedPrice"] == second["reducedPrice"]
        assert second["coupon"]["used"] is False

    def test_reserve_then_preview_reports_used(self, coupons):
        coupons.create("ONCE", 50)
        reserved = coupons.validate("ONCE", 1000, mark_used=True, used_by="a@b.in")
        assert reserved["coupon"]["used"] is True

        preview = coupons.validate("ONCE", 1000)
        assert preview["coupon"]["used"] is True

    def test_second_reservation_fails(self, coupons):
        coupons.create("ONCE", 50)
        coupons.validate("ONCE", 1000, mark_used=True)
        with pytest.raises(ConflictError) as exc:
            coupons.validate("ONCE", 1000, mark_used=True)
        assert exc.value.details["valid"] is False

    def test_unuse_releases_reservation(self, coupons):
        coupon = coupons.create("BACK", 10)
        coupons.validate("BACK", 100, mark_used=True)
        released = coupons.unuse(coupon["id"])
        assert released["used"] is False
        assert coupons.validate("BACK", 100, mark_used=True)["coupon"]["used"] is True

    def test_use_twice_conflicts(self, coupons):
        coupon = coupons.create("USE", 10)
        coupons.use(coupon["id"], "admin")
        with pytest.raises(ConflictError):
            coupons.use(coupon["id"], "admin")

    def test_unknown_code(self, coupons):
        with pytest.raises(NotFoundError):
            coupons.validate("NOPE", 100)

    def test_list_filters_by_status(self, coupons):
        a = coupons.create("A1", 10)
        coupons.create("B1", 10)
        coupons.use(a["id"])
        assert [c["code"] for c in coupons.list("used")] == ["A1"]
        assert [c["code"] for c in coupons.list("unused")] == ["B1"]
        assert len(coupons.list("all")) == 2

    def test_logs_record_actions(self, coupons):
        coupon = coupons.create("LOG", 10)
        coupons.delete(coupon["id"])
        actions = [entry["action"] for entry in coupons.logs()]
        assert "create" in actions
        assert "delete" in actions


class TestCouponsApi:
    """Tests for /api/coupons."""

    def test_create_and_validate(self, client):
        resp = client.post("/api/coupons", json={"code": "expo20", "discount": 20})
        assert resp.status_code == 201
        coupon_id = resp.json()["coupon"]["id"]

        resp = client.post("/api/coupons/validate", json={"code": "EXPO20", "price": 2950, "markUsed": False})
        assert resp.status_code == 200
        body = resp.json()
        assert body["valid"] is True
        assert body["reducedPrice"] == 2360

        resp = client.post("/api/coupons/validate", json={"code": "EXPO20", "price": 2950, "markUsed": True})
        assert resp.json()["coupon"]["used"] is True

        resp = client.post("/api/coupons/validate", json={"code": "EXPO20", "price": 2950, "markUsed": True})
        assert resp.status_code == 409
        assert resp.json()["success"] is False

        resp = client.post(f"/api/coupons/{coupon_id}/unuse")
        assert resp.json()["coupon"]["used"] is False

    def test_invalid_code_is_404(self, client):
        resp = client.post("/api/coupons/validate", json={"code": "MISSING", "price": 100})
        assert resp.status_code == 404
        assert resp.json()["valid"] is False

    def test_generate_and_list(self, client):
        resp = client.post("/api/coupons/generate", json={"count": 3, "discount": 15})
        assert resp.json()["count"] == 3
        resp = client.get("/api/coupons", params={"status": "unused"})
        assert len(resp.json()["coupons"]) == 3

    def test_logs_endpoint(self, client):
        client.post("/api/coupons", json={"code": "L1", "discount": 5})
        resp = client.get("/api/coupons/logs")
        assert resp.status_code == 200
        assert resp.json()["logs"][0]["code"] == "L1"
