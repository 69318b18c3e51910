from typing import Optional
from fastapi import APIRouter, Depends
from ..deps import Services, get_services, require_admin
from ..schemas import CouponCreateRequest, CouponGenerateRequest, CouponUseRequest, CouponValidateRequest

router = APIRouter(prefix="/api/coupons", tags=["coupons"])


@router.get("", dependencies=[Depends(require_admin)])
def list_coupons(status: str = "all", services: Services = Depends(get_services)):
    return {"success": True, "coupons": services.coupons.list(status)}


@router.post("", status_code=201, dependencies=[Depends(require_admin)])
def create_coupon(payload: CouponCreateRequest, services: Services = Depends(get_services)):
    return {"success": True, "coupon": services.coupons.create(payload.code, payload.discount)}


@router.post("/generate", status_code=201, dependencies=[Depends(require_admin)])
def generate_coupons(payload: CouponGenerateRequest, services: Services = Depends(get_services)):
    created = services.coupons.generate(payload.count, payload.discount)
    return {"success": True, "count": len(created), "coupons": created}


@router.get("/logs", dependencies=[Depends(require_admin)])
def coupon_logs(services: Services = Depends(get_services)):
    return {"success": True, "logs": services.coupons.logs()}


@router.post("/validate")
def validate_coupon(payload: CouponValidateRequest, services: Services = Depends(get_services)):
    return services.coupons.validate(payload.code, payload.price, mark_used=payload.markUsed, used_by=payload.used_by)


@router.delete("/{coupon_id}", dependencies=[Depends(require_admin)])
def delete_coupon(coupon_id: int, services: Services = Depends(get_services)):
    services.coupons.delete(coupon_id)
    return {"success": True, "id": coupon_id}


@router.post("/{coupon_id}/use")
def use_coupon(coupon_id: int, payload: Optional[CouponUseRequest] = None, services: Services = Depends(get_services)):
    used_by = payload.used_by if payload else None
    return {"success": True, "coupon": services.coupons.use(coupon_id, used_by)}


@router.post("/{coupon_id}/unuse")
def unuse_coupon(coupon_id: int, services: Services = Depends(get_services)):
    return {"success": True, "coupon": services.coupons.unuse(coupon_id)}
