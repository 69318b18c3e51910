"""
Registration page configs (/api/{role}-config), admin branding and the
canonical event record.
"""
from typing import Any, Dict, Optional
from fastapi import APIRouter, Body, Depends
from ...core.normalizers import ROLES
from ..deps import Services, get_services, require_admin
from ..schemas import AdminConfigRequest


def build_role_config_router(role: str) -> APIRouter:
    router = APIRouter(prefix=f"/api/{role}-config", tags=["configs"])

    @router.get("")
    def get_role_config(services: Services = Depends(get_services)):
        return services.configs.get_role_config(role)

    @router.post("/config", dependencies=[Depends(require_admin)])
    def save_role_config(body: Optional[Dict[str, Any]] = Body(default=None), services: Services = Depends(get_services)):
        return {"success": True, "config": services.configs.save_role_config(role, body or {})}

    @router.delete("", dependencies=[Depends(require_admin)])
    def delete_role_config(services: Services = Depends(get_services)):
        return {"success": True, "deleted": services.configs.delete_role_config(role)}

    return router


router = APIRouter(tags=["configs"])


@router.get("/api/admin-config")
def get_admin_config(services: Services = Depends(get_services)):
    return services.configs.get_admin_config()


@router.put("/api/admin-config", dependencies=[Depends(require_admin)])
@router.post("/api/admin-config", dependencies=[Depends(require_admin)])
def save_admin_config(payload: AdminConfigRequest, services: Services = Depends(get_services)):
    return {"success": True, "config": services.configs.save_admin_config(payload.logoUrl, payload.primaryColor)}


@router.get("/api/admin/logo-url")
def admin_logo_url(services: Services = Depends(get_services)):
    return {"success": True, "logoUrl": services.configs.absolute_logo_url()}


@router.get("/api/configs/event-details")
def get_event_details(services: Services = Depends(get_services)):
    return {"success": True, "value": services.configs.get_event_details()}


@router.put("/api/configs/event-details", dependencies=[Depends(require_admin)])
def save_event_details(body: Optional[Dict[str, Any]] = Body(default=None), services: Services = Depends(get_services)):
    return {"success": True, "value": services.configs.save_event_details(body or {})}


def role_config_routers():
    return [build_role_config_router(role) for role in ROLES]
