"""
/api/{role}s: one router per registration role.
"""
import logging
import time
from typing import Any, Dict, Optional
from fastapi import APIRouter, BackgroundTasks, Body, Depends, Request
from ...core.errors import RailTransError
from ...core.normalizers import REVIEWED_ROLES, plural_role
from ..deps import Services, get_services, require_admin
from ..schemas import ReviewRequest

logger = logging.getLogger(__name__)


def build_router(role: str) -> APIRouter:
    router = APIRouter(prefix=f"/api/{plural_role(role)}", tags=[plural_role(role)])

    @router.post("", status_code=201)
    def create_registrant(
        background_tasks: BackgroundTasks,
        request: Request,
        body: Optional[Dict[str, Any]] = Body(default=None),
        services: Services = Depends(get_services),
    ):
        request_id = getattr(request.state, "request_id", "unknown")
        start_time = time.time()
        saved = services.registrations.create(role, body or {})
        background_tasks.add_task(services.registrations.notify_created, saved)
        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Registration accepted: request_id={request_id}, role={role}, "
            f"id={saved['id']}, duration_ms={duration_ms:.2f}"
        )
        return {"success": True, "insertedId": saved["id"], "id": saved["id"], "ticket_code": saved["ticket_code"]}

    @router.get("", dependencies=[Depends(require_admin)])
    def list_registrants(
        q: Optional[str] = None,
        limit: int = 200,
        skip: int = 0,
        services: Services = Depends(get_services),
    ):
        return services.registrations.list(role, q=q, limit=limit, skip=skip)

    @router.get("/{registrant_id}")
    def get_registrant(registrant_id: int, services: Services = Depends(get_services)):
        return services.registrations.get(role, registrant_id)

    @router.put("/{registrant_id}", dependencies=[Depends(require_admin)])
    def update_registrant(
        registrant_id: int,
        force: bool = False,
        body: Optional[Dict[str, Any]] = Body(default=None),
        services: Services = Depends(get_services),
    ):
        updated = services.registrations.update(role, registrant_id, body or {}, force=force)
        return {"success": True, "updated": updated}

    @router.delete("/{registrant_id}", dependencies=[Depends(require_admin)])
    def delete_registrant(registrant_id: int, services: Services = Depends(get_services)):
        services.registrations.delete(role, registrant_id)
        return {"success": True, "id": registrant_id}

    @router.post("/{registrant_id}/confirm", dependencies=[Depends(require_admin)])
    def confirm_registrant(
        registrant_id: int,
        body: Optional[Dict[str, Any]] = Body(default=None),
        services: Services = Depends(get_services),
    ):
        return services.registrations.confirm(role, registrant_id, body or {})

    @router.post("/{registrant_id}/generate-ticket")
    def generate_ticket(registrant_id: int, services: Services = Depends(get_services)):
        ticket = services.registrations.generate_ticket(role, registrant_id)
        ticket.pop("registrant", None)
        return ticket

    @router.post("/{registrant_id}/resend-email", dependencies=[Depends(require_admin)])
    def resend_email(registrant_id: int, services: Services = Depends(get_services)):
        result = services.registrations.send_ticket_email(role, registrant_id)
        if not result.success:
            raise RailTransError(result.error or "Failed to send mail", mailLogId=result.mail_log_id)
        return {**result.as_dict(), "id": registrant_id}

    if role in REVIEWED_ROLES:

        @router.post("/{registrant_id}/approve", dependencies=[Depends(require_admin)])
        def approve_registrant(
            registrant_id: int,
            background_tasks: BackgroundTasks,
            payload: Optional[ReviewRequest] = None,
            services: Services = Depends(get_services),
        ):
            out = services.registrations.review(role, registrant_id, "approve", admin=payload.admin if payload else None)
            background_tasks.add_task(services.registrations.send_review_notifications, out["updated"], "approve")
            return out

        @router.post("/{registrant_id}/cancel", dependencies=[Depends(require_admin)])
        def cancel_registrant(
            registrant_id: int,
            background_tasks: BackgroundTasks,
            payload: Optional[ReviewRequest] = None,
            services: Services = Depends(get_services),
        ):
            out = services.registrations.review(role, registrant_id, "cancel", admin=payload.admin if payload else None)
            background_tasks.add_task(services.registrations.send_review_notifications, out["updated"], "cancel")
            return out

    return router
