from typing import Any, Dict, Optional
from fastapi import APIRouter, BackgroundTasks, Body, Depends
from ..deps import Services, get_services
from ..schemas import TicketValidateRequest

router = APIRouter(prefix="/api/tickets", tags=["tickets"])


@router.post("/validate")
def validate_ticket(payload: TicketValidateRequest, services: Services = Depends(get_services)):
    return services.tickets.validate(ticket_id=payload.ticketId, raw=payload.raw)


@router.post("/upgrade")
def upgrade_ticket(
    background_tasks: BackgroundTasks,
    body: Optional[Dict[str, Any]] = Body(default=None),
    services: Services = Depends(get_services),
):
    out = services.tickets.upgrade(body or {})
    if out.get("upgraded"):
        background_tasks.add_task(
            services.tickets.notify_upgraded, out["entity_type"], out["entity_id"], out["new_category"]
        )
    return out
