from fastapi import APIRouter, Depends
from ..deps import Services, get_services, require_admin
from ..schemas import ReminderRequest

router = APIRouter(prefix="/api/reminders", tags=["reminders"])


@router.post("/send", dependencies=[Depends(require_admin)])
def send_reminders(payload: ReminderRequest, services: Services = Depends(get_services)):
    limit = (payload.filter or {}).get("limit") or 1000
    return services.reminders.send(payload.entity, subject=payload.subject, text=payload.text,
                                   html=payload.html, limit=limit)
