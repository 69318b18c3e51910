from fastapi import APIRouter, Depends
from ...core.errors import RailTransError
from ..deps import Services, get_services
from ..schemas import MailRequest

router = APIRouter(tags=["mailer"])


@router.post("/api/mailer")
@router.post("/api/email")
def send_mail(payload: MailRequest, services: Services = Depends(get_services)):
    attachments = [a.model_dump() for a in payload.attachments or []]
    result = services.mailer.send(payload.to, payload.subject, text=payload.text, html=payload.html,
                                  attachments=attachments)
    if not result.success:
        raise RailTransError(result.error or "Failed to send mail", mailLogId=result.mail_log_id)
    return result.as_dict()
