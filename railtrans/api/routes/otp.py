import logging
from typing import Optional
from fastapi import APIRouter, Depends, Request
from ..deps import Services, get_services
from ..schemas import OtpSendRequest, OtpVerifyRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/otp", tags=["otp"])


@router.get("/check-email")
def check_email(email: Optional[str] = None, type: Optional[str] = None, services: Services = Depends(get_services)):
    return services.otp.check_email(email, type)


@router.post("/send")
def send_otp(payload: OtpSendRequest, request: Request, services: Services = Depends(get_services)):
    request_id = getattr(request.state, "request_id", "unknown")
    logger.debug(f"OTP send requested: request_id={request_id}, client_request_id={payload.requestId or '-'}")
    return services.otp.send(payload.value, payload.registrationType)


@router.post("/verify")
def verify_otp(payload: OtpVerifyRequest, services: Services = Depends(get_services)):
    return services.otp.verify(payload.value, payload.otp, payload.registrationType)
