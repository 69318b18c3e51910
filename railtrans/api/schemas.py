from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel


class OtpSendRequest(BaseModel):
    type: Optional[str] = "email"
    value: Optional[str] = None
    requestId: Optional[str] = None
    registrationType: Optional[str] = None


class OtpVerifyRequest(BaseModel):
    value: Optional[str] = None
    otp: Optional[str] = None
    registrationType: Optional[str] = None


class CouponCreateRequest(BaseModel):
    code: Optional[str] = None
    discount: Any = None


class CouponGenerateRequest(BaseModel):
    count: Any = 1
    discount: Any = None


class CouponUseRequest(BaseModel):
    used_by: Optional[str] = None


class CouponValidateRequest(BaseModel):
    code: Optional[str] = None
    price: Any = 0
    markUsed: bool = False
    used_by: Optional[str] = None


class CreateOrderRequest(BaseModel):
    amount: Any = None
    currency: Optional[str] = "INR"
    description: Optional[str] = None
    reference_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class PaymentWebhookRequest(BaseModel):
    status: Optional[str] = None
    reference_id: Optional[str] = None
    provider_order_id: Optional[str] = None
    provider_payment_id: Optional[str] = None


class MailAttachmentIn(BaseModel):
    filename: Optional[str] = None
    content: Optional[str] = None
    contentType: Optional[str] = None
    encoding: Optional[str] = None


class MailRequest(BaseModel):
    to: Union[str, List[str], None] = None
    subject: Optional[str] = None
    text: Optional[str] = None
    html: Optional[str] = None
    attachments: Optional[List[MailAttachmentIn]] = None


class ReviewRequest(BaseModel):
    admin: Optional[str] = None


class AdminConfigRequest(BaseModel):
    logoUrl: Optional[str] = None
    primaryColor: Optional[str] = None


class TicketValidateRequest(BaseModel):
    ticketId: Optional[str] = None
    raw: Any = None


class ReminderRequest(BaseModel):
    entity: Optional[str] = None
    subject: Optional[str] = None
    text: Optional[str] = None
    html: Optional[str] = None
    filter: Optional[Dict[str, Any]] = None
