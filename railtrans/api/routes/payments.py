from typing import Optional
from fastapi import APIRouter, Depends
from ..deps import Services, get_services
from ..schemas import CreateOrderRequest, PaymentWebhookRequest

router = APIRouter(prefix="/api/payment", tags=["payment"])


@router.post("/create-order")
def create_order(payload: CreateOrderRequest, services: Services = Depends(get_services)):
    return services.payments.create_order(
        payload.amount,
        reference_id=payload.reference_id,
        currency=payload.currency or "INR",
        description=payload.description,
        metadata=payload.metadata,
    )


@router.get("/status")
def payment_status(reference_id: Optional[str] = None, services: Services = Depends(get_services)):
    return services.payments.status(reference_id)


@router.post("/webhook")
def payment_webhook(payload: PaymentWebhookRequest, services: Services = Depends(get_services)):
    return services.payments.apply_webhook(
        payload.status,
        reference_id=payload.reference_id,
        provider_order_id=payload.provider_order_id,
        provider_payment_id=payload.provider_payment_id,
    )
