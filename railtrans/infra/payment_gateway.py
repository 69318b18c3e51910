"""
Payment providers.

Each provider turns an order into a hosted checkout URL. The dev-log
provider never talks to the network: it points at the frontend's mock
checkout page so the whole flow can be exercised locally.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional
import requests
from ..config import AppConfig
from ..core.errors import PaymentProviderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutSession:
    provider_order_id: str
    checkout_url: str
    raw: dict = field(default_factory=dict)


class DevLogPaymentGateway:
    name = "dev-log"

    def __init__(self, config: AppConfig) -> None:
        self._config = config

    def create_checkout(self, order_id: int, amount: int, currency: str, description: str,
                        buyer_email: Optional[str] = None, buyer_name: Optional[str] = None) -> CheckoutSession:
        provider_order_id = f"devlog-{order_id}"
        checkout_url = f"{self._config.frontend_base}/mock-checkout/{provider_order_id}"
        logger.warning(
            f"⚠️ DEV MODE: no real payment provider. order_id={order_id}, "
            f"amount={amount} {currency}, checkout_url={checkout_url}"
        )
        return CheckoutSession(provider_order_id=provider_order_id, checkout_url=checkout_url,
                               raw={"provider": self.name, "amount": amount})


class InstamojoPaymentGateway:
    """
    Instamojo payment-requests API (v1.1).
    """
    name = "instamojo"

    def __init__(self, config: AppConfig, http: Optional[requests.Session] = None) -> None:
        if not config.instamojo_api_key or not config.instamojo_auth_token:
            raise RuntimeError("PAYMENT_PROVIDER=instamojo requires INSTAMOJO_API_KEY and INSTAMOJO_AUTH_TOKEN")
        self._config = config
        self._http = http or requests.Session()

    def _headers(self) -> dict:
        return {
            "X-Api-Key": self._config.instamojo_api_key,
            "X-Auth-Token": self._config.instamojo_auth_token,
        }

    def create_checkout(self, order_id: int, amount: int, currency: str, description: str,
                        buyer_email: Optional[str] = None, buyer_name: Optional[str] = None) -> CheckoutSession:
        url = f"{self._config.instamojo_endpoint}/payment-requests/"
        payload = {
            "purpose": (description or f"Order {order_id}")[:30],
            "amount": str(amount),
            "redirect_url": f"{self._config.frontend_base}/payment-complete?order={order_id}",
            "webhook": f"{self._config.api_base}/api/payment/webhook",
            "allow_repeated_payments": "False",
            "send_email": "False",
        }
        if buyer_email:
            payload["email"] = buyer_email
        if buyer_name:
            payload["buyer_name"] = buyer_name

        try:
            response = self._http.post(url, data=payload, headers=self._headers(), timeout=self._config.payment_timeout_s)
        except requests.RequestException as e:
            logger.error(f"Instamojo request failed: order_id={order_id}, error={type(e).__name__}: {e}")
            raise PaymentProviderError("Payment provider unreachable") from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400 or not body.get("success"):
            logger.error(
                f"Instamojo rejected payment request: order_id={order_id}, "
                f"status={response.status_code}, body={str(body)[:300]}"
            )
            raise PaymentProviderError("Payment provider rejected the order", provider_status=response.status_code)

        payment_request = body.get("payment_request") or {}
        checkout_url = payment_request.get("longurl")
        if not checkout_url:
            raise PaymentProviderError("Payment provider did not return a checkout URL")

        logger.info(f"Instamojo payment request created: order_id={order_id}, request_id={payment_request.get('id')}")
        return CheckoutSession(provider_order_id=str(payment_request.get("id")), checkout_url=checkout_url, raw=body)


def build_payment_gateway(config: AppConfig):
    if config.payment_provider == "instamojo":
        return InstamojoPaymentGateway(config)
    return DevLogPaymentGateway(config)
