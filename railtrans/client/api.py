"""
HTTP client for the registration API, shared by every client-side flow.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional
import requests

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientConfig:
    api_base: str = "http://localhost:8000"
    frontend_base: str = "http://localhost:3000"
    timeout_s: float = 15.0
    api_key: str = ""


class ApiError(Exception):
    """Non-2xx response, network failure or unreadable JSON."""

    def __init__(self, status: int, message: str, payload: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.message = message
        self.payload = payload if payload is not None else {}


class ApiClient:

    def __init__(self, config: ClientConfig, session: Optional[requests.Session] = None) -> None:
        self.config = config
        self._session = session or requests.Session()

    def url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.config.api_base.rstrip('/')}/{path.lstrip('/')}"

    def _headers(self) -> dict:
        headers = {"Accept": "application/json", "ngrok-skip-browser-warning": "69420"}
        if self.config.api_key:
            headers["X-API-KEY"] = self.config.api_key
        return headers

    def request(self, method: str, path: str, **kwargs) -> Any:
        url = self.url(path)
        try:
            resp = self._session.request(method, url, headers=self._headers(), timeout=self.config.timeout_s, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.warning(f"Request failed: method={method}, url={url}, error={type(e).__name__}: {e}")
            raise ApiError(0, f"Network error: {e}")

        try:
            payload = resp.json() if resp.content else {}
        except ValueError:
            if resp.ok:
                raise ApiError(resp.status_code, "Invalid JSON response")
            payload = {}

        if not resp.ok:
            message = ""
            if isinstance(payload, dict):
                message = payload.get("error") or payload.get("message") or payload.get("detail") or ""
            raise ApiError(resp.status_code, str(message or f"Request failed ({resp.status_code})"), payload)
        return payload

    def get(self, path: str, params: Optional[dict] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Any = None) -> Any:
        return self.request("POST", path, json=json if json is not None else {})

    def put(self, path: str, json: Any = None) -> Any:
        return self.request("PUT", path, json=json if json is not None else {})

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)
