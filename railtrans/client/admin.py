"""
Admin dashboard: per-role resource, table columns, client-side paging and
sorting, and bulk row actions.
"""
import logging
import math
from typing import Any, Callable, Dict, Iterable, List, Optional
from ..core.normalizers import REVIEWED_ROLES, normalize_role, plural_role
from .api import ApiClient, ApiError

logger = logging.getLogger(__name__)

PREFERRED_COLUMNS = (
    "name", "company", "email", "ticket_code", "ticket_category", "mobile",
    "designation", "status", "txId", "ticket_total", "created_at",
)

HIDDEN_COLUMNS = {"data"}


class RegistrantResource:

    def __init__(self, api: ApiClient, role: str) -> None:
        self.api = api
        self.role = normalize_role(role) or role
        self.base = f"/api/{plural_role(self.role)}"

    def list(self, q: Optional[str] = None, limit: int = 1000, skip: int = 0) -> List[dict]:
        params = {"limit": limit, "skip": skip}
        if q:
            params["q"] = q
        return self.api.get(self.base, params=params)

    def get(self, registrant_id) -> dict:
        return self.api.get(f"{self.base}/{registrant_id}")

    def create(self, payload: dict, added_by_admin: bool = True) -> dict:
        body = dict(payload)
        if added_by_admin:
            body["added_by_admin"] = True
        return self.api.post(self.base, body)

    def update(self, registrant_id, payload: dict, force: bool = False) -> dict:
        path = f"{self.base}/{registrant_id}" + ("?force=true" if force else "")
        return self.api.put(path, payload).get("updated", {})

    def delete(self, registrant_id) -> dict:
        return self.api.delete(f"{self.base}/{registrant_id}")

    def confirm(self, registrant_id, payload: dict) -> dict:
        return self.api.post(f"{self.base}/{registrant_id}/confirm", payload)

    def _review(self, registrant_id, action: str, admin: Optional[str]) -> dict:
        if self.role not in REVIEWED_ROLES:
            raise ValueError(f"{self.role} registrations cannot be {action}d")
        return self.api.post(f"{self.base}/{registrant_id}/{action}", {"admin": admin} if admin else {})

    def approve(self, registrant_id, admin: Optional[str] = None) -> dict:
        return self._review(registrant_id, "approve", admin)

    def cancel(self, registrant_id, admin: Optional[str] = None) -> dict:
        return self._review(registrant_id, "cancel", admin)

    def generate_ticket(self, registrant_id) -> dict:
        return self.api.post(f"{self.base}/{registrant_id}/generate-ticket")

    def resend_email(self, registrant_id) -> dict:
        return self.api.post(f"{self.base}/{registrant_id}/resend-email")


def derive_columns(rows: Iterable[dict], declared: Optional[List[str]] = None) -> List[str]:
    """
    Union of the keys seen across rows. Declared columns (from the role's
    registration config) come first, then the preferred set, then the rest
    in the order they were first seen.
    """
    seen: List[str] = []
    for row in rows:
        for key in row:
            if key not in seen and key not in HIDDEN_COLUMNS:
                seen.append(key)

    ordered: List[str] = []
    for key in list(declared or []) + list(PREFERRED_COLUMNS):
        if key in seen and key not in ordered:
            ordered.append(key)
    ordered.extend(k for k in seen if k not in ordered)
    return ordered


def _sort_value(value):
    # None sorts last in both directions
    if value is None or value == "":
        return (1, "")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value)
    return (0, str(value).lower())


class TableState:
    """Page index and sort key/direction over an already-fetched row set."""

    def __init__(self, rows: Optional[List[dict]] = None, page_size: int = 10) -> None:
        self.rows = list(rows or [])
        self.page_size = max(1, page_size)
        self.page = 0
        self.sort_key: Optional[str] = None
        self.sort_desc = False

    def set_rows(self, rows: List[dict]) -> None:
        self.rows = list(rows)
        self.page = min(self.page, self.page_count - 1)

    def toggle_sort(self, key: str) -> None:
        if self.sort_key == key:
            self.sort_desc = not self.sort_desc
        else:
            self.sort_key = key
            self.sort_desc = False
        self.page = 0

    def sorted_rows(self) -> List[dict]:
        if not self.sort_key:
            return list(self.rows)
        present = [r for r in self.rows if _sort_value(r.get(self.sort_key))[0] == 0]
        missing = [r for r in self.rows if _sort_value(r.get(self.sort_key))[0] == 1]
        try:
            present.sort(key=lambda r: _sort_value(r.get(self.sort_key)), reverse=self.sort_desc)
        except TypeError:
            present.sort(key=lambda r: str(r.get(self.sort_key)).lower(), reverse=self.sort_desc)
        return present + missing

    @property
    def page_count(self) -> int:
        return max(1, math.ceil(len(self.rows) / self.page_size))

    def page_rows(self) -> List[dict]:
        start = self.page * self.page_size
        return self.sorted_rows()[start:start + self.page_size]

    def goto(self, page: int) -> None:
        self.page = max(0, min(page, self.page_count - 1))

    def next_page(self) -> None:
        self.goto(self.page + 1)

    def prev_page(self) -> None:
        self.goto(self.page - 1)


def _bulk(ids: Iterable[Any], action: Callable[[Any], dict], name: str) -> List[Dict[str, Any]]:
    outcomes = []
    for registrant_id in ids:
        try:
            result = action(registrant_id)
            outcomes.append({"id": registrant_id, "ok": True, "result": result})
        except ApiError as e:
            logger.warning(f"Bulk {name} failed: id={registrant_id}, status={e.status}, error={e.message}")
            outcomes.append({"id": registrant_id, "ok": False, "error": e.message})
    return outcomes


def bulk_generate_tickets(resource: RegistrantResource, ids: Iterable[Any]) -> List[Dict[str, Any]]:
    return _bulk(ids, resource.generate_ticket, "generate-ticket")


def bulk_resend_emails(resource: RegistrantResource, ids: Iterable[Any]) -> List[Dict[str, Any]]:
    return _bulk(ids, resource.resend_email, "resend-email")


def bulk_delete(resource: RegistrantResource, ids: Iterable[Any]) -> List[Dict[str, Any]]:
    return _bulk(ids, resource.delete, "delete")
