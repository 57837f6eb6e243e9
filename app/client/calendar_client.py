"""
Async client for the payment calendar API.

Keeps a local copy of rules, obligations and Stripe history and builds the
calendar from it with the same projection and reconciliation functions the
server uses. Every mutation is one request; on success the affected
collections are fetched again, on failure ``CalendarAPIError`` is raised and
the local copy is left as it was. Nothing is retried.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

import httpx

from app.models.calendar import Reconciliation
from app.models.obligation import Obligation, ObligationStatus
from app.models.payment_history import StripePayment
from app.models.payment_rule import PaymentRule
from app.services.projection import project_all, projection_window
from app.services.reconciliation import build_entries, reconcile, summarize
from app.utils.dates import month_bounds, to_date_key
from app.utils.errors import ConflictError

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


class CalendarAPIError(Exception):
    """A request to the payment calendar API failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class CalendarClient:
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._http = httpx.AsyncClient(
            base_url=base_url, headers=headers, transport=transport, timeout=timeout
        )
        self.rules: List[PaymentRule] = []
        self.obligations: List[Obligation] = []
        self.history: List[StripePayment] = []

    async def __aenter__(self) -> "CalendarClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._http.request(method, f"{API_PREFIX}{path}", **kwargs)
        except httpx.RequestError as exc:
            raise CalendarAPIError(f"{method} {path} failed: {exc}") from exc

        if response.is_error:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            logger.warning("%s %s returned %d: %s", method, path, response.status_code, detail)
            raise CalendarAPIError(str(detail), status_code=response.status_code)
        return response.json()

    # Auth

    async def login(self, email: str, password: str) -> None:
        data = await self._request("POST", "/auth/login", json={"email": email, "password": password})
        self._http.headers["Authorization"] = f"Bearer {data['access_token']}"

    # Cache

    async def refresh_rules(self) -> List[PaymentRule]:
        data = await self._request("GET", "/payment-rules/")
        self.rules = [PaymentRule.model_validate(item) for item in data]
        return self.rules

    async def refresh_obligations(self) -> List[Obligation]:
        data = await self._request("GET", "/payment-obligations/")
        self.obligations = [Obligation.model_validate(item) for item in data]
        return self.obligations

    async def refresh_history(self) -> List[StripePayment]:
        data = await self._request("GET", "/payment-history/")
        self.history = [StripePayment.model_validate(item) for item in data]
        return self.history

    async def refresh(self) -> None:
        await self.refresh_rules()
        await self.refresh_obligations()
        await self.refresh_history()

    def calendar(self, year: int, month: int, today: Optional[date] = None) -> Reconciliation:
        """Classified entries and totals for one month, computed from the local copy."""
        if today is None:
            today = date.today()
        first_day, last_day = month_bounds(year, month)
        window_start, window_end = projection_window(first_day)

        occurrences = project_all(self.rules, window_start, window_end, today)
        entries = build_entries(occurrences, self.history, self.obligations)
        result = reconcile(entries, self.obligations, today)

        in_month = [e for e in result.entries if first_day <= e.payment_date <= last_day]
        return Reconciliation(entries=in_month, summary=summarize(in_month, self.obligations))

    # Rules

    async def create_rule(self, rule: Dict[str, Any]) -> PaymentRule:
        data = await self._request("POST", "/payment-rules/", json=rule)
        await self.refresh_rules()
        return PaymentRule.model_validate(data)

    async def stop_rule(self, rule_id: str) -> PaymentRule:
        data = await self._request("POST", f"/payment-rules/{rule_id}/stop")
        await self.refresh_rules()
        return PaymentRule.model_validate(data)

    async def exclude_date(self, rule_id: str, day: Any) -> PaymentRule:
        data = await self._request(
            "POST", f"/payment-rules/{rule_id}/exclude-date", json={"date": to_date_key(day) or str(day)}
        )
        await self.refresh_rules()
        return PaymentRule.model_validate(data)

    async def delete_rule(self, rule_id: str) -> None:
        await self._request("DELETE", f"/payment-rules/{rule_id}")
        await self.refresh_rules()
        await self.refresh_obligations()

    # Obligations

    def find_obligation(self, rule_id: str, due_date: date) -> Optional[Obligation]:
        for obligation in self.obligations:
            if obligation.custom_payment_id == rule_id and obligation.due_date == due_date:
                return obligation
        return None

    async def mark_unpaid(self, rule_id: str, due_date: date, notes: Optional[str] = None) -> Obligation:
        """Raise an obligation for a rule occurrence."""
        existing = self.find_obligation(rule_id, due_date)
        if existing:
            raise ConflictError(
                f"Obligation {existing.id} already exists for payment {rule_id} on {due_date.isoformat()}"
            )
        data = await self._request("POST", "/calendar/actions", json={"action": {
            "kind": "mark_unpaid",
            "rule_id": rule_id,
            "due_date": due_date.isoformat(),
            "notes": notes,
        }})
        await self.refresh_obligations()
        return Obligation.model_validate(data["result"])

    async def settle(
        self,
        obligation_id: str,
        amount_paid_cents: int,
        payment_method: Optional[str] = None,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Obligation:
        data = await self._request("POST", f"/payment-obligations/{obligation_id}/settle", json={
            "amount_paid_cents": amount_paid_cents,
            "payment_method": payment_method,
            "reference": reference,
            "notes": notes,
        })
        await self.refresh_obligations()
        return Obligation.model_validate(data)

    async def write_off(self, obligation_id: str, notes: str = "Written off by admin") -> Obligation:
        data = await self._request(
            "POST", f"/payment-obligations/{obligation_id}/write-off", json={"notes": notes}
        )
        await self.refresh_obligations()
        return Obligation.model_validate(data)

    async def unsettle(self, obligation_id: str) -> Obligation:
        """
        Revert a settled obligation to unpaid.

        The calendar shows the obligation as pending straight away; the
        previous copy is restored if the request fails.
        """
        previous = list(self.obligations)
        self.obligations = [
            o.model_copy(update={"status": ObligationStatus.PENDING}) if o.id == obligation_id else o
            for o in self.obligations
        ]
        try:
            data = await self._request("POST", f"/payment-obligations/{obligation_id}/unsettle")
        except CalendarAPIError:
            self.obligations = previous
            raise

        updated = Obligation.model_validate(data)
        self.obligations = [updated if o.id == updated.id else o for o in self.obligations]
        await self.refresh_obligations()
        return updated

    # History

    async def upsert_history(self, payments: List[Dict[str, Any]]) -> int:
        data = await self._request("PUT", "/payment-history/", json={"payments": payments})
        await self.refresh_history()
        return data["written"]
