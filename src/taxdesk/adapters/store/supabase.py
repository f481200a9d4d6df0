"""Ledger store using a Supabase (PostgREST) backend."""

import logging
from datetime import date
from urllib.parse import urlparse

import httpx

from ...domain.errors import ProfileNotFoundError, StoreError
from ...domain.models import (
    AccountingStatus,
    ActivitySignals,
    BatchPostResult,
    BlockingReason,
    BusinessProfile,
    CurrentPeriodStatus,
    EntityKind,
    FailureCode,
    LedgerAccount,
    PeriodRange,
    PostableDocument,
    PostingFailure,
    SinglePostResponse,
    TaxRegime,
    VatCadence,
    VatStatus,
)
from ...ports.store import LedgerStorePort

logger = logging.getLogger(__name__)

ENTITY_KINDS = {
    "dzialalnosc": EntityKind.SOLE_TRADER,
    "sp_zoo": EntityKind.LLC,
    "sa": EntityKind.JOINT_STOCK,
}

TAX_REGIMES = {
    "ryczalt": TaxRegime.FLAT_RATE,
    "skala": TaxRegime.PROGRESSIVE,
    "liniowy": TaxRegime.LINEAR,
}

# Signal name -> table counted for the business
COUNTED_TABLES = {
    "invoices": "invoices",
    "bank_transactions": "bank_transactions",
    "register_lines": "jdg_revenue_register_lines",
    "ledger_entries": "journal_entries",
    "events": "events",
}

DOCUMENT_COLUMNS = (
    "id,business_profile_id,number,issue_date,accounting_status,"
    "blocking_reason,ryczalt_account_id,transaction_type"
)


def parse_content_range(header: str | None) -> int:
    """Total from a PostgREST Content-Range header ("0-0/42", "*/0")."""
    if not header or "/" not in header:
        raise StoreError(f"Missing count in Content-Range: {header!r}")
    total = header.rsplit("/", 1)[1]
    if not total.isdigit():
        raise StoreError(f"Unknown count in Content-Range: {header!r}")
    return int(total)


def profile_from_row(row: dict) -> BusinessProfile:
    exempt = row.get("is_vat_exempt")
    if exempt is None:
        vat_status = None
    else:
        vat_status = VatStatus.EXEMPT if exempt else VatStatus.ACTIVE

    entity = row.get("entity_type")
    if entity not in ENTITY_KINDS:
        raise StoreError(f"Unknown entity type: {entity!r}")

    start = row.get("business_start_date")
    accounting_start = row.get("accounting_start_date")
    return BusinessProfile(
        id=str(row["id"]),
        entity_kind=ENTITY_KINDS[entity],
        tax_regime=TAX_REGIMES.get(row.get("tax_type"), TaxRegime.NONE),
        vat_status=vat_status,
        vat_cadence=VatCadence(row.get("vat_settlement") or VatCadence.MONTHLY.value),
        business_start=date.fromisoformat(start) if start else None,
        accounting_start=date.fromisoformat(accounting_start) if accounting_start else None,
    )


def document_from_row(row: dict) -> PostableDocument:
    reason = row.get("blocking_reason")
    status = row.get("accounting_status") or AccountingStatus.UNPOSTED.value
    return PostableDocument(
        id=str(row["id"]),
        business_id=str(row["business_profile_id"]),
        occurred_on=date.fromisoformat(row["issue_date"][:10]),
        status=AccountingStatus(status),
        blocking_reason=BlockingReason(reason) if reason else None,
        ledger_account_id=row.get("ryczalt_account_id"),
        number=row.get("number") or "",
        document_type=row.get("transaction_type") or "sales_invoice",
    )


def batch_result_from_payload(payload: dict) -> BatchPostResult:
    failures = []
    for error in payload.get("errors") or []:
        code = error.get("error_code")
        failures.append(
            PostingFailure(
                document_id=str(error["invoice_id"]),
                code=(
                    FailureCode.MISSING_ACCOUNT
                    if code == FailureCode.MISSING_ACCOUNT.value
                    else FailureCode.OTHER
                ),
                message=error.get("error") or "",
            )
        )
    return BatchPostResult(
        posted_count=int(payload.get("posted_count") or 0), failures=failures
    )


class SupabaseStoreAdapter(LedgerStorePort):
    """Store implementation talking to PostgREST tables and RPC functions."""

    def __init__(
        self,
        url: str,
        api_key: str = "",
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https"):
            raise ValueError(f"Invalid store url scheme: {parsed.scheme}")
        self.base_url = url.rstrip("/") + "/rest/v1"
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        self.client = client or httpx.Client(timeout=timeout)
        self.headers = headers

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        headers = {**self.headers, **kwargs.pop("headers", {})}
        try:
            response = self.client.request(
                method, f"{self.base_url}/{path}", headers=headers, **kwargs
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise StoreError(f"{method} {path} failed: {e}") from e
        return response

    def _rpc(self, function: str, payload: dict) -> dict:
        data = self._request("POST", f"rpc/{function}", json=payload).json()
        if not isinstance(data, dict):
            raise StoreError(f"Unexpected {function} response: {data!r}")
        return data

    def _count(self, table: str, params: dict | None = None) -> int:
        response = self._request(
            "GET",
            table,
            params={"select": "id", **(params or {})},
            headers={"Prefer": "count=exact", "Range-Unit": "items", "Range": "0-0"},
        )
        return parse_content_range(response.headers.get("Content-Range"))

    def fetch_business_profile(self, business_id: str) -> BusinessProfile:
        rows = self._request(
            "GET", "business_profiles", params={"select": "*", "id": f"eq.{business_id}"}
        ).json()
        if not rows:
            raise ProfileNotFoundError(business_id)
        return profile_from_row(rows[0])

    def count_activity_signals(self, business_id: str) -> ActivitySignals:
        owner = {"business_profile_id": f"eq.{business_id}"}
        counts = {name: self._count(table, owner) for name, table in COUNTED_TABLES.items()}
        # categories are a shared dictionary, not per business
        counts["revenue_categories"] = self._count("ryczalt_categories")

        periods = self._request(
            "GET", "accounting_periods", params={"select": "id,status", **owner}
        ).json()
        if any(p.get("status") != "locked" for p in periods):
            current = CurrentPeriodStatus.OPEN
        elif periods:
            current = CurrentPeriodStatus.LOCKED
        else:
            current = CurrentPeriodStatus.NONE

        return ActivitySignals(
            **counts, periods=len(periods), current_period_status=current
        )

    def fetch_unposted_documents(
        self, business_id: str, period: PeriodRange
    ) -> list[PostableDocument]:
        params = [
            ("select", DOCUMENT_COLUMNS),
            ("business_profile_id", f"eq.{business_id}"),
            ("accounting_status", "eq.unposted"),
            ("issue_date", f"gte.{period.start.date().isoformat()}"),
            ("issue_date", f"lte.{period.end.date().isoformat()}"),
            ("order", "issue_date.asc"),
        ]
        rows = self._request("GET", "invoices", params=params).json()
        return [document_from_row(row) for row in rows]

    def post_single_document(self, document_id: str) -> SinglePostResponse:
        data = self._rpc("auto_post_invoice", {"p_invoice_id": document_id})
        return SinglePostResponse(
            success=bool(data.get("success")),
            rule_code=data.get("rule_code"),
            status=data.get("status"),
            error=data.get("error") or data.get("message"),
        )

    def post_batch(
        self, business_id: str, period: PeriodRange, cap: int
    ) -> BatchPostResult:
        data = self._rpc(
            "auto_post_pending_invoices",
            {
                "p_business_profile_id": business_id,
                "p_limit": cap,
                "p_start_date": period.start.date().isoformat(),
                "p_end_date": period.end.date().isoformat(),
            },
        )
        return batch_result_from_payload(data)

    def assign_ledger_account(self, document_id: str, account_id: str) -> None:
        self._request(
            "PATCH",
            "invoices",
            params={"id": f"eq.{document_id}"},
            json={"ryczalt_account_id": account_id},
            headers={"Prefer": "return=minimal"},
        )
        logger.debug(f"Assigned account {account_id} to {document_id}")

    def list_available_ledger_accounts(self, business_id: str) -> list[LedgerAccount]:
        rows = self._request(
            "GET",
            "ryczalt_accounts",
            params={
                "select": "id,account_name,category_rate",
                "business_profile_id": f"eq.{business_id}",
                "order": "account_name.asc",
            },
        ).json()
        return [
            LedgerAccount(
                id=str(row["id"]),
                name=row.get("account_name") or "",
                rate=str(row.get("category_rate") or ""),
            )
            for row in rows
        ]
