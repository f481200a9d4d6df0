"""Ledger store backed by a local YAML snapshot file."""

import logging
import threading
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from ...domain.classifier import reason_of
from ...domain.errors import DocumentNotFoundError, ProfileNotFoundError, StoreError
from ...domain.models import (
    AccountingPeriod,
    AccountingStatus,
    ActivitySignals,
    BatchPostResult,
    BlockingReason,
    BusinessProfile,
    EntityKind,
    FailureCode,
    LedgerAccount,
    PeriodRange,
    PeriodStatus,
    PostableDocument,
    PostingFailure,
    SinglePostResponse,
    TaxRegime,
    VatCadence,
    VatStatus,
)
from ...domain.periods import latest_period_status
from ...ports.store import LedgerStorePort

logger = logging.getLogger(__name__)

SIGNAL_FIELDS = (
    "invoices",
    "bank_transactions",
    "register_lines",
    "ledger_entries",
    "events",
    "revenue_categories",
)


def _as_date(value: Any) -> date | None:
    """YAML loads ISO dates as date objects; accept strings too."""
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def parse_profile(business_id: str, data: dict) -> BusinessProfile:
    vat_status = data.get("vat_status")
    return BusinessProfile(
        id=business_id,
        entity_kind=EntityKind(data["entity_kind"]),
        tax_regime=TaxRegime(data.get("tax_regime") or TaxRegime.NONE.value),
        vat_status=VatStatus(vat_status) if vat_status else None,
        vat_cadence=VatCadence(data.get("vat_cadence") or VatCadence.MONTHLY.value),
        business_start=_as_date(data.get("business_start")),
        accounting_start=_as_date(data.get("accounting_start")),
    )


def parse_accounting_period(data: dict) -> AccountingPeriod:
    return AccountingPeriod(
        year=int(data["year"]),
        month=int(data["month"]),
        status=PeriodStatus(data.get("status") or PeriodStatus.OPEN.value),
        locked_at=data.get("locked_at"),
    )


def parse_document(data: dict) -> PostableDocument:
    reason = data.get("blocking_reason")
    return PostableDocument(
        id=str(data["id"]),
        business_id=str(data["business_id"]),
        occurred_on=_as_date(data["occurred_on"]),
        status=AccountingStatus(data.get("status") or AccountingStatus.UNPOSTED.value),
        blocking_reason=BlockingReason(reason) if reason else None,
        ledger_account_id=data.get("ledger_account_id"),
        number=data.get("number", ""),
        document_type=data.get("document_type", "sales_invoice"),
    )


class YamlStoreAdapter(LedgerStorePort):
    """Store implementation reading and writing one YAML snapshot.

    The file is re-read on every call, so an edit on disk shows up on the
    next query. Writes are serialized with a lock.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()

    def _load(self) -> dict:
        if not self.path.exists():
            raise StoreError(f"Snapshot not found: {self.path}")
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise StoreError(f"Invalid snapshot {self.path}: {e}") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise StoreError(f"Invalid snapshot {self.path}: expected a mapping")
        return data

    def _save(self, data: dict) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(
            yaml.safe_dump(data, allow_unicode=True, sort_keys=False), encoding="utf-8"
        )
        tmp.replace(self.path)

    def _profile(self, data: dict, business_id: str) -> BusinessProfile:
        raw = data.get("profiles", {}).get(business_id)
        if raw is None:
            raise ProfileNotFoundError(business_id)
        return parse_profile(business_id, raw)

    @staticmethod
    def _find_document(data: dict, document_id: str) -> dict:
        for raw in data.get("documents", []):
            if str(raw.get("id")) == document_id:
                return raw
        raise DocumentNotFoundError(document_id)

    def fetch_business_profile(self, business_id: str) -> BusinessProfile:
        return self._profile(self._load(), business_id)

    def count_activity_signals(self, business_id: str) -> ActivitySignals:
        data = self._load()
        self._profile(data, business_id)

        counts = data.get("signals", {}).get(business_id) or {}
        periods = [
            parse_accounting_period(raw)
            for raw in data.get("periods", {}).get(business_id) or []
        ]

        return ActivitySignals(
            **{name: int(counts.get(name, 0)) for name in SIGNAL_FIELDS},
            periods=len(periods),
            current_period_status=latest_period_status(periods),
        )

    def fetch_unposted_documents(
        self, business_id: str, period: PeriodRange
    ) -> list[PostableDocument]:
        documents = [parse_document(raw) for raw in self._load().get("documents", [])]
        selected = [
            d
            for d in documents
            if d.business_id == business_id
            and d.status == AccountingStatus.UNPOSTED
            and period.contains(d.occurred_on)
        ]
        return sorted(selected, key=lambda d: d.occurred_on)

    def post_single_document(self, document_id: str) -> SinglePostResponse:
        with self._lock:
            data = self._load()
            raw = self._find_document(data, document_id)
            document = parse_document(raw)

            if document.status == AccountingStatus.POSTED:
                return SinglePostResponse(success=False, error="Document already posted")
            reason = reason_of(document)
            if reason != BlockingReason.READY_TO_POST:
                return SinglePostResponse(
                    success=False, error=f"Document is blocked: {reason.value}"
                )

            profile = self._profile(data, document.business_id)
            if self._needs_account(profile) and not document.ledger_account_id:
                return SinglePostResponse(
                    success=False,
                    error=f"{FailureCode.MISSING_ACCOUNT.value}: no ledger account",
                )

            rule = self._match_rule(data, document)
            if rule is None:
                return SinglePostResponse(
                    success=False,
                    status="needs_review",
                    error=f"No posting rule for {document.document_type}",
                )

            self._mark_posted(data, raw, profile)
            self._save(data)
            return SinglePostResponse(success=True, rule_code=rule["code"])

    def post_batch(
        self, business_id: str, period: PeriodRange, cap: int
    ) -> BatchPostResult:
        with self._lock:
            data = self._load()
            profile = self._profile(data, business_id)

            eligible = []
            for raw in data.get("documents", []):
                document = parse_document(raw)
                if (
                    document.business_id == business_id
                    and document.status == AccountingStatus.UNPOSTED
                    and reason_of(document) == BlockingReason.READY_TO_POST
                    and period.contains(document.occurred_on)
                ):
                    eligible.append((document, raw))
            eligible.sort(key=lambda pair: pair[0].occurred_on)

            result = BatchPostResult()
            for document, raw in eligible[:cap]:
                if self._needs_account(profile) and not document.ledger_account_id:
                    result.failures.append(
                        PostingFailure(
                            document_id=document.id,
                            code=FailureCode.MISSING_ACCOUNT,
                            message="No ledger account assigned",
                        )
                    )
                    continue
                if self._match_rule(data, document) is None:
                    result.failures.append(
                        PostingFailure(
                            document_id=document.id,
                            code=FailureCode.OTHER,
                            message=f"No posting rule for {document.document_type}",
                        )
                    )
                    continue
                self._mark_posted(data, raw, profile)
                result.posted_count += 1

            if result.posted_count:
                self._save(data)
            return result

    def assign_ledger_account(self, document_id: str, account_id: str) -> None:
        with self._lock:
            data = self._load()
            raw = self._find_document(data, document_id)
            raw["ledger_account_id"] = account_id
            self._save(data)
        logger.debug(f"Assigned account {account_id} to {document_id}")

    def list_available_ledger_accounts(self, business_id: str) -> list[LedgerAccount]:
        accounts = self._load().get("accounts", {}).get(business_id) or []
        return [
            LedgerAccount(id=str(a["id"]), name=a.get("name", ""), rate=str(a.get("rate", "")))
            for a in accounts
        ]

    @staticmethod
    def _needs_account(profile: BusinessProfile) -> bool:
        # flat-rate revenue is recorded per ryczałt account
        return profile.is_sole_trader and profile.tax_regime == TaxRegime.FLAT_RATE

    @staticmethod
    def _match_rule(data: dict, document: PostableDocument) -> dict | None:
        rules = data.get("posting_rules", {}).get(document.business_id) or []
        for rule in rules:
            if rule.get("document_type") == document.document_type:
                return rule
        return None

    @staticmethod
    def _mark_posted(data: dict, raw: dict, profile: BusinessProfile) -> None:
        raw["status"] = AccountingStatus.POSTED.value
        counter = "register_lines" if profile.is_sole_trader else "ledger_entries"
        signals = data.setdefault("signals", {}).setdefault(profile.id, {})
        signals[counter] = int(signals.get(counter, 0)) + 1
