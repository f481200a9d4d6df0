"""Shared test fixtures."""

from datetime import date, datetime
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import yaml

from taxdesk.domain.models import (
    ActivitySignals,
    BatchPostResult,
    BusinessProfile,
    EntityKind,
    PeriodRange,
    TaxRegime,
    VatCadence,
    VatStatus,
)
from taxdesk.ports.store import LedgerStorePort


@pytest.fixture
def flat_rate_profile() -> BusinessProfile:
    """Sole trader on ryczałt, VAT exempt."""
    return BusinessProfile(
        id="biz-1",
        entity_kind=EntityKind.SOLE_TRADER,
        tax_regime=TaxRegime.FLAT_RATE,
        vat_status=VatStatus.EXEMPT,
        business_start=date(2024, 1, 1),
    )


@pytest.fixture
def llc_profile() -> BusinessProfile:
    """Limited company, monthly VAT."""
    return BusinessProfile(
        id="biz-2",
        entity_kind=EntityKind.LLC,
        vat_status=VatStatus.ACTIVE,
        vat_cadence=VatCadence.MONTHLY,
        business_start=date(2023, 5, 1),
    )


@pytest.fixture
def no_signals() -> ActivitySignals:
    return ActivitySignals()


@pytest.fixture
def june_2024() -> PeriodRange:
    return PeriodRange(
        start=datetime(2024, 6, 1),
        end=datetime(2024, 6, 30, 23, 59, 59, 999000),
    )


@pytest.fixture
def mock_store() -> MagicMock:
    """Mock ledger store port."""
    mock = MagicMock(spec=LedgerStorePort)
    mock.post_batch.return_value = BatchPostResult()
    mock.list_available_ledger_accounts.return_value = []
    return mock


@pytest.fixture
def snapshot_data() -> dict:
    """Workspace with one flat-rate sole trader and a June queue."""
    return {
        "profiles": {
            "biz-1": {
                "entity_kind": "sole_trader",
                "tax_regime": "flat_rate",
                "vat_status": "exempt",
                "business_start": date(2024, 1, 1),
            },
        },
        "signals": {
            "biz-1": {"invoices": 4, "revenue_categories": 2},
        },
        "periods": {
            "biz-1": [{"year": 2024, "month": 6, "status": "open"}],
        },
        "documents": [
            {
                "id": "inv-3",
                "business_id": "biz-1",
                "occurred_on": date(2024, 6, 20),
                "number": "FV/3/06/2024",
                "ledger_account_id": "acc-1",
            },
            {
                "id": "inv-1",
                "business_id": "biz-1",
                "occurred_on": date(2024, 6, 3),
                "number": "FV/1/06/2024",
                "ledger_account_id": "acc-1",
            },
            {
                "id": "inv-2",
                "business_id": "biz-1",
                "occurred_on": date(2024, 6, 10),
                "number": "FV/2/06/2024",
            },
            {
                "id": "inv-4",
                "business_id": "biz-1",
                "occurred_on": date(2024, 6, 12),
                "number": "FV/4/06/2024",
                "blocking_reason": "pending_acceptance",
            },
            {
                "id": "inv-5",
                "business_id": "biz-1",
                "occurred_on": date(2024, 7, 1),
                "number": "FV/1/07/2024",
                "ledger_account_id": "acc-1",
            },
        ],
        "accounts": {
            "biz-1": [
                {"id": "acc-1", "name": "Usługi", "rate": "8.5%"},
                {"id": "acc-2", "name": "Handel", "rate": "3%"},
            ],
        },
        "posting_rules": {
            "biz-1": [{"code": "SALES_RYCZALT", "document_type": "sales_invoice"}],
        },
    }


@pytest.fixture
def snapshot_path(tmp_path: Path, snapshot_data: dict) -> Path:
    path = tmp_path / "workspace.yaml"
    path.write_text(yaml.safe_dump(snapshot_data, allow_unicode=True), encoding="utf-8")
    return path
