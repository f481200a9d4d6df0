"""Unit tests for the YAML snapshot store."""

from datetime import date, datetime
from pathlib import Path

import pytest
import yaml

from taxdesk.adapters.store.yaml_file import YamlStoreAdapter, parse_profile
from taxdesk.domain.errors import DocumentNotFoundError, ProfileNotFoundError, StoreError
from taxdesk.domain.models import (
    AccountingStatus,
    BlockingReason,
    CurrentPeriodStatus,
    EntityKind,
    FailureCode,
    PeriodRange,
    TaxRegime,
    VatCadence,
)


def load(path: Path) -> dict:
    return yaml.safe_load(path.read_text(encoding="utf-8"))


def document(path: Path, document_id: str) -> dict:
    return next(d for d in load(path)["documents"] if d["id"] == document_id)


class TestParsing:
    def test_parse_profile_defaults(self) -> None:
        profile = parse_profile("x", {"entity_kind": "llc"})
        assert profile.entity_kind == EntityKind.LLC
        assert profile.tax_regime == TaxRegime.NONE
        assert profile.vat_status is None
        assert profile.vat_cadence == VatCadence.MONTHLY
        assert profile.business_start is None

    def test_parse_profile_string_dates(self) -> None:
        profile = parse_profile(
            "x", {"entity_kind": "sole_trader", "business_start": "2024-02-01"}
        )
        assert profile.business_start == date(2024, 2, 1)


class TestReading:
    """Tests for read operations."""

    def test_fetch_profile(self, snapshot_path: Path) -> None:
        profile = YamlStoreAdapter(snapshot_path).fetch_business_profile("biz-1")
        assert profile.tax_regime == TaxRegime.FLAT_RATE
        assert profile.business_start == date(2024, 1, 1)

    def test_unknown_profile(self, snapshot_path: Path) -> None:
        with pytest.raises(ProfileNotFoundError):
            YamlStoreAdapter(snapshot_path).fetch_business_profile("nope")

    def test_missing_snapshot(self, tmp_path: Path) -> None:
        with pytest.raises(StoreError, match="not found"):
            YamlStoreAdapter(tmp_path / "missing.yaml").fetch_business_profile("biz-1")

    def test_malformed_snapshot(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(StoreError, match="mapping"):
            YamlStoreAdapter(path).fetch_business_profile("biz-1")

    def test_signals(self, snapshot_path: Path) -> None:
        signals = YamlStoreAdapter(snapshot_path).count_activity_signals("biz-1")
        assert signals.invoices == 4
        assert signals.revenue_categories == 2
        assert signals.periods == 1
        assert signals.current_period_status is CurrentPeriodStatus.OPEN
        assert signals.has_posted_data is False

    def test_all_locked_periods(self, snapshot_path: Path, snapshot_data: dict) -> None:
        snapshot_data["periods"]["biz-1"] = [{"year": 2024, "month": 5, "status": "locked"}]
        snapshot_path.write_text(yaml.safe_dump(snapshot_data, allow_unicode=True))
        signals = YamlStoreAdapter(snapshot_path).count_activity_signals("biz-1")
        assert signals.current_period_status is CurrentPeriodStatus.LOCKED

    def test_unposted_documents_in_period(
        self, snapshot_path: Path, june_2024: PeriodRange
    ) -> None:
        documents = YamlStoreAdapter(snapshot_path).fetch_unposted_documents(
            "biz-1", june_2024
        )
        assert [d.id for d in documents] == ["inv-1", "inv-2", "inv-4", "inv-3"]
        assert documents[2].blocking_reason == BlockingReason.PENDING_ACCEPTANCE

    def test_accounts(self, snapshot_path: Path) -> None:
        accounts = YamlStoreAdapter(snapshot_path).list_available_ledger_accounts("biz-1")
        assert [(a.id, a.rate) for a in accounts] == [("acc-1", "8.5%"), ("acc-2", "3%")]

    def test_no_accounts(self, snapshot_path: Path) -> None:
        assert YamlStoreAdapter(snapshot_path).list_available_ledger_accounts("biz-9") == []


class TestSinglePost:
    """Tests for post_single_document."""

    def test_posts_ready_document(self, snapshot_path: Path) -> None:
        store = YamlStoreAdapter(snapshot_path)
        response = store.post_single_document("inv-1")

        assert response.success
        assert response.rule_code == "SALES_RYCZALT"
        assert document(snapshot_path, "inv-1")["status"] == "posted"
        assert load(snapshot_path)["signals"]["biz-1"]["register_lines"] == 1

    def test_already_posted(self, snapshot_path: Path) -> None:
        store = YamlStoreAdapter(snapshot_path)
        store.post_single_document("inv-1")
        response = store.post_single_document("inv-1")
        assert not response.success
        assert "already posted" in response.error

    def test_blocked_document(self, snapshot_path: Path) -> None:
        response = YamlStoreAdapter(snapshot_path).post_single_document("inv-4")
        assert not response.success
        assert response.error == "Document is blocked: pending_acceptance"

    def test_missing_account(self, snapshot_path: Path) -> None:
        response = YamlStoreAdapter(snapshot_path).post_single_document("inv-2")
        assert not response.success
        assert response.error.startswith("MISSING_ACCOUNT")

    def test_no_rule_needs_review(self, snapshot_path: Path, snapshot_data: dict) -> None:
        snapshot_data["posting_rules"] = {}
        snapshot_path.write_text(yaml.safe_dump(snapshot_data, allow_unicode=True))

        response = YamlStoreAdapter(snapshot_path).post_single_document("inv-1")

        assert response.status == "needs_review"
        assert document(snapshot_path, "inv-1").get("status") is None

    def test_unknown_document(self, snapshot_path: Path) -> None:
        with pytest.raises(DocumentNotFoundError):
            YamlStoreAdapter(snapshot_path).post_single_document("inv-99")


class TestBatchPost:
    """Tests for post_batch."""

    def test_posts_ready_and_reports_missing(
        self, snapshot_path: Path, june_2024: PeriodRange
    ) -> None:
        result = YamlStoreAdapter(snapshot_path).post_batch("biz-1", june_2024, 100)

        assert result.posted_count == 2
        assert [(f.document_id, f.code) for f in result.failures] == [
            ("inv-2", FailureCode.MISSING_ACCOUNT)
        ]
        assert document(snapshot_path, "inv-1")["status"] == "posted"
        assert document(snapshot_path, "inv-3")["status"] == "posted"
        assert document(snapshot_path, "inv-4").get("status") is None
        assert document(snapshot_path, "inv-5").get("status") is None

    def test_cap_takes_oldest_first(
        self, snapshot_path: Path, june_2024: PeriodRange
    ) -> None:
        result = YamlStoreAdapter(snapshot_path).post_batch("biz-1", june_2024, 1)
        assert result.posted_count == 1
        assert result.failures == []
        assert document(snapshot_path, "inv-1")["status"] == "posted"

    def test_rerun_is_idempotent(self, snapshot_path: Path, june_2024: PeriodRange) -> None:
        store = YamlStoreAdapter(snapshot_path)
        store.post_batch("biz-1", june_2024, 100)
        second = store.post_batch("biz-1", june_2024, 100)

        assert second.posted_count == 0
        assert second.missing_account_ids == ["inv-2"]

    def test_assignment_then_rerun(
        self, snapshot_path: Path, june_2024: PeriodRange
    ) -> None:
        store = YamlStoreAdapter(snapshot_path)
        store.post_batch("biz-1", june_2024, 100)
        store.assign_ledger_account("inv-2", "acc-2")
        result = store.post_batch("biz-1", june_2024, 100)

        assert result.posted_count == 1
        assert result.success
        assert document(snapshot_path, "inv-2")["ledger_account_id"] == "acc-2"
        assert load(snapshot_path)["signals"]["biz-1"]["register_lines"] == 3

    def test_company_does_not_need_accounts(
        self, snapshot_path: Path, snapshot_data: dict, june_2024: PeriodRange
    ) -> None:
        snapshot_data["profiles"]["biz-1"] = {
            "entity_kind": "llc",
            "business_start": date(2024, 1, 1),
        }
        snapshot_path.write_text(yaml.safe_dump(snapshot_data, allow_unicode=True))

        result = YamlStoreAdapter(snapshot_path).post_batch("biz-1", june_2024, 100)

        assert result.posted_count == 3
        assert load(snapshot_path)["signals"]["biz-1"]["ledger_entries"] == 3

    def test_nothing_posted_leaves_file_untouched(
        self, snapshot_path: Path
    ) -> None:
        before = snapshot_path.read_text(encoding="utf-8")
        may = PeriodRange(datetime(2024, 5, 1), datetime(2024, 5, 31, 23, 59, 59))
        result = YamlStoreAdapter(snapshot_path).post_batch("biz-1", may, 100)

        assert result.posted_count == 0
        assert snapshot_path.read_text(encoding="utf-8") == before


class TestAssignment:
    def test_last_write_wins(self, snapshot_path: Path) -> None:
        store = YamlStoreAdapter(snapshot_path)
        store.assign_ledger_account("inv-2", "acc-1")
        store.assign_ledger_account("inv-2", "acc-2")
        assert document(snapshot_path, "inv-2")["ledger_account_id"] == "acc-2"

    def test_unknown_document(self, snapshot_path: Path) -> None:
        with pytest.raises(DocumentNotFoundError):
            YamlStoreAdapter(snapshot_path).assign_ledger_account("inv-99", "acc-1")

    def test_posted_flag_survives_assignment(self, snapshot_path: Path) -> None:
        store = YamlStoreAdapter(snapshot_path)
        store.post_single_document("inv-1")
        store.assign_ledger_account("inv-1", "acc-2")
        assert document(snapshot_path, "inv-1")["status"] == AccountingStatus.POSTED.value
