"""Ledger store port - interface for the document and ledger backend."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.models import (
        ActivitySignals,
        BatchPostResult,
        BusinessProfile,
        LedgerAccount,
        PeriodRange,
        PostableDocument,
        SinglePostResponse,
    )


class LedgerStorePort(ABC):
    """Interface for the external document/ledger store.

    Implementations raise StoreError for transport or backend failures;
    callers never retry them.
    """

    @abstractmethod
    def fetch_business_profile(self, business_id: str) -> "BusinessProfile":
        """Load a business profile.

        Raises ProfileNotFoundError when it does not exist.
        """
        pass

    @abstractmethod
    def count_activity_signals(self, business_id: str) -> "ActivitySignals":
        """Count invoices, transactions, postings and periods."""
        pass

    @abstractmethod
    def fetch_unposted_documents(
        self, business_id: str, period: "PeriodRange"
    ) -> list["PostableDocument"]:
        """Unposted documents dated within the period, oldest first."""
        pass

    @abstractmethod
    def post_single_document(self, document_id: str) -> "SinglePostResponse":
        """Post one document against the matching posting rule."""
        pass

    @abstractmethod
    def post_batch(
        self, business_id: str, period: "PeriodRange", cap: int
    ) -> "BatchPostResult":
        """Post up to ``cap`` ready documents dated within the period.

        Already-posted documents are never touched again.
        """
        pass

    @abstractmethod
    def assign_ledger_account(self, document_id: str, account_id: str) -> None:
        """Set the ledger account of a document (last write wins)."""
        pass

    @abstractmethod
    def list_available_ledger_accounts(
        self, business_id: str
    ) -> list["LedgerAccount"]:
        """Accounts a document can be assigned to."""
        pass
