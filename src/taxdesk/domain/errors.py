"""Domain errors."""


class TaxdeskError(Exception):
    """Base class for taxdesk errors."""


class StoreError(TaxdeskError):
    """The ledger store failed or returned something unusable."""


class ProfileNotFoundError(TaxdeskError, LookupError):
    def __init__(self, business_id: str) -> None:
        super().__init__(f"Business profile not found: {business_id}")
        self.business_id = business_id


class DocumentNotFoundError(TaxdeskError, LookupError):
    def __init__(self, document_id: str) -> None:
        super().__init__(f"Document not found: {document_id}")
        self.document_id = document_id


class InvalidTransitionError(TaxdeskError):
    """A posting session was driven from a state that does not allow it."""


class IncompleteAssignmentError(TaxdeskError, ValueError):
    """Account assignment did not cover every affected document."""

    def __init__(self, missing: list[str]) -> None:
        super().__init__(
            f"{len(missing)} document(s) have no ledger account assigned: "
            + ", ".join(missing)
        )
        self.missing = missing
