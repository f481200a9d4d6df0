"""Group the unposted queue by blocking reason."""

from collections.abc import Iterable

from .models import AccountingStatus, BlockingReason, PostableDocument

PostingGroups = dict[BlockingReason, list[PostableDocument]]


def reason_of(document: PostableDocument) -> BlockingReason:
    """Stored blocking reason; no reason means the document is ready."""
    return document.blocking_reason or BlockingReason.READY_TO_POST


def classify_unposted(documents: Iterable[PostableDocument]) -> PostingGroups:
    """Partition documents into reason buckets.

    Buckets appear in BlockingReason declaration order and only when
    non-empty; each bucket keeps input order. Every document lands in
    exactly one bucket.
    """
    buckets: PostingGroups = {reason: [] for reason in BlockingReason}
    seen: set[str] = set()

    for document in documents:
        if document.status != AccountingStatus.UNPOSTED:
            raise ValueError(f"Document {document.id} is already posted")
        if document.id in seen:
            raise ValueError(f"Duplicate document in queue: {document.id}")
        seen.add(document.id)
        buckets[reason_of(document)].append(document)

    return {reason: docs for reason, docs in buckets.items() if docs}


def summarize(groups: PostingGroups) -> dict[BlockingReason, int]:
    """Count per reason, zero-filled, in declaration order."""
    return {reason: len(groups.get(reason, [])) for reason in BlockingReason}


def ready_documents(groups: PostingGroups) -> list[PostableDocument]:
    return list(groups.get(BlockingReason.READY_TO_POST, []))
