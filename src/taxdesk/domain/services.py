"""Domain services - orchestrate setup state and posting."""

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime

from ..ports.store import LedgerStorePort
from .classifier import PostingGroups, classify_unposted
from .errors import IncompleteAssignmentError, InvalidTransitionError
from .models import (
    AccountAssignment,
    BatchPostResult,
    LedgerAccount,
    PeriodRange,
    PostStatus,
    SessionState,
    SetupState,
    SinglePostOutcome,
)
from .setup_state import resolve_setup_state

logger = logging.getLogger(__name__)

DEFAULT_BATCH_CAP = 100
DEFAULT_ASSIGNMENT_WORKERS = 8

# Aggregate views that go stale once a document is posted
POSTING_VIEWS = ("ledger", "chart_of_accounts_usage", "unposted_queue")


class SetupStateService:
    """Builds SetupState snapshots from the store."""

    def __init__(
        self,
        store: LedgerStorePort,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.clock = clock

    def get_setup_state(self, business_id: str) -> SetupState:
        profile = self.store.fetch_business_profile(business_id)
        signals = self.store.count_activity_signals(business_id)
        state = resolve_setup_state(profile, signals, self.clock())
        logger.debug(
            f"Setup state for {business_id}: {state.stage.value}, "
            f"missing={[m.value for m in state.missing_setup]}"
        )
        return state


class AutoPostingOrchestrator:
    """Drives automatic posting of ready documents."""

    def __init__(
        self,
        store: LedgerStorePort,
        assignment_workers: int = DEFAULT_ASSIGNMENT_WORKERS,
    ) -> None:
        if assignment_workers < 1:
            raise ValueError("assignment_workers must be at least 1")
        self.store = store
        self.assignment_workers = assignment_workers

    def unposted_queue(self, business_id: str, period: PeriodRange) -> PostingGroups:
        documents = self.store.fetch_unposted_documents(business_id, period)
        return classify_unposted(documents)

    def available_accounts(self, business_id: str) -> list[LedgerAccount]:
        return self.store.list_available_ledger_accounts(business_id)

    def run_single_post(self, document_id: str) -> SinglePostOutcome:
        """Post one document.

        No matching rule is an expected outcome (needs_review), not an
        error; neither outcome is retried here.
        """
        response = self.store.post_single_document(document_id)

        if response.success:
            logger.info(f"Posted {document_id} with rule {response.rule_code}")
            return SinglePostOutcome(
                document_id=document_id,
                status=PostStatus.POSTED,
                rule_code=response.rule_code,
                views_to_refresh=POSTING_VIEWS,
            )

        if response.status == PostStatus.NEEDS_REVIEW.value:
            logger.info(f"No posting rule for {document_id}, needs review")
            return SinglePostOutcome(
                document_id=document_id,
                status=PostStatus.NEEDS_REVIEW,
                message=response.error or "No matching posting rule",
            )

        logger.error(f"Posting failed for {document_id}: {response.error}")
        return SinglePostOutcome(
            document_id=document_id,
            status=PostStatus.ERROR,
            message=response.error or "Posting failed",
        )

    def run_batch_post(
        self, business_id: str, period: PeriodRange, cap: int = DEFAULT_BATCH_CAP
    ) -> BatchPostResult:
        if cap < 1:
            raise ValueError(f"cap must be positive, got {cap}")
        result = self.store.post_batch(business_id, period, cap)
        logger.info(
            f"Batch posting for {business_id}: "
            f"{result.posted_count} posted, {result.failed_count} failed"
        )
        return result

    def assign_accounts(self, assignments: list[AccountAssignment]) -> dict[str, str]:
        """Write all assignments concurrently and wait for every one to settle.

        Returns failed writes as ``{document_id: error message}``.
        """
        if not assignments:
            return {}

        failures: dict[str, str] = {}
        workers = min(self.assignment_workers, len(assignments))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                pool.submit(
                    self.store.assign_ledger_account, a.document_id, a.account_id
                ): a
                for a in assignments
            }
            wait(futures)

        for future, assignment in futures.items():
            error = future.exception()
            if error is not None:
                logger.warning(
                    f"Account assignment failed for {assignment.document_id}: {error}"
                )
                failures[assignment.document_id] = str(error)

        return failures

    def start_session(
        self, business_id: str, period: PeriodRange, cap: int = DEFAULT_BATCH_CAP
    ) -> "BatchPostingSession":
        session = BatchPostingSession(self, business_id, period, cap)
        session.run()
        return session


class BatchPostingSession:
    """One batch posting run with its missing-account recovery loop.

    INIT -> BATCH_POSTING -> DONE | DONE_WITH_ERRORS | AWAITING_ACCOUNT_ASSIGNMENT
    AWAITING_ACCOUNT_ASSIGNMENT -> BATCH_POSTING (all assigned) | CANCELLED
    """

    def __init__(
        self,
        orchestrator: AutoPostingOrchestrator,
        business_id: str,
        period: PeriodRange,
        cap: int = DEFAULT_BATCH_CAP,
    ) -> None:
        self.orchestrator = orchestrator
        self.business_id = business_id
        self.period = period
        self.cap = cap
        self.state = SessionState.INIT
        self.rounds: list[BatchPostResult] = []
        self.affected_document_ids: list[str] = []
        self.assignment_failures: dict[str, str] = {}

    @property
    def last_result(self) -> BatchPostResult | None:
        return self.rounds[-1] if self.rounds else None

    @property
    def total_posted(self) -> int:
        return sum(r.posted_count for r in self.rounds)

    @property
    def is_finished(self) -> bool:
        return self.state in (
            SessionState.DONE,
            SessionState.DONE_WITH_ERRORS,
            SessionState.CANCELLED,
        )

    def run(self) -> BatchPostResult:
        """First batch posting round."""
        self._require(SessionState.INIT)
        return self._post_round(SessionState.INIT)

    def complete_account_assignment(
        self, assignments: list[AccountAssignment]
    ) -> BatchPostResult:
        """Persist one account per affected document, then re-run the batch.

        Every affected document must be assigned; partial assignment is
        rejected before anything is written.
        """
        self._require(SessionState.AWAITING_ACCOUNT_ASSIGNMENT)
        self._validate_assignments(assignments)

        self.assignment_failures = self.orchestrator.assign_accounts(
            [a for a in assignments if a.account_id]
        )
        if self.assignment_failures:
            logger.warning(
                f"{len(self.assignment_failures)} assignment(s) failed, "
                "retrying batch anyway"
            )
        return self._post_round(SessionState.AWAITING_ACCOUNT_ASSIGNMENT)

    def cancel(self) -> None:
        """Abandon recovery. Posted documents and saved assignments stay."""
        self._require(SessionState.AWAITING_ACCOUNT_ASSIGNMENT)
        logger.info(
            f"Account assignment cancelled for {len(self.affected_document_ids)} "
            "document(s)"
        )
        self.state = SessionState.CANCELLED

    def _post_round(self, previous: SessionState) -> BatchPostResult:
        self.state = SessionState.BATCH_POSTING
        try:
            result = self.orchestrator.run_batch_post(
                self.business_id, self.period, self.cap
            )
        except Exception:
            self.state = previous
            raise

        self.rounds.append(result)
        self.affected_document_ids = result.missing_account_ids

        if self.affected_document_ids:
            logger.warning(
                f"{len(self.affected_document_ids)} document(s) need a ledger account"
            )
            self.state = SessionState.AWAITING_ACCOUNT_ASSIGNMENT
        elif result.failures:
            self.state = SessionState.DONE_WITH_ERRORS
        else:
            self.state = SessionState.DONE
        return result

    def _validate_assignments(self, assignments: list[AccountAssignment]) -> None:
        affected = set(self.affected_document_ids)
        seen: set[str] = set()
        assigned: set[str] = set()
        for a in assignments:
            if a.document_id not in affected:
                raise ValueError(f"Document {a.document_id} does not need an account")
            if a.document_id in seen:
                raise ValueError(f"Document {a.document_id} assigned twice")
            seen.add(a.document_id)
            if a.account_id:
                assigned.add(a.document_id)

        missing = [d for d in self.affected_document_ids if d not in assigned]
        if missing:
            raise IncompleteAssignmentError(missing)

    def _require(self, expected: SessionState) -> None:
        if self.state != expected:
            raise InvalidTransitionError(
                f"Session is {self.state.value}, expected {expected.value}"
            )
