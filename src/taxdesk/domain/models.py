"""Domain models."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class EntityKind(str, Enum):
    """Legal form of the business."""

    SOLE_TRADER = "sole_trader"
    LLC = "llc"
    JOINT_STOCK = "joint_stock"

    @property
    def is_corporate(self) -> bool:
        return self in (EntityKind.LLC, EntityKind.JOINT_STOCK)


class TaxRegime(str, Enum):
    """Income tax regime of a sole trader. NONE means not configured."""

    FLAT_RATE = "flat_rate"
    PROGRESSIVE = "progressive"
    LINEAR = "linear"
    NONE = "none"


class VatStatus(str, Enum):
    EXEMPT = "exempt"
    ACTIVE = "active"
    NOT_APPLICABLE = "n/a"


class VatCadence(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


class SetupStage(str, Enum):
    EMPTY = "empty"
    CONFIGURED_NO_ACTIVITY = "configured_no_activity"
    ACTIVITY_UNPOSTED = "activity_unposted"
    ACTIVE = "active"


class MissingSetup(str, Enum):
    MISSING_TAX_TYPE = "MISSING_TAX_TYPE"
    MISSING_VAT_STATUS = "MISSING_VAT_STATUS"
    MISSING_START_DATE = "MISSING_START_DATE"
    MISSING_RYCZALT_CATEGORIES = "MISSING_RYCZALT_CATEGORIES"
    MISSING_COA = "MISSING_COA"
    MISSING_PERIOD = "MISSING_PERIOD"


class ActionCode(str, Enum):
    SET_TAX_TYPE = "set_tax_type"
    SET_START_DATE = "set_start_date"
    SET_VAT_STATUS = "set_vat_status"
    SEED_CHART_OF_ACCOUNTS = "seed_chart_of_accounts"
    ADD_RYCZALT_CATEGORIES = "add_ryczalt_categories"
    AUTO_POST = "auto_post"
    CREATE_INVOICE = "create_invoice"
    ADD_EXPENSE = "add_expense"
    CONNECT_BANK = "connect_bank"
    OPEN_PERIOD = "open_period"


class ObligationFrequency(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    ONE_OFF = "one_off"


class SubmissionChannel(str, Enum):
    TAX_PORTAL = "podatki.gov"
    SOCIAL_INSURANCE = "pue_zus"
    COMPANY_REGISTRY = "ekrs"


class ExpectedMode(str, Enum):
    ZERO_POSSIBLE = "zero_possible"
    REQUIRES_ACTIVITY = "requires_activity"
    INFORMATIONAL = "informational"


class PeriodStatus(str, Enum):
    OPEN = "open"
    CLOSING = "closing"
    LOCKED = "locked"


class CurrentPeriodStatus(str, Enum):
    """Status of the most recent period a business can still post into."""

    OPEN = "open"
    LOCKED = "locked"
    NONE = "none"


class AccountingStatus(str, Enum):
    UNPOSTED = "unposted"
    POSTED = "posted"


class BlockingReason(str, Enum):
    """Why an unposted document cannot be posted yet.

    Declaration order is the display order of the unposted queue.
    """

    READY_TO_POST = "ready_to_post"
    MISSING_CATEGORY = "missing_category"
    LOCKED_PERIOD = "locked_period"
    PENDING_ACCEPTANCE = "pending_acceptance"
    MISSING_PERIOD = "missing_period"


class FailureCode(str, Enum):
    MISSING_ACCOUNT = "MISSING_ACCOUNT"
    OTHER = "OTHER"


class PostStatus(str, Enum):
    POSTED = "posted"
    NEEDS_REVIEW = "needs_review"
    ERROR = "error"


class SessionState(str, Enum):
    INIT = "init"
    BATCH_POSTING = "batch_posting"
    DONE = "done"
    DONE_WITH_ERRORS = "done_with_errors"
    AWAITING_ACCOUNT_ASSIGNMENT = "awaiting_account_assignment"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class BusinessProfile:
    """Business configuration, owned by the store."""

    id: str
    entity_kind: EntityKind
    tax_regime: TaxRegime = TaxRegime.NONE
    vat_status: VatStatus | None = None  # None: never recorded
    vat_cadence: VatCadence = VatCadence.MONTHLY
    business_start: date | None = None
    accounting_start: date | None = None

    @property
    def is_sole_trader(self) -> bool:
        return self.entity_kind == EntityKind.SOLE_TRADER

    @property
    def has_tax_regime(self) -> bool:
        return self.tax_regime != TaxRegime.NONE


@dataclass(frozen=True)
class ActivitySignals:
    """Activity counters for one business at query time."""

    invoices: int = 0
    bank_transactions: int = 0
    register_lines: int = 0
    ledger_entries: int = 0
    events: int = 0
    revenue_categories: int = 0
    periods: int = 0
    current_period_status: CurrentPeriodStatus = CurrentPeriodStatus.NONE

    def __post_init__(self) -> None:
        for name in (
            "invoices",
            "bank_transactions",
            "register_lines",
            "ledger_entries",
            "events",
            "revenue_categories",
            "periods",
        ):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
        try:
            status = CurrentPeriodStatus(self.current_period_status)
        except ValueError:
            raise ValueError(
                f"Invalid current period status: {self.current_period_status!r}"
            ) from None
        object.__setattr__(self, "current_period_status", status)

    @property
    def has_activity(self) -> bool:
        return self.invoices > 0 or self.bank_transactions > 0

    @property
    def has_posted_data(self) -> bool:
        return self.register_lines > 0 or self.ledger_entries > 0


@dataclass(frozen=True)
class Obligation:
    """A statutory filing or payment requirement."""

    code: str
    title: str
    description: str
    frequency: ObligationFrequency
    due_date: datetime | None
    submission_channel: SubmissionChannel
    applies: bool
    expected_mode: ExpectedMode
    cta: str | None = None


@dataclass(frozen=True)
class RecommendedAction:
    code: ActionCode
    title: str
    description: str
    route: str
    priority: int


@dataclass(frozen=True)
class SetupState:
    """Snapshot of how far a business's bookkeeping is set up."""

    stage: SetupStage
    missing_setup: tuple[MissingSetup, ...]
    recommended_actions: tuple[RecommendedAction, ...]
    obligations_timeline: tuple[Obligation, ...]
    signals: ActivitySignals

    @property
    def is_onboarding(self) -> bool:
        return self.stage in (SetupStage.EMPTY, SetupStage.CONFIGURED_NO_ACTIVITY)

    @property
    def schedulable_obligations(self) -> tuple[Obligation, ...]:
        return tuple(
            o for o in self.obligations_timeline if o.applies and o.due_date is not None
        )


@dataclass(frozen=True, order=True)
class PeriodKey:
    """A calendar month."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month must be 1-12, got {self.month}")

    @classmethod
    def from_date(cls, value: date) -> "PeriodKey":
        return cls(value.year, value.month)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class PeriodRange:
    """Inclusive instant range of one or more months."""

    start: datetime
    end: datetime

    def contains(self, value: date) -> bool:
        if not isinstance(value, datetime):
            value = datetime(value.year, value.month, value.day)
        return self.start <= value <= self.end


@dataclass(frozen=True)
class AccountingPeriod:
    year: int
    month: int
    status: PeriodStatus
    locked_at: datetime | None = None

    @property
    def key(self) -> PeriodKey:
        return PeriodKey(self.year, self.month)


@dataclass
class PostableDocument:
    """A financial document waiting in (or leaving) the posting queue."""

    id: str
    business_id: str
    occurred_on: date
    status: AccountingStatus = AccountingStatus.UNPOSTED
    blocking_reason: BlockingReason | None = None
    ledger_account_id: str | None = None
    number: str = ""
    document_type: str = "sales_invoice"


@dataclass(frozen=True)
class LedgerAccount:
    id: str
    name: str
    rate: str = ""  # display only


@dataclass(frozen=True)
class AccountAssignment:
    document_id: str
    account_id: str


@dataclass(frozen=True)
class PostingFailure:
    document_id: str
    code: FailureCode
    message: str = ""


@dataclass
class BatchPostResult:
    """Outcome of one batch posting call."""

    posted_count: int = 0
    failures: list[PostingFailure] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    @property
    def success(self) -> bool:
        return len(self.failures) == 0

    @property
    def missing_account_ids(self) -> list[str]:
        return [
            f.document_id for f in self.failures if f.code == FailureCode.MISSING_ACCOUNT
        ]


@dataclass(frozen=True)
class SinglePostResponse:
    """Raw store response to a single posting request."""

    success: bool
    rule_code: str | None = None
    status: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class SinglePostOutcome:
    document_id: str
    status: PostStatus
    rule_code: str | None = None
    message: str = ""
    views_to_refresh: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return self.status == PostStatus.POSTED
