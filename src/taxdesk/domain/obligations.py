"""Statutory obligation timeline.

The timeline is a pure function of ``(profile, now)``: nothing is cached or
persisted, and ``now`` is always passed in explicitly.
"""

from dataclasses import dataclass
from datetime import date, datetime

from .models import (
    BusinessProfile,
    ExpectedMode,
    Obligation,
    ObligationFrequency,
    SubmissionChannel,
    TaxRegime,
    VatCadence,
    VatStatus,
)
from .periods import end_of_day, last_day

ZUS_DUE_DAY = 10
INCOME_TAX_DUE_DAY = 20
VAT_DUE_DAY = 25


@dataclass(frozen=True)
class _RegimeRule:
    advance_code: str
    advance_title: str
    advance_description: str
    frequency: ObligationFrequency
    annual_code: str
    annual_title: str
    annual_description: str
    annual_month: int = 4
    annual_day: int = 30


REGIME_RULES = {
    TaxRegime.FLAT_RATE: _RegimeRule(
        advance_code="PIT_ADVANCE_RYCZALT",
        advance_title="Zaliczka PIT (ryczałt)",
        advance_description="Kwartalna zaliczka na podatek ryczałtowy",
        frequency=ObligationFrequency.QUARTERLY,
        annual_code="PIT_28_YEARLY",
        annual_title="PIT-28 (roczne zeznanie)",
        annual_description="Roczne zeznanie podatkowe dla ryczałtu",
    ),
    TaxRegime.LINEAR: _RegimeRule(
        advance_code="PIT_ADVANCE_LINIOWY",
        advance_title="Zaliczka PIT (liniowy 19%)",
        advance_description="Miesięczna zaliczka na podatek liniowy",
        frequency=ObligationFrequency.MONTHLY,
        annual_code="PIT_36L_YEARLY",
        annual_title="PIT-36L (roczne zeznanie)",
        annual_description="Roczne zeznanie podatkowe dla podatku liniowego",
    ),
    TaxRegime.PROGRESSIVE: _RegimeRule(
        advance_code="PIT_ADVANCE_SKALA",
        advance_title="Zaliczka PIT (skala)",
        advance_description="Miesięczna zaliczka na podatek wg skali",
        frequency=ObligationFrequency.MONTHLY,
        annual_code="PIT_36_YEARLY",
        annual_title="PIT-36 (roczne zeznanie)",
        annual_description="Roczne zeznanie podatkowe wg skali",
    ),
}


def _on_day(year: int, month: int, day: int) -> datetime:
    return end_of_day(date(year, month, min(day, last_day(year, month))))


def get_next_due_date(now: datetime, day: int) -> datetime:
    """Day ``day`` of the month after ``now``, at end of day."""
    year, month = now.year, now.month + 1
    if month > 12:
        year, month = year + 1, 1
    return _on_day(year, month, day)


def get_next_quarterly_due_date(now: datetime, day: int) -> datetime:
    """Day ``day`` of the first month of the quarter after ``now``."""
    quarter = (now.month - 1) // 3
    month_index = (quarter + 1) * 3  # 0-based, may roll into next year
    year = now.year + month_index // 12
    return _on_day(year, month_index % 12 + 1, day)


def get_yearly_due_date(year: int, month: int, day: int) -> datetime:
    """Annual filing for fiscal ``year``, due in the following year."""
    return _on_day(year + 1, month, day)


def _due_by_frequency(now: datetime, frequency: ObligationFrequency, day: int) -> datetime:
    if frequency == ObligationFrequency.QUARTERLY:
        return get_next_quarterly_due_date(now, day)
    return get_next_due_date(now, day)


def _social_insurance(now: datetime) -> Obligation:
    return Obligation(
        code="ZUS",
        title="Składki ZUS",
        description="Składki emerytalne, rentowe, chorobowe, zdrowotne",
        frequency=ObligationFrequency.MONTHLY,
        due_date=get_next_due_date(now, ZUS_DUE_DAY),
        submission_channel=SubmissionChannel.SOCIAL_INSURANCE,
        applies=True,
        expected_mode=ExpectedMode.ZERO_POSSIBLE,
        cta="Dodaj płatność ZUS",
    )


def _income_tax(rule: _RegimeRule, now: datetime) -> list[Obligation]:
    return [
        Obligation(
            code=rule.advance_code,
            title=rule.advance_title,
            description=rule.advance_description,
            frequency=rule.frequency,
            due_date=_due_by_frequency(now, rule.frequency, INCOME_TAX_DUE_DAY),
            submission_channel=SubmissionChannel.TAX_PORTAL,
            applies=True,
            expected_mode=ExpectedMode.REQUIRES_ACTIVITY,
            cta="Dodaj zaliczkę PIT",
        ),
        Obligation(
            code=rule.annual_code,
            title=rule.annual_title,
            description=rule.annual_description,
            frequency=ObligationFrequency.YEARLY,
            due_date=get_yearly_due_date(now.year, rule.annual_month, rule.annual_day),
            submission_channel=SubmissionChannel.TAX_PORTAL,
            applies=True,
            expected_mode=ExpectedMode.REQUIRES_ACTIVITY,
            cta=f"Przygotuj {rule.annual_title.split(' ')[0]}",
        ),
    ]


def _corporate_tax(now: datetime) -> list[Obligation]:
    return [
        Obligation(
            code="CIT_ADVANCE",
            title="Zaliczka CIT",
            description="Miesięczna zaliczka na podatek dochodowy od osób prawnych",
            frequency=ObligationFrequency.MONTHLY,
            due_date=get_next_due_date(now, INCOME_TAX_DUE_DAY),
            submission_channel=SubmissionChannel.TAX_PORTAL,
            applies=True,
            expected_mode=ExpectedMode.REQUIRES_ACTIVITY,
            cta="Dodaj zaliczkę CIT",
        ),
        Obligation(
            code="CIT_8_YEARLY",
            title="CIT-8 (roczne zeznanie)",
            description="Roczne zeznanie podatkowe CIT",
            frequency=ObligationFrequency.YEARLY,
            due_date=get_yearly_due_date(now.year, 3, 31),
            submission_channel=SubmissionChannel.TAX_PORTAL,
            applies=True,
            expected_mode=ExpectedMode.REQUIRES_ACTIVITY,
            cta="Przygotuj CIT-8",
        ),
        Obligation(
            code="SPRAWOZDANIE_FIN",
            title="Sprawozdanie finansowe",
            description="Roczne sprawozdanie finansowe + eKRS",
            frequency=ObligationFrequency.YEARLY,
            due_date=get_yearly_due_date(now.year, 6, 30),
            submission_channel=SubmissionChannel.COMPANY_REGISTRY,
            applies=True,
            expected_mode=ExpectedMode.REQUIRES_ACTIVITY,
            cta="Przygotuj sprawozdanie",
        ),
    ]


def _vat(profile: BusinessProfile, now: datetime) -> Obligation:
    """VAT filing for the profile.

    n/a means the business sits outside VAT altogether, so like exempt it
    files no JPK and gets the undated informational entry. An unrecorded
    status still files.
    """
    if profile.vat_status in (VatStatus.EXEMPT, VatStatus.NOT_APPLICABLE):
        return Obligation(
            code="JPK_V7_EXEMPT",
            title="JPK_V7 (nie dotyczy)",
            description="Zwolniony z VAT (art. 113) - brak obowiązku składania JPK",
            frequency=ObligationFrequency.MONTHLY,
            due_date=None,
            submission_channel=SubmissionChannel.TAX_PORTAL,
            applies=False,
            expected_mode=ExpectedMode.INFORMATIONAL,
        )

    if profile.vat_cadence == VatCadence.QUARTERLY:
        return Obligation(
            code="JPK_V7K",
            title="JPK_V7K (VAT kwartalny)",
            description="Jednolity plik kontrolny VAT",
            frequency=ObligationFrequency.QUARTERLY,
            due_date=get_next_quarterly_due_date(now, VAT_DUE_DAY),
            submission_channel=SubmissionChannel.TAX_PORTAL,
            applies=True,
            expected_mode=ExpectedMode.ZERO_POSSIBLE,
            cta="Przygotuj JPK_V7",
        )

    return Obligation(
        code="JPK_V7M",
        title="JPK_V7M (VAT miesięczny)",
        description="Jednolity plik kontrolny VAT",
        frequency=ObligationFrequency.MONTHLY,
        due_date=get_next_due_date(now, VAT_DUE_DAY),
        submission_channel=SubmissionChannel.TAX_PORTAL,
        applies=True,
        expected_mode=ExpectedMode.ZERO_POSSIBLE,
        cta="Przygotuj JPK_V7",
    )


def _sort_key(obligation: Obligation) -> tuple[bool, datetime]:
    return (obligation.due_date is None, obligation.due_date or datetime.min)


def compute_obligations_timeline(
    profile: BusinessProfile, now: datetime
) -> list[Obligation]:
    """All obligations for the profile, soonest first, undated last.

    Works with no activity at all: only configuration and ``now`` matter.
    """
    if not isinstance(now, datetime):
        raise TypeError(f"now must be a datetime, got {type(now).__name__}")

    obligations: list[Obligation] = []

    if profile.is_sole_trader:
        obligations.append(_social_insurance(now))
        rule = REGIME_RULES.get(profile.tax_regime)
        if rule is not None:
            obligations.extend(_income_tax(rule, now))
    elif profile.entity_kind.is_corporate:
        obligations.extend(_corporate_tax(now))

    obligations.append(_vat(profile, now))

    # sorted() is stable: undated obligations keep declaration order
    return sorted(obligations, key=_sort_key)
