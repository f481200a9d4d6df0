"""Bookkeeping setup state.

Derives a lifecycle stage, the missing configuration and a prioritized list
of next actions from a business profile and its activity signals. Nothing
here is persisted; every call recomputes from its inputs.
"""

from dataclasses import dataclass
from datetime import datetime

from .models import (
    ActionCode,
    ActivitySignals,
    BusinessProfile,
    MissingSetup,
    RecommendedAction,
    SetupStage,
    SetupState,
    TaxRegime,
)
from .obligations import compute_obligations_timeline

PROFILE_ROUTE = "/settings/business-profile"

ONBOARDING_STAGES = (SetupStage.EMPTY, SetupStage.CONFIGURED_NO_ACTIVITY)


@dataclass(frozen=True)
class _CatalogEntry:
    action: RecommendedAction
    missing: MissingSetup | None = None
    stages: tuple[SetupStage, ...] = ()

    def applies(self, stage: SetupStage, missing: set[MissingSetup]) -> bool:
        if self.missing is not None:
            return self.missing in missing
        return stage in self.stages


def _action(
    code: ActionCode, title: str, description: str, route: str, priority: int
) -> RecommendedAction:
    return RecommendedAction(
        code=code, title=title, description=description, route=route, priority=priority
    )


ACTION_CATALOG: tuple[_CatalogEntry, ...] = (
    _CatalogEntry(
        _action(
            ActionCode.SET_TAX_TYPE,
            "Ustaw formę opodatkowania",
            "Wybierz ryczałt, skalę podatkową lub podatek liniowy",
            PROFILE_ROUTE,
            100,
        ),
        missing=MissingSetup.MISSING_TAX_TYPE,
    ),
    _CatalogEntry(
        _action(
            ActionCode.SET_START_DATE,
            "Ustaw datę rozpoczęcia działalności",
            "Potrzebna do osi czasu obowiązków i okresów księgowych",
            PROFILE_ROUTE,
            95,
        ),
        missing=MissingSetup.MISSING_START_DATE,
    ),
    _CatalogEntry(
        _action(
            ActionCode.SET_VAT_STATUS,
            "Ustaw status VAT",
            "Zwolniony (art. 113) lub czynny podatnik VAT",
            PROFILE_ROUTE,
            90,
        ),
        missing=MissingSetup.MISSING_VAT_STATUS,
    ),
    _CatalogEntry(
        _action(
            ActionCode.SEED_CHART_OF_ACCOUNTS,
            "Zasiej plan kont",
            "Utwórz domyślny plan kont dla spółki",
            "/accounting/chart-of-accounts",
            88,
        ),
        missing=MissingSetup.MISSING_COA,
    ),
    _CatalogEntry(
        _action(
            ActionCode.ADD_RYCZALT_CATEGORIES,
            "Dodaj kategorie przychodów",
            "Stawki ryczałtu przypisywane do przychodów",
            "/accounting/ryczalt-categories",
            87,
        ),
        missing=MissingSetup.MISSING_RYCZALT_CATEGORIES,
    ),
    _CatalogEntry(
        _action(
            ActionCode.AUTO_POST,
            "Auto-księguj dokumenty",
            "Zaksięguj oczekujące faktury i wydatki",
            "/accounting",
            85,
        ),
        stages=(SetupStage.ACTIVITY_UNPOSTED,),
    ),
    _CatalogEntry(
        _action(
            ActionCode.CREATE_INVOICE,
            "Wystaw pierwszą fakturę",
            "Rozpocznij ewidencję przychodów",
            "/invoices/new",
            80,
        ),
        stages=ONBOARDING_STAGES,
    ),
    _CatalogEntry(
        _action(
            ActionCode.ADD_EXPENSE,
            "Dodaj pierwszy wydatek",
            "Zarejestruj koszty działalności",
            "/expenses/new",
            75,
        ),
        stages=ONBOARDING_STAGES,
    ),
    _CatalogEntry(
        _action(
            ActionCode.CONNECT_BANK,
            "Połącz konto bankowe",
            "Automatyczna synchronizacja transakcji",
            "/bank/connect",
            70,
        ),
        stages=ONBOARDING_STAGES,
    ),
    _CatalogEntry(
        _action(
            ActionCode.OPEN_PERIOD,
            "Otwórz okres księgowy",
            "Bez okresu nie można księgować dokumentów",
            "/accounting/periods",
            65,
        ),
        missing=MissingSetup.MISSING_PERIOD,
    ),
)


def is_minimally_configured(profile: BusinessProfile) -> bool:
    """Start date set, plus a tax regime for sole traders."""
    if profile.business_start is None:
        return False
    if profile.is_sole_trader and not profile.has_tax_regime:
        return False
    return True


def determine_stage(profile: BusinessProfile, signals: ActivitySignals) -> SetupStage:
    if signals.has_posted_data:
        return SetupStage.ACTIVE
    if signals.has_activity:
        return SetupStage.ACTIVITY_UNPOSTED
    if is_minimally_configured(profile):
        return SetupStage.CONFIGURED_NO_ACTIVITY
    return SetupStage.EMPTY


def find_missing_setup(
    profile: BusinessProfile, signals: ActivitySignals
) -> tuple[MissingSetup, ...]:
    """Every missing configuration item, in MissingSetup declaration order."""
    missing = set()

    if profile.is_sole_trader and not profile.has_tax_regime:
        missing.add(MissingSetup.MISSING_TAX_TYPE)
    if profile.vat_status is None:
        missing.add(MissingSetup.MISSING_VAT_STATUS)
    if profile.business_start is None:
        missing.add(MissingSetup.MISSING_START_DATE)
    if profile.tax_regime == TaxRegime.FLAT_RATE and signals.revenue_categories == 0:
        missing.add(MissingSetup.MISSING_RYCZALT_CATEGORIES)
    # TODO: ask the store whether a chart of accounts exists instead of
    # inferring it from the ledger entry count
    if profile.entity_kind.is_corporate and signals.ledger_entries == 0:
        missing.add(MissingSetup.MISSING_COA)
    if signals.periods == 0:
        missing.add(MissingSetup.MISSING_PERIOD)

    return tuple(code for code in MissingSetup if code in missing)


def recommend_actions(
    stage: SetupStage, missing: tuple[MissingSetup, ...]
) -> tuple[RecommendedAction, ...]:
    """Applicable catalog actions, most urgent first.

    Ties keep catalog order since sorted() is stable.
    """
    missing_set = set(missing)
    actions = [
        entry.action for entry in ACTION_CATALOG if entry.applies(stage, missing_set)
    ]
    return tuple(sorted(actions, key=lambda a: -a.priority))


def resolve_setup_state(
    profile: BusinessProfile, signals: ActivitySignals, now: datetime
) -> SetupState:
    stage = determine_stage(profile, signals)
    missing = find_missing_setup(profile, signals)
    return SetupState(
        stage=stage,
        missing_setup=missing,
        recommended_actions=recommend_actions(stage, missing),
        obligations_timeline=tuple(compute_obligations_timeline(profile, now)),
        signals=signals,
    )
