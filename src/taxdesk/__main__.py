"""CLI entry point for taxdesk."""

import logging
import sys
from datetime import datetime
from pathlib import Path

import click

from .adapters.store import create_store_adapter
from .config import load_settings
from .domain.classifier import summarize
from .domain.errors import DocumentNotFoundError, ProfileNotFoundError, StoreError
from .domain.models import (
    AccountAssignment,
    BatchPostResult,
    LedgerAccount,
    Obligation,
    PeriodKey,
    PostStatus,
    SessionState,
)
from .domain.obligations import compute_obligations_timeline
from .domain.periods import label, parse_period, period_range
from .domain.services import AutoPostingOrchestrator, SetupStateService

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_now(value: str | None) -> datetime:
    """Parse YYYY-MM-DD as the reference date, defaulting to now."""
    if not value:
        return datetime.now()
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise click.BadParameter("Date must be YYYY-MM-DD") from None


def period_option(ctx: click.Context, param: click.Parameter, value: str) -> PeriodKey:
    try:
        return parse_period(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from None


def format_obligation(obligation: Obligation) -> str:
    due = obligation.due_date.strftime("%Y-%m-%d") if obligation.due_date else "-"
    flag = "" if obligation.applies else " (does not apply)"
    return (
        f"{due:<10}  {obligation.code:<20} {obligation.title}"
        f"  [{obligation.frequency.value}, {obligation.expected_mode.value}]{flag}"
    )


def resolve_account(answer: str, accounts: list[LedgerAccount]) -> LedgerAccount | None:
    """Match a prompt answer by list number or account id."""
    answer = answer.strip()
    if answer.isdigit() and 1 <= int(answer) <= len(accounts):
        return accounts[int(answer) - 1]
    for account in accounts:
        if account.id == answer:
            return account
    return None


def prompt_assignments(
    document_ids: list[str], accounts: list[LedgerAccount]
) -> list[AccountAssignment] | None:
    """Ask for one account per document. Empty answer cancels (None)."""
    click.echo("Available accounts:")
    for i, account in enumerate(accounts, start=1):
        rate = f" ({account.rate})" if account.rate else ""
        click.echo(f"  {i}. {account.name}{rate}")

    assignments = []
    for document_id in document_ids:
        while True:
            answer = click.prompt(
                f"Account for {document_id}", default="", show_default=False
            )
            if not answer.strip():
                return None
            account = resolve_account(answer, accounts)
            if account is not None:
                break
            click.echo(f"Unknown account: {answer}", err=True)
        assignments.append(AccountAssignment(document_id=document_id, account_id=account.id))
    return assignments


def report_round(result: BatchPostResult) -> None:
    click.echo(f"Posted: {result.posted_count}, failed: {result.failed_count}")
    for failure in result.failures:
        message = f": {failure.message}" if failure.message else ""
        click.echo(f"  ✗ {failure.document_id} [{failure.code.value}]{message}", err=True)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("-c", "--config", type=click.Path(exists=True), help="Config file path")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config: str | None) -> None:
    """Taxdesk - tax calendar and document posting."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config) if config else None


def _store(ctx: click.Context):
    settings = load_settings(ctx.obj["config_path"])
    return settings, create_store_adapter(settings.store)


@cli.command("setup-state")
@click.argument("business_id")
@click.pass_context
def setup_state(ctx: click.Context, business_id: str) -> None:
    """Show how far bookkeeping is set up."""
    _, store = _store(ctx)
    try:
        state = SetupStateService(store).get_setup_state(business_id)
    except (ProfileNotFoundError, StoreError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"stage: {state.stage.value}")
    missing = ", ".join(m.value for m in state.missing_setup) or "none"
    click.echo(f"missing: {missing}")
    click.echo("actions:")
    for action in state.recommended_actions:
        click.echo(f"  [{action.priority}] {action.title} -> {action.route}")
    click.echo("obligations:")
    for obligation in state.obligations_timeline:
        click.echo(f"  {format_obligation(obligation)}")


@cli.command()
@click.argument("business_id")
@click.option("--now", "now_value", help="Reference date YYYY-MM-DD (default: today)")
@click.pass_context
def obligations(ctx: click.Context, business_id: str, now_value: str | None) -> None:
    """List upcoming statutory obligations."""
    now = parse_now(now_value)
    _, store = _store(ctx)
    try:
        profile = store.fetch_business_profile(business_id)
    except (ProfileNotFoundError, StoreError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    for obligation in compute_obligations_timeline(profile, now):
        click.echo(format_obligation(obligation))


@cli.command()
@click.argument("business_id")
@click.option("--period", required=True, callback=period_option, help="YYYY-MM")
@click.pass_context
def unposted(ctx: click.Context, business_id: str, period: PeriodKey) -> None:
    """Show the unposted queue grouped by blocking reason."""
    settings, store = _store(ctx)
    orchestrator = AutoPostingOrchestrator(store)
    try:
        groups = orchestrator.unposted_queue(business_id, period_range(period))
    except StoreError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"{label(period, settings.calendar.locale)}:")
    for reason, count in summarize(groups).items():
        click.echo(f"  {reason.value}: {count}")
        for document in groups.get(reason, []):
            click.echo(f"    {document.occurred_on}  {document.number or document.id}")


@cli.command()
@click.argument("document_id")
@click.pass_context
def post(ctx: click.Context, document_id: str) -> None:
    """Post a single document."""
    _, store = _store(ctx)
    try:
        outcome = AutoPostingOrchestrator(store).run_single_post(document_id)
    except (DocumentNotFoundError, StoreError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if outcome.success:
        click.echo(f"Posted {document_id} (rule {outcome.rule_code})")
    elif outcome.status == PostStatus.NEEDS_REVIEW:
        click.echo(f"Needs review: {outcome.message}")
    else:
        click.echo(f"Error: {outcome.message}", err=True)
        sys.exit(1)


@cli.command("batch-post")
@click.argument("business_id")
@click.option("--period", required=True, callback=period_option, help="YYYY-MM")
@click.option("--cap", type=click.IntRange(min=1), help="Max documents per round")
@click.pass_context
def batch_post(
    ctx: click.Context, business_id: str, period: PeriodKey, cap: int | None
) -> None:
    """Auto-post ready documents, assigning missing accounts on the way."""
    settings, store = _store(ctx)
    orchestrator = AutoPostingOrchestrator(
        store, assignment_workers=settings.posting.assignment_workers
    )

    try:
        session = orchestrator.start_session(
            business_id, period_range(period), cap or settings.posting.batch_cap
        )
    except StoreError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    report_round(session.last_result)

    while session.state == SessionState.AWAITING_ACCOUNT_ASSIGNMENT:
        click.echo(
            f"{len(session.affected_document_ids)} document(s) need a ledger account"
        )
        try:
            accounts = orchestrator.available_accounts(business_id)
        except StoreError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        if not accounts:
            click.echo("No ledger accounts available", err=True)
            session.cancel()
            break

        assignments = prompt_assignments(session.affected_document_ids, accounts)
        if assignments is None:
            session.cancel()
            click.echo("Assignment cancelled")
            break
        try:
            result = session.complete_account_assignment(assignments)
        except StoreError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        report_round(result)

    click.echo(f"\nTotal posted: {session.total_posted} ({session.state.value})")
    if session.state != SessionState.DONE:
        sys.exit(1)


if __name__ == "__main__":
    cli()
