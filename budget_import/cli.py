"""CLI for the ``budget_import`` package.

A Typer console interface over the import pipeline and the record store.
The root callback loads a local ``.env`` with ``python-dotenv`` (without
overriding variables already set) and configures logging; every command then
opens the ledger database named by ``--database-url`` or ``DATABASE_URL``,
creating missing tables and default categories on first use.

Fatal import failures and invalid input are reported on stderr as
``Error: ...`` with exit status 1.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from sqlalchemy.orm import Session
from typer.models import ArgumentInfo

from .logging_setup import configure_logging


@contextmanager
def _ledger(ctx: typer.Context) -> Iterator[Session]:
    """Open a session on the configured ledger, ready for use."""

    # Deferred imports keep ``--help`` fast
    from db.client import get_engine, init_schema, session_scope
    from sqlalchemy.exc import SQLAlchemyError

    from .store import ensure_default_categories

    database_url = (ctx.obj or {}).get("database_url")
    try:
        init_schema(get_engine(database_url=database_url))
    except (RuntimeError, SQLAlchemyError) as e:
        raise _fail(f"cannot open ledger database: {e}") from e
    try:
        with session_scope(database_url=database_url) as session:
            ensure_default_categories(session)
            yield session
    except SQLAlchemyError as e:
        raise _fail(f"database error: {e}") from e


def _fail(message: str) -> typer.Exit:
    typer.echo(f"Error: {message}", err=True)
    return typer.Exit(1)


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import bank CSV exports into a local ledger with format detection, "
        "duplicate suppression and rule-based categorization."
    ),
)


# Module-level argument object to satisfy ruff B008 (no calls in parameter
# defaults).
EXPORT_PATH_ARGUMENT: ArgumentInfo = typer.Argument(
    ...,
    help="Bank export to read (CSV, TSV, or another delimited layout).",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the reader reports missing files itself
)


@app.command("import")
def import_cmd(
    ctx: typer.Context,
    path: Annotated[Path, EXPORT_PATH_ARGUMENT],
    *,
    account: str | None = typer.Option(
        None, "--account", "-a", help="Target account (optional when only one exists)."
    ),
    mapping: Path | None = typer.Option(
        None,
        "--mapping",
        help="JSON column mapping to use instead of format detection.",
        dir_okay=False,
    ),
) -> None:
    """Import one export file into an account."""

    from .errors import ImportFailure
    from .models import ColumnMapping
    from .pipeline import run_import

    override = None
    if mapping is not None:
        try:
            override = ColumnMapping.model_validate_json(mapping.read_text(encoding="utf-8"))
        except OSError as e:
            raise _fail(f"cannot read mapping {mapping}: {e}") from e
        except ValidationError as e:
            raise _fail(f"invalid column mapping in {mapping}: {e}") from e

    try:
        with _ledger(ctx) as session:
            result = run_import(
                path, session=session, account_reference=account, mapping_override=override
            )
    except ImportFailure as e:
        raise _fail(str(e)) from e

    typer.echo(f"Format:             {result.format_label}")
    typer.echo(f"Account:            {result.account_name}")
    typer.echo(f"Parsed:             {result.total_parsed}")
    typer.echo(f"Failed rows:        {result.failed_rows}")
    typer.echo(f"Duplicates skipped: {result.duplicates_skipped}")
    typer.echo(f"Auto-categorized:   {result.auto_categorized}")
    typer.echo(f"Imported:           {result.newly_inserted}")
    for err in result.row_errors:
        typer.echo(f"  skipped {err}", err=True)
    if result.suggested_rules:
        typer.echo("Suggested rules for uncategorized rows:")
        for pattern in result.suggested_rules:
            typer.echo(f"  {pattern}")


@app.command("detect")
def detect_cmd(path: Annotated[Path, EXPORT_PATH_ARGUMENT]) -> None:
    """Show which bank layout a file matches and the mapping that would be used."""

    from .detect import detect
    from .errors import UnreadableSource
    from .reader import read_table

    try:
        table = read_table(path)
    except UnreadableSource as e:
        raise _fail(str(e)) from e
    guess = detect(table)
    if guess is None:
        raise _fail(f"no known format matched {path}; pass --mapping to import it")
    typer.echo(f"{guess.label} (matched on {guess.matched_on})")
    typer.echo(guess.mapping.model_dump_json(indent=2))


@app.command("accounts")
def accounts_cmd(ctx: typer.Context) -> None:
    """List accounts."""

    from .store import list_accounts

    with _ledger(ctx) as session:
        accounts = list_accounts(session)
        if not accounts:
            typer.echo("No accounts yet. Create one with add-account.")
            return
        for acct in accounts:
            extra = f" ({acct.institution})" if acct.institution else ""
            typer.echo(f"{acct.id}\t{acct.name}\t{acct.account_type}{extra}")


@app.command("add-account")
def add_account_cmd(
    ctx: typer.Context,
    name: str,
    *,
    account_type: str = typer.Option(
        "Checking",
        "--type",
        "-t",
        help="Checking, Savings, Credit Card, Investment, Cash, Loan or Other.",
    ),
    institution: str = typer.Option("", help="Bank or issuer name."),
    currency: str = typer.Option("USD", help="ISO 4217 currency code."),
) -> None:
    """Create an account."""

    from .store import create_account

    try:
        with _ledger(ctx) as session:
            acct = create_account(
                session, name, account_type, institution=institution, currency=currency
            )
            typer.echo(f"Created account {acct.name!r} ({acct.account_type})")
    except ValueError as e:
        raise _fail(str(e)) from e


@app.command("rules")
def rules_cmd(ctx: typer.Context) -> None:
    """List categorization rules in evaluation order."""

    from .store import load_rules

    with _ledger(ctx) as session:
        rules = load_rules(session)
    if not rules:
        typer.echo("No rules defined.")
        return
    for rule in rules:
        typer.echo(f"{rule.rule_id}\t{rule.priority}\t{rule.kind}\t{rule.pattern}\t-> {rule.category}")


@app.command("add-rule")
def add_rule_cmd(
    ctx: typer.Context,
    pattern: str,
    category: str,
    *,
    regex: bool = typer.Option(
        False, "--regex", help="Treat PATTERN as a regular expression on the original description."
    ),
    priority: int | None = typer.Option(
        None, help="Evaluation position (lower runs first); defaults to last."
    ),
) -> None:
    """Add a rule mapping PATTERN to CATEGORY."""

    from .rules import RuleKind
    from .store import add_rule

    kind = RuleKind.REGEX if regex else RuleKind.CONTAINS
    try:
        with _ledger(ctx) as session:
            rule = add_rule(session, pattern, category, kind=kind, priority=priority)
            typer.echo(
                f"Added rule {rule.rule_id}: {rule.kind} {rule.pattern!r} -> {rule.category} "
                f"(priority {rule.priority})"
            )
    except ValueError as e:
        # InvalidRulePattern is a ValueError too
        raise _fail(str(e)) from e


@app.command("delete-rule")
def delete_rule_cmd(ctx: typer.Context, rule_id: int) -> None:
    """Delete a rule by id."""

    from .store import delete_rule

    with _ledger(ctx) as session:
        deleted = delete_rule(session, rule_id)
    if not deleted:
        raise _fail(f"no rule with id {rule_id}")
    typer.echo(f"Deleted rule {rule_id}")


@app.command("add-txn")
def add_txn_cmd(
    ctx: typer.Context,
    date_text: Annotated[str, typer.Argument(metavar="DATE", help="e.g. 2024-03-01 or 03/01/2024")],
    description: str,
    amount_text: Annotated[str, typer.Argument(metavar="AMOUNT", help="Negative for money out.")],
    *,
    account: str | None = typer.Option(None, "--account", "-a", help="Target account."),
    category: str | None = typer.Option(None, "--category", "-c", help="Category name."),
    notes: str = typer.Option("", help="Free-form note."),
) -> None:
    """Record a transaction by hand."""

    from .errors import NoAccountResolved
    from .fields import format_amount, parse_amount, parse_date
    from .store import add_manual_transaction, resolve_account

    try:
        tx_date = parse_date(date_text)
        amount = parse_amount(amount_text)
        with _ledger(ctx) as session:
            acct = resolve_account(session, account)
            tx = add_manual_transaction(
                session,
                acct,
                tx_date=tx_date,
                description=description,
                amount=amount,
                category=category,
                notes=notes,
            )
            typer.echo(
                f"Added transaction {tx.id}: {tx.date.isoformat()} {tx.description} "
                f"{format_amount(tx.amount)} ({acct.name})"
            )
    except (NoAccountResolved, ValueError) as e:
        raise _fail(str(e)) from e


@app.command("rename-txn")
def rename_txn_cmd(ctx: typer.Context, transaction_id: int, description: str) -> None:
    """Change a transaction's display description."""

    from .store import rename_transaction

    try:
        with _ledger(ctx) as session:
            tx = rename_transaction(session, transaction_id, description)
            typer.echo(f"Renamed transaction {tx.id} to {tx.description!r}")
    except (LookupError, ValueError) as e:
        raise _fail(str(e)) from e


@app.command("export")
def export_cmd(
    ctx: typer.Context,
    path: Annotated[Path, typer.Argument(help="Output CSV path.", dir_okay=False)],
    *,
    month: str | None = typer.Option(None, help="Only this month (YYYY-MM)."),
    account: str | None = typer.Option(None, "--account", "-a", help="Only this account."),
) -> None:
    """Export transactions as CSV (Date, Description, Amount, Category, Account, Notes)."""

    from .errors import NoAccountResolved
    from .export import write_export_csv
    from .store import resolve_account, transactions_for_export

    try:
        with _ledger(ctx) as session:
            acct = resolve_account(session, account) if account else None
            rows = transactions_for_export(session, month=month, account=acct)
            written = write_export_csv(path, rows)
    except (NoAccountResolved, ValueError) as e:
        raise _fail(str(e)) from e
    except OSError as e:
        raise _fail(f"cannot write {path}: {e}") from e
    typer.echo(f"Exported {written} transaction(s) to {path}")


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    *,
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures package logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging("DEBUG" if verbose else None, force=verbose)
    ctx.obj = {"database_url": database_url}

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover - exercised via console script
    main()
