"""
``flask data-tools`` commands: duplicate search, CSV import, account merge
and upload revert from the command line.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import click
from flask import current_app
from flask.cli import AppGroup
from sqlalchemy.exc import SQLAlchemyError

from clinic_tools.errors import ClinicToolsError
from clinic_tools.importer.contracts import suggest_column_mapping
from clinic_tools.importer.csv_accounts import AccountCSVAdapter
from clinic_tools.importer.loader import load_import_plans, revert_upload
from clinic_tools.importer.planning import ColumnMapping, plan_import, summarize_plans
from clinic_tools.matching.grouping import find_similar_accounts
from clinic_tools.matching.similarity import MATCH_MODES
from clinic_tools.models import User, UserRole, db
from clinic_tools.services.merge_service import MergeService

data_tools_cli = AppGroup("data-tools", help="Clinic account data tools.")


def _format_import_summary(summary, plan_summary: dict) -> str:
    return (
        f"Import of '{summary.list_name}' {'previewed' if summary.dry_run else 'completed'}"
        f" (dry_run={summary.dry_run}).\n"
        f"  upload_id          : {summary.upload_id or 'n/a'}\n"
        f"  rows               : {plan_summary['totalRows']}\n"
        f"  accounts           : {summary.account_count}\n"
        f"  locations          : {summary.location_count}\n"
        f"  multi_location     : {summary.multi_location_count}\n"
        f"  ungrouped_singles  : {plan_summary['ungroupedSingles']}"
    )


@data_tools_cli.command("find-similar")
@click.option("--mode", type=click.Choice(MATCH_MODES), default=None, help="Compare names, addresses or both.")
@click.option("--min-score", type=float, default=None, help="Threshold in [0, 1]; defaults to config.")
@click.option("--json", "as_json", is_flag=True, help="Emit the groups as JSON.")
def find_similar(mode: Optional[str], min_score: Optional[float], as_json: bool):
    """List groups of probable duplicate single-location accounts."""
    mode = mode or current_app.config.get("DATA_TOOLS_DEFAULT_MODE", "name")
    if min_score is None:
        min_score = current_app.config.get("DATA_TOOLS_MIN_SIMILARITY", 0.7)

    try:
        groups = find_similar_accounts(db.session, mode=mode, min_score=min_score)
    except ClinicToolsError as exc:
        raise click.ClickException(exc.message) from exc

    if as_json:
        click.echo(json.dumps([group.as_dict() for group in groups], indent=2))
        return
    if not groups:
        click.echo("No similar accounts found.")
        return
    for index, found in enumerate(groups, start=1):
        click.echo(f"Group {index}: score={found.score:.2f} ({found.size} accounts)")
        for account in found.accounts:
            click.echo(f"  - {account.id}  {account.name}")


@data_tools_cli.command("import-csv")
@click.argument("file_path", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option("--list-name", required=True, help="Name recorded on the upload and its accounts.")
@click.option(
    "--map",
    "mappings",
    multiple=True,
    metavar="COLUMN=FIELD",
    help="Column mapping; repeat per column. Guessed from the headers when omitted.",
)
@click.option("--user-id", type=int, default=None, help="User recorded as the uploader.")
@click.option("--dry-run", is_flag=True, help="Plan the import without writing anything.")
@click.option("--summary-json", is_flag=True, help="Emit a machine-readable summary payload.")
def import_csv(file_path: Path, list_name: str, mappings: tuple, user_id: Optional[int], dry_run: bool, summary_json: bool):
    """Import accounts from a CSV file, grouping rows by parent organization."""
    max_rows = current_app.config.get("DATA_TOOLS_MAX_UPLOAD_ROWS", 5000)
    try:
        with file_path.open("r", encoding="utf-8-sig", newline="") as handle:
            adapter = AccountCSVAdapter(handle, max_rows=max_rows)
            rows = adapter.read_rows()
        if mappings:
            mapping = ColumnMapping.from_pairs(mappings)
        else:
            mapping = ColumnMapping(columns=suggest_column_mapping(adapter.headers or ()))
            click.echo(f"Using guessed column mapping: {json.dumps(mapping.as_dict())}", err=True)

        plans = plan_import(rows, mapping)
        plan_summary = summarize_plans(plans)
        summary = load_import_plans(
            plans,
            list_name=list_name,
            file_name=file_path.name,
            mapping=mapping,
            user_id=user_id,
            dry_run=dry_run,
        )
    except ClinicToolsError as exc:
        raise click.ClickException(exc.message) from exc

    current_app.logger.info(
        f"CLI import of {file_path.name}: {summary.account_count} accounts (dry_run={dry_run})"
    )
    if summary_json:
        payload = summary.as_dict()
        payload["summary"] = plan_summary
        click.echo(json.dumps(payload, indent=2))
    else:
        click.echo(_format_import_summary(summary, plan_summary))


@data_tools_cli.command("merge")
@click.argument("account_ids", nargs=-1, required=True)
@click.option("--user-id", type=int, default=None, help="User recorded in the change log.")
@click.option("--dry-run", is_flag=True, help="Show the merge plan without executing it.")
def merge(account_ids: tuple, user_id: Optional[int], dry_run: bool):
    """Merge duplicate accounts into the oldest one."""
    service = MergeService()
    try:
        plan = service.plan_merge(account_ids)
        if dry_run:
            click.echo(json.dumps(plan.as_dict(), indent=2))
            return
        result = service.execute_merge(plan, user_id=user_id)
    except ClinicToolsError as exc:
        raise click.ClickException(exc.message) from exc

    click.echo(
        f"Merged {len(result.donor_ids)} account(s) into {result.survivor_id} ({result.survivor_name}); "
        f"{result.location_count} location(s), type {result.account_type}."
    )


@data_tools_cli.command("revert-upload")
@click.argument("upload_id")
@click.option("--user-id", type=int, default=None, help="User recorded as the reverter.")
def revert_upload_command(upload_id: str, user_id: Optional[int]):
    """Delete every account created by an upload."""
    try:
        summary = revert_upload(upload_id, user_id=user_id)
    except ClinicToolsError as exc:
        raise click.ClickException(exc.message) from exc
    click.echo(
        f"Reverted upload {summary.upload_id}: deleted {summary.deleted_accounts} account(s) "
        f"and {summary.deleted_locations} location(s)."
    )


@data_tools_cli.command("create-admin")
@click.option("--email", required=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--full-name", default=None)
def create_admin(email: str, password: str, full_name: Optional[str]):
    """Create an admin user for the data tools."""
    email = email.strip().lower()
    if User.query.filter_by(email=email).first() is not None:
        raise click.ClickException(f"User {email} already exists.")

    user = User(email=email, full_name=full_name, role=UserRole.ADMIN, is_active=True)
    user.set_password(password)
    db.session.add(user)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise click.ClickException(f"Could not create user {email}: {exc}") from exc
    click.echo(f"Created admin user {email}.")


def init_cli(app):
    """Attach the ``data-tools`` command group to the app CLI"""
    if data_tools_cli.name in app.cli.commands:
        app.cli.commands.pop(data_tools_cli.name)
    app.cli.add_command(data_tools_cli)
