"""CLI commands for enquiry identity resolution.

Usage:
    helix-hub resolve file PATH [--format text|json] [--verbose]
        [--exclude-placeholders] [--dedupe-week]
    helix-hub resolve duplicates [--limit N]
"""

import asyncio
import json
import sys
from pathlib import Path

import click

from ..logging import setup_logging
from ..models.enquiry import EnquiryRecord
from ..resolution.intake import dedupe_by_id_and_week, filter_placeholder_enquiries
from ..resolution.keys import group_key
from ..resolution.resolver import EnquiryResolver


def _describe(record: EnquiryRecord) -> str:
    name = record.display_name or "No name"
    return f"{name} ({record.id or 'no id'})"


@click.group(name="resolve")
def cli():
    """Enquiry identity resolution commands."""
    # Reports go to stdout; only warnings are logged alongside them
    setup_logging("WARNING")


@cli.command(name="file")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Show the key computed for every record",
)
@click.option(
    "--exclude-placeholders",
    is_flag=True,
    help="Drop enquiries recorded against a placeholder address",
)
@click.option(
    "--dedupe-week",
    is_flag=True,
    help="Keep one enquiry per ID and week before resolving",
)
def resolve_file(
    path: Path,
    output_format: str,
    verbose: bool,
    exclude_placeholders: bool,
    dedupe_week: bool,
):
    """Resolve enquiries exported as a JSON array of rows.

    Rows may use either the legacy (``First_Name``, ``Email``) or the
    instructions (``first``, ``email``) column names.

    Examples:

        # Show the identity groups
        helix-hub resolve file enquiries.json

        # Show every record's key as well
        helix-hub resolve file enquiries.json --verbose

        # Machine-readable output
        helix-hub resolve file enquiries.json --format json

        # Apply intake filtering first
        helix-hub resolve file enquiries.json --exclude-placeholders --dedupe-week
    """
    try:
        rows = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        click.echo(f"Error: could not read {path}: {e}", err=True)
        sys.exit(1)

    if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
        click.echo("Error: expected a JSON array of objects", err=True)
        sys.exit(1)

    resolver = EnquiryResolver()
    records = [EnquiryRecord.from_row(row) for row in rows]
    if exclude_placeholders:
        records = filter_placeholder_enquiries(records, resolver.settings)
    if dedupe_week:
        records = dedupe_by_id_and_week(records)
    result = resolver.resolve(records)

    if output_format == "json":
        payload = {
            "input_count": result.input_count,
            "group_count": len(result.groups),
            "merged_count": result.merged_count,
            "collision_count": result.collision_count,
            "groups": [
                {
                    "key": group.key,
                    "collision": group.collision,
                    "member_ids": [m.id for m in group.members],
                    "representative": group.representative.to_row(),
                }
                for group in result.groups.values()
            ],
        }
        click.echo(json.dumps(payload, indent=2, default=str))
        return

    if verbose:
        click.echo("\nRecord Keys")
        click.echo("=" * 60)
        for record in records:
            click.echo(f"  {_describe(record)} -> {group_key(record, resolver.settings)}")

    click.echo(f"\nIdentity Groups ({len(result.groups)} from {result.input_count} enquiries)")
    click.echo("=" * 60)
    for group in result.groups.values():
        click.echo(f"\n{group.key}")
        if group.collision:
            click.secho("  collision: different identity under the same key", fg="yellow")
        for member in group.members:
            marker = "*" if member is group.representative else "-"
            click.echo(f"  {marker} {_describe(member)}")

    click.echo("\n" + "=" * 60)
    click.echo(
        f"Merged: {result.merged_count}  Collisions: {result.collision_count}"
    )


@cli.command(name="duplicates")
@click.option(
    "--limit",
    type=int,
    default=20,
    help="Maximum duplicated IDs to show",
)
def show_duplicates(limit: int):
    """Report legacy enquiry IDs recorded on more than one row.

    For each duplicated ID, lists its rows and how the resolver splits
    them into identities.

    Example:

        helix-hub resolve duplicates --limit 5
    """
    from ..db import EnquiryRepository, close_all_connections

    async def _fetch():
        try:
            return await EnquiryRepository().fetch_duplicate_ids(limit=limit)
        finally:
            await close_all_connections()

    try:
        duplicates = asyncio.run(_fetch())
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not duplicates:
        click.echo("No duplicated enquiry IDs found.")
        return

    resolver = EnquiryResolver()
    click.echo(f"\nDuplicated Enquiry IDs ({len(duplicates)} found)")

    for enquiry_id, records in duplicates.items():
        result = resolver.resolve(records)
        click.echo(f"\nID {enquiry_id} ({len(records)} rows, {len(result.groups)} identities)")
        click.echo("-" * 70)
        for i, record in enumerate(records, 1):
            day = (record.created_at or record.date_created or "N/A").split("T")[0]
            click.echo(
                f"  {i}. {record.display_name or 'No name'} | "
                f"{record.email or 'No email'} | {day} | "
                f"{record.area_of_work or 'No AOW'} | "
                f"{record.point_of_contact or 'Unassigned'}"
            )
        if len(result.groups) > 1:
            click.secho(
                f"  -> shared ID used by {len(result.groups)} different people",
                fg="red",
            )
