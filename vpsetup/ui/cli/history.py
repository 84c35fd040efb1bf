"""
CLI command for the run history (audit ledger).
"""

from __future__ import annotations

import json

import click


@click.command()
@click.option("-n", "--limit", default=10, show_default=True, help="Number of runs to show.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def history(ctx: click.Context, limit: int, as_json: bool) -> None:
    """Show recent setup runs."""
    from vpsetup.core.persistence.audit import AuditWriter, default_audit_path

    writer = AuditWriter(ctx.obj.get("audit_path") or default_audit_path())
    entries = writer.read_recent(limit)

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    if not entries:
        click.echo(f"No runs recorded yet ({writer.path}).")
        return

    colors = {"ok": "green", "dry-run": "yellow", "failed": "red"}
    click.secho(f"\n📜 Last {len(entries)} of {writer.entry_count()} runs", fg="cyan", bold=True)
    for entry in reversed(entries):
        click.echo(f"   {entry.timestamp[:19]}  {entry.operation_id}  {entry.mode:<11} ", nl=False)
        click.secho(f"{entry.status:<8}", fg=colors.get(entry.status, "white"), nl=False)
        click.echo(f" {entry.modules_succeeded}/{len(entry.resolved)} ok")
        failed = [name for name, status in entry.module_status.items() if status == "failed"]
        if failed:
            click.echo(f"     ✗ failed: {', '.join(failed)}")
    click.echo()
