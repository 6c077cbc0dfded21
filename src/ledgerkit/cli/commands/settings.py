"""Settings commands, including posting code slots."""

import json

import click

from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.domain.code_catalog import CodeCatalogService
from ledgerkit.domain.entities import CodeSlot
from ledgerkit.domain.errors import MissingCodeMappingError
from ledgerkit.domain.posting import PostingEngine
from ledgerkit.domain.settings import SettingsService
from ledgerkit.utils.resolvers import resolve_code_node


@click.group()
def setting_group():
    """Manage settings."""
    pass


@setting_group.command("set")
@click.argument("code")
@click.option("--name", help="Display name")
@click.option("--code-ref", help="Code the setting points at (posting slots)")
@click.option("--value", help="JSON value, or a plain string")
@click.pass_context
def set_setting(ctx, code: str, name: str | None, code_ref: str | None, value: str | None):
    """Create or replace a setting.

    Examples:
        ledgerkit setting set CODE_TREASURY_CASH_RECEIPT --code-ref 110101
        ledgerkit setting set BANK_DETAIL_START_CODE --value 7100
    """
    db = ctx.obj["db"]
    try:
        special_id = resolve_code_node(CodeCatalogService(db), code_ref) if code_ref else None
        parsed = None
        if value is not None:
            try:
                parsed = json.loads(value)
            except json.JSONDecodeError:
                parsed = value
        SettingsService(db).set(code, name=name, special_id=special_id, value=parsed)
        click.echo(f"Saved setting {code}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@setting_group.command("list")
@click.pass_context
def list_settings(ctx):
    """List settings."""
    settings = SettingsService(ctx.obj["db"]).list_settings()
    if not settings:
        click.echo("No settings found.")
        return
    click.echo("\nSettings:")
    click.echo("-" * 70)
    for setting in settings:
        target = f"code #{setting.special_id}" if setting.special_id is not None else json.dumps(setting.value)
        click.echo(f"{setting.code:35s} | {target}")


@setting_group.command("delete")
@click.argument("code")
@click.pass_context
def delete_setting(ctx, code: str):
    """Delete a setting."""
    try:
        SettingsService(ctx.obj["db"]).delete(code)
        click.echo(f"Deleted setting {code}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@setting_group.command("check-slots")
@click.pass_context
def check_slots(ctx):
    """Show which code every posting slot resolves to."""
    db = ctx.obj["db"]
    engine = PostingEngine(db, ctx.obj.get("config"))
    missing = 0
    for slot in CodeSlot:
        try:
            node = db.get_code_node(engine.resolve_code(slot))
            click.echo(f"{slot.value:35s} | {node.code} {node.title}")
        except MissingCodeMappingError:
            missing += 1
            click.echo(f"{slot.value:35s} | (not configured)")
    if missing:
        ctx.exit(1)


def register_commands(cli):
    """Register setting commands with main CLI."""
    cli.add_command(setting_group, name="setting")
