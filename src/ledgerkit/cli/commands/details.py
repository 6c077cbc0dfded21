"""Detail (analytic code) commands."""

import click

from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.domain.code_catalog import CodeCatalogService
from ledgerkit.domain.entities import DetailLinkSpec
from ledgerkit.utils.resolvers import resolve_code_node, resolve_detail


@click.group()
def detail_group():
    """Manage details and their links to codes."""
    pass


@detail_group.command("create")
@click.argument("title")
@click.option("--code", help="4-digit code (defaults to the next free code)")
@click.option("--link", "links", multiple=True, help="Leaf code to link the detail to (repeatable)")
@click.option("--inactive", is_flag=True, help="Create the detail disabled")
@click.pass_context
def create_detail(ctx, title: str, code: str | None, links: tuple[str, ...], inactive: bool):
    """Create a user-defined detail.

    Examples:
        ledgerkit detail create "Acme Ltd" --code 0001
        ledgerkit detail create "Jane Doe" --link 110301 --link 210101
    """
    service = CodeCatalogService(ctx.obj["db"])
    try:
        specs = [
            DetailLinkSpec(level_id=resolve_code_node(service, link), is_primary=index == 0, position=index)
            for index, link in enumerate(links)
        ]
        detail_code = code or service.suggest_next_detail_code()
        detail_id = service.create_detail(
            code=detail_code, title=title, is_active=not inactive, links=specs
        )
        click.echo(f"Created detail {detail_code} '{title}' (ID: {detail_id})")
    except ValueError as e:
        handle_domain_error(ctx, e)


@detail_group.command("list")
@click.option("--active-only", is_flag=True, help="Hide inactive details")
@click.pass_context
def list_details(ctx, active_only: bool):
    """List details."""
    service = CodeCatalogService(ctx.obj["db"])
    details = service.list_details(active_only=active_only)
    if not details:
        click.echo("No details found.")
        return

    click.echo("\nDetails:")
    click.echo("-" * 70)
    for detail in details:
        flags = []
        if detail.is_system_managed:
            flags.append("system")
        if not detail.is_active:
            flags.append("inactive")
        suffix = f" ({', '.join(flags)})" if flags else ""
        click.echo(f"ID: {detail.id:4d} | {detail.code} | {detail.title}{suffix}")


@detail_group.command("suggest-code")
@click.pass_context
def suggest_code(ctx):
    """Print the next free detail code."""
    service = CodeCatalogService(ctx.obj["db"])
    try:
        click.echo(service.suggest_next_detail_code())
    except ValueError as e:
        handle_domain_error(ctx, e)


@detail_group.command("update")
@click.argument("detail")
@click.option("--code", help="New 4-digit code")
@click.option("--title", help="New title")
@click.option("--active/--inactive", default=None, help="Enable or disable the detail")
@click.pass_context
def update_detail(ctx, detail: str, code: str | None, title: str | None, active: bool | None):
    """Update a user-defined detail."""
    service = CodeCatalogService(ctx.obj["db"])
    try:
        detail_id = resolve_detail(service, detail)
        service.update_detail(detail_id, code=code, title=title, is_active=active)
        click.echo(f"Updated detail {code or detail}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@detail_group.command("delete")
@click.argument("detail")
@click.pass_context
def delete_detail(ctx, detail: str):
    """Delete an unreferenced user-defined detail."""
    service = CodeCatalogService(ctx.obj["db"])
    try:
        service.delete_detail(resolve_detail(service, detail))
        click.echo(f"Deleted detail {detail}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@detail_group.command("link")
@click.argument("detail")
@click.argument("code")
@click.option("--primary", is_flag=True, help="Mark as the detail's primary code")
@click.pass_context
def link_detail(ctx, detail: str, code: str, primary: bool):
    """Link a detail to a leaf code."""
    service = CodeCatalogService(ctx.obj["db"])
    try:
        service.link_detail(
            resolve_detail(service, detail), resolve_code_node(service, code), is_primary=primary
        )
        click.echo(f"Linked detail {detail} to code {code}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@detail_group.command("unlink")
@click.argument("detail")
@click.argument("code")
@click.pass_context
def unlink_detail(ctx, detail: str, code: str):
    """Remove a detail's link to a code."""
    service = CodeCatalogService(ctx.obj["db"])
    try:
        service.unlink_detail(resolve_detail(service, detail), resolve_code_node(service, code))
        click.echo(f"Unlinked detail {detail} from code {code}")
    except ValueError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register detail commands with main CLI."""
    cli.add_command(detail_group, name="detail")
