"""Chart of accounts commands."""

import click

from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.domain.code_catalog import CodeCatalogService
from ledgerkit.domain.entities import CodeKind, Nature
from ledgerkit.utils.resolvers import resolve_code_node

KIND_CHOICES = [kind.value for kind in CodeKind]
NATURE_CHOICES = [nature.value for nature in Nature]


@click.group()
def code_group():
    """Manage group, general and specific codes."""
    pass


@code_group.command("create")
@click.argument("code")
@click.argument("title")
@click.option("--kind", type=click.Choice(KIND_CHOICES), required=True, help="Level of the code")
@click.option("--parent", help="Parent code (group for general, general for specific)")
@click.option("--nature", type=click.Choice(NATURE_CHOICES), help="Normal balance side")
@click.option("--inactive", is_flag=True, help="Create the code disabled")
@click.pass_context
def create_code(ctx, code: str, title: str, kind: str, parent: str | None, nature: str | None, inactive: bool):
    """Create a code.

    Examples:
        ledgerkit code create 11 "Current assets" --kind group
        ledgerkit code create 1101 "Cash and banks" --kind general --parent 11
        ledgerkit code create 110101 "Cash on hand" --kind specific --parent 1101
    """
    service = CodeCatalogService(ctx.obj["db"])
    try:
        parent_id = resolve_code_node(service, parent) if parent else None
        node_id = service.create_node(
            code=code,
            title=title,
            kind=kind,
            parent_id=parent_id,
            nature=nature,
            is_active=not inactive,
        )
        click.echo(f"Created {kind} code {code} '{title}' (ID: {node_id})")
    except ValueError as e:
        handle_domain_error(ctx, e)


@code_group.command("list")
@click.option("--kind", type=click.Choice(KIND_CHOICES), help="Only codes of this level")
@click.option("--parent", help="Only children of this code")
@click.pass_context
def list_codes(ctx, kind: str | None, parent: str | None):
    """List codes."""
    service = CodeCatalogService(ctx.obj["db"])
    try:
        parent_id = resolve_code_node(service, parent) if parent else None
    except ValueError as e:
        handle_domain_error(ctx, e)

    nodes = service.list_nodes(kind=CodeKind(kind) if kind else None, parent_id=parent_id)
    if not nodes:
        click.echo("No codes found.")
        return

    click.echo("\nCodes:")
    click.echo("-" * 70)
    for node in nodes:
        status = "" if node.is_active else " (inactive)"
        click.echo(f"ID: {node.id:4d} | {node.code:10s} | {node.kind.value:8s} | {node.title}{status}")


@code_group.command("tree")
@click.pass_context
def show_tree(ctx):
    """Show the chart of accounts as a tree."""
    service = CodeCatalogService(ctx.obj["db"])
    tree = service.get_tree()
    if not tree:
        click.echo("No codes found.")
        return

    def render(nodes, indent: int = 0):
        for node in nodes:
            status = "" if node["is_active"] else " (inactive)"
            click.echo(f"{'  ' * indent}{node['code']} {node['title']}{status}")
            render(node["children"], indent + 1)

    render(tree)


@code_group.command("update")
@click.argument("code")
@click.option("--new-code", help="New code value")
@click.option("--title", help="New title")
@click.option("--active/--inactive", default=None, help="Enable or disable the code")
@click.pass_context
def update_code(ctx, code: str, new_code: str | None, title: str | None, active: bool | None):
    """Update a code's value, title or active flag."""
    service = CodeCatalogService(ctx.obj["db"])
    try:
        node_id = resolve_code_node(service, code)
        service.update_node(node_id, code=new_code, title=title, is_active=active)
        click.echo(f"Updated code {new_code or code}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@code_group.command("delete")
@click.argument("code")
@click.option("--yes", is_flag=True, help="Skip confirmation")
@click.pass_context
def delete_code(ctx, code: str, yes: bool):
    """Delete a code with no children and no references."""
    service = CodeCatalogService(ctx.obj["db"])
    try:
        node_id = resolve_code_node(service, code)
    except ValueError as e:
        handle_domain_error(ctx, e)

    if not yes and not click.confirm(f"Are you sure you want to delete code {code}?"):
        click.echo("Deletion cancelled.")
        return
    try:
        service.delete_node(node_id)
        click.echo(f"Deleted code {code}")
    except ValueError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register code commands with main CLI."""
    cli.add_command(code_group, name="code")
