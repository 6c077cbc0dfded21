"""Utilities for resolving codes typed on the command line to IDs."""

from ledgerkit.domain.code_catalog import CodeCatalogService


def resolve_code_node(catalog: CodeCatalogService, code: str | int) -> int:
    """Resolve a code node by its code value or ``#<id>``.

    Codes are numeric strings, so a bare number is always read as a code
    value; prefix with ``#`` to pass an ID.

    Raises:
        ValueError: If the code node is not found
    """
    text = str(code).strip()
    if text.startswith("#"):
        try:
            node_id = int(text[1:])
        except ValueError:
            raise ValueError(f"Invalid code node ID '{text}'")
        if catalog.get_node(node_id) is None:
            raise ValueError(f"Code node ID {node_id} not found")
        return node_id

    node = catalog.get_node_by_code(text)
    if node is None:
        raise ValueError(f"Code '{text}' not found")
    return node.id


def resolve_detail(catalog: CodeCatalogService, code: str | int) -> int:
    """Resolve a detail by its 4-digit code or ``#<id>``.

    Raises:
        ValueError: If the detail is not found
    """
    text = str(code).strip()
    if text.startswith("#"):
        try:
            detail_id = int(text[1:])
        except ValueError:
            raise ValueError(f"Invalid detail ID '{text}'")
        if catalog.get_detail(detail_id) is None:
            raise ValueError(f"Detail ID {detail_id} not found")
        return detail_id

    detail = catalog.get_detail_by_code(text.zfill(4) if text.isdigit() else text)
    if detail is None:
        raise ValueError(f"Detail '{text}' not found")
    return detail.id
