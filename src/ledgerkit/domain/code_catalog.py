"""Chart of accounts and detail catalogue service."""

from typing import Any, Optional, Union

from ledgerkit.database.base import Database
from ledgerkit.domain.allocation import CODE_MAX, CODE_MIN, format_code, is_four_digit_code
from ledgerkit.domain.entities import (
    CodeKind,
    CodeNode,
    Detail,
    DetailKind,
    DetailLink,
    DetailLinkSpec,
    Nature,
)
from ledgerkit.domain.errors import (
    ConflictError,
    DependencyError,
    DuplicateCodeError,
    DuplicateValueError,
    ForbiddenError,
    InvalidParentError,
    MustBeLeafError,
    NoCodesAvailableError,
    NotFoundError,
    ValidationError,
    delete_blocked,
    not_found,
)
from ledgerkit.logging_config import get_logger

logger = get_logger("domain.code_catalog")

# Kind each node kind must hang under (None means top level)
PARENT_KIND: dict[CodeKind, Optional[CodeKind]] = {
    CodeKind.GROUP: None,
    CodeKind.GENERAL: CodeKind.GROUP,
    CodeKind.SPECIFIC: CodeKind.GENERAL,
}

_UNSET: Any = object()


def _parse_kind(kind: Union[CodeKind, str]) -> CodeKind:
    try:
        return CodeKind(kind)
    except ValueError:
        raise ValidationError(f"Invalid code kind '{kind}'. Must be one of: group, general, specific")


def _parse_nature(nature: Union[Nature, str, None]) -> Optional[Nature]:
    if nature is None:
        return None
    try:
        return Nature(nature)
    except ValueError:
        raise ValidationError(f"Invalid nature '{nature}'. Must be 'debit' or 'credit'")


def _clean(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} is required")
    return value.strip()


class CodeCatalogService:
    """Service for managing code nodes, details and their links."""

    def __init__(self, db: Database):
        """Initialize code catalog service.

        Args:
            db: Database instance
        """
        self.db = db

    # Code nodes

    def _check_parent(self, kind: CodeKind, parent_id: Optional[int]) -> None:
        expected = PARENT_KIND[kind]
        if expected is None:
            if parent_id is not None:
                raise InvalidParentError(f"A {kind.value} code cannot have a parent")
            return
        if parent_id is None:
            raise InvalidParentError(f"A {kind.value} code requires a {expected.value} parent")
        parent = self.db.get_code_node(parent_id)
        if parent is None:
            raise NotFoundError(not_found("Parent code", parent_id))
        if parent.kind != expected:
            raise InvalidParentError(
                f"A {kind.value} code must be under a {expected.value} code, "
                f"not a {parent.kind.value} code"
            )

    @staticmethod
    def _check_code_format(code: str, kind: CodeKind) -> None:
        if kind == CodeKind.GROUP and not (len(code) == 2 and code.isdigit()):
            raise ValidationError(f"Group code '{code}' must be exactly 2 digits")

    def create_node(
        self,
        code: str,
        title: str,
        kind: Union[CodeKind, str],
        parent_id: Optional[int] = None,
        nature: Union[Nature, str, None] = None,
        is_active: bool = True,
    ) -> int:
        """Create a group, general or specific code.

        Args:
            code: Code value, unique across all kinds
            title: Display title
            kind: group, general or specific
            parent_id: Parent node ID (group for general, general for specific)
            nature: Optional normal balance side
            is_active: Whether the code is usable

        Returns:
            Code node ID

        Raises:
            ValidationError: If code or title is empty, or a group code is not 2 digits
            InvalidParentError: If the parent does not match the kind
            DuplicateCodeError: If the code already exists
        """
        code = _clean(code, "Code")
        title = _clean(title, "Title")
        kind = _parse_kind(kind)
        nature = _parse_nature(nature)
        self._check_code_format(code, kind)
        self._check_parent(kind, parent_id)

        if self.db.get_code_node_by_code(code) is not None:
            raise DuplicateCodeError(code)

        try:
            node_id = self.db.create_code_node(
                code=code,
                title=title,
                kind=kind,
                parent_id=parent_id,
                nature=nature,
                is_active=is_active,
            )
        except DuplicateValueError:
            raise DuplicateCodeError(code)
        logger.info("Code created", extra={"code": code, "kind": kind.value, "node_id": node_id})
        return node_id

    def get_node(self, node_id: int) -> Optional[CodeNode]:
        """Get code node by ID."""
        return self.db.get_code_node(node_id)

    def get_node_by_code(self, code: str) -> Optional[CodeNode]:
        """Get code node by code value."""
        return self.db.get_code_node_by_code(code)

    def list_nodes(
        self, kind: Union[CodeKind, str, None] = None, parent_id: Optional[int] = None
    ) -> list[CodeNode]:
        """List code nodes ordered by code."""
        if kind is not None:
            kind = _parse_kind(kind)
        return self.db.list_code_nodes(kind=kind, parent_id=parent_id)

    def is_leaf(self, node_id: int) -> bool:
        """Return True if the node has no children."""
        return self.db.count_code_node_children(node_id) == 0

    def update_node(
        self,
        node_id: int,
        code: Optional[str] = None,
        title: Optional[str] = None,
        kind: Union[CodeKind, str, None] = None,
        parent_id: Optional[int] = _UNSET,
        nature: Union[Nature, str, None] = _UNSET,
        is_active: Optional[bool] = None,
    ) -> None:
        """Update a code node.

        The parent rule and code uniqueness are checked against the resulting
        state, so moving a node and changing its kind can happen in one call.

        Raises:
            NotFoundError: If the node does not exist
            InvalidParentError: If the resulting kind/parent pair is invalid,
                or the kind of a node with children would change
            DuplicateCodeError: If the new code is taken
        """
        node = self.db.get_code_node(node_id)
        if node is None:
            raise NotFoundError(not_found("Code node", node_id))

        next_code = node.code if code is None else _clean(code, "Code")
        next_title = node.title if title is None else _clean(title, "Title")
        next_kind = node.kind if kind is None else _parse_kind(kind)
        next_parent = node.parent_id if parent_id is _UNSET else parent_id
        next_nature = node.nature if nature is _UNSET else _parse_nature(nature)

        if next_parent == node_id:
            raise InvalidParentError("A code cannot be its own parent")
        if next_kind != node.kind and not self.is_leaf(node_id):
            raise InvalidParentError(
                f"Cannot change kind of code {node.code}: it has child codes"
            )
        self._check_code_format(next_code, next_kind)
        self._check_parent(next_kind, next_parent)

        if next_code != node.code:
            existing = self.db.get_code_node_by_code(next_code)
            if existing is not None and existing.id != node_id:
                raise DuplicateCodeError(next_code)

        fields = {
            "code": next_code,
            "title": next_title,
            "kind": next_kind,
            "parent_id": next_parent,
            "nature": next_nature,
        }
        if is_active is not None:
            fields["is_active"] = is_active
        try:
            self.db.update_code_node(node_id, **fields)
        except DuplicateValueError:
            raise DuplicateCodeError(next_code)

    def delete_node(self, node_id: int) -> None:
        """Delete a code node that has no children and no references.

        Raises:
            NotFoundError: If the node does not exist
            DependencyError: If the node has children or is referenced
        """
        node = self.db.get_code_node(node_id)
        if node is None:
            raise NotFoundError(not_found("Code node", node_id))

        counts = {"child code": self.db.count_code_node_children(node_id)}
        counts.update(self.db.count_code_node_references(node_id))
        if any(counts.values()):
            raise DependencyError(delete_blocked("code", node_id, counts))

        self.db.delete_code_node(node_id)
        logger.info("Code deleted", extra={"code": node.code, "node_id": node_id})

    def get_tree(self) -> list[dict[str, Any]]:
        """Return groups with nested generals and specifics.

        Returns:
            List of dicts with id, code, title, kind, is_active and children keys
        """
        nodes = self.db.list_code_nodes()
        by_parent: dict[Optional[int], list[CodeNode]] = {}
        for node in nodes:
            by_parent.setdefault(node.parent_id, []).append(node)

        def build(parent_id: Optional[int]) -> list[dict[str, Any]]:
            return [
                {
                    "id": node.id,
                    "code": node.code,
                    "title": node.title,
                    "kind": node.kind.value,
                    "is_active": node.is_active,
                    "children": build(node.id),
                }
                for node in by_parent.get(parent_id, [])
            ]

        return build(None)

    # Details

    def _require_detail(self, detail_id: int) -> Detail:
        detail = self.db.get_detail(detail_id)
        if detail is None:
            raise NotFoundError(not_found("Detail", detail_id))
        return detail

    @staticmethod
    def _check_detail_code(code: str) -> str:
        code = _clean(code, "Detail code")
        if not is_four_digit_code(code):
            raise ValidationError(f"Detail code '{code}' must be exactly 4 digits")
        return code

    def _validate_links(self, links: list[DetailLinkSpec]) -> list[DetailLinkSpec]:
        """De-duplicate by level and require every level to be an existing leaf."""
        unique: dict[int, DetailLinkSpec] = {}
        for link in links:
            if link.level_id in unique:
                continue
            if self.db.get_code_node(link.level_id) is None:
                raise NotFoundError(not_found("Code node", link.level_id))
            if not self.is_leaf(link.level_id):
                raise MustBeLeafError(link.level_id)
            unique[link.level_id] = link
        return list(unique.values())

    def create_detail(
        self,
        code: str,
        title: str,
        is_active: bool = True,
        links: Optional[list[DetailLinkSpec]] = None,
    ) -> int:
        """Create a user-defined detail.

        Args:
            code: 4-digit code, unique across all details
            title: Display title
            is_active: Whether the detail can be used in new documents
            links: Optional leaf code nodes to attach the detail to

        Returns:
            Detail ID

        Raises:
            ValidationError: If the code is not 4 digits or the title is empty
            DuplicateCodeError: If the code is taken
            MustBeLeafError: If a link targets a node with children
        """
        code = self._check_detail_code(code)
        title = _clean(title, "Title")
        if self.db.get_detail_by_code(code) is not None:
            raise DuplicateCodeError(code, "detail")
        valid_links = self._validate_links(links or [])

        try:
            with self.db.transaction():
                detail_id = self.db.create_detail(
                    code=code, title=title, kind=DetailKind.USER_DEFINED, is_active=is_active
                )
                for link in valid_links:
                    self.db.add_detail_link(detail_id, link)
        except DuplicateValueError:
            raise DuplicateCodeError(code, "detail")
        logger.info("Detail created", extra={"code": code, "detail_id": detail_id})
        return detail_id

    def get_detail(self, detail_id: int) -> Optional[Detail]:
        """Get detail by ID."""
        return self.db.get_detail(detail_id)

    def get_detail_by_code(self, code: str) -> Optional[Detail]:
        """Get detail by code."""
        return self.db.get_detail_by_code(code)

    def list_details(self, active_only: bool = False) -> list[Detail]:
        """List details ordered by code."""
        return self.db.list_details(active_only=active_only)

    def suggest_next_detail_code(self) -> str:
        """Return the smallest unused 4-digit detail code.

        Raises:
            NoCodesAvailableError: If 0001-9999 are all taken
        """
        taken = self.db.list_detail_codes() | self.db.list_cashbox_codes()
        for value in range(CODE_MIN, CODE_MAX + 1):
            candidate = format_code(value)
            if candidate not in taken:
                return candidate
        raise NoCodesAvailableError(CODE_MIN)

    def update_detail(
        self,
        detail_id: int,
        code: Optional[str] = None,
        title: Optional[str] = None,
        is_active: Optional[bool] = None,
        links: Optional[list[DetailLinkSpec]] = None,
    ) -> None:
        """Update a user-defined detail; ``links`` replaces all links when given.

        Raises:
            NotFoundError: If the detail does not exist
            ForbiddenError: If the detail is system-managed
            DuplicateCodeError: If the new code is taken
        """
        detail = self._require_detail(detail_id)
        if detail.is_system_managed:
            raise ForbiddenError(f"Detail {detail.code} is managed by the treasury and cannot be edited")

        fields: dict[str, Any] = {}
        if code is not None:
            code = self._check_detail_code(code)
            existing = self.db.get_detail_by_code(code)
            if existing is not None and existing.id != detail_id:
                raise DuplicateCodeError(code, "detail")
            fields["code"] = code
        if title is not None:
            fields["title"] = _clean(title, "Title")
        if is_active is not None:
            fields["is_active"] = is_active
        valid_links = self._validate_links(links) if links is not None else None

        try:
            with self.db.transaction():
                if fields:
                    self.db.update_detail(detail_id, **fields)
                if valid_links is not None:
                    self.db.replace_detail_links(detail_id, valid_links)
        except DuplicateValueError:
            raise DuplicateCodeError(fields.get("code", detail.code), "detail")

    def delete_detail(self, detail_id: int) -> None:
        """Delete an unlinked, unreferenced user-defined detail.

        Raises:
            NotFoundError: If the detail does not exist
            ForbiddenError: If the detail is system-managed
            DependencyError: If the detail is linked or referenced
        """
        detail = self._require_detail(detail_id)
        if detail.is_system_managed:
            raise ForbiddenError(f"Detail {detail.code} is managed by the treasury and cannot be deleted")

        counts = self.db.count_detail_references(detail_id)
        if any(counts.values()):
            raise DependencyError(delete_blocked("detail", detail_id, counts))
        self.db.delete_detail(detail_id)
        logger.info("Detail deleted", extra={"code": detail.code, "detail_id": detail_id})

    # Detail links

    def link_detail(
        self,
        detail_id: int,
        level_id: int,
        is_primary: bool = False,
        position: Optional[int] = None,
    ) -> None:
        """Attach a detail to a leaf code node.

        Raises:
            NotFoundError: If the detail or node does not exist
            MustBeLeafError: If the node has children
            ConflictError: If the link already exists
        """
        self._require_detail(detail_id)
        spec = DetailLinkSpec(level_id=level_id, is_primary=is_primary, position=position)
        self._validate_links([spec])
        if any(link.level_id == level_id for link in self.db.list_detail_links(detail_id)):
            raise ConflictError(f"Detail {detail_id} is already linked to code node {level_id}")
        self.db.add_detail_link(detail_id, spec)

    def set_detail_links(self, detail_id: int, links: list[DetailLinkSpec]) -> None:
        """Replace every link of a detail in one step."""
        self._require_detail(detail_id)
        valid_links = self._validate_links(links)
        with self.db.transaction():
            self.db.replace_detail_links(detail_id, valid_links)

    def unlink_detail(self, detail_id: int, level_id: int) -> None:
        """Remove a link.

        Raises:
            NotFoundError: If the link does not exist
        """
        if not self.db.delete_detail_link(detail_id, level_id):
            raise NotFoundError(f"Detail {detail_id} is not linked to code node {level_id}")

    def list_detail_links(self, detail_id: int) -> list[DetailLink]:
        """List links of a detail."""
        return self.db.list_detail_links(detail_id)
