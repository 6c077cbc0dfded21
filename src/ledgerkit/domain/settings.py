"""Settings store access.

A setting row has a unique ``code`` and either a ``special_id`` pointing at a
code node or a JSON ``value``. Values may be a bare number or string, or an
object such as ``{"id": 12}``, ``{"code": "1101"}``, ``{"value": 6100}`` or
``{"start": 6100}``.
"""

import os
from typing import Any, Mapping, Optional

from ledgerkit.database.base import Database
from ledgerkit.domain.entities import Setting
from ledgerkit.domain.errors import NotFoundError, ValidationError, not_found


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


class SettingsService:
    """Service for reading and writing settings."""

    def __init__(self, db: Database, environ: Optional[Mapping[str, str]] = None):
        """Initialize settings service.

        Args:
            db: Database instance
            environ: Environment used as the second lookup tier, defaults to os.environ
        """
        self.db = db
        self.environ = os.environ if environ is None else environ

    def get(self, code: str) -> Optional[Setting]:
        """Get setting by code."""
        return self.db.get_setting(code)

    def list_settings(self) -> list[Setting]:
        return self.db.list_settings()

    def set(
        self,
        code: str,
        name: Optional[str] = None,
        special_id: Optional[int] = None,
        value: Any = None,
    ) -> None:
        """Create or replace a setting.

        Raises:
            ValidationError: If the code is empty
            NotFoundError: If ``special_id`` names a missing code node
        """
        if not code or not code.strip():
            raise ValidationError("Setting code is required")
        if special_id is not None and self.db.get_code_node(special_id) is None:
            raise NotFoundError(not_found("Code node", special_id))
        self.db.upsert_setting(code.strip(), name=name, special_id=special_id, value=value)

    def delete(self, code: str) -> None:
        if not self.db.delete_setting(code):
            raise NotFoundError(not_found("Setting", code))

    def get_code_reference(self, code: str) -> Optional[int]:
        """Return the code node ID a setting points at, if any."""
        setting = self.db.get_setting(code)
        if setting is None:
            return None
        if setting.special_id is not None:
            return setting.special_id
        if isinstance(setting.value, dict):
            return _as_int(setting.value.get("id"))
        return None

    def get_literal_code(self, code: str) -> Optional[str]:
        """Return a literal code value stored in a setting, if any."""
        setting = self.db.get_setting(code)
        if setting is None or setting.value is None:
            return None
        value = setting.value
        if isinstance(value, dict):
            value = value.get("code")
        if isinstance(value, (str, int)) and not isinstance(value, bool):
            text = str(value).strip()
            return text or None
        return None

    def get_int(self, code: str, env_name: Optional[str], default: int) -> int:
        """Resolve a numeric setting: settings table, then environment, then default.

        Raises:
            ValidationError: If the environment variable is set but not an integer
        """
        setting = self.db.get_setting(code)
        if setting is not None:
            value = setting.value
            if isinstance(value, dict):
                for key in ("value", "start", "code"):
                    if key in value:
                        value = value[key]
                        break
            number = _as_int(value)
            if number is not None:
                return number

        if env_name:
            raw = self.environ.get(env_name)
            if raw is not None and raw.strip():
                number = _as_int(raw)
                if number is None:
                    raise ValidationError(f"Environment variable {env_name} must be an integer, got '{raw}'")
                return number
        return default
