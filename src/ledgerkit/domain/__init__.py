"""Domain layer for ledgerkit.

Services are imported lazily: ``ledgerkit.database`` imports
``ledgerkit.domain.entities``, and the services import ``ledgerkit.database``.
"""

_SERVICES = {
    "CodeCatalogService": "ledgerkit.domain.code_catalog",
    "FiscalYearService": "ledgerkit.domain.fiscal_year",
    "JournalService": "ledgerkit.domain.journal",
    "PostingEngine": "ledgerkit.domain.posting",
    "SettingsService": "ledgerkit.domain.settings",
    "TreasuryDocumentService": "ledgerkit.domain.documents",
    "TreasuryService": "ledgerkit.domain.treasury",
}

__all__ = sorted(_SERVICES)


def __getattr__(name):
    if name in _SERVICES:
        from importlib import import_module
        return getattr(import_module(_SERVICES[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
