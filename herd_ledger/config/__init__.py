"""Configuration package."""

from herd_ledger.config.settings import (
    AppSettings,
    BatchSettings,
    DepreciationDefaults,
    Settings,
    get_settings,
    validate_all_settings,
)
from herd_ledger.config.company import (
    Account,
    ChartOfAccounts,
    CompanySettings,
    load_company_settings,
)

__all__ = [
    "Account",
    "AppSettings",
    "BatchSettings",
    "ChartOfAccounts",
    "CompanySettings",
    "DepreciationDefaults",
    "Settings",
    "get_settings",
    "load_company_settings",
    "validate_all_settings",
]
