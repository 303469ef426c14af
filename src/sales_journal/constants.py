"""Enumerations and fixed identifiers shared across the sales journal.

Keeps the storage keys, enum values and export layout in one place so that the
data access layer (DAL), the business logic layer (BLL) and the CLI agree on
the exact strings written to the store and to exported files.
"""

from __future__ import annotations

from enum import Enum


# Central schema version expected by all layers when validating config.ini.
EXPECTED_SCHEMA_VERSION = "1.0.0"

# Key holding the current-schema collection as a single JSON array.
STORAGE_KEY = "toriSalesJournal"

# Keys written by the previous version of the tool. Only the first one holds
# records; the rest are counters and balances that are dropped after migration.
LEGACY_STORAGE_KEY = "forextodo"
LEGACY_KEYS_TO_CLEAN: tuple[str, ...] = ("forextodo", "forexwins", "forexloss", "trimmed")

MIGRATED_ITEM_NAME = "Sale"
MIGRATED_NOTE = "Migrated from old journal"

# Sentinel accepted by the filter engine for "do not filter on this field".
FILTER_ALL = "all"

EXPORT_FILE_PREFIX = "sales-export"

EXPORT_COLUMNS: tuple[str, ...] = (
    "Date",
    "CustomerType",
    "ItemName",
    "Quantity",
    "UnitPrice",
    "CostPerUnit",
    "Discount",
    "PaymentMethod",
    "Notes",
    "LineRevenue",
    "LineProfit",
)


class CustomerType(str, Enum):
    """Enumerate the two customer buckets a sale can belong to."""

    NEW = "new"
    RETURNING = "returning"


class PaymentMethod(str, Enum):
    """Enumerate supported payment mechanisms for sales."""

    CASH = "cash"
    TRANSFER = "transfer"
    POS = "pos"
    OTHER = "other"


class LegacyResult(str, Enum):
    """Values the previous tool stored in a legacy record's ``result`` field."""

    NEW_CUSTOMERS = "newcustomers"
    RETURNING_CUSTOMERS = "returningcustomers"


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "STORAGE_KEY",
    "LEGACY_STORAGE_KEY",
    "LEGACY_KEYS_TO_CLEAN",
    "MIGRATED_ITEM_NAME",
    "MIGRATED_NOTE",
    "FILTER_ALL",
    "EXPORT_FILE_PREFIX",
    "EXPORT_COLUMNS",
    "CustomerType",
    "PaymentMethod",
    "LegacyResult",
]
