"""Business logic layer for the sales journal.

This module holds the rules around the sale collection: validating user input
into commands, deriving line revenue and profit, owning the canonical
in-memory collection through :class:`SaleRepository`, converting records left
behind by the previous version of the tool, filtering, summarizing and
rendering exports. It consumes the Data Access Layer (DAL) for all I/O.
"""

from __future__ import annotations

import re
import secrets
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Union

from . import data_manager, log
from .constants import (
    EXPECTED_SCHEMA_VERSION,
    EXPORT_COLUMNS,
    EXPORT_FILE_PREFIX,
    FILTER_ALL,
    LEGACY_KEYS_TO_CLEAN,
    LEGACY_STORAGE_KEY,
    MIGRATED_ITEM_NAME,
    MIGRATED_NOTE,
    STORAGE_KEY,
    CustomerType,
    LegacyResult,
    PaymentMethod,
)


SaleRecord = data_manager.SaleRecord

DayLike = Union[date, str]

_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")

VALIDATION_MESSAGES: Mapping[str, str] = {
    "date": "Date is required",
    "customer_type": "Select customer type",
    "item_name": "Item name is required",
    "quantity": "Quantity must be at least 1",
    "unit_price": "Unit price is required",
    "cost_per_unit": "Cost per unit must be zero or positive",
    "discount": "Discount must be a number",
    "payment_method": "Select a payment method",
}


@dataclass(frozen=True)
class SaleCommand:
    """Validated user intent for creating or replacing a sale."""

    date: str
    customer_type: CustomerType
    item_name: str
    quantity: int
    unit_price: Decimal
    payment_method: PaymentMethod
    cost_per_unit: Optional[Decimal] = None
    discount: Decimal = Decimal("0")
    notes: str = ""


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of :func:`validate_sale_fields`.

    Exactly one of ``command`` and ``errors`` is meaningful: a valid result
    carries the command and no errors, an invalid one maps each failing field
    to a user-facing message.
    """

    command: Optional[SaleCommand]
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return self.command is not None and not self.errors


@dataclass(frozen=True)
class FilterCriteria:
    """Transient query narrowing a record set for display or export."""

    date_from: Optional[DayLike] = None
    date_to: Optional[DayLike] = None
    customer_type: Union[CustomerType, str] = FILTER_ALL
    payment_method: Union[PaymentMethod, str] = FILTER_ALL
    search_text: str = ""


@dataclass(frozen=True)
class Summary:
    """Aggregate totals over a record set."""

    total_revenue: Decimal = Decimal("0")
    total_profit: Decimal = Decimal("0")
    new_customer_count: int = 0
    returning_customer_count: int = 0


def _resolve_timestamp(candidate: Optional[datetime]) -> datetime:
    """Return ``candidate`` or the current UTC time when it is ``None``."""

    return candidate if candidate is not None else datetime.now(UTC)


def _as_iso_day(value: DayLike) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def _choice_value(value: Any) -> str:
    """Return the raw string behind an enum member or plain text."""

    return str(getattr(value, "value", value))


def generate_sale_id(*, prefix: str = "S", when: Optional[datetime] = None) -> str:
    """Generate a sortable, practically unique sale identifier.

    Args:
        prefix (str): Designator prepended to the identifier.
        when (datetime | None): Timestamp embedded in the identifier. When
            ``None`` the current UTC time is used.

    Returns:
        str: Identifier formed as ``{prefix}{YYYYMMDDHHMMSSffffff}{6 hex}``.

    The random tail keeps identifiers distinct when several sales are created
    within the same microsecond, for example during a migration batch.
    """
    when = _resolve_timestamp(when)
    return f"{prefix}{when.strftime('%Y%m%d%H%M%S%f')}{secrets.token_hex(3)}"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _parse_day(raw: Any) -> Optional[str]:
    if isinstance(raw, (date, datetime)):
        return _as_iso_day(raw)
    if data_manager.is_blank(raw):
        return None
    text = str(raw).strip()
    if not _ISO_DATE.fullmatch(text):
        return None
    try:
        return date.fromisoformat(text).isoformat()
    except ValueError:
        return None


def _parse_choice(enum_cls: Any, raw: Any) -> Any:
    if isinstance(raw, enum_cls):
        return raw
    if data_manager.is_blank(raw):
        return None
    try:
        return enum_cls(str(raw).strip().lower())
    except ValueError:
        return None


def _parse_quantity(raw: Any) -> Optional[int]:
    number = data_manager.parse_decimal(raw)
    if number is None or number != number.to_integral_value() or number < 1:
        return None
    return int(number)


def validate_sale_fields(fields: Mapping[str, Any]) -> ValidationResult:
    """Validate raw form values and build a :class:`SaleCommand`.

    ``fields`` uses the snake_case names of :class:`SaleCommand`. Required
    fields are ``date`` (ISO ``YYYY-MM-DD``), ``customer_type``, ``item_name``
    (non-blank), ``quantity`` (integer of at least 1), ``unit_price``
    (number of at least 0) and ``payment_method``. ``cost_per_unit`` may be
    blank (unknown cost) or a number of at least 0; ``discount`` may be blank
    (zero) or any number; ``notes`` is trimmed free text.

    Args:
        fields (Mapping[str, Any]): Raw values as collected by a front-end.

    Returns:
        ValidationResult: The command on success, otherwise a mapping of every
            failing field to the message shown to the user. This function never
            raises for bad input.
    """
    errors: Dict[str, str] = {}

    day = _parse_day(fields.get("date"))
    if day is None:
        errors["date"] = VALIDATION_MESSAGES["date"]

    customer_type = _parse_choice(CustomerType, fields.get("customer_type"))
    if customer_type is None:
        errors["customer_type"] = VALIDATION_MESSAGES["customer_type"]

    item_raw = fields.get("item_name")
    item_name = "" if item_raw is None else str(item_raw).strip()
    if not item_name:
        errors["item_name"] = VALIDATION_MESSAGES["item_name"]

    quantity = _parse_quantity(fields.get("quantity"))
    if quantity is None:
        errors["quantity"] = VALIDATION_MESSAGES["quantity"]

    unit_price = data_manager.parse_decimal(fields.get("unit_price"))
    if unit_price is None or unit_price < 0:
        errors["unit_price"] = VALIDATION_MESSAGES["unit_price"]

    cost_raw = fields.get("cost_per_unit")
    cost_per_unit: Optional[Decimal] = None
    if not data_manager.is_blank(cost_raw):
        cost_per_unit = data_manager.parse_decimal(cost_raw)
        if cost_per_unit is None or cost_per_unit < 0:
            errors["cost_per_unit"] = VALIDATION_MESSAGES["cost_per_unit"]

    discount_raw = fields.get("discount")
    discount: Optional[Decimal] = Decimal("0")
    if not data_manager.is_blank(discount_raw):
        discount = data_manager.parse_decimal(discount_raw)
        if discount is None:
            errors["discount"] = VALIDATION_MESSAGES["discount"]

    payment_method = _parse_choice(PaymentMethod, fields.get("payment_method"))
    if payment_method is None:
        errors["payment_method"] = VALIDATION_MESSAGES["payment_method"]

    notes_raw = fields.get("notes")
    notes = "" if notes_raw is None else str(notes_raw).strip()

    if errors:
        log.debug("Sale validation failed for fields: %s", ", ".join(sorted(errors)))
        return ValidationResult(command=None, errors=errors)

    command = SaleCommand(
        date=day,
        customer_type=customer_type,
        item_name=item_name,
        quantity=quantity,
        unit_price=unit_price,
        payment_method=payment_method,
        cost_per_unit=cost_per_unit,
        discount=discount,
        notes=notes,
    )
    return ValidationResult(command=command)


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


def line_revenue(record: Any) -> Decimal:
    """Return ``quantity * unit_price - discount`` for one record.

    Works on :class:`SaleRecord` and :class:`SaleCommand` alike. A missing
    discount counts as zero and non-numeric values coerce to zero through
    :func:`data_manager.to_number`, so stored data of any quality can always
    be totalled.
    """
    quantity = data_manager.to_number(getattr(record, "quantity", None))
    unit_price = data_manager.to_number(getattr(record, "unit_price", None))
    discount = data_manager.to_number(getattr(record, "discount", None))
    return quantity * unit_price - discount


def line_profit(record: Any) -> Decimal:
    """Return ``quantity * (unit_price - cost_per_unit) - discount``.

    When the cost is unknown (absent or not a number) the sale is treated as
    having zero cost and the profit equals :func:`line_revenue`. That fallback
    is the journal's business rule, not a missing branch.
    """
    cost = data_manager.parse_decimal(getattr(record, "cost_per_unit", None))
    if cost is None:
        return line_revenue(record)
    quantity = data_manager.to_number(getattr(record, "quantity", None))
    unit_price = data_manager.to_number(getattr(record, "unit_price", None))
    discount = data_manager.to_number(getattr(record, "discount", None))
    return quantity * (unit_price - cost) - discount


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


def build_sale_record(command: SaleCommand, *, sale_id: str) -> SaleRecord:
    """Materialize a :class:`SaleCommand` into a stored record."""

    return SaleRecord(
        sale_id=sale_id,
        date=command.date,
        customer_type=command.customer_type,
        item_name=command.item_name,
        quantity=command.quantity,
        unit_price=command.unit_price,
        cost_per_unit=command.cost_per_unit,
        discount=command.discount,
        payment_method=command.payment_method,
        notes=command.notes,
    )


class SaleRepository:
    """Owner of the canonical in-memory sale collection.

    Every mutation is mirrored to the store immediately as one JSON blob under
    ``storage_key``. Callers only ever receive copies of the collection.
    Identifiers handed out by an instance are remembered so that an id is
    never issued twice, even after the record holding it was deleted.
    """

    def __init__(self, store: data_manager.KeyValueStore, *, storage_key: str = STORAGE_KEY) -> None:
        self._store = store
        self._storage_key = storage_key
        self._records: List[SaleRecord] = []
        self._issued_ids: Set[str] = set()

    @property
    def storage_key(self) -> str:
        return self._storage_key

    def __len__(self) -> int:
        return len(self._records)

    def _next_id(self, when: Optional[datetime] = None) -> str:
        while True:
            candidate = generate_sale_id(when=when)
            if candidate not in self._issued_ids:
                self._issued_ids.add(candidate)
                return candidate

    def load(self) -> List[SaleRecord]:
        """Replace the in-memory collection with the stored blob.

        An absent or corrupt blob yields an empty collection. Records whose id
        repeats an earlier one are dropped.
        """
        records: List[SaleRecord] = []
        seen: Set[str] = set()
        for record in data_manager.decode_sales(self._store.get(self._storage_key)):
            if record.sale_id in seen:
                log.warning("Dropping stored sale with duplicate id '%s'", record.sale_id)
                continue
            seen.add(record.sale_id)
            records.append(record)
        self._records = records
        self._issued_ids.update(seen)
        log.info("Loaded %d sales from store key '%s'", len(records), self._storage_key)
        return list(records)

    def persist(self) -> None:
        """Write the whole collection to the store.

        Store write errors are logged and swallowed; the journal keeps working
        from memory and a failed write is not reported to the caller.
        """
        blob = data_manager.encode_sales(self._records)
        try:
            self._store.set(self._storage_key, blob)
        except OSError as exc:
            log.error("Failed to persist %d sales: %s", len(self._records), exc)
            return
        log.debug("Persisted %d sales to store key '%s'", len(self._records), self._storage_key)

    def read_all(self) -> List[SaleRecord]:
        return list(self._records)

    def find_by_id(self, sale_id: str) -> Optional[SaleRecord]:
        for record in self._records:
            if record.sale_id == sale_id:
                return record
        return None

    def create(self, command: SaleCommand, *, when: Optional[datetime] = None) -> SaleRecord:
        """Store a new sale under a fresh identifier and return it."""

        record = build_sale_record(command, sale_id=self._next_id(when))
        self._records.append(record)
        self.persist()
        log.info(
            "Recorded sale '%s' for '%s' (quantity=%s, revenue=%s)",
            record.sale_id,
            record.item_name,
            record.quantity,
            line_revenue(record),
        )
        return record

    def update(self, sale_id: str, command: SaleCommand) -> Optional[SaleRecord]:
        """Replace every field of an existing sale, keeping its identifier.

        Unknown identifiers are ignored and ``None`` is returned; no error is
        signalled.
        """
        for index, existing in enumerate(self._records):
            if existing.sale_id == sale_id:
                record = build_sale_record(command, sale_id=sale_id)
                self._records[index] = record
                self.persist()
                log.info("Updated sale '%s'", sale_id)
                return record
        log.info("Ignoring update for unknown sale id '%s'", sale_id)
        return None

    def delete(self, sale_id: str) -> None:
        """Remove the sale with ``sale_id`` if present, then persist."""

        remaining = [record for record in self._records if record.sale_id != sale_id]
        if len(remaining) == len(self._records):
            log.info("Ignoring delete for unknown sale id '%s'", sale_id)
        else:
            log.info("Deleted sale '%s'", sale_id)
        self._records = remaining
        self.persist()

    def ingest(self, records: Iterable[SaleRecord]) -> List[SaleRecord]:
        """Append records that already carry identifiers, then persist.

        A record whose id clashes with one already issued is stored under a
        fresh id instead. Returns the records as stored.
        """
        stored: List[SaleRecord] = []
        for record in records:
            if data_manager.is_blank(record.sale_id) or record.sale_id in self._issued_ids:
                record = replace(record, sale_id=self._next_id())
            else:
                self._issued_ids.add(record.sale_id)
            self._records.append(record)
            stored.append(record)
        self.persist()
        return stored

    def reset(self) -> None:
        """Drop every sale and remove the collection key from the store."""

        count = len(self._records)
        self._records = []
        try:
            self._store.remove(self._storage_key)
        except OSError as exc:
            log.error("Failed to remove store key '%s': %s", self._storage_key, exc)
        log.warning("Reset journal: removed %d sales", count)


# ---------------------------------------------------------------------------
# Legacy migration
# ---------------------------------------------------------------------------


def build_migrated_record(
    entry: data_manager.LegacyRecord,
    *,
    sale_id: str,
    today: str,
    payment_method: PaymentMethod,
) -> SaleRecord:
    """Convert one legacy entry into a current-schema sale.

    The old tool stored a single signed profit-or-loss figure; its magnitude
    becomes the unit price of a one-item sale. Only ``returningcustomers``
    maps to :attr:`CustomerType.RETURNING`: both ``null`` and
    ``newcustomers`` become :attr:`CustomerType.NEW`, as the old tool never
    distinguished "unmarked" from "new".
    """
    if entry.result == LegacyResult.RETURNING_CUSTOMERS.value:
        customer_type = CustomerType.RETURNING
    else:
        customer_type = CustomerType.NEW

    return SaleRecord(
        sale_id=sale_id,
        date=entry.launch_date or today,
        customer_type=customer_type,
        item_name=MIGRATED_ITEM_NAME,
        quantity=1,
        unit_price=abs(data_manager.to_number(entry.pnl)),
        cost_per_unit=None,
        discount=Decimal("0"),
        payment_method=payment_method,
        notes=MIGRATED_NOTE,
    )


def migrate_legacy(
    blob: Optional[str],
    *,
    today: DayLike,
    default_payment_method: PaymentMethod = PaymentMethod.CASH,
    when: Optional[datetime] = None,
) -> List[SaleRecord]:
    """Convert the legacy blob into current-schema sales.

    Args:
        blob (str | None): Raw text found under the legacy key, if any.
        today (date | str): Date used for entries without a launch date.
        default_payment_method (PaymentMethod): Payment method recorded on every
            migrated sale; the old tool did not track one.
        when (datetime | None): Timestamp embedded in generated identifiers.

    Returns:
        list[SaleRecord]: One record per usable legacy entry, each with a
            distinct identifier. Absent, empty or malformed blobs produce an
            empty list. Nothing is read from or written to a store.
    """
    today_iso = _as_iso_day(today)
    issued: Set[str] = set()
    migrated: List[SaleRecord] = []
    for entry in data_manager.decode_legacy(blob):
        sale_id = generate_sale_id(when=when)
        while sale_id in issued:
            sale_id = generate_sale_id(when=when)
        issued.add(sale_id)
        migrated.append(
            build_migrated_record(
                entry,
                sale_id=sale_id,
                today=today_iso,
                payment_method=default_payment_method,
            )
        )
    return migrated


# ---------------------------------------------------------------------------
# Filters and summaries
# ---------------------------------------------------------------------------


def _matches_choice(value: Any, wanted: Any) -> bool:
    if wanted is None:
        return True
    wanted_value = _choice_value(wanted)
    return wanted_value == FILTER_ALL or _choice_value(value) == wanted_value


def matches_criteria(record: SaleRecord, criteria: FilterCriteria) -> bool:
    """Return ``True`` when ``record`` satisfies every predicate of ``criteria``."""

    if criteria.date_from and record.date < _as_iso_day(criteria.date_from):
        return False
    if criteria.date_to and record.date > _as_iso_day(criteria.date_to):
        return False
    if not _matches_choice(record.customer_type, criteria.customer_type):
        return False
    if not _matches_choice(record.payment_method, criteria.payment_method):
        return False
    needle = (criteria.search_text or "").strip().lower()
    if needle:
        haystack = f"{record.item_name or ''} {record.notes or ''}".lower()
        if needle not in haystack:
            return False
    return True


def apply_filters(records: Iterable[SaleRecord], criteria: Optional[FilterCriteria] = None) -> List[SaleRecord]:
    """Return the records matching ``criteria``, in their original order.

    Date bounds are inclusive and compared as ISO text. ``"all"`` disables the
    customer type and payment method predicates; blank search text matches
    everything. The input is never modified.
    """
    criteria = criteria or FilterCriteria()
    return [record for record in records if matches_criteria(record, criteria)]


def sort_for_display(records: Iterable[SaleRecord]) -> List[SaleRecord]:
    """Order records newest date first, breaking ties by identifier descending."""

    return sorted(records, key=lambda record: (record.date, record.sale_id), reverse=True)


def summarize(records: Iterable[SaleRecord]) -> Summary:
    """Total revenue and profit and count customers by type.

    Anything that is not :attr:`CustomerType.NEW` is counted as returning.
    """
    total_revenue = Decimal("0")
    total_profit = Decimal("0")
    new_count = 0
    returning_count = 0
    for record in records:
        total_revenue += line_revenue(record)
        total_profit += line_profit(record)
        if _choice_value(record.customer_type) == CustomerType.NEW.value:
            new_count += 1
        else:
            returning_count += 1
    return Summary(
        total_revenue=total_revenue,
        total_profit=total_profit,
        new_customer_count=new_count,
        returning_customer_count=returning_count,
    )


def summarize_today(records: Iterable[SaleRecord], today: DayLike) -> Summary:
    """Summarize only the records dated exactly ``today``."""

    today_iso = _as_iso_day(today)
    return summarize(record for record in records if record.date == today_iso)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def _quote_text(value: Optional[str]) -> str:
    return '"' + (value or "").replace('"', '""') + '"'


def export_row(record: SaleRecord) -> List[object]:
    """Return the typed export values of ``record`` in :data:`EXPORT_COLUMNS` order."""

    return [
        record.date,
        _choice_value(record.customer_type),
        record.item_name,
        record.quantity,
        record.unit_price,
        record.cost_per_unit,
        record.discount,
        _choice_value(record.payment_method),
        record.notes,
        line_revenue(record),
        line_profit(record),
    ]


def to_delimited_text(records: Iterable[SaleRecord]) -> str:
    """Render records as comma-separated text with a header row.

    The header is always present, so an empty input yields the header alone;
    whether such a file is worth offering is the caller's decision. Item
    names and notes are always quoted with inner quotes doubled, an unknown
    cost is an empty cell and rows are separated by ``\\n`` without a trailing
    newline.
    """
    rows = [",".join(EXPORT_COLUMNS)]
    for record in records:
        cells = [
            record.date,
            _choice_value(record.customer_type),
            _quote_text(record.item_name),
            data_manager.format_number(record.quantity),
            data_manager.format_number(record.unit_price),
            "" if record.cost_per_unit is None else data_manager.format_number(record.cost_per_unit),
            data_manager.format_number(record.discount),
            _choice_value(record.payment_method),
            _quote_text(record.notes),
            data_manager.format_number(line_revenue(record)),
            data_manager.format_number(line_profit(record)),
        ]
        rows.append(",".join(cells))
    return "\n".join(rows)


def export_filename(today: DayLike, extension: str = "csv") -> str:
    """Return the conventional export filename, e.g. ``sales-export-2025-01-01.csv``."""

    return f"{EXPORT_FILE_PREFIX}-{_as_iso_day(today)}.{extension}"


def write_export(records: Iterable[SaleRecord], destination: Path, *, export_format: str = "csv") -> Path:
    """Write ``records`` to ``destination`` as ``csv`` text or an ``xlsx`` workbook.

    Raises:
        ValueError: If ``export_format`` is neither ``csv`` nor ``xlsx``.
    """
    records = list(records)
    if export_format == "csv":
        dest = Path(destination).expanduser().resolve()
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_text(to_delimited_text(records), encoding="utf-8")
    elif export_format == "xlsx":
        workbook = data_manager.build_export_workbook(
            EXPORT_COLUMNS,
            (export_row(record) for record in records),
        )
        dest = data_manager.save_workbook(workbook, destination)
    else:
        raise ValueError(f"Unsupported export format: {export_format}")
    log.info("Exported %d sales to '%s'", len(records), dest)
    return dest


# ---------------------------------------------------------------------------
# Runtime context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RuntimeContext:
    """Container for configuration, the store and the loaded repository."""

    settings: data_manager.ConfigSettings
    store: data_manager.KeyValueStore
    repository: SaleRepository


def build_runtime_context(settings: data_manager.ConfigSettings, store: data_manager.KeyValueStore) -> RuntimeContext:
    """Create a repository over ``store`` and load it."""

    repository = SaleRepository(store)
    repository.load()
    return RuntimeContext(settings=settings, store=store, repository=repository)


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Load configuration settings, open the store file and load the sales.

    Args:
        config_path (Path | None): Optional override path for the configuration
            file. When omitted the data layer searches upward from the current
            working directory.

    Raises:
        FileNotFoundError: If the configuration file or the store file cannot
            be located.
        KeyError: When mandatory configuration options are missing.
    """
    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    store = data_manager.open_store(settings.data_file)
    log.info("Loaded runtime context for store '%s'", settings.data_file)
    return build_runtime_context(settings, store)


def ensure_schema_version(context: RuntimeContext) -> None:
    """Validate that ``config.ini`` targets the schema this code understands.

    Raises:
        RuntimeError: If the configured schema version differs from
            ``EXPECTED_SCHEMA_VERSION``.
    """
    if context.settings.schema_version != EXPECTED_SCHEMA_VERSION:
        log.error(
            "Store schema mismatch: expected %s, found %s",
            EXPECTED_SCHEMA_VERSION,
            context.settings.schema_version,
        )
        raise RuntimeError(
            "Store schema mismatch: expected %s, found %s"
            % (EXPECTED_SCHEMA_VERSION, context.settings.schema_version)
        )

    log.debug("Schema version '%s' validated", context.settings.schema_version)


def run_legacy_migration(context: RuntimeContext, *, today: Optional[DayLike] = None) -> List[SaleRecord]:
    """Move records from the legacy key into the repository, once.

    When the legacy key converts to at least one record, the records are
    appended and persisted and every legacy key is removed, so a second run
    finds nothing. Legacy data that converts to nothing is left untouched.
    """
    blob = context.store.get(LEGACY_STORAGE_KEY)
    if blob is None:
        log.debug("No legacy data under '%s'", LEGACY_STORAGE_KEY)
        return []

    migrated = migrate_legacy(
        blob,
        today=today if today is not None else date.today(),
        default_payment_method=context.settings.default_payment_method,
    )
    if not migrated:
        log.info("Legacy key '%s' holds no convertible records", LEGACY_STORAGE_KEY)
        return []

    stored = context.repository.ingest(migrated)
    for key in LEGACY_KEYS_TO_CLEAN:
        context.store.remove(key)
    log.info("Migrated %d legacy records to the current format", len(stored))
    return stored


def start_journal(config_path: Optional[Path] = None, *, today: Optional[DayLike] = None) -> RuntimeContext:
    """Composition root: load the context, check the schema and migrate old data."""

    context = load_runtime_context(config_path)
    ensure_schema_version(context)
    run_legacy_migration(context, today=today)
    return context


def list_sales(context: RuntimeContext, criteria: Optional[FilterCriteria] = None) -> List[SaleRecord]:
    """Return the filtered sales in display order."""

    return sort_for_display(apply_filters(context.repository.read_all(), criteria))
