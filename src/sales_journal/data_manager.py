"""Data access layer for the sales journal.

This module provides low-level helpers that read from and write to the
string-keyed blob store backing the journal. Business logic belongs elsewhere.

The public API is designed around four responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Store lifecycle: opening the JSON file store or an in-memory store.
3. Record codecs: converting sale records and legacy records between their
   stored JSON shape and typed dataclasses.
4. Workbook export: laying exported rows out on an ``openpyxl`` worksheet.
"""


from __future__ import annotations

import configparser
import json
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from openpyxl.styles import Font
from openpyxl.workbook import Workbook

from . import log
from .constants import CustomerType, PaymentMethod


CONFIG_FILE_NAME = "config.ini"
EXPORT_SHEET_TITLE = "Sales"

# Largest decimal exponent accepted for stored or entered numbers, the range
# of a double-precision float.
MAX_DECIMAL_EXPONENT = 308


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    journal_name: str
    schema_version: str
    default_payment_method: PaymentMethod


@dataclass(frozen=True)
class SaleRecord:
    """In-memory view of one stored sale."""

    sale_id: str
    date: str
    customer_type: CustomerType
    item_name: str
    quantity: int
    unit_price: Decimal
    cost_per_unit: Optional[Decimal]
    discount: Decimal
    payment_method: PaymentMethod
    notes: str = ""


@dataclass(frozen=True)
class LegacyRecord:
    """In-memory view of one entry written by the previous version of the tool."""

    launch_date: Optional[str]
    result: Optional[str]
    pnl: Any


class KeyValueStore(Protocol):
    """String-keyed blob storage the repository mirrors its collection into."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryStore:
    """Dictionary-backed store, used by tests and embedding front-ends."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None) -> None:
        self._entries: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._entries.get(key)

    def set(self, key: str, value: str) -> None:
        self._entries[key] = value

    def remove(self, key: str) -> None:
        self._entries.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._entries)


class JsonFileStore:
    """Store every key as a string entry of a single JSON object on disk.

    The file is re-read on every access and rewritten in full on every
    ``set``/``remove`` so that the file always mirrors the last mutation. A
    missing file behaves as an empty store; an unreadable or malformed file is
    logged and also treated as empty so the journal can always start.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser().resolve()

    def _read_entries(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log.warning("Unable to read store file '%s': %s", self.path, exc)
            return {}
        if not isinstance(raw, dict):
            log.warning("Store file '%s' does not hold a JSON object", self.path)
            return {}
        return {str(key): value for key, value in raw.items() if isinstance(value, str)}

    def _write_entries(self, entries: Mapping[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(dict(entries), indent=2, ensure_ascii=False), encoding="utf-8")

    def get(self, key: str) -> Optional[str]:
        return self._read_entries().get(key)

    def set(self, key: str, value: str) -> None:
        entries = self._read_entries()
        entries[key] = value
        self._write_entries(entries)

    def remove(self, key: str) -> None:
        entries = self._read_entries()
        if entries.pop(key, None) is not None:
            self._write_entries(entries)

    def keys(self) -> List[str]:
        return list(self._read_entries())


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the data layer behaves.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification. Otherwise the function walks up from the current
    working directory toward the filesystem root looking for a file named
    ``CONFIG_FILE_NAME``; the first match is considered authoritative.

    Args:
        explicit_path (Path | None): Optional path to use instead of performing
            the upward search.

    Returns:
        Path: The path provided by the caller or the discovered configuration
            file.

    Raises:
        FileNotFoundError: If the search exhausts all parent directories without
            finding ``CONFIG_FILE_NAME``.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(
        f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Validation of individual entries happens in :func:`parse_settings`.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist after expansion and
            resolution.
    """

    config_path = config_path.expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path, encoding="utf-8")
    return parser


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    Relative ``DataFile`` entries are expanded against ``base_path`` when
    provided, or against the current working directory as a fallback.

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Directory used as the anchor for relative
            ``DataFile`` entries.

    Returns:
        ConfigSettings: Immutable settings container with resolved data file
            path, journal metadata, schema version and default payment method.

    Raises:
        KeyError: If a required section or option is missing, or if
            ``DefaultPaymentMethod`` names an unknown payment method.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        journal_name = parser.get("System", "JournalName")
        schema_version = parser.get("System", "SchemaVersion")
        default_payment_raw = parser.get("Defaults", "DefaultPaymentMethod")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    try:
        default_payment = PaymentMethod(default_payment_raw.strip().lower())
    except ValueError as exc:
        raise KeyError(f"Unknown default payment method: {default_payment_raw}") from exc

    data_file_path = Path(data_file_raw)
    if not data_file_path.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        data_file_path = (base_path / data_file_path).resolve()

    return ConfigSettings(
        data_file=data_file_path,
        journal_name=journal_name,
        schema_version=schema_version,
        default_payment_method=default_payment,
    )


def open_store(data_file: Path) -> JsonFileStore:
    """Open the JSON store file backing the journal.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist after expansion and
            resolution. Use ``setup_journal`` to create it.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Store file not found: {data_file}")
    return JsonFileStore(data_file)


def parse_decimal(value: Any) -> Optional[Decimal]:
    """Parse ``value`` into a finite :class:`~decimal.Decimal` or return ``None``.

    ``None``, blank text, booleans, ``NaN``, infinities, free text and numbers
    whose magnitude exceeds ``1e308`` all produce ``None``. Floats are parsed through ``str`` so ``0.1`` stays
    ``Decimal("0.1")``.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        number = value
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = Decimal(text)
        except InvalidOperation:
            return None
    if not number.is_finite():
        return None
    if not number.is_zero() and number.adjusted() > MAX_DECIMAL_EXPONENT:
        return None
    return number


def to_number(value: Any) -> Decimal:
    """Parse ``value`` leniently into a :class:`~decimal.Decimal`.

    Anything :func:`parse_decimal` rejects becomes ``Decimal("0")``. Financial
    totals must stay computable over malformed or legacy data, so this never
    raises.
    """

    number = parse_decimal(value)
    return Decimal("0") if number is None else number


def is_blank(value: Any) -> bool:
    """Return ``True`` for ``None`` and whitespace-only text."""

    return value is None or (isinstance(value, str) and not value.strip())


def format_number(value: Any) -> str:
    """Render a number in plain decimal notation (never exponent form)."""

    number = to_number(value)
    if number.is_zero():
        number = number.copy_abs()
    return format(number, "f")


def serialize_sale(record: SaleRecord) -> Dict[str, Any]:
    """Convert a sale record into its stored JSON object.

    Monetary values are written as decimal strings to keep their precision;
    an unknown ``cost_per_unit`` is written as an empty string.
    """

    return {
        "id": record.sale_id,
        "date": record.date,
        "customerType": record.customer_type.value,
        "itemName": record.item_name,
        "quantity": record.quantity,
        "unitPrice": format_number(record.unit_price),
        "costPerUnit": "" if record.cost_per_unit is None else format_number(record.cost_per_unit),
        "discount": format_number(record.discount),
        "paymentMethod": record.payment_method.value,
        "notes": record.notes,
    }


def _coerce_customer_type(raw: Any) -> CustomerType:
    try:
        return CustomerType(str(raw).strip().lower())
    except ValueError:
        log.warning("Unknown customer type %r in stored sale; treating it as returning", raw)
        return CustomerType.RETURNING


def _coerce_payment_method(raw: Any) -> PaymentMethod:
    try:
        return PaymentMethod(str(raw).strip().lower())
    except ValueError:
        log.warning("Unknown payment method %r in stored sale; treating it as other", raw)
        return PaymentMethod.OTHER


def _coerce_quantity(raw: Any, sale_id: Any) -> int:
    number = to_number(raw)
    quantity = int(number)
    if quantity != number:
        log.warning("Stored sale %r has fractional quantity %s; truncating to %d", sale_id, raw, quantity)
    return quantity


def deserialize_sale(raw: Mapping[str, Any]) -> SaleRecord:
    """Convert a stored JSON object into a typed sale record.

    Numeric fields go through :func:`to_number`, so values stored as numbers
    by older writers and values stored as strings both load, and garbage
    becomes zero. Unknown enum values fall back to ``returning`` and ``other``.

    Raises:
        KeyError: If the object carries no usable ``id``.
    """

    sale_id = raw.get("id")
    if is_blank(sale_id):
        raise KeyError("Stored sale has no id")

    cost_raw = raw.get("costPerUnit")
    notes = raw.get("notes")
    return SaleRecord(
        sale_id=str(sale_id),
        date=str(raw.get("date") or ""),
        customer_type=_coerce_customer_type(raw.get("customerType")),
        item_name=str(raw.get("itemName") or ""),
        quantity=_coerce_quantity(raw.get("quantity"), sale_id),
        unit_price=to_number(raw.get("unitPrice")),
        cost_per_unit=None if is_blank(cost_raw) else to_number(cost_raw),
        discount=to_number(raw.get("discount")),
        payment_method=_coerce_payment_method(raw.get("paymentMethod")),
        notes="" if notes is None else str(notes),
    )


def encode_sales(records: Iterable[SaleRecord]) -> str:
    """Serialize the whole collection into the single blob kept in the store."""

    return json.dumps([serialize_sale(record) for record in records], ensure_ascii=False)


def decode_sales(blob: Optional[str]) -> List[SaleRecord]:
    """Deserialize the collection blob.

    An absent blob, malformed JSON or a non-list payload yields an empty list.
    Elements that are not objects or have no id are skipped.
    """

    if not blob:
        return []
    try:
        payload = json.loads(blob)
    except ValueError as exc:
        log.warning("Stored sales blob is not valid JSON (%s); starting empty", exc)
        return []
    if not isinstance(payload, list):
        log.warning("Stored sales blob is not a list; starting empty")
        return []

    records: List[SaleRecord] = []
    for index, raw in enumerate(payload):
        if not isinstance(raw, dict):
            log.warning("Skipping stored sale #%d: not an object", index)
            continue
        try:
            records.append(deserialize_sale(raw))
        except KeyError as exc:
            log.warning("Skipping stored sale #%d: %s", index, exc)
    return records


def decode_legacy(blob: Optional[str]) -> List[LegacyRecord]:
    """Deserialize the blob written under the legacy key.

    Returns an empty list for absent, malformed or non-list data. Both the
    ``launchdate`` spelling the old tool wrote and ``launchDate`` are accepted.
    """

    if not blob:
        return []
    try:
        payload = json.loads(blob)
    except ValueError as exc:
        log.warning("Legacy blob is not valid JSON (%s); nothing to migrate", exc)
        return []
    if not isinstance(payload, list):
        log.warning("Legacy blob is not a list; nothing to migrate")
        return []

    records: List[LegacyRecord] = []
    for index, raw in enumerate(payload):
        if not isinstance(raw, dict):
            log.warning("Skipping legacy entry #%d: not an object", index)
            continue
        launch_date = raw.get("launchDate", raw.get("launchdate"))
        result = raw.get("result")
        records.append(
            LegacyRecord(
                launch_date=None if is_blank(launch_date) else str(launch_date).strip(),
                result=None if result is None else str(result),
                pnl=raw.get("pnl"),
            )
        )
    return records


def build_export_workbook(header: Sequence[str], rows: Iterable[Sequence[object]]) -> Workbook:
    """Lay exported rows out on a single worksheet with a bold header row."""

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = EXPORT_SHEET_TITLE
    sheet.append(list(header))
    bold_font = Font(bold=True)
    for cell in sheet[1]:
        cell.font = bold_font
    for row in rows:
        sheet.append(list(row))
    return workbook


def save_workbook(workbook: Workbook, destination: Path) -> Path:
    """Persist the workbook at ``destination``, creating parent folders on demand."""

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(dest)
    return dest
