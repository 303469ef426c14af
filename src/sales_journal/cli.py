"""Command-line entry points for the sales journal.

All orchestration in this module is limited to argparse wiring, translating
command-line arguments into the raw field mappings and filter criteria
consumed by the business layer, and printing results. Startup goes through
:func:`core_logic.start_journal`, so any data left by the previous version of
the tool is migrated before the first command runs.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, MutableMapping, Optional, Sequence

from . import core_logic, data_manager, log, set_log_level
from .constants import FILTER_ALL, CustomerType, PaymentMethod


CURRENCY_SYMBOL = "₦"

SALE_FIELD_OPTIONS: Mapping[str, str] = {
    "date": "--date",
    "customer_type": "--customer-type",
    "item_name": "--item-name",
    "quantity": "--quantity",
    "unit_price": "--unit-price",
    "cost_per_unit": "--cost-per-unit",
    "discount": "--discount",
    "payment_method": "--payment-method",
    "notes": "--notes",
}


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="journal-cli",
        description="Command-line tools for the Sales Journal.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (searched upward from the working directory by default).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log debug detail to the console and the log file.",
    )
    return parser


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    write_specs = register_write_commands(subparsers)
    read_specs = register_read_commands(subparsers)
    return build_command_table([*write_specs.values(), *read_specs.values()])


def register_write_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare mutating CLI commands."""
    specs = {
        "add": register_add_command(subparsers),
        "edit": register_edit_command(subparsers),
        "delete": register_delete_command(subparsers),
        "reset": register_reset_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_read_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare read-only CLI commands such as listings and reports."""
    specs = {
        "show": register_show_command(subparsers),
        "list": register_list_command(subparsers),
        "summary": register_summary_command(subparsers),
        "export": register_export_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def add_sale_field_arguments(parser: argparse.ArgumentParser) -> None:
    """Attach the sale field options shared by ``add`` and ``edit``."""
    parser.add_argument("--date", default=None, help="Sale date as YYYY-MM-DD.")
    parser.add_argument(
        "--customer-type",
        choices=[member.value for member in CustomerType],
        default=None,
    )
    parser.add_argument("--item-name", default=None)
    parser.add_argument("--quantity", default=None)
    parser.add_argument("--unit-price", default=None)
    parser.add_argument("--cost-per-unit", default=None, help="Leave out when the cost is unknown.")
    parser.add_argument("--discount", default=None)
    parser.add_argument(
        "--payment-method",
        choices=[member.value for member in PaymentMethod],
        default=None,
    )
    parser.add_argument("--notes", dest="notes", default=None)


def add_filter_arguments(parser: argparse.ArgumentParser) -> None:
    """Attach the filter options shared by ``list``, ``summary`` and ``export``."""
    parser.add_argument("--date-from", default=None)
    parser.add_argument("--date-to", default=None)
    parser.add_argument(
        "--customer-type",
        choices=[FILTER_ALL, *(member.value for member in CustomerType)],
        default=FILTER_ALL,
    )
    parser.add_argument(
        "--payment-method",
        choices=[FILTER_ALL, *(member.value for member in PaymentMethod)],
        default=FILTER_ALL,
    )
    parser.add_argument("--search", dest="search", default="")


def register_add_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add``."""
    name = "add"
    help_text = "Record a new sale."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        add_sale_field_arguments(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add)


def register_edit_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``edit``."""
    name = "edit"
    help_text = "Replace a sale; options left out keep their current values."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--sale-id", required=True)
        add_sale_field_arguments(parser)
        parser.add_argument("--clear-cost", action="store_true", help="Mark the cost per unit as unknown.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_edit)


def register_delete_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``delete``."""
    name = "delete"
    help_text = "Delete a sale."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--sale-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_delete)


def register_reset_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``reset``."""
    name = "reset"
    help_text = "Delete ALL sales. Cannot be undone."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--yes", action="store_true", help="Confirm that every sale should be deleted.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_reset)


def register_show_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``show``."""
    name = "show"
    help_text = "Display a single sale."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--sale-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_show)


def register_list_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``list``."""
    name = "list"
    help_text = "Display sales, newest first."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        add_filter_arguments(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_list)


def register_summary_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``summary``."""
    name = "summary"
    help_text = "Display revenue, profit and customer totals."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        add_filter_arguments(parser)
        parser.add_argument("--today", action="store_true", help="Only show today's totals.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_summary)


def register_export_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``export``."""
    name = "export"
    help_text = "Export the filtered sales to a CSV or XLSX file."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        add_filter_arguments(parser)
        parser.add_argument("--output", type=Path, default=None, help="Destination file (defaults to sales-export-<today>).")
        parser.add_argument("--format", dest="export_format", choices=["csv", "xlsx"], default="csv")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_export)


def load_runtime_context(config_path: Optional[Path] = None) -> core_logic.RuntimeContext:
    """Resolve the runtime context for CLI operations, migrating legacy data.

    Without ``config_path`` the configuration is searched for upward from the
    working directory.
    """
    return core_logic.start_journal(Path(config_path) if config_path is not None else None)


def dispatch_command(
    context: core_logic.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def translate_sale_fields(args: argparse.Namespace) -> Dict[str, Any]:
    """Collect the sale options that were actually supplied on the command line."""
    return {
        field_name: getattr(args, field_name)
        for field_name in SALE_FIELD_OPTIONS
        if getattr(args, field_name, None) is not None
    }


def record_to_fields(record: data_manager.SaleRecord) -> Dict[str, Any]:
    """Express a stored sale as the raw field mapping accepted by validation."""
    return {
        "date": record.date,
        "customer_type": record.customer_type.value,
        "item_name": record.item_name,
        "quantity": record.quantity,
        "unit_price": record.unit_price,
        "cost_per_unit": record.cost_per_unit,
        "discount": record.discount,
        "payment_method": record.payment_method.value,
        "notes": record.notes,
    }


def translate_filters(args: argparse.Namespace) -> core_logic.FilterCriteria:
    """Translate CLI args into filter criteria."""
    return core_logic.FilterCriteria(
        date_from=args.date_from or None,
        date_to=args.date_to or None,
        customer_type=args.customer_type,
        payment_method=args.payment_method,
        search_text=args.search or "",
    )


def format_currency(amount: Decimal) -> str:
    """Format an amount as naira with thousands separators and at most two decimals."""
    text = f"{abs(amount):,.2f}"
    if text.endswith(".00"):
        text = text[:-3]
    elif text.endswith("0"):
        text = text[:-1]
    sign = "-" if amount < 0 else ""
    return f"{sign}{CURRENCY_SYMBOL}{text}"


def format_sale_line(record: data_manager.SaleRecord) -> str:
    """Render one sale as a single listing line."""
    return (
        f"{record.sale_id}  {record.date}  {record.customer_type.value:<9}  "
        f"{record.item_name} x{record.quantity} @ {format_currency(record.unit_price)}  "
        f"{record.payment_method.value:<8}  "
        f"revenue {format_currency(core_logic.line_revenue(record))}  "
        f"profit {format_currency(core_logic.line_profit(record))}"
    )


def format_summary(title: str, summary: core_logic.Summary) -> str:
    """Render a summary block."""
    return "\n".join(
        [
            title,
            f"  Total revenue:       {format_currency(summary.total_revenue)}",
            f"  Total profit:        {format_currency(summary.total_profit)}",
            f"  New customers:       {summary.new_customer_count}",
            f"  Returning customers: {summary.returning_customer_count}",
        ]
    )


def report_validation_errors(errors: Mapping[str, str]) -> int:
    """Log every validation message keyed by its CLI option and return exit code 2."""
    for field_name, message in errors.items():
        log.error("%s: %s", SALE_FIELD_OPTIONS.get(field_name, field_name), message)
    return 2


def run_add(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Validate the supplied fields and record a new sale."""
    fields = translate_sale_fields(args)
    fields.setdefault("date", date.today().isoformat())
    result = core_logic.validate_sale_fields(fields)
    if not result.is_valid:
        return report_validation_errors(result.errors)
    record = context.repository.create(result.command)
    print(f"Added sale {record.sale_id}")
    return 0


def run_edit(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Replace an existing sale, starting from its current values."""
    existing = context.repository.find_by_id(args.sale_id)
    if existing is None:
        log.warning("No sale with id '%s'; nothing to edit", args.sale_id)
        return 0
    fields = record_to_fields(existing)
    fields.update(translate_sale_fields(args))
    if getattr(args, "clear_cost", False):
        fields["cost_per_unit"] = None
    result = core_logic.validate_sale_fields(fields)
    if not result.is_valid:
        return report_validation_errors(result.errors)
    context.repository.update(args.sale_id, result.command)
    print(f"Updated sale {args.sale_id}")
    return 0


def run_delete(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Delete a sale; unknown identifiers are ignored."""
    context.repository.delete(args.sale_id)
    return 0


def run_reset(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Delete every sale once the caller confirmed with ``--yes``."""
    if not getattr(args, "yes", False):
        log.warning("Refusing to delete all sales without --yes")
        return 1
    context.repository.reset()
    return 0


def run_show(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print one sale."""
    record = context.repository.find_by_id(args.sale_id)
    if record is None:
        log.warning("No sale with id '%s'", args.sale_id)
        return 1
    print(format_sale_line(record))
    if record.cost_per_unit is not None:
        print(f"  Cost per unit: {format_currency(record.cost_per_unit)}")
    if record.discount:
        print(f"  Discount: {format_currency(record.discount)}")
    if record.notes:
        print(f"  Notes: {record.notes}")
    return 0


def run_list(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print the filtered sales."""
    records = core_logic.list_sales(context, translate_filters(args))
    if not records:
        print("No sales found.")
        return 0
    for record in records:
        print(format_sale_line(record))
    print(f"({len(records)})")
    return 0


def run_summary(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print the summary of the filtered sales and of today's sales."""
    all_records = context.repository.read_all()
    today_summary = core_logic.summarize_today(all_records, date.today())
    if not getattr(args, "today", False):
        filtered = core_logic.apply_filters(all_records, translate_filters(args))
        print(format_summary("Filtered sales", core_logic.summarize(filtered)))
    print(format_summary("Today", today_summary))
    return 0


def run_export(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Write the filtered sales in stored order; nothing is written when none match."""
    records = core_logic.apply_filters(context.repository.read_all(), translate_filters(args))
    if not records:
        print("No sales to export with current filters.")
        return 0
    destination = args.output or Path.cwd() / core_logic.export_filename(date.today(), args.export_format)
    written = core_logic.write_export(records, destination, export_format=args.export_format)
    print(f"Exported {len(records)} sales to {written}")
    return 0


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    log.error("%s", error)
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    if getattr(args, "verbose", False):
        set_log_level(logging.DEBUG)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        return dispatch_command(context, args, command_table)
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
