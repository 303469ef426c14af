"""Shared pytest fixtures and utilities for sales journal tests."""

from __future__ import annotations

import argparse
import sys
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterator

import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from sales_journal import cli, constants, core_logic, data_manager  # noqa: E402
from sales_journal.setup_journal import create_store_file, write_config  # noqa: E402

DEFAULT_SCHEMA_VERSION = constants.EXPECTED_SCHEMA_VERSION


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    store_path: Path
    schema_version: str
    journal_name: str


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


@pytest.fixture
def config_factory(tmp_path: Path) -> Callable[..., ConfigBundle]:
    """Provide a callable that creates config/store bundles on demand."""

    def _create_config(
        *,
        journal_name: str = "Test Journal",
        schema_version: str = DEFAULT_SCHEMA_VERSION,
        default_payment_method: constants.PaymentMethod = constants.PaymentMethod.CASH,
    ) -> ConfigBundle:
        bundle_dir = tmp_path / f"bundle_{uuid.uuid4().hex}"
        bundle_dir.mkdir(parents=True, exist_ok=True)
        config_path = write_config(
            bundle_dir / "config.ini",
            data_file="sales_journal.json",
            journal_name=journal_name,
            schema_version=schema_version,
            default_payment_method=default_payment_method,
        )
        store_path = create_store_file(bundle_dir / "sales_journal.json")
        return ConfigBundle(
            directory=bundle_dir,
            config_path=config_path,
            store_path=store_path,
            schema_version=schema_version,
            journal_name=journal_name,
        )

    return _create_config


@pytest.fixture
def config_file(config_factory: Callable[..., ConfigBundle]) -> Path:
    """Convenience fixture returning only the config path."""

    return config_factory().config_path


@pytest.fixture
def runtime_context(config_file: Path) -> core_logic.RuntimeContext:
    """Start the journal for tests through the public API."""

    return core_logic.start_journal(config_file)


# ---------------------------------------------------------------------------
# Core logic fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> data_manager.ConfigSettings:
    """Provide default configuration settings for runtime context tests."""

    return data_manager.ConfigSettings(
        data_file=tmp_path / "sales_journal.json",
        journal_name="Test Journal",
        schema_version=constants.EXPECTED_SCHEMA_VERSION,
        default_payment_method=constants.PaymentMethod.CASH,
    )


@pytest.fixture
def store() -> data_manager.MemoryStore:
    """Return an empty in-memory store."""

    return data_manager.MemoryStore()


@pytest.fixture
def repository(store: data_manager.MemoryStore) -> core_logic.SaleRepository:
    """Return a repository over the in-memory store."""

    return core_logic.SaleRepository(store)


@pytest.fixture
def context(settings: data_manager.ConfigSettings, store: data_manager.MemoryStore) -> core_logic.RuntimeContext:
    """Assemble a runtime context from injected settings and an in-memory store."""

    return core_logic.build_runtime_context(settings, store)


@pytest.fixture
def sale_fields() -> Callable[..., Dict[str, Any]]:
    """Factory for raw sale fields that pass validation."""

    def _fields(**overrides: Any) -> Dict[str, Any]:
        fields: Dict[str, Any] = {
            "date": "2025-01-01",
            "customer_type": "new",
            "item_name": "Soap",
            "quantity": 2,
            "unit_price": 500,
            "discount": 0,
            "payment_method": "cash",
        }
        fields.update(overrides)
        return fields

    return _fields


@pytest.fixture
def make_command(sale_fields: Callable[..., Dict[str, Any]]) -> Callable[..., core_logic.SaleCommand]:
    """Factory for validated sale commands."""

    def _command(**overrides: Any) -> core_logic.SaleCommand:
        result = core_logic.validate_sale_fields(sale_fields(**overrides))
        assert result.is_valid, result.errors
        return result.command

    return _command


# ---------------------------------------------------------------------------
# CLI layer fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_parser() -> argparse.ArgumentParser:
    """Return a fresh CLI parser instance for tests."""

    return argparse.ArgumentParser(prog="journal-cli", description="Journal CLI")


@pytest.fixture
def subparsers_action(
    cli_parser: argparse.ArgumentParser,
) -> argparse._SubParsersAction[argparse.ArgumentParser]:
    """Return the subparser action used to register commands."""

    return cli_parser.add_subparsers(dest="command")


@pytest.fixture
def command_table_entry() -> tuple[str, cli.CommandSpec]:
    """Provide a placeholder command table entry for dispatch tests."""

    def execute(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
        execute.__dict__["called"] = True
        return 0

    def register(
        subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    ) -> argparse.ArgumentParser:
        return subparsers.add_parser("catalog-test")

    spec = cli.CommandSpec(
        name="catalog-test",
        help_text="help",
        register=register,
        execute=execute,
    )
    return "catalog-test", spec


@pytest.fixture
def command_spec_iterable() -> list[cli.CommandSpec]:
    """Provide a list of command specs for indexing tests."""

    def _make_spec(name: str) -> cli.CommandSpec:
        return cli.CommandSpec(
            name,
            f"{name} help",
            lambda subparsers: subparsers.add_parser(name),
            lambda *_: 0,
        )

    return [_make_spec("alpha"), _make_spec("beta"), _make_spec("gamma")]
