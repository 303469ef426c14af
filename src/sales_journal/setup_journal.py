"""Utility for initializing a sales journal installation.

The module doubles as a script (``python -m sales_journal.setup_journal``)
and as a library used by tests. It writes ``config.ini`` when asked to and
creates the empty JSON store file the configuration points at.
"""

from __future__ import annotations

import argparse
import configparser
import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from .constants import EXPECTED_SCHEMA_VERSION, PaymentMethod

CONFIG_FILE = "config.ini"
DEFAULT_DATA_FILE = "sales_journal.json"
DEFAULT_JOURNAL_NAME = "Sales Journal"


@dataclass(frozen=True)
class SetupSettings:
    """Type-safe representation of configuration values used during setup."""

    data_file: Path


def write_config(
    config_path: Path,
    *,
    data_file: str = DEFAULT_DATA_FILE,
    journal_name: str = DEFAULT_JOURNAL_NAME,
    schema_version: str = EXPECTED_SCHEMA_VERSION,
    default_payment_method: PaymentMethod = PaymentMethod.CASH,
    overwrite: bool = False,
) -> Path:
    """Write a ``config.ini`` with the sections the journal expects.

    Raises ``FileExistsError`` when the file exists and ``overwrite`` is off.
    """

    config_path = config_path.expanduser().resolve()
    if config_path.exists() and not overwrite:
        raise FileExistsError(f"Refusing to overwrite existing configuration: {config_path}")

    parser = configparser.ConfigParser()
    parser["System"] = {
        "DataFile": data_file,
        "JournalName": journal_name,
        "SchemaVersion": schema_version,
    }
    parser["Defaults"] = {"DefaultPaymentMethod": default_payment_method.value}

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as handle:
        parser.write(handle)
    return config_path


def load_settings(config_path: Path) -> SetupSettings:
    """Read ``config.ini`` and produce :class:`SetupSettings`.

    Relative paths inside the config file are resolved against the config file's
    directory, matching how the journal itself resolves them.
    """

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path, encoding="utf-8")

    try:
        data_file_raw = parser.get("System", "DataFile")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    data_file_path = Path(data_file_raw)
    if not data_file_path.is_absolute():
        data_file_path = (config_path.parent / data_file_path).resolve()

    return SetupSettings(data_file=data_file_path)


def create_store_file(destination: Path, *, overwrite: bool = False) -> Path:
    """Create an empty JSON store at ``destination``.

    When ``overwrite`` is ``False`` (the default) this function raises
    ``FileExistsError`` if the target already exists.
    """

    destination = destination.expanduser().resolve()
    if destination.exists() and not overwrite:
        raise FileExistsError(
            f"Refusing to overwrite existing store file: {destination}"
        )

    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(json.dumps({}), encoding="utf-8")
    return destination


def run_from_config(config_path: Path, *, overwrite: bool = False) -> Path:
    """Create the store file named by ``config_path``."""

    settings = load_settings(config_path)
    return create_store_file(settings.data_file, overwrite=overwrite)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the setup script."""

    parser = argparse.ArgumentParser(description="Initialize the sales journal data file")
    parser.add_argument(
        "--config",
        default=CONFIG_FILE,
        help="Path to configuration file (default: config.ini)",
    )
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Write a default configuration file first.",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite existing files if appropriate.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the setup script."""

    args = parse_args(argv)
    config_path = Path(args.config).expanduser().resolve()

    print("--- Sales Journal Setup ---")
    print(f"Using configuration: {config_path}")

    try:
        if args.init_config:
            write_config(config_path, overwrite=args.force)
            print(f"Wrote configuration '{config_path}'.")
        output_path = run_from_config(config_path, overwrite=args.force)
    except FileNotFoundError as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    except KeyError as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    except FileExistsError as exc:
        print(f"\n[ERROR] {exc}")
        print("Run with --force to overwrite the existing file if appropriate.")
        return 1
    except (PermissionError, OSError) as exc:
        print(f"\n[ERROR] Unable to write store file: {exc}")
        return 1

    print(f"\n[SUCCESS] Created store file at '{output_path}'.")
    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via manual runs
    sys.exit(main())
