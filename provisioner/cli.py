#!/usr/bin/env python3
"""
Operator commands for database provisioning.

Usage:
    provisioner status
    provisioner test
    provisioner migrate
    provisioner verify
    provisioner reset --yes
    provisioner check-security
"""
import argparse
import asyncio
import sys
from typing import List, Optional

from provisioner.config.settings import validate_environment
from provisioner.config.store import DIR_MODE, FILE_MODE, ConfigStore
from provisioner.db.connection import DatabaseConnectionManager
from provisioner.db.migrations import MigrationManager
from provisioner.errors import ProvisionerError
from provisioner.security.encryption import EncryptionError
from provisioner.setup.steps import SetupSteps, get_setup_status
from provisioner.utils.logger import configure_logging


def _require_config(store: ConfigStore):
    config = store.load()
    if config is None:
        print("ERROR: Database not configured. Run the setup wizard first.")
        return None
    return config


def cmd_status(store: ConfigStore) -> int:
    status = get_setup_status(store)
    print(f"Configured:     {'yes' if status['configured'] else 'no'}")
    print(f"Database type:  {status['databaseType'] or '-'}")
    print(f"Setup complete: {'yes' if status['setupComplete'] else 'no'}")
    if status.get("error"):
        print(f"ERROR: {status['error']}")
        return 1
    return 0


async def cmd_test(store: ConfigStore) -> int:
    config = _require_config(store)
    if config is None:
        return 1

    result = await DatabaseConnectionManager().test_connection(config.database_config)
    if result.success:
        print("✓ Connection successful")
        return 0

    print(f"✗ {result.error} ({result.error_type.value})")
    for suggestion in result.suggestions or []:
        print(f"  - {suggestion}")
    return 1


async def cmd_migrate(store: ConfigStore) -> int:
    config = _require_config(store)
    if config is None:
        return 1

    manager = MigrationManager(config.database_config, progress_callback=print)
    result = await manager.run_migrations()
    if not result.success:
        print(f"ERROR: {result.error}")
        if result.failed_table:
            print(f"Failed table: {result.failed_table}")
        return 1

    print(f"Tables: {', '.join(result.tables_created)}")
    return 0


async def cmd_verify(store: ConfigStore) -> int:
    config = _require_config(store)
    if config is None:
        return 1

    if await MigrationManager(config.database_config).verify_schema():
        print("✓ All required tables present")
        return 0
    print("✗ Schema is incomplete. Run 'provisioner migrate'.")
    return 1


async def cmd_reset(store: ConfigStore, confirmed: bool) -> int:
    if not confirmed:
        print("ERROR: Reset deletes all users, sessions and the database configuration.")
        print("Re-run with --yes to confirm.")
        return 1

    result = await SetupSteps(store=store).reset_setup()
    if not result["success"]:
        print(f"ERROR: {result['error']}")
        return 1

    print("✓ Setup reset")
    for table in result["tablesCleared"]:
        print(f"  - cleared {table}")
    for path in result["filesRemoved"]:
        print(f"  - removed {path}")
    return 0


def cmd_check_security(store: ConfigStore) -> int:
    issues = 0

    env = validate_environment(store.settings)
    for error in env.errors:
        print(f"✗ {error}")
        issues += 1
    for warning in env.warnings:
        print(f"! {warning}")

    report = store.inspect_permissions()
    if not report.supported:
        print("- Permission checks are not supported on this platform")
    elif not report.file_exists:
        print(f"- No configuration file at {store.config_path}")
    else:
        if report.file_ok:
            print(f"✓ Config file permissions: {oct(report.file_mode)}")
        else:
            print(f"✗ Config file permissions: {oct(report.file_mode)} (expected {oct(FILE_MODE)})")
            issues += 1
        if report.dir_ok:
            print(f"✓ Config directory permissions: {oct(report.dir_mode)}")
        else:
            print(f"✗ Config directory permissions: {oct(report.dir_mode)} (expected {oct(DIR_MODE)})")
            issues += 1

    location = store.verify_secure_location()
    if location.secure:
        print(f"✓ {location.message}")
    else:
        print(f"✗ {location.message}")
        issues += 1

    return 1 if issues else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="provisioner",
        description="Database provisioning commands"
    )
    parser.add_argument(
        "--log-level",
        help="Override LOG_LEVEL for this run"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("status", help="Show setup status")
    subparsers.add_parser("test", help="Test the saved database connection")
    subparsers.add_parser("migrate", help="Create the required tables")
    subparsers.add_parser("verify", help="Check that every required table exists")
    reset = subparsers.add_parser("reset", help="Clear all data and the configuration")
    reset.add_argument(
        "--yes",
        action="store_true",
        help="Confirm the reset"
    )
    subparsers.add_parser("check-security", help="Check environment and config file security")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    store = ConfigStore(check_location=False)

    try:
        if args.command == "status":
            return cmd_status(store)
        if args.command == "check-security":
            return cmd_check_security(store)
        if args.command == "test":
            return asyncio.run(cmd_test(store))
        if args.command == "migrate":
            return asyncio.run(cmd_migrate(store))
        if args.command == "verify":
            return asyncio.run(cmd_verify(store))
        if args.command == "reset":
            return asyncio.run(cmd_reset(store, args.yes))
    except (ProvisionerError, EncryptionError) as e:
        print(f"ERROR: {e}")
        return 1
    return 2


if __name__ == "__main__":
    sys.exit(main())
