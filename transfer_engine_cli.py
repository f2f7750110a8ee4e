#!/usr/bin/env python3
"""
Transfer Engine CLI - Command line interface for cascading exports and imports.

Usage:
    transfer-engine export --collection=NAME --output=FILE [--where=JSON] [--limit=N] [--config=DIR]
    transfer-engine import --collection=NAME --file=FILE [--config=DIR]
    transfer-engine collections list [--config=DIR]
    transfer-engine config show [--section=SECTION] [--config=DIR]
    transfer-engine config validate [--config=DIR]
    transfer-engine version
    transfer-engine --help

Commands:
    export              Export a collection and its relations
    import              Import an exported payload into a collection
    collections         List the declared collections and their relations
    config              Manage configuration
    version             Show version information

Options:
    -h --help           Show this help message
    --collection=NAME   Root collection of the transfer
    --output=FILE       Output file path
    --where=JSON        Where clause for the root collection, as JSON
    --limit=N           Maximum number of root records
    --file=FILE         Input file path
    --section=SECTION   Configuration section
    --config=DIR        Configuration directory
"""

import os
import sys
import asyncio
import json
import yaml
from typing import Any, Dict, Optional
import logging
import traceback

from transfer_core import __version__
from transfer_core.config.config_manager import ConfigManager, ConfigValidationError
from transfer_core.monitoring.structured_logger import configure_logging
from transfer_core.storage import StorageError
from transfer_core.storage.factory import create_storage
from transfer_core.transfer.exceptions import TransferError
from transfer_core.transfer.service import TransferService

logger = logging.getLogger(__name__)


class TransferEngineCLI:
    """Transfer engine command line interface."""

    def __init__(self):
        self.config_manager = None
        self.storage = None
        self.service = None

    def initialize(self, config_dir: Optional[str] = None):
        """Load configuration and set up logging."""
        self.config_manager = ConfigManager(config_dir)
        logging_config = self.config_manager.config.logging
        configure_logging(
            log_level=logging_config.level.value,
            json_format=logging_config.json_format,
            log_format=logging_config.format,
        )
        logger.info("CLI initialized successfully")

    async def _open_service(self, config_dir: Optional[str] = None) -> TransferService:
        self.initialize(config_dir)
        self.storage = create_storage()
        await self.storage.connect()
        self.service = TransferService.from_config(self.config_manager.config, self.storage)
        return self.service

    async def _close(self):
        if self.storage is not None:
            await self.storage.close()

    async def export_command(
        self,
        collection: str,
        output: str,
        where: Optional[str] = None,
        limit: Optional[str] = None,
        config_dir: Optional[str] = None,
    ):
        """Export a collection and its relations to a file."""
        print(f"📤 Exporting {collection} to {output}...")

        try:
            filter: Dict[str, Any] = {}
            if where:
                filter["where"] = json.loads(where)
            if limit:
                filter["limit"] = int(limit)

            service = await self._open_service(config_dir)
            response = await service.export_proxy(collection, filter)

            with open(output, "wb") as f:
                f.write(response.data)

            print("✅ Export completed successfully")
            print(f"📦 {response.metadata.filename} ({response.metadata.content_type})")
            print(f"📊 {response.metadata.content_length} bytes written to {output}")

        except (TransferError, StorageError, ConfigValidationError, ValueError, OSError) as e:
            print(f"❌ Export failed: {e}")
            sys.exit(1)
        finally:
            await self._close()

    async def import_command(self, collection: str, file: str, config_dir: Optional[str] = None):
        """Import an exported payload as one transaction."""
        print(f"📥 Importing {file} into {collection}...")

        try:
            service = await self._open_service(config_dir)
            result = await service.import_proxy(collection, file)

            print("✅ Import completed successfully")
            print(
                f"📊 Imported {result.entries_imported} entries, "
                f"created {result.records_created} records in {result.duration:.2f}s"
            )
            for warning in result.warnings:
                print(f"⚠️  {warning}")

        except (TransferError, StorageError, ConfigValidationError, ValueError, OSError) as e:
            print(f"❌ Import failed: {e}")
            sys.exit(1)
        finally:
            await self._close()

    def collections_command(self, action: str, config_dir: Optional[str] = None):
        """List declared collections."""
        if action != "list":
            print(f"❌ Unknown collections action: {action}")
            sys.exit(1)

        try:
            self.initialize(config_dir)
        except ConfigValidationError as e:
            print(f"❌ Failed to load configuration: {e}")
            sys.exit(1)

        collections = self.config_manager.config.collections
        if not collections:
            print("No collections declared")
            return

        print(f"📚 Collections ({len(collections)})")
        print("=" * 50)
        for collection in collections:
            format = collection.format or self.config_manager.config.transfer.default_format
            print(f"• {collection.name} [{format}]")
            for relation in collection.export_with:
                via = relation.foreign_field or relation.local_field
                kind = "foreign" if relation.foreign_field else "local"
                print(f"    → {relation.target_collection} ({kind}: {via})")

    def config_command(self, action: str, section: Optional[str] = None, config_dir: Optional[str] = None):
        """Manage configuration."""
        if action == "show":
            self._show_config(section, config_dir)
        elif action == "validate":
            self._validate_config(config_dir)
        else:
            print(f"❌ Unknown config action: {action}")
            sys.exit(1)

    def _show_config(self, section: Optional[str] = None, config_dir: Optional[str] = None):
        """Show configuration."""
        try:
            self.initialize(config_dir)
        except ConfigValidationError as e:
            print(f"❌ Failed to show config: {e}")
            sys.exit(1)

        config = self.config_manager.to_dict()
        if section:
            config = config.get(section, {})
            print(f"📋 Configuration - {section}")
        else:
            print("📋 Configuration")

        print("=" * 50)
        print(yaml.dump(config, indent=2))

    def _validate_config(self, config_dir: Optional[str] = None):
        """Validate configuration."""
        print("✅ Validating configuration...")

        try:
            self.initialize(config_dir)
        except ConfigValidationError as e:
            print(f"❌ Configuration validation failed: {e}")
            sys.exit(1)

        print("✅ Configuration is valid")
        for path in self.config_manager.loaded_files:
            print(f"   loaded {path}")

    def version_command(self):
        """Show version information."""
        print(f"Transfer Engine CLI v{__version__}")
        print("")
        print("Features:")
        print("• Cascading export of related collections into one archive")
        print("• Transactional import of exported archives")
        print("• json and csv codecs")
        print("• In-memory and SQLite storage backends")


def parse_args(argv=None):
    """Parse command line arguments manually."""
    argv = sys.argv[1:] if argv is None else argv

    if not argv:
        print(__doc__)
        sys.exit(1)

    command = argv[0]
    args: Dict[str, Any] = {}

    i = 1
    while i < len(argv):
        arg = argv[i]

        if arg.startswith("--"):
            if "=" in arg:
                key, value = arg[2:].split("=", 1)
                args[key] = value
            else:
                key = arg[2:]
                if i + 1 < len(argv) and not argv[i + 1].startswith("--"):
                    args[key] = argv[i + 1]
                    i += 1
                else:
                    args[key] = True
        else:
            args.setdefault("positional", []).append(arg)

        i += 1

    return command, args


async def main(argv=None):
    """Main CLI entry point."""
    try:
        command, args = parse_args(argv)
        cli = TransferEngineCLI()
        positional = args.get("positional", [])

        if command == "export":
            if "collection" not in args or "output" not in args:
                print("❌ Export requires --collection and --output arguments")
                sys.exit(1)

            await cli.export_command(
                collection=args["collection"],
                output=args["output"],
                where=args.get("where"),
                limit=args.get("limit"),
                config_dir=args.get("config"),
            )

        elif command == "import":
            if "collection" not in args or "file" not in args:
                print("❌ Import requires --collection and --file arguments")
                sys.exit(1)

            await cli.import_command(
                collection=args["collection"],
                file=args["file"],
                config_dir=args.get("config"),
            )

        elif command == "collections":
            cli.collections_command(
                action=positional[0] if positional else "list",
                config_dir=args.get("config"),
            )

        elif command == "config":
            if not positional:
                print("❌ Config requires an action (show, validate)")
                sys.exit(1)

            cli.config_command(
                action=positional[0],
                section=args.get("section"),
                config_dir=args.get("config"),
            )

        elif command == "version":
            cli.version_command()

        elif command in ["--help", "-h", "help"]:
            print(__doc__)

        else:
            print(f"❌ Unknown command: {command}")
            print("Run 'transfer-engine --help' for usage information")
            sys.exit(1)

    except KeyboardInterrupt:
        print("\n🛑 Operation cancelled")
        sys.exit(1)
    except Exception as e:
        print(f"❌ Unexpected error: {e}")
        if os.getenv("DEBUG"):
            traceback.print_exc()
        sys.exit(1)


def run():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
