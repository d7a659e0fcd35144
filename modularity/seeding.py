"""
Per-module database seeders.

A module exposes its seeders from ``Database/Seeders``; ``DatabaseSeeder``
is the one run by default::

    from modularity.seeding import ModuleSeeder

    class DatabaseSeeder(ModuleSeeder):
        def run(self):
            self.call(CurrencySeeder, PlanSeeder)
"""

import logging
import sys
from typing import Iterable, List, Optional

from django.core.management.base import OutputWrapper
from django.core.management.color import no_style
from django.db import DEFAULT_DB_ALIAS, DatabaseError, connections
from django.db.migrations.recorder import MigrationRecorder

from .exceptions import ModuleClassNotFound, SeederError
from .importing import load_class
from .migrator import MigrationLedger
from .registry import ModuleRegistry


logger = logging.getLogger(__name__)

DEFAULT_SEEDER = 'DatabaseSeeder'


class ModuleSeeder:
    """Base class for module seeders."""

    def __init__(self, using: str = DEFAULT_DB_ALIAS):
        self.using = using

    @property
    def connection(self):
        return connections[self.using]

    def run(self) -> None:
        raise NotImplementedError('Seeders must implement run()')

    def call(self, *seeders: type) -> None:
        """Run other seeders on the same connection."""
        for seeder_class in seeders:
            logger.debug(f"Running nested seeder {seeder_class.__name__}")
            seeder_class(using=self.using).run()


class SeedRunner:
    """
    Runs module seeders in module order.

    Seeders that fail abort the whole run; missing modules and seeder
    classes are reported and skipped.
    """

    def __init__(self, registry: ModuleRegistry, using: Optional[str] = None,
                 stdout=None, style=None):
        self.registry = registry
        self.using = using or DEFAULT_DB_ALIAS
        self.stdout = stdout or OutputWrapper(sys.stdout)
        self.style = style or no_style()

    def run(self, module_name: Optional[str] = None, seeder: Optional[str] = None,
            fresh: bool = False) -> int:
        """
        Seed one module or all of them.

        Args:
            module_name: Only seed this module
            seeder: Seeder class to run instead of DatabaseSeeder
            fresh: Truncate all tables first

        Returns:
            Number of seeders run

        Raises:
            SeederError: If a seeder fails
        """
        if fresh:
            self.stdout.write(self.style.SUCCESS('Truncating all tables...'))
            self.truncate_all_tables()
            self.stdout.write(self.style.SUCCESS('All tables truncated.'))

        total_seeded = 0

        for name, module in self.registry.modules_in_scope(module_name).items():
            if module is None:
                self._warn(f"Module not found: {name}")
                continue

            self.registry.validate_dependencies(name)

            namespace = f"{module.python_namespace}.Database.Seeders"
            if seeder is not None:
                seeder_path = seeder if '.' in seeder else f"{namespace}.{seeder}"
                missing_message = f"  Seeder class {seeder_path} not found in module {name}."
            else:
                seeder_path = f"{namespace}.{DEFAULT_SEEDER}"
                missing_message = f"{DEFAULT_SEEDER} not found for module: {name}"

            try:
                seeder_class = load_class(module, seeder_path)
            except ModuleClassNotFound:
                self._warn(missing_message)
                continue

            self.stdout.write(self.style.SUCCESS(f"Running seeders for module: {name}"))

            try:
                seeder_class(using=self.using).run()
            except Exception as e:
                self.stdout.write(self.style.ERROR(f"  ✘ Failed to seed: {seeder_path}"))
                self.stdout.write(self.style.ERROR(f"    {e}"))
                logger.error(f"Seeder {seeder_path} of module '{name}' failed: {e}", exc_info=True)
                raise SeederError(f"Failed to seed {seeder_path}: {e}") from e

            self.stdout.write(f"  {self.style.SUCCESS('✔ Seeded:')} {seeder_path}")
            total_seeded += 1
            self.stdout.write('')

        self.stdout.write(self.style.SUCCESS(
            f"All module seeders complete. Total seeded: {total_seeded}"
        ))
        logger.info(f"Module seeders complete, {total_seeded} run")
        return total_seeded

    def truncate_all_tables(self) -> List[str]:
        """
        Empty every table on the connection.

        Tables that cannot be truncated are reported and skipped.

        Returns:
            Names of the truncated tables
        """
        truncated = []
        for table in self.tables_to_truncate():
            try:
                self._truncate_table(table)
            except DatabaseError as e:
                self._warn(f"  ⚠ Could not truncate table {table}: {e}")
                continue
            truncated.append(table)
        return truncated

    def tables_to_truncate(self) -> Iterable[str]:
        # The ledgers describe the schema, not data.
        protected = {
            MigrationLedger.Migration._meta.db_table,
            MigrationRecorder.Migration._meta.db_table,
        }
        connection = connections[self.using]
        with connection.cursor() as cursor:
            tables = connection.introspection.table_names(cursor)
        return [table for table in tables if table not in protected]

    def _truncate_table(self, table: str) -> None:
        connection = connections[self.using]
        statements = connection.ops.sql_flush(no_style(), [table])
        connection.ops.execute_sql_flush(statements)

    def _warn(self, message: str) -> None:
        self.stdout.write(self.style.WARNING(message))
        logger.warning(message.strip())
