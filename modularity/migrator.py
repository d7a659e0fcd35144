"""
Per-module database migrations.

Each module lists its migrations, in order, in
``Database/Migrations/migrator.json``::

    ["0001_create_invoices", "0002_add_invoice_status"]

Every entry names a file in ``Database/Migrations/`` that defines a
``Migration`` class::

    from modularity.migrator import ModuleMigration

    class Migration(ModuleMigration):
        connection = 'billing'

        def up(self, schema_editor):
            schema_editor.create_model(Invoice)

Applied migrations are recorded, as ``<namespace>.<identifier>``, in a
``migrations`` table on the connection they ran on, so running the
migrator again only applies what is new.
"""

import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import yaml
from django.apps.registry import Apps
from django.core.management.base import OutputWrapper
from django.core.management.color import no_style
from django.db import DEFAULT_DB_ALIAS, connections, models
from django.utils.functional import classproperty

from .exceptions import ManifestError, MigrationError, ModuleClassNotFound
from .importing import load_class
from .registry import ModuleDescriptor, ModuleRegistry


logger = logging.getLogger(__name__)

MIGRATOR_MANIFESTS = ('migrator.json', 'migrator.yaml', 'migrator.yml')


class ModuleMigration:
    """
    Base class for module migrations.

    Subclasses set ``connection`` to run against a database other than the
    default one and implement ``up``.
    """

    connection: Optional[str] = None

    def get_connection(self) -> str:
        return self.connection or DEFAULT_DB_ALIAS

    def up(self, schema_editor) -> None:
        pass


class MigrationLedger:
    """
    Records which module migrations were applied on one connection.

    The model is bound to its own app registry so it never takes part in
    the project's regular migrations.
    """

    _migration_class = None

    @classproperty
    def Migration(cls):
        if cls._migration_class is None:
            class Migration(models.Model):
                id = models.AutoField(primary_key=True)
                migration = models.CharField(max_length=255)
                batch = models.IntegerField()

                class Meta:
                    apps = Apps()
                    app_label = 'modularity'
                    db_table = 'migrations'

                def __str__(self):
                    return f"{self.migration} (batch {self.batch})"

            cls._migration_class = Migration
        return cls._migration_class

    def __init__(self, using: str = DEFAULT_DB_ALIAS):
        self.using = using
        self.connection = connections[using]

    @property
    def migration_qs(self):
        return self.Migration.objects.using(self.using)

    def has_table(self) -> bool:
        with self.connection.cursor() as cursor:
            tables = self.connection.introspection.table_names(cursor)
        return self.Migration._meta.db_table in tables

    def ensure_schema(self) -> bool:
        """
        Create the ledger table if it does not exist yet.

        Returns:
            True if the table was created
        """
        if self.has_table():
            return False

        with self.connection.schema_editor() as editor:
            editor.create_model(self.Migration)
        return True

    def is_applied(self, migration: str) -> bool:
        return self.migration_qs.filter(migration=migration).exists()

    def record_applied(self, migration: str, batch: int = 1) -> None:
        self.migration_qs.create(migration=migration, batch=batch)

    def applied_migrations(self) -> List[str]:
        if not self.has_table():
            return []
        return list(self.migration_qs.order_by('id').values_list('migration', flat=True))


def drop_all_schema_objects(using: str = DEFAULT_DB_ALIAS) -> List[str]:
    """
    Drop every view, table and type on a connection.

    Returns:
        Names of the dropped objects
    """
    connection = connections[using]
    quote_name = connection.ops.quote_name
    cascade = ' CASCADE' if connection.vendor == 'postgresql' else ''

    with connection.cursor() as cursor:
        table_info = connection.introspection.get_table_list(cursor)
        types = []
        if connection.vendor == 'postgresql':
            cursor.execute(
                "SELECT t.typname FROM pg_type t "
                "JOIN pg_namespace n ON n.oid = t.typnamespace "
                "WHERE n.nspname = current_schema() AND t.typtype = 'e'"
            )
            types = [row[0] for row in cursor.fetchall()]

    views = [info.name for info in table_info if info.type == 'v']
    tables = [info.name for info in table_info if info.type == 't']

    # Tables are dropped by name, not in dependency order.
    with connection.constraint_checks_disabled(), connection.schema_editor() as editor:
        for name in views:
            editor.execute(f"DROP VIEW IF EXISTS {quote_name(name)}{cascade}")
        for name in tables:
            editor.execute(f"DROP TABLE IF EXISTS {quote_name(name)}{cascade}")
        for name in types:
            editor.execute(f"DROP TYPE IF EXISTS {quote_name(name)}{cascade}")

    dropped = views + tables + types
    logger.info(f"Dropped {len(dropped)} schema objects on connection '{using}'")
    return dropped


class MigrationRunner:
    """
    Runs module migrations in module order.

    A migration that fails aborts the whole run; modules, manifests and
    classes that cannot be found are reported and skipped.
    """

    def __init__(self, registry: ModuleRegistry, stdout=None, style=None):
        self.registry = registry
        self.stdout = stdout or OutputWrapper(sys.stdout)
        self.style = style or no_style()
        self._ledgers = {}

    def run(self, module_name: Optional[str] = None, migration: Optional[str] = None,
            fresh: bool = False) -> int:
        """
        Migrate one module or all of them.

        Args:
            module_name: Only migrate this module
            migration: Only apply this migration
            fresh: Drop all tables of the default connection first

        Returns:
            Number of migrations applied

        Raises:
            MigrationError: If a migration fails to apply
        """
        if fresh:
            self.stdout.write(self.style.SUCCESS('Dropping all tables...'))
            drop_all_schema_objects(DEFAULT_DB_ALIAS)
            self._ledgers = {}
            self.stdout.write(self.style.SUCCESS('All tables dropped. Preparing migrations table...'))

        total_migrated = 0

        for name, module in self.registry.modules_in_scope(module_name).items():
            if module is None:
                self._warn(f"Module not found: {name}")
                continue

            manifest_path = self.find_migrator_manifest(module)
            if manifest_path is None:
                self._warn(f"Migrator manifest not found for module: {name}")
                continue

            self.registry.validate_dependencies(name)
            self.stdout.write(self.style.SUCCESS(f"Running migrations for module: {name}"))

            migrations = self.load_migration_list(manifest_path)
            if not migrations:
                self.stdout.write(self.style.NOTICE('  No migrations defined.'))
                continue

            to_run = self.filter_migrations(migrations, migration, name)
            if to_run is None:
                continue

            for identifier in to_run:
                if self._migrate(module, identifier):
                    total_migrated += 1

            self.stdout.write('')

        self.stdout.write(self.style.SUCCESS(
            f"All module migrations complete. Total migrated: {total_migrated}"
        ))
        logger.info(f"Module migrations complete, {total_migrated} applied")
        return total_migrated

    def find_migrator_manifest(self, module: ModuleDescriptor) -> Optional[Path]:
        migrations_dir = module.subpath('Database', 'Migrations')
        for manifest_name in MIGRATOR_MANIFESTS:
            candidate = migrations_dir / manifest_name
            if candidate.exists():
                return candidate
        return None

    def load_migration_list(self, path: Path) -> List[str]:
        """
        Read the ordered migration identifiers of a module.

        Anything other than a list reads as no migrations.
        """
        try:
            with open(path, 'r') as f:
                if path.suffix == '.json':
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            self.stdout.write(self.style.ERROR(f"  ✘ Failed to load migrator manifest: {path}"))
            raise ManifestError(f"Failed to read migrator manifest {path}: {e}") from e

        if not isinstance(data, list):
            return []
        return [str(identifier) for identifier in data]

    def filter_migrations(self, migrations: List[str], migration: Optional[str],
                          module_name: str) -> Optional[List[str]]:
        """
        Restrict the migrations to the requested one.

        Returns:
            Migrations to run, or None if the requested one is not listed
        """
        if migration is None:
            return migrations

        if migration not in migrations:
            self._warn(f"  Class {migration} not found in module {module_name}.")
            return None

        return [migration]

    def ledger(self, using: str) -> MigrationLedger:
        if using not in self._ledgers:
            ledger = MigrationLedger(using)
            if ledger.ensure_schema():
                self.stdout.write(self.style.SUCCESS(f"Migrations table created for connection: {using}"))
            self._ledgers[using] = ledger
        return self._ledgers[using]

    def ledger_name(self, module: ModuleDescriptor, identifier: str) -> str:
        """Name a migration is recorded under; unique across modules."""
        return f"{module.python_namespace}.{identifier}"

    def _migrate(self, module: ModuleDescriptor, identifier: str) -> bool:
        class_path = f"{module.python_namespace}.Database.Migrations.{identifier}.Migration"
        try:
            migration_class = load_class(module, class_path)
        except ModuleClassNotFound:
            self.stdout.write(self.style.ERROR(f"  ✘ Migration class not found: {class_path}"))
            logger.warning(f"Migration class not found: {class_path}")
            return False

        migration = migration_class()
        using = migration.get_connection()
        ledger = self.ledger(using)
        ledger_name = self.ledger_name(module, identifier)

        if ledger.is_applied(ledger_name):
            self.stdout.write(f"  {self.style.NOTICE('Already migrated:')} {identifier}")
            return False

        try:
            self.apply(migration, using)
            ledger.record_applied(ledger_name, batch=1)
        except Exception as e:
            self.stdout.write(self.style.ERROR(f"  ✘ Failed to migrate: {identifier}"))
            self.stdout.write(self.style.ERROR(f"    {e}"))
            logger.error(f"Migration {identifier} of module '{module.name}' failed: {e}", exc_info=True)
            raise MigrationError(f"Failed to migrate {identifier} of module '{module.name}': {e}") from e

        self.stdout.write(f"  {self.style.SUCCESS('✔ Migrated:')} {identifier}")
        return True

    def apply(self, migration: ModuleMigration, using: str) -> None:
        # The editor is released, and its transaction closed, on every exit path.
        with connections[using].schema_editor() as schema_editor:
            migration.up(schema_editor)

    def _warn(self, message: str) -> None:
        self.stdout.write(self.style.WARNING(message))
        logger.warning(message.strip())
