"""
Helpers for building throwaway module projects in tests.
"""

import json
import shutil
import tempfile
import textwrap
import uuid
from contextlib import contextmanager
from io import StringIO
from pathlib import Path
from typing import Dict, List, Optional
from unittest.mock import patch

from django.apps import apps
from django.core.management.base import OutputWrapper
from django.db import connections
from django.test import TransactionTestCase

from modularity.manifests import ManifestReader
from modularity.migrator import drop_all_schema_objects
from modularity.registry import ModuleRegistry


MIGRATION_TEMPLATE = '''
from modularity.migrator import ModuleMigration


class Migration(ModuleMigration):
    connection = {connection!r}

    def up(self, schema_editor):
        schema_editor.execute(
            'CREATE TABLE "{table}" (id integer PRIMARY KEY, name varchar(100))'
        )
'''

FAILING_MIGRATION_TEMPLATE = '''
from modularity.migrator import ModuleMigration


class Migration(ModuleMigration):
    connection = {connection!r}

    def up(self, schema_editor):
        raise RuntimeError({message!r})
'''


class ModuleProject:
    """
    A project tree with local modules, installed packages and manifests.

    Namespaces are unique per project so imported module code never leaks
    between tests.
    """

    def __init__(self):
        self.root = Path(tempfile.mkdtemp())
        self.token = uuid.uuid4().hex[:8]
        self.app_namespace = f"app_{self.token}"
        self.order: List[str] = []
        self.packages: List[Dict] = []

    def cleanup(self):
        shutil.rmtree(self.root, ignore_errors=True)

    def local_module(self, name: str) -> Path:
        path = self.root / 'app' / name
        path.mkdir(parents=True, exist_ok=True)
        return path

    def vendor_module(self, package: str, module_name: str, namespace: Optional[str] = None,
                      root: str = 'module', require: Optional[Dict[str, str]] = None) -> Path:
        """Add an installed package that ships a module."""
        namespace = namespace or f"{module_name.lower()}_{self.token}"
        self.add_package(package, require=require, extra={
            'django-module': {'name': module_name, 'namespace': namespace, 'root': root},
        })
        path = self.root / 'vendor' / package / root
        path.mkdir(parents=True, exist_ok=True)
        return path

    def add_package(self, name: str, require: Optional[Dict[str, str]] = None,
                    extra: Optional[Dict] = None) -> None:
        entry = {'name': name, 'require': require or {}}
        if extra:
            entry['extra'] = extra
        self.packages.append(entry)

    def write_manifests(self) -> None:
        self.write_file(self.root / 'modules.json', json.dumps({
            'name': 'acme/project',
            'extra': {'django-modules': {'order': self.order}},
        }))
        self.write_file(self.root / 'vendor' / 'installed.json', json.dumps({
            'packages': self.packages,
        }))

    def write_file(self, path: Path, content: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content))
        return path

    def set_migrations(self, module_path: Path, identifiers: List[str]) -> None:
        self.write_file(
            module_path / 'Database' / 'Migrations' / 'migrator.json',
            json.dumps(identifiers)
        )

    def add_migration(self, module_path: Path, identifier: str, table: str,
                      connection: Optional[str] = None) -> None:
        self.write_file(
            module_path / 'Database' / 'Migrations' / f"{identifier}.py",
            MIGRATION_TEMPLATE.format(connection=connection, table=table)
        )

    def add_failing_migration(self, module_path: Path, identifier: str,
                              message: str = 'boom', connection: Optional[str] = None) -> None:
        self.write_file(
            module_path / 'Database' / 'Migrations' / f"{identifier}.py",
            FAILING_MIGRATION_TEMPLATE.format(connection=connection, message=message)
        )

    def set_seeders(self, module_path: Path, source: str) -> None:
        self.write_file(module_path / 'Database' / 'Seeders' / '__init__.py', source)

    def reader(self) -> ManifestReader:
        return ManifestReader(self.root)

    def registry(self, reader: Optional[ManifestReader] = None) -> ModuleRegistry:
        self.write_manifests()
        return ModuleRegistry(
            reader or self.reader(),
            app_dir=self.root / 'app',
            app_namespace=self.app_namespace,
            vendor_dir=self.root / 'vendor',
        )


@contextmanager
def use_registry(registry: ModuleRegistry):
    """Make the management commands use the given registry."""
    with patch.object(apps.get_app_config('modularity'), 'registry', registry):
        yield registry


class ModuleDatabaseTestCase(TransactionTestCase):
    """
    Base class for tests that touch the database.

    Every test starts and ends with empty databases on both aliases, since
    module migrations create tables Django does not know about.
    """

    databases = {'default', 'secondary'}
    available_apps = ['modularity']

    def setUp(self):
        self.project = ModuleProject()
        self.out = StringIO()
        self.stdout = OutputWrapper(self.out)
        for alias in sorted(self.databases):
            drop_all_schema_objects(alias)

    def tearDown(self):
        for alias in sorted(self.databases):
            drop_all_schema_objects(alias)
        self.project.cleanup()

    @property
    def output(self) -> str:
        return self.out.getvalue()

    def table_names(self, using: str = 'default') -> List[str]:
        return connections[using].introspection.table_names()

    def create_table(self, name: str, using: str = 'default', rows: int = 0) -> None:
        connection = connections[using]
        with connection.schema_editor() as editor:
            editor.execute(f'CREATE TABLE "{name}" (id integer PRIMARY KEY, name varchar(100))')
        with connection.cursor() as cursor:
            for i in range(rows):
                cursor.execute(f'INSERT INTO "{name}" (name) VALUES (%s)', [f"row {i}"])

    def row_count(self, table: str, using: str = 'default') -> int:
        with connections[using].cursor() as cursor:
            cursor.execute(f'SELECT COUNT(*) FROM "{table}"')
            return cursor.fetchone()[0]
