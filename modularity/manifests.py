"""
Manifest reader for the project and installed-package manifests.

The project manifest declares the module order::

    {"extra": {"django-modules": {"order": ["Core", "Billing"]}}}

The installed-packages manifest lists every installed package, with
optional module metadata under ``extra``::

    {"packages": [
        {"name": "acme/billing",
         "require": {"python": ">=3.10", "acme/money": "^2.0"},
         "extra": {"django-module": {"name": "Billing",
                                     "namespace": "acme_billing",
                                     "root": "module"}}}
    ]}
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .exceptions import ManifestError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModuleExtra:
    """Module metadata declared by an installed package."""
    name: str
    namespace: str = ''
    root: str = ''


@dataclass(frozen=True)
class InstalledPackage:
    """An entry of the installed-packages manifest."""
    name: str
    require: Dict[str, str] = field(default_factory=dict)
    module: Optional[ModuleExtra] = None


class ManifestReader:
    """
    Reads and caches the project and installed-package manifests.

    A missing manifest is not an error: it reads as empty. A manifest that
    exists but cannot be parsed raises ManifestError.
    """

    def __init__(
        self,
        base_dir: Path,
        project_manifest: str = 'modules.json',
        installed_manifest: str = 'vendor/installed.json',
        order_key: str = 'django-modules',
        package_key: str = 'django-module',
    ):
        self.base_dir = Path(base_dir)
        self.project_manifest = self.base_dir / project_manifest
        self.installed_manifest = self.base_dir / installed_manifest
        self.order_key = order_key
        self.package_key = package_key
        self._order: Optional[List[str]] = None
        self._packages: Optional[Dict[str, InstalledPackage]] = None

    def read_project_order(self) -> List[str]:
        """
        Get the ordered list of module names from the project manifest.

        Returns:
            Module names in declaration order, empty if the manifest is absent
        """
        if self._order is None:
            data = self._load(self.project_manifest)
            extra = self._mapping(data.get('extra'), 'extra', self.project_manifest)
            section = self._mapping(
                extra.get(self.order_key), f"extra.{self.order_key}", self.project_manifest
            )
            order = section.get('order', [])

            if not isinstance(order, list) or not all(isinstance(name, str) for name in order):
                raise ManifestError(
                    f"'extra.{self.order_key}.order' in {self.project_manifest} "
                    f"must be a list of module names"
                )

            self._order = list(order)
            logger.debug(f"Module order: {self._order}")

        return list(self._order)

    def read_installed_packages(self) -> Dict[str, InstalledPackage]:
        """
        Get all installed packages keyed by package name.

        Returns:
            Packages in manifest order, empty if the manifest is absent
        """
        if self._packages is None:
            data = self._load(self.installed_manifest)
            packages = data.get('packages', [])

            if not isinstance(packages, list):
                raise ManifestError(f"'packages' in {self.installed_manifest} must be a list")

            self._packages = {}
            for entry in packages:
                package = self._parse_package(entry)
                self._packages[package.name] = package

            logger.debug(f"Read {len(self._packages)} installed packages")

        return dict(self._packages)

    def _parse_package(self, entry: Any) -> InstalledPackage:
        if not isinstance(entry, dict) or not entry.get('name'):
            raise ManifestError(
                f"Invalid package entry in {self.installed_manifest}: {entry!r}"
            )

        require = entry.get('require') or {}
        if not isinstance(require, dict):
            raise ManifestError(f"'require' of package '{entry['name']}' must be a mapping")

        module = None
        extra = self._mapping(
            entry.get('extra'), f"packages.{entry['name']}.extra", self.installed_manifest
        ).get(self.package_key)
        if extra:
            if not isinstance(extra, dict):
                raise ManifestError(
                    f"'extra.{self.package_key}' of package '{entry['name']}' must be a mapping"
                )
            module = ModuleExtra(
                name=extra.get('name', ''),
                namespace=extra.get('namespace', ''),
                root=extra.get('root', ''),
            )

        return InstalledPackage(name=entry['name'], require=dict(require), module=module)

    def _mapping(self, value: Any, description: str, path: Path) -> Dict[str, Any]:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ManifestError(f"'{description}' in {path} must be a mapping")
        return value

    def _load(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            logger.debug(f"Manifest not found, treating as empty: {path}")
            return {}

        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ManifestError(f"Failed to read manifest {path}: {e}") from e

        if not isinstance(data, dict):
            raise ManifestError(f"Manifest {path} must contain a JSON object")

        return data
