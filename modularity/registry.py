"""
Module registry for resolving modules.

The registry turns the module order of the project manifest into
resolved modules (name, namespace, path), looking first for local
modules under the application directory and then for installed packages
that declare module metadata. It also validates the packages each
module requires against what is installed.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from django.apps import apps

from .conf import get_settings
from .exceptions import AmbiguousModuleError, MissingDependenciesError
from .manifests import InstalledPackage, ManifestReader


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModuleDescriptor:
    """A resolved module."""
    name: str
    namespace: str
    path: Path

    @property
    def python_namespace(self) -> str:
        """Dotted import path of the module (``Acme\\Billing`` reads as ``Acme.Billing``)."""
        return self.namespace.replace('\\', '.').strip('.')

    def subpath(self, *parts: str) -> Path:
        return self.path.joinpath(*parts)


class ModuleRegistry:
    """
    Resolves modules and their declared dependencies.

    Every lookup is cached for the lifetime of the registry, including
    negative ones. Build one registry per process (the app config owns it)
    and a fresh one wherever manifests may have changed.
    """

    def __init__(
        self,
        reader: ManifestReader,
        app_dir: Path,
        app_namespace: str = 'app',
        vendor_dir: Optional[Path] = None,
        ignored_requirements: Iterable[str] = ('python', 'django'),
        install_command: str = 'pip install',
    ):
        self.reader = reader
        self.app_dir = Path(app_dir)
        self.app_namespace = app_namespace
        self.vendor_dir = Path(vendor_dir) if vendor_dir else reader.base_dir / 'vendor'
        self.ignored_requirements = {name.lower() for name in ignored_requirements}
        self.install_command = install_command

        self._info_cache: Dict[str, Optional[ModuleDescriptor]] = {}
        self._deps_cache: Dict[str, Dict[str, str]] = {}
        self._all_modules: Optional[Dict[str, ModuleDescriptor]] = None

    @classmethod
    def from_settings(cls) -> 'ModuleRegistry':
        """Build a registry from the ``MODULARITY`` settings."""
        options = get_settings()
        base_dir = options['BASE_DIR']

        reader = ManifestReader(
            base_dir,
            project_manifest=options['PROJECT_MANIFEST'],
            installed_manifest=options['INSTALLED_MANIFEST'],
            order_key=options['ORDER_KEY'],
            package_key=options['PACKAGE_KEY'],
        )

        return cls(
            reader,
            app_dir=base_dir / options['APP_DIR'],
            app_namespace=options['APP_NAMESPACE'],
            vendor_dir=base_dir / options['VENDOR_DIR'],
            ignored_requirements=options['IGNORED_REQUIREMENTS'],
            install_command=options['INSTALL_COMMAND'],
        )

    def module_order(self) -> List[str]:
        """Get the module names in project order."""
        return self.reader.read_project_order()

    def resolve(self, module_name: str) -> Optional[ModuleDescriptor]:
        """
        Resolve a module by name.

        Local modules win over installed packages. Installed packages are
        matched case-insensitively on their declared module name.

        Args:
            module_name: The module name

        Returns:
            The resolved module or None if it cannot be found

        Raises:
            AmbiguousModuleError: If several packages declare the module
        """
        if module_name in self._info_cache:
            return self._info_cache[module_name]

        descriptor = None
        local_path = self._local_path(module_name)

        if local_path is not None:
            descriptor = ModuleDescriptor(
                name=module_name,
                namespace=f"{self.app_namespace}.{module_name}",
                path=local_path,
            )
        else:
            package = self._find_package(module_name)
            if package is not None:
                descriptor = ModuleDescriptor(
                    name=module_name,
                    namespace=package.module.namespace,
                    path=self.vendor_dir / package.name / package.module.root,
                )

        if descriptor is None:
            logger.debug(f"Module '{module_name}' could not be resolved")
        else:
            logger.debug(f"Resolved module '{module_name}' at {descriptor.path}")

        self._info_cache[module_name] = descriptor
        return descriptor

    def all_modules(self) -> Dict[str, ModuleDescriptor]:
        """
        Get every resolvable module in project order.

        Names that do not resolve are left out.
        """
        if self._all_modules is None:
            modules = {}
            for module_name in self.module_order():
                descriptor = self.resolve(module_name)
                if descriptor is not None:
                    modules[module_name] = descriptor
            self._all_modules = modules

        return dict(self._all_modules)

    def modules_in_scope(self, module_name: Optional[str] = None) -> Dict[str, Optional[ModuleDescriptor]]:
        """
        Get the modules a command should act on.

        An explicit name maps to its resolution, which may be None;
        otherwise every resolvable module is returned.
        """
        if module_name:
            return {module_name: self.resolve(module_name)}
        return self.all_modules()

    def installed_packages(self) -> Dict[str, InstalledPackage]:
        return self.reader.read_installed_packages()

    def dependencies_of(self, module_name: str) -> Dict[str, str]:
        """
        Get the packages a module requires.

        The host framework and runtime entries are left out. Modules without
        an installed package (local modules) have no dependencies.

        Args:
            module_name: The module name

        Returns:
            Mapping of package name to version constraint
        """
        if module_name not in self._deps_cache:
            package = self._find_package(module_name)
            require = package.require if package is not None else {}
            self._deps_cache[module_name] = {
                name: constraint
                for name, constraint in require.items()
                if name.lower() not in self.ignored_requirements
            }

        return dict(self._deps_cache[module_name])

    def validate_dependencies(self, module_name: str) -> None:
        """
        Check that every package a module requires is installed.

        Raises:
            MissingDependenciesError: If any required package is missing
        """
        dependencies = self.dependencies_of(module_name)
        if not dependencies:
            return

        installed = self.installed_packages()
        missing = {
            package: constraint
            for package, constraint in dependencies.items()
            if package not in installed
        }

        if missing:
            logger.error(f"Module '{module_name}' is missing packages: {', '.join(missing)}")
            raise MissingDependenciesError(module_name, missing, self.install_command)

    def validate_all_modules(self) -> None:
        """Validate the dependencies of every module in project order."""
        for module_name in self.module_order():
            self.validate_dependencies(module_name)

    def _local_path(self, module_name: str) -> Optional[Path]:
        path = self.app_dir / module_name
        return path if path.is_dir() else None

    def _find_package(self, module_name: str) -> Optional[InstalledPackage]:
        matches = [
            package for package in self.installed_packages().values()
            if package.module is not None
            and package.module.name.lower() == module_name.lower()
        ]

        if len(matches) > 1:
            names = ', '.join(package.name for package in matches)
            raise AmbiguousModuleError(
                f"Module '{module_name}' is declared by more than one installed package: {names}"
            )

        return matches[0] if matches else None


def get_registry() -> ModuleRegistry:
    """Get the registry owned by the modularity app config."""
    return apps.get_app_config('modularity').registry
