"""
Module System Exceptions

Custom exceptions raised while resolving, validating and running modules.
"""

from typing import Dict


class ModularityError(Exception):
    """Base exception for module system errors"""
    pass


class ManifestError(ModularityError):
    """Raised when a manifest exists but cannot be read"""
    pass


class AmbiguousModuleError(ModularityError):
    """Raised when more than one installed package declares the same module"""
    pass


class ModuleConfigurationError(ModularityError):
    """Raised when a module configuration file is invalid"""
    pass


class ModuleClassNotFound(ModularityError):
    """Raised when a migration or seeder class cannot be located"""
    pass


class MissingDependenciesError(ModularityError):
    """
    Raised when a module requires packages that are not installed.

    The message lists every missing package and ends with a command
    that installs all of them.
    """

    def __init__(self, module_name: str, missing: Dict[str, str], install_command: str = 'pip install'):
        self.module_name = module_name
        self.missing = dict(missing)
        self.install_command = install_command

        packages = '\n'.join(
            f"  - {package} ({constraint})" for package, constraint in self.missing.items()
        )
        super().__init__(
            f"Module '{module_name}' requires the following packages that are not installed:\n"
            f"{packages}\n\n"
            f"Install them with: {install_command} {' '.join(self.missing)}"
        )


class MigrationError(ModularityError):
    """Raised when a module migration fails to apply"""
    pass


class SeederError(ModularityError):
    """Raised when a module seeder fails"""
    pass
