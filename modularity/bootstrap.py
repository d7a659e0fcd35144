"""
Startup wiring of module resources.

Called from ``ModularityConfig.ready()``: validates module requirements
before anything else, then merges module configs and adds the module
translation and static directories to the Django settings.
"""

import logging
from pathlib import Path
from typing import List, Tuple

from django.conf import settings

from .conf import get_settings
from .config import merge_module_configs
from .registry import ModuleRegistry


logger = logging.getLogger(__name__)


def bootstrap_modules(registry: ModuleRegistry, target=settings) -> None:
    """
    Wire every module into the project.

    Raises:
        MissingDependenciesError: If a module requires packages that are
            not installed
    """
    options = get_settings()

    if options['VALIDATE_ON_STARTUP']:
        registry.validate_all_modules()

    if options['MERGE_CONFIGS']:
        merge_module_configs(registry, target)

    register_locale_paths(registry, target)
    register_static_dirs(registry, target)

    logger.info(f"Bootstrapped {len(registry.all_modules())} modules")


def module_view_dirs(registry: ModuleRegistry) -> List[Path]:
    """Get the ``Views`` directories of all modules in module order."""
    return [
        module.subpath('Views')
        for module in registry.all_modules().values()
        if module.subpath('Views').is_dir()
    ]


def module_locale_paths(registry: ModuleRegistry) -> List[Path]:
    return [
        module.subpath('Lang')
        for module in registry.all_modules().values()
        if module.subpath('Lang').is_dir()
    ]


def module_static_dirs(registry: ModuleRegistry) -> List[Tuple[str, Path]]:
    """
    Get the asset groups of all modules.

    Each directory in a module's ``Public`` folder is one group, served
    under ``vendor/<group>``.
    """
    dirs = []
    for module in registry.all_modules().values():
        public_dir = module.subpath('Public')
        if not public_dir.is_dir():
            continue
        for asset_dir in sorted(public_dir.iterdir()):
            if asset_dir.is_dir():
                dirs.append((f"vendor/{asset_dir.name}", asset_dir))
    return dirs


def register_locale_paths(registry: ModuleRegistry, target=settings) -> None:
    paths = list(getattr(target, 'LOCALE_PATHS', []))
    for path in module_locale_paths(registry):
        if str(path) not in map(str, paths):
            paths.append(str(path))
    target.LOCALE_PATHS = paths


def register_static_dirs(registry: ModuleRegistry, target=settings) -> None:
    dirs = list(getattr(target, 'STATICFILES_DIRS', []))
    for prefix, path in module_static_dirs(registry):
        entry = (prefix, str(path))
        if entry not in dirs:
            dirs.append(entry)
    target.STATICFILES_DIRS = dirs
