"""
Merging module configuration into the Django settings.

Every file in a module's ``Configs/`` directory is merged onto the setting
named after it: ``Configs/caches.yaml`` merges into ``settings.CACHES``.
Modules are applied in module order, so a later module wins over an
earlier one, and any module wins over the project's own value.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping

import yaml
from django.conf import settings

from .exceptions import ManifestError, ModuleConfigurationError
from .registry import ModuleRegistry


logger = logging.getLogger(__name__)

CONFIG_SUFFIXES = ('.yaml', '.yml', '.json')


def deep_merge(base: Any, override: Any) -> Any:
    """
    Recursively merge ``override`` onto ``base``.

    Mappings merge key by key and lists merge index by index; on any other
    collision the override value wins. Neither input is modified.
    """
    if isinstance(base, Mapping) and isinstance(override, Mapping):
        merged = dict(base)
        for key, value in override.items():
            merged[key] = deep_merge(base[key], value) if key in base else _copy(value)
        return merged

    if isinstance(base, list) and isinstance(override, list):
        merged = list(base)
        for index, value in enumerate(override):
            if index < len(merged):
                merged[index] = deep_merge(merged[index], value)
            else:
                merged.append(_copy(value))
        return merged

    return _copy(override)


def _copy(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _copy(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_copy(item) for item in value]
    return value


def load_config_file(path: Path) -> Dict[str, Any]:
    """Load a module config file as a mapping."""
    try:
        with open(path, 'r') as f:
            if path.suffix in ('.yaml', '.yml'):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ManifestError(f"Failed to read config file {path}: {e}") from e

    if data is None:
        return {}

    if not isinstance(data, Mapping):
        raise ModuleConfigurationError(f"Config file {path} must contain a mapping")

    return dict(data)


def config_files(config_dir: Path) -> List[Path]:
    if not config_dir.is_dir():
        return []

    return sorted(
        path for path in config_dir.iterdir()
        if path.is_file() and path.suffix in CONFIG_SUFFIXES
    )


def merge_module_configs(registry: ModuleRegistry, target=settings) -> List[str]:
    """
    Merge every module's config files into the settings.

    Args:
        registry: Registry providing the modules in order
        target: Object holding the settings as attributes

    Returns:
        Names of the settings that were updated, in merge order
    """
    updated = []

    for module_name, module in registry.all_modules().items():
        for path in config_files(module.subpath('Configs')):
            setting_name = path.stem.upper()
            original = getattr(target, setting_name, {})
            merged = deep_merge(original, load_config_file(path))
            setattr(target, setting_name, merged)

            logger.debug(f"Merged {path.name} from module '{module_name}' into {setting_name}")
            if setting_name not in updated:
                updated.append(setting_name)

    return updated
