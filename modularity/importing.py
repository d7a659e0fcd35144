"""
Loading classes that live inside a module.

Migration and seeder classes are addressed by dotted path below the
module namespace. Installed modules usually live outside ``sys.path``,
so their namespace is mapped onto the module directory before importing.
"""

import importlib
import importlib.machinery
import importlib.util
import logging
import sys
import types
from typing import Any

from django.utils.module_loading import import_string

from .exceptions import ModuleClassNotFound
from .registry import ModuleDescriptor


logger = logging.getLogger(__name__)


def ensure_importable(module: ModuleDescriptor) -> str:
    """
    Make the module namespace importable.

    Args:
        module: The resolved module

    Returns:
        The dotted namespace of the module
    """
    namespace = module.python_namespace
    if namespace in sys.modules:
        return namespace

    try:
        spec = importlib.util.find_spec(namespace)
    except ImportError:
        spec = None

    if spec is not None:
        return namespace

    parts = namespace.split('.')
    for i in range(1, len(parts)):
        _ensure_parent_package('.'.join(parts[:i]))

    init_file = module.path / '__init__.py'
    if init_file.exists():
        spec = importlib.util.spec_from_file_location(
            namespace,
            init_file,
            submodule_search_locations=[str(module.path)]
        )
    else:
        spec = importlib.machinery.ModuleSpec(namespace, None, is_package=True)
        spec.submodule_search_locations = [str(module.path)]

    package = importlib.util.module_from_spec(spec)
    sys.modules[namespace] = package
    try:
        if spec.loader is not None:
            spec.loader.exec_module(package)
    except BaseException:
        del sys.modules[namespace]
        raise

    if len(parts) > 1:
        setattr(sys.modules['.'.join(parts[:-1])], parts[-1], package)

    importlib.invalidate_caches()
    logger.debug(f"Mapped namespace '{namespace}' to {module.path}")
    return namespace


def load_class(module: ModuleDescriptor, dotted_path: str) -> Any:
    """
    Import a class from a module.

    Args:
        module: The module the class belongs to
        dotted_path: Fully qualified path of the class

    Returns:
        The class

    Raises:
        ModuleClassNotFound: If the file or the attribute does not exist
    """
    ensure_importable(module)

    try:
        return import_string(dotted_path)
    except ModuleNotFoundError as e:
        # Only a missing file on the path itself counts as not found.
        if e.name and (dotted_path + '.').startswith(e.name + '.'):
            raise ModuleClassNotFound(f"Class not found: {dotted_path}") from e
        raise
    except ImportError as e:
        if isinstance(e.__cause__, (AttributeError, ValueError)):
            raise ModuleClassNotFound(f"Class not found: {dotted_path}") from e
        raise


def _ensure_parent_package(name: str) -> None:
    if name in sys.modules:
        return

    try:
        if importlib.util.find_spec(name) is not None:
            importlib.import_module(name)
            return
    except ImportError:
        pass

    package = types.ModuleType(name)
    package.__path__ = []
    package.__spec__ = importlib.machinery.ModuleSpec(name, None, is_package=True)
    sys.modules[name] = package

    if '.' in name:
        parent, _, child = name.rpartition('.')
        setattr(sys.modules[parent], child, package)
