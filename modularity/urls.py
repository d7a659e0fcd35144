"""
URL patterns of all modules.

Include them from the project URLconf::

    path('', include('modularity.urls'))

A module's ``Routes/api.py`` is mounted under ``api/`` and its
``Routes/web.py`` at the root; both define ``urlpatterns``.

Console routes (``Routes/console.py``) are not loaded: module CLIs are
Django management commands in an app listed in ``INSTALLED_APPS``.
"""

import logging
from typing import List

from django.urls import include, path

from .importing import ensure_importable
from .registry import ModuleRegistry, get_registry


logger = logging.getLogger(__name__)

ROUTE_PREFIXES = (
    ('api', 'api/'),
    ('web', ''),
)


def module_urlpatterns(registry: ModuleRegistry) -> List:
    patterns = []

    for module_name, module in registry.all_modules().items():
        for route_file, prefix in ROUTE_PREFIXES:
            if not module.subpath('Routes', f"{route_file}.py").exists():
                continue

            namespace = ensure_importable(module)
            patterns.append(path(prefix, include(f"{namespace}.Routes.{route_file}")))
            logger.debug(f"Included {route_file} routes of module '{module_name}'")

    return patterns


urlpatterns = module_urlpatterns(get_registry())
