"""
Settings for the module system.

All options live in the ``MODULARITY`` dict of the Django settings::

    MODULARITY = {
        'PROJECT_MANIFEST': 'modules.json',
        'APP_DIR': 'src/app',
        'APP_NAMESPACE': 'app',
    }

``BASE_DIR`` and ``VALIDATE_ON_STARTUP`` can also be set from the
environment (``MODULARITY_BASE_DIR``, ``MODULARITY_VALIDATE_ON_STARTUP``).
"""

from pathlib import Path
from typing import Any, Dict

from decouple import config
from django.conf import settings


DEFAULTS: Dict[str, Any] = {
    'BASE_DIR': None,
    'PROJECT_MANIFEST': 'modules.json',
    'INSTALLED_MANIFEST': 'vendor/installed.json',
    'VENDOR_DIR': 'vendor',
    'APP_DIR': 'app',
    'APP_NAMESPACE': 'app',
    'ORDER_KEY': 'django-modules',
    'PACKAGE_KEY': 'django-module',
    'IGNORED_REQUIREMENTS': ['python', 'django'],
    'INSTALL_COMMAND': 'pip install',
    'VALIDATE_ON_STARTUP': True,
    'MERGE_CONFIGS': True,
}


def get_settings() -> Dict[str, Any]:
    """Return the effective module system settings."""
    options = dict(DEFAULTS)
    options.update(getattr(settings, 'MODULARITY', {}))

    base_dir = config('MODULARITY_BASE_DIR', default='') or options['BASE_DIR']
    if not base_dir:
        base_dir = getattr(settings, 'BASE_DIR', None) or Path.cwd()
    options['BASE_DIR'] = Path(base_dir)

    options['VALIDATE_ON_STARTUP'] = config(
        'MODULARITY_VALIDATE_ON_STARTUP',
        default=options['VALIDATE_ON_STARTUP'],
        cast=bool
    )

    return options
