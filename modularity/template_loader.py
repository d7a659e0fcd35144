"""
Template loader for module views.

Add it to the loaders of a DjangoTemplates engine::

    'OPTIONS': {'loaders': [
        'django.template.loaders.filesystem.Loader',
        'modularity.template_loader.Loader',
        'django.template.loaders.app_directories.Loader',
    ]}
"""

from django.template.loaders.filesystem import Loader as FilesystemLoader

from .bootstrap import module_view_dirs
from .registry import get_registry


class Loader(FilesystemLoader):
    """Looks up templates in the ``Views`` directory of every module."""

    def get_dirs(self):
        return module_view_dirs(get_registry())
