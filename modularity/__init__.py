"""
Module system for Django projects.

Modules are self-contained feature packages with their own configs,
views, routes, migrations, seeders, translations and assets. They live
either in the project tree or in installed packages, and are listed, in
order, in the project manifest.

Key components:
- ManifestReader: Reads the project and installed-package manifests
- ModuleRegistry: Resolves modules and validates their requirements
- MigrationRunner: Applies module migrations (``module_migrate``)
- SeedRunner: Runs module seeders (``module_seed``)

Usage:
    from modularity.registry import get_registry

    registry = get_registry()
    for name, module in registry.all_modules().items():
        print(name, module.path)
"""
