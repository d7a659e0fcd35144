"""
Tests for the module registry
"""

from unittest.mock import patch

from django.test import SimpleTestCase, override_settings

from modularity.exceptions import AmbiguousModuleError, MissingDependenciesError
from modularity.registry import ModuleDescriptor, ModuleRegistry

from .utils import ModuleProject


class ModuleRegistryTestCase(SimpleTestCase):
    """Test ModuleRegistry"""

    def setUp(self):
        self.project = ModuleProject()

    def tearDown(self):
        self.project.cleanup()

    def test_resolve_local_module(self):
        path = self.project.local_module('Core')
        registry = self.project.registry()

        module = registry.resolve('Core')

        self.assertEqual(module, ModuleDescriptor(
            name='Core',
            namespace=f"{self.project.app_namespace}.Core",
            path=path,
        ))

    def test_resolve_installed_module_case_insensitively(self):
        path = self.project.vendor_module('acme/billing', 'Billing', namespace='Acme\\Billing')
        registry = self.project.registry()

        module = registry.resolve('billing')

        self.assertEqual(module.name, 'billing')
        self.assertEqual(module.namespace, 'Acme\\Billing')
        self.assertEqual(module.python_namespace, 'Acme.Billing')
        self.assertEqual(module.path, path)

    def test_local_module_wins_over_installed_package(self):
        local_path = self.project.local_module('Billing')
        self.project.vendor_module('acme/billing', 'Billing')
        registry = self.project.registry()

        self.assertEqual(registry.resolve('Billing').path, local_path)

    def test_unknown_module_is_cached_as_absent(self):
        registry = self.project.registry()

        with patch.object(registry.reader, 'read_installed_packages',
                          wraps=registry.reader.read_installed_packages) as read_packages, \
                patch.object(registry, '_local_path', wraps=registry._local_path) as local_path:
            self.assertIsNone(registry.resolve('Ghost'))
            self.assertIsNone(registry.resolve('Ghost'))
            self.assertIsNone(registry.resolve('Ghost'))

        self.assertEqual(read_packages.call_count, 1)
        self.assertEqual(local_path.call_count, 1)

    def test_all_modules_follow_project_order(self):
        self.project.order = ['Billing', 'Core']
        core_path = self.project.local_module('Core')
        billing_path = self.project.vendor_module(
            'acme/billing', 'Billing', namespace='Acme\\Billing', root='module'
        )
        registry = self.project.registry()

        modules = registry.all_modules()

        self.assertEqual(list(modules), ['Billing', 'Core'])
        self.assertEqual(modules['Billing'].path, self.project.root / 'vendor' / 'acme' / 'billing' / 'module')
        self.assertEqual(modules['Billing'].path, billing_path)
        self.assertEqual(modules['Core'].path, self.project.root / 'app' / 'Core')
        self.assertEqual(modules['Core'].path, core_path)

    def test_all_modules_drops_unresolved_names(self):
        self.project.order = ['Core', 'Ghost']
        self.project.local_module('Core')
        registry = self.project.registry()

        self.assertEqual(list(registry.all_modules()), ['Core'])

    def test_modules_in_scope(self):
        self.project.order = ['Core']
        self.project.local_module('Core')
        registry = self.project.registry()

        self.assertEqual(list(registry.modules_in_scope()), ['Core'])
        self.assertEqual(registry.modules_in_scope('Ghost'), {'Ghost': None})

    def test_duplicate_module_names_are_rejected(self):
        self.project.vendor_module('acme/billing', 'Billing')
        self.project.vendor_module('other/billing', 'billing')
        registry = self.project.registry()

        with self.assertRaises(AmbiguousModuleError) as cm:
            registry.resolve('Billing')

        self.assertIn('acme/billing', str(cm.exception))
        self.assertIn('other/billing', str(cm.exception))

    def test_dependencies_exclude_runtime_and_framework(self):
        self.project.vendor_module('acme/billing', 'Billing', require={
            'python': '>=3.10',
            'Django': '>=4.2',
            'acme/money': '^2.0',
        })
        registry = self.project.registry()

        self.assertEqual(registry.dependencies_of('Billing'), {'acme/money': '^2.0'})

    def test_local_modules_have_no_dependencies(self):
        self.project.local_module('Core')
        registry = self.project.registry()

        self.assertEqual(registry.dependencies_of('Core'), {})

    def test_validate_dependencies_passes_when_installed(self):
        self.project.add_package('acme/money')
        self.project.vendor_module('acme/billing', 'Billing', require={'acme/money': '^2.0'})
        registry = self.project.registry()

        registry.validate_dependencies('Billing')

    def test_validate_dependencies_lists_only_missing_packages(self):
        self.project.add_package('acme/money')
        self.project.vendor_module('acme/billing', 'Billing', require={
            'python': '>=3.10',
            'acme/tax': '^1.0',
            'acme/money': '^2.0',
            'acme/pdf': '*',
        })
        registry = self.project.registry()

        with self.assertRaises(MissingDependenciesError) as cm:
            registry.validate_dependencies('Billing')

        error = cm.exception
        self.assertEqual(error.module_name, 'Billing')
        self.assertEqual(list(error.missing), ['acme/tax', 'acme/pdf'])
        self.assertNotIn('acme/money', str(error))
        self.assertIn('  - acme/tax (^1.0)\n  - acme/pdf (*)', str(error))
        self.assertTrue(str(error).endswith('Install them with: pip install acme/tax acme/pdf'))

    def test_validate_all_modules_stops_at_first_failure(self):
        self.project.order = ['Core', 'Billing', 'Shipping']
        self.project.local_module('Core')
        self.project.vendor_module('acme/billing', 'Billing', require={'acme/tax': '^1.0'})
        self.project.vendor_module('acme/shipping', 'Shipping', require={'acme/geo': '^1.0'})
        registry = self.project.registry()

        with self.assertRaises(MissingDependenciesError) as cm:
            registry.validate_all_modules()

        self.assertEqual(cm.exception.module_name, 'Billing')

    def test_from_settings(self):
        with override_settings(MODULARITY={
            'BASE_DIR': str(self.project.root),
            'APP_DIR': 'src/app',
            'APP_NAMESPACE': 'project',
            'INSTALL_COMMAND': 'poetry add',
        }):
            registry = ModuleRegistry.from_settings()

        self.assertEqual(registry.reader.base_dir, self.project.root)
        self.assertEqual(registry.app_dir, self.project.root / 'src' / 'app')
        self.assertEqual(registry.vendor_dir, self.project.root / 'vendor')
        self.assertEqual(registry.app_namespace, 'project')
        self.assertEqual(registry.install_command, 'poetry add')
