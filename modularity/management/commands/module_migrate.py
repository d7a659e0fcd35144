"""
Run module migrations in module order.

Usage:
    python manage.py module_migrate
    python manage.py module_migrate Billing
    python manage.py module_migrate Billing 0002_add_invoice_status --fresh --seed
"""

from django.core.management import call_command
from django.core.management.base import BaseCommand, CommandError

from modularity.exceptions import ModularityError
from modularity.migrator import MigrationRunner
from modularity.registry import get_registry


class Command(BaseCommand):
    help = 'Run migrations module by module'

    def add_arguments(self, parser):
        parser.add_argument(
            'module',
            nargs='?',
            help='Module name to migrate'
        )
        parser.add_argument(
            'migration',
            nargs='?',
            metavar='class',
            help='Specific migration to apply'
        )
        parser.add_argument(
            '--fresh',
            action='store_true',
            help='Drop all tables first'
        )
        parser.add_argument(
            '--seed',
            action='store_true',
            help='Seed after migration'
        )

    def handle(self, *args, **options):
        runner = MigrationRunner(get_registry(), stdout=self.stdout, style=self.style)

        try:
            runner.run(
                module_name=options['module'],
                migration=options['migration'],
                fresh=options['fresh'],
            )
        except ModularityError as e:
            raise CommandError(str(e)) from e

        if options['seed']:
            self.stdout.write(self.style.SUCCESS('Seeding after migration...'))
            seed_args = [
                value for value in (options['module'], options['migration'])
                if value is not None
            ]
            call_command(
                'module_seed', *seed_args,
                stdout=self.stdout, no_color=options['no_color']
            )
