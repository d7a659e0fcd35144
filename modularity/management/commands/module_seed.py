"""
Run module seeders in module order.

Usage:
    python manage.py module_seed
    python manage.py module_seed Billing PlanSeeder --connection=billing
    python manage.py module_seed --fresh
"""

from django.core.management.base import BaseCommand, CommandError
from django.db import DEFAULT_DB_ALIAS

from modularity.exceptions import ModularityError
from modularity.registry import get_registry
from modularity.seeding import SeedRunner


class Command(BaseCommand):
    help = 'Seed database module by module'

    def add_arguments(self, parser):
        parser.add_argument(
            'module',
            nargs='?',
            help='Module name to seed'
        )
        parser.add_argument(
            'seeder',
            nargs='?',
            metavar='class',
            help='Specific seeder class (default: DatabaseSeeder)'
        )
        parser.add_argument(
            '--fresh',
            action='store_true',
            help='Truncate all tables first'
        )
        parser.add_argument(
            '--connection',
            default=DEFAULT_DB_ALIAS,
            help='Database connection to use (default: "default")'
        )

    def handle(self, *args, **options):
        runner = SeedRunner(
            get_registry(),
            using=options['connection'],
            stdout=self.stdout,
            style=self.style,
        )

        try:
            runner.run(
                module_name=options['module'],
                seeder=options['seeder'],
                fresh=options['fresh'],
            )
        except ModularityError as e:
            raise CommandError(str(e)) from e
