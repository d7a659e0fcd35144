from django.apps import AppConfig


class ModularityConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'modularity'
    verbose_name = 'Modules'
    registry = None

    def ready(self):
        from .bootstrap import bootstrap_modules
        from .registry import ModuleRegistry

        self.registry = ModuleRegistry.from_settings()
        bootstrap_modules(self.registry)
