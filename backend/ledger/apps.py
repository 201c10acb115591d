from django.apps import AppConfig


class LedgerConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "ledger"
    verbose_name = "Ledger"

    def ready(self):
        # Connects the post_migrate receiver that seeds global categories
        import ledger.signals  # noqa: F401
