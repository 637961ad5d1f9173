from django.apps import AppConfig


class IafeApiConfig(AppConfig):
    name = "iafe_api"
    verbose_name = "IAFÉ Finanças API"

    def ready(self):
        from django.conf import settings

        # ─── DI containers ──────────────────────────────────────────
        from appointment_notification.adapters.config.composition_root import (
            setup_di_container_from_settings as build_an_container,
        )
        from iafe_core.adapters.config.composition_root import (
            setup_di_container_from_settings as build_core_container,
        )
        from subscription_billing.adapters.config.composition_root import (
            setup_di_container_from_settings as build_sb_container,
        )

        build_core_container(settings)
        build_sb_container(settings)
        build_an_container(settings)
