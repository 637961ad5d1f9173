from django.core.management.base import BaseCommand

from subscription_billing.adapters.config.composition_root import container as sb_container
from subscription_billing.core.application.commands.registration_commands import ExpireRegistrationsCommand


class Command(BaseCommand):
    help = "Expira cadastros pending_payment com prazo vencido."

    def handle(self, *args, **opts):
        expired = sb_container.command_bus().dispatch(ExpireRegistrationsCommand())
        self.stdout.write(self.style.SUCCESS(f"Cadastros expirados: {expired}"))
