from django.core.management.base import BaseCommand

from subscription_billing.adapters.config.composition_root import container as sb_container
from subscription_billing.core.application.commands.subscription_commands import ExpireSubscriptionsCommand


class Command(BaseCommand):
    help = "Encerra trials vencidos e cancelamentos agendados cujo período terminou."

    def handle(self, *args, **opts):
        closed = sb_container.command_bus().dispatch(ExpireSubscriptionsCommand())
        self.stdout.write(self.style.SUCCESS(f"Assinaturas encerradas: {closed}"))
