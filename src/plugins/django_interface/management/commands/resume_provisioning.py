from django.core.management.base import BaseCommand

from subscription_billing.adapters.config.composition_root import container as sb_container
from subscription_billing.core.application.commands.registration_commands import ResumeProvisioningCommand


class Command(BaseCommand):
    help = "Retoma o provisionamento de cadastros pagos cujo lease expirou."

    def add_arguments(self, parser):
        parser.add_argument("--limit", type=int, default=100, help="Máximo de cadastros por execução (default: 100)")

    def handle(self, *args, **opts):
        results = sb_container.command_bus().dispatch(ResumeProvisioningCommand(limit=opts["limit"]))
        for res in results:
            line = f"  {res.registration_id} → {res.status}"
            if res.detail:
                line += f" ({res.detail})"
            self.stdout.write(line)
        done = sum(1 for r in results if r.status == "registered")
        self.stdout.write(self.style.SUCCESS(f"Retomados: {len(results)} | provisionados: {done}"))
