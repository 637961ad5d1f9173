from django.core.management.base import BaseCommand

from appointment_notification.adapters.config.composition_root import container as an_container
from appointment_notification.core.application.commands.notification_commands import (
    RunAppointmentNotificationsCommand,
)


class Command(BaseCommand):
    help = "Executa uma varredura de lembretes de compromissos (envio via webhook)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            default=False,
            help="Lista os lembretes devidos sem enviar nem gravar no ledger.",
        )

    def handle(self, *args, **opts):
        report = an_container.command_bus().dispatch(RunAppointmentNotificationsCommand(dry_run=opts["dry_run"]))

        for item in report.items:
            self.stdout.write(f"  {item.appointment_id} · {item.notification_type} → {item.outcome}")
        self.stdout.write(
            self.style.SUCCESS(
                f"Compromissos verificados: {report.checked} | enviados: {report.count('sent')} | "
                f"falhas: {report.count('failed')} | ignorados: {report.count('skipped')} | "
                f"devidos (dry-run): {report.count('due')}"
            )
        )
