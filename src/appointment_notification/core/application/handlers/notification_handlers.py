from __future__ import annotations

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import structlog
from django.utils import timezone
from iafe_core.adapters.notifiers.base import BaseNotifier
from iafe_core.core.application.cqrs import CommandHandler

from appointment_notification.adapters.observability.metrics import REMINDER_OUTCOME
from appointment_notification.core.application.commands.notification_commands import (
    RunAppointmentNotificationsCommand,
)
from appointment_notification.core.application.dtos.sweep_dto import ReminderOutcome, SweepReport
from appointment_notification.core.application.services.reminder_windows import (
    due_reminders,
    validate_offsets,
)
from appointment_notification.core.domain.entities.reminder_entity import REMINDER_OFFSETS, DueReminder
from appointment_notification.core.domain.events.events import ReminderDispatchedEvent
from appointment_notification.core.domain.repositories.appointment_repository import AppointmentRepository
from appointment_notification.core.domain.repositories.notification_ledger_repository import (
    NotificationLedgerRepository,
)

logger = structlog.get_logger(__name__)


def build_payload(reminder: DueReminder, now: datetime) -> dict:
    appt = reminder.appointment
    return {
        "notification_type": reminder.notification_type.value,
        "appointment": {
            "id": str(appt.id),
            "title": appt.title,
            "description": appt.description,
            "date": appt.date.isoformat(),
            "time": appt.time.strftime("%H:%M:%S") if appt.time else None,
            "user_phone": appt.owner_phone,
            "user_name": appt.owner_name,
        },
        "scheduled_datetime": reminder.scheduled_at.isoformat(),
        "notification_time": now.isoformat(),
    }


class RunAppointmentNotificationsHandler(CommandHandler[RunAppointmentNotificationsCommand]):
    """
    Varredura de lembretes.

    A chave (compromisso, tipo) é reservada no ledger ANTES do envio; quem
    não consegue inserir pula. Depois da tentativa, com sucesso ou não, o
    resultado fica gravado na mesma linha e o lembrete não é reenviado.
    """

    def __init__(  # noqa: PLR0913
        self,
        appointment_repo: AppointmentRepository,
        ledger_repo: NotificationLedgerRepository,
        notifier: BaseNotifier,
        tolerance: timedelta,
        tz_name: str,
    ) -> None:
        validate_offsets(REMINDER_OFFSETS, tolerance)
        self.appointment_repo = appointment_repo
        self.ledger = ledger_repo
        self.notifier = notifier
        self.tolerance = tolerance
        self.tz = ZoneInfo(tz_name)

    def handle(self, cmd: RunAppointmentNotificationsCommand) -> SweepReport:
        now = cmd.now or timezone.now()
        local_today = now.astimezone(self.tz).date()
        # ±1 dia cobre lembretes que cruzam a meia-noite
        appointments = self.appointment_repo.list_pending_between(
            local_today - timedelta(days=1), local_today + timedelta(days=1)
        )
        report = SweepReport(checked=len(appointments), dry_run=cmd.dry_run)

        for appointment in appointments:
            reminders = due_reminders(appointment, now, self.tolerance, self.tz)
            if not reminders:
                continue
            if not appointment.owner_phone:
                logger.info("reminder.no_phone", appointment_id=str(appointment.id))
                continue
            for reminder in reminders:
                report.items.append(self._process(reminder, now, cmd.dry_run, report))

        logger.info(
            "reminder.sweep_done",
            checked=report.checked,
            sent=report.count("sent"),
            failed=report.count("failed"),
            skipped=report.count("skipped"),
            dry_run=cmd.dry_run,
        )
        return report

    def _process(self, reminder: DueReminder, now: datetime, dry_run: bool, report: SweepReport) -> ReminderOutcome:
        appt_id = str(reminder.appointment.id)
        ntype = reminder.notification_type.value
        log = logger.bind(appointment_id=appt_id, notification_type=ntype)

        if dry_run:
            outcome = "skipped" if self.ledger.exists(appt_id, ntype) else "due"
            return ReminderOutcome(appt_id, ntype, outcome)

        if not self.ledger.claim(appt_id, ntype, now):
            log.info("reminder.already_sent")
            REMINDER_OUTCOME.labels(ntype, "skipped").inc()
            return ReminderOutcome(appt_id, ntype, "skipped")

        try:
            response = self.notifier.send(build_payload(reminder, now))
            success = True
        except Exception as exc:  # noqa: BLE001
            # a linha do ledger já foi reservada: qualquer falha vira registro "failed"
            response, success = f"Error: {exc}", False
            log.error("reminder.dispatch_failed", error=str(exc), error_type=type(exc).__name__)

        self.ledger.record_outcome(appt_id, ntype, success=success, response=response)
        outcome = "sent" if success else "failed"
        if success:
            log.info("reminder.dispatched")
        REMINDER_OUTCOME.labels(ntype, outcome).inc()
        report.events.append(
            ReminderDispatchedEvent(
                appointment_id=appt_id,
                notification_type=ntype,
                success=success,
                scheduled_at=reminder.scheduled_at,
            )
        )
        return ReminderOutcome(appt_id, ntype, outcome, response)
