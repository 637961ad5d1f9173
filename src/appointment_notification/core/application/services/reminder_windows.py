"""
Janelas de lembrete
-------------------
Para cada compromisso há quatro instantes-alvo (75, 60 e 15 minutos antes e
o próprio horário). A varredura roda a cada poucos minutos e nunca cai
exatamente no alvo, então um alvo é "devido" quando |agora − alvo| ≤ tolerância.

As faixas de dois alvos do mesmo compromisso não podem se sobrepor, senão
uma única varredura dispararia dois lembretes de uma vez.
"""
from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, time, timedelta, tzinfo
from zoneinfo import ZoneInfo

from appointment_notification.core.domain.entities.appointment_entity import AppointmentEntity
from appointment_notification.core.domain.entities.reminder_entity import (
    REMINDER_OFFSETS,
    DueReminder,
    NotificationType,
)

DEFAULT_TIMEZONE = "America/Sao_Paulo"


def validate_offsets(offsets: Mapping[NotificationType, timedelta], tolerance: timedelta) -> None:
    """Levanta ValueError se duas faixas [alvo ± tolerância] se tocam."""
    ordered = sorted(offsets.values())
    for smaller, larger in zip(ordered, ordered[1:], strict=False):
        if larger - smaller <= 2 * tolerance:
            raise ValueError(
                f"Antecedências {smaller} e {larger} muito próximas para tolerância de {tolerance}."
            )


def scheduled_at(appointment: AppointmentEntity, tz: tzinfo) -> datetime:
    """Data + hora locais do compromisso; sem hora = meia-noite."""
    return datetime.combine(appointment.date, appointment.time or time(0, 0), tzinfo=tz)


def due_reminders(
    appointment: AppointmentEntity,
    now: datetime,
    tolerance: timedelta,
    tz: tzinfo | None = None,
    offsets: Mapping[NotificationType, timedelta] = REMINDER_OFFSETS,
) -> list[DueReminder]:
    when = scheduled_at(appointment, tz or ZoneInfo(DEFAULT_TIMEZONE))
    due = []
    for notification_type, offset in offsets.items():
        target = when - offset
        if abs(now - target) <= tolerance:
            due.append(DueReminder(appointment, notification_type, when, target))
    return due
