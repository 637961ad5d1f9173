from __future__ import annotations

from datetime import date

from plugins.django_interface.models import Appointment

from appointment_notification.core.domain.entities.appointment_entity import AppointmentEntity
from appointment_notification.core.domain.repositories.appointment_repository import AppointmentRepository


class AppointmentRepoImpl(AppointmentRepository):
    def list_pending_between(self, start: date, end: date) -> list[AppointmentEntity]:
        qs = (
            Appointment.objects.select_related("account")
            .filter(status=Appointment.Status.PENDING, date__gte=start, date__lte=end)
            .order_by("date", "time")
        )
        return [
            AppointmentEntity(
                id=m.id,
                account_id=m.account_id,
                title=m.title,
                date=m.date,
                time=m.time,
                status=m.status,
                description=m.description,
                owner_phone=m.account.phone,
                owner_name=m.account.full_name,
                created_at=m.created_at,
            )
            for m in qs
        ]
