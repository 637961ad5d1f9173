from abc import ABC, abstractmethod
from datetime import date

from appointment_notification.core.domain.entities.appointment_entity import AppointmentEntity


class AppointmentRepository(ABC):
    @abstractmethod
    def list_pending_between(self, start: date, end: date) -> list[AppointmentEntity]:
        """Compromissos `pending` com data entre `start` e `end` (inclusive), com telefone/nome do dono."""
        ...
