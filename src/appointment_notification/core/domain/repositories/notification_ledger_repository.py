from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime


class NotificationLedgerRepository(ABC):
    """
    Ledger de lembretes por (compromisso, tipo).

    A existência da chave significa "já tentado"; não é um log de entregas.
    """

    @abstractmethod
    def exists(self, appointment_id: str, notification_type: str) -> bool:
        ...

    @abstractmethod
    def claim(self, appointment_id: str, notification_type: str, now: datetime) -> bool:
        """
        Insere a chave se ausente. True somente para quem inseriu; uma chave
        já existente nunca é sobrescrita.
        """
        ...

    @abstractmethod
    def record_outcome(self, appointment_id: str, notification_type: str, *, success: bool, response: str) -> None:
        """Grava o resultado da tentativa na chave já reservada."""
        ...
