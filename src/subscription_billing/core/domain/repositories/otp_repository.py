from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from subscription_billing.core.domain.entities.otp_entity import OtpEntity


class OtpRepository(ABC):
    @abstractmethod
    def delete_unverified(self, phone: str) -> int:
        """Remove os códigos ainda não verificados do telefone."""
        ...

    @abstractmethod
    def create(self, entity: OtpEntity) -> OtpEntity:
        ...

    @abstractmethod
    def mark_verified(self, phone: str, code: str, now: datetime) -> bool:
        """Marca como verificado um código não verificado e não expirado."""
        ...

    @abstractmethod
    def consume(self, phone: str, code: str, now: datetime) -> bool:
        """
        Consome (uma única vez) um código verificado e ainda dentro da validade.
        """
        ...
