from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class OtpIssuedResult:
    phone: str
    expires_at: datetime
    delivered: bool
    code: str  # nunca exposto pela API; usado apenas internamente/testes

    def as_payload(self) -> dict:
        return {
            "success": True,
            "message": "Código enviado para o WhatsApp.",
            "expires_at": self.expires_at.isoformat(),
        }
