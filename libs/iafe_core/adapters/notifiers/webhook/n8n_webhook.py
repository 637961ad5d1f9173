from __future__ import annotations

import structlog

from iafe_core.adapters.notifiers.base import BaseNotifier

log = structlog.get_logger()


class N8nWebhookNotifier(BaseNotifier):
    """
    Publica um JSON num webhook do n8n, que formata e entrega a mensagem
    no WhatsApp do usuário.
    """

    def __init__(self, endpoint: str, channel: str, timeout: float | None = None) -> None:
        super().__init__("n8n", channel, timeout)
        self._endpoint = (endpoint or "").strip()

    def send(self, payload: dict) -> str:
        if not self._endpoint:
            raise ValueError(f"Webhook do canal '{self.channel}' não configurado.")

        resp = self._request(
            "POST",
            self._endpoint,
            json=payload,
            headers={"Content-Type": "application/json"},
        )
        log.info("webhook.sent", provider=self.provider, channel=self.channel, status_code=resp.status_code)
        return resp.text
