from __future__ import annotations

import secrets
import uuid
from datetime import timedelta

import httpx
import structlog
from django.utils import timezone
from iafe_core.adapters.notifiers.base import BaseNotifier
from iafe_core.adapters.utils.phone_utils import normalize_phone
from iafe_core.core.application.cqrs import CommandHandler
from iafe_core.core.domain.exceptions import InvalidInputError

from subscription_billing.core.application.commands.otp_commands import IssueOtpCommand, VerifyOtpCommand
from subscription_billing.core.application.dtos.otp_dto import OtpIssuedResult
from subscription_billing.core.domain.entities.otp_entity import OtpEntity
from subscription_billing.core.domain.repositories.otp_repository import OtpRepository

logger = structlog.get_logger(__name__)

OTP_LENGTH = 6


def _otp_phone(raw: str | None) -> str:
    phone = normalize_phone(raw)
    if phone is None:
        raise InvalidInputError("Telefone inválido.", code="invalid_phone")
    return phone


def generate_code() -> str:
    return f"{secrets.randbelow(10**OTP_LENGTH):0{OTP_LENGTH}d}"


class IssueOtpHandler(CommandHandler[IssueOtpCommand]):
    """
    Gera e envia (WhatsApp, via n8n) um código de 6 dígitos.
    Falha no envio não desfaz o código: o usuário pode pedir outro.
    """

    def __init__(self, otp_repo: OtpRepository, notifier: BaseNotifier, ttl: timedelta) -> None:
        self.repo = otp_repo
        self.notifier = notifier
        self.ttl = ttl

    def handle(self, cmd: IssueOtpCommand) -> OtpIssuedResult:
        phone = _otp_phone(cmd.phone)
        now = cmd.now or timezone.now()
        log = logger.bind(phone=phone)

        removed = self.repo.delete_unverified(phone)
        code = generate_code()
        otp = self.repo.create(
            OtpEntity(
                id=uuid.uuid4(),
                phone=phone,
                code=code,
                expires_at=now + self.ttl,
                email=(cmd.email or "").strip().lower() or None,
                full_name=cmd.full_name or None,
            )
        )
        log.info("otp.issued", replaced=removed, expires_at=otp.expires_at.isoformat())

        delivered = True
        try:
            self.notifier.send(
                {
                    "codigo_usuario": phone,
                    "email": otp.email,
                    "nome": otp.full_name,
                    "codigo_verificacao": code,
                    "pais": cmd.country or None,
                }
            )
        except (httpx.HTTPError, ValueError) as exc:
            delivered = False
            log.error("otp.delivery_failed", error=str(exc))

        return OtpIssuedResult(phone=phone, expires_at=otp.expires_at, delivered=delivered, code=code)


class VerifyOtpHandler(CommandHandler[VerifyOtpCommand]):
    def __init__(self, otp_repo: OtpRepository) -> None:
        self.repo = otp_repo

    def handle(self, cmd: VerifyOtpCommand) -> bool:
        phone = _otp_phone(cmd.phone)
        code = (cmd.code or "").strip()
        if len(code) != OTP_LENGTH or not code.isdigit():
            raise InvalidInputError("Código inválido ou expirado.", code="otp_invalid")

        if not self.repo.mark_verified(phone, code, cmd.now or timezone.now()):
            logger.info("otp.rejected", phone=phone)
            raise InvalidInputError("Código inválido ou expirado.", code="otp_invalid")
        logger.info("otp.verified", phone=phone)
        return True
