from __future__ import annotations

import structlog
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction

from iafe_core.core.domain.entities.account_entity import AccountEntity
from iafe_core.core.domain.repositories.account_repository import AccountRepository
from plugins.django_interface.models import Account as AccountModel

logger = structlog.get_logger(__name__)


class AccountRepoImpl(AccountRepository):
    def find_by_id(self, account_id: str) -> AccountEntity | None:
        try:
            return AccountEntity.from_model(AccountModel.objects.get(id=account_id))
        except (AccountModel.DoesNotExist, ValueError, DjangoValidationError):
            return None

    def find_by_email(self, email: str) -> AccountEntity | None:
        m = AccountModel.objects.filter(email__iexact=(email or "").strip()).first()
        return AccountEntity.from_model(m) if m else None

    def lookup_by_phone(self, candidate: str) -> str | None:
        account_id = (
            AccountModel.objects.filter(phone=candidate)
            .order_by("created_at")
            .values_list("id", flat=True)
            .first()
        )
        return str(account_id) if account_id else None

    def create_account(
        self,
        email: str,
        password_hash: str,
        full_name: str,
        phone: str | None = None,
    ) -> tuple[str, bool]:
        email = email.strip().lower()
        if existing := self.find_by_email(email):
            logger.info("account.already_exists", account_id=str(existing.id))
            return str(existing.id), False

        try:
            with transaction.atomic():
                m = AccountModel.objects.create(
                    email=email,
                    password_hash=password_hash,
                    full_name=full_name,
                    phone=phone,
                )
        except IntegrityError:
            # outra requisição criou a mesma conta entre o find e o insert
            existing = self.find_by_email(email)
            if existing is None:
                raise
            logger.info("account.create_conflict", account_id=str(existing.id))
            return str(existing.id), False

        logger.info("account.created", account_id=str(m.id))
        return str(m.id), True
