from __future__ import annotations

from iafe_core.core.application.cqrs import QueryHandler
from iafe_core.core.application.dtos.account_dto import AccountByPhoneDTO
from iafe_core.core.application.queries.account_queries import ResolveAccountByPhoneQuery
from iafe_core.core.application.services.phone_identity_resolver import PhoneIdentityResolver
from iafe_core.core.domain.exceptions import InvalidInputError, NotFoundError
from iafe_core.core.domain.repositories.account_repository import AccountRepository


class ResolveAccountByPhoneHandler(QueryHandler[ResolveAccountByPhoneQuery, AccountByPhoneDTO]):
    def __init__(self, resolver: PhoneIdentityResolver, account_repo: AccountRepository):
        self.resolver = resolver
        self.account_repo = account_repo

    def handle(self, query: ResolveAccountByPhoneQuery) -> AccountByPhoneDTO:
        if not (query.phone or "").strip():
            raise InvalidInputError("Telefone é obrigatório.", code="phone_required")

        account_id = self.resolver.resolve(query.phone)
        account = self.account_repo.find_by_id(account_id)
        if account is None:
            raise NotFoundError("Conta não encontrada para este telefone.", code="account_not_found_for_phone")
        return AccountByPhoneDTO(
            account_id=str(account.id),
            full_name=account.full_name,
            email=account.email,
            is_active=account.is_active,
        )
