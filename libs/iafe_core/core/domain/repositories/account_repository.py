from abc import ABC, abstractmethod

from iafe_core.core.domain.entities.account_entity import AccountEntity


class AccountRepository(ABC):
    @abstractmethod
    def find_by_id(self, account_id: str) -> AccountEntity | None:
        """Retorna a conta por ID."""
        ...

    @abstractmethod
    def find_by_email(self, email: str) -> AccountEntity | None:
        """Retorna a conta com o e-mail informado (case-insensitive), ou None."""
        ...

    @abstractmethod
    def lookup_by_phone(self, candidate: str) -> str | None:
        """
        Capacidade de lookup de identidade: compara `candidate` exatamente
        com o telefone armazenado e devolve o id da conta, ou None.
        """
        ...

    @abstractmethod
    def create_account(
        self,
        email: str,
        password_hash: str,
        full_name: str,
        phone: str | None = None,
    ) -> tuple[str, bool]:
        """
        Cria a conta de forma idempotente por e-mail.

        Retorna (account_id, created). Se já existir conta para o e-mail,
        devolve o id existente com created=False.
        """
        ...
