import jwt
from rest_framework import exceptions
from rest_framework.authentication import BaseAuthentication

from iafe_core.adapters.repositories.account_repo_impl import AccountRepoImpl
from iafe_core.adapters.security.jwt_service import JWTService


class AuthenticatedAccount:
    """
    Usuário mínimo compatível com DRF: id da conta + is_authenticated.
    """

    def __init__(self, id: str, email: str | None = None):
        self.id = id
        self.email = email
        self.is_authenticated = True

    def __str__(self):
        return f"<AuthenticatedAccount id={self.id}>"


class JWTAuthentication(BaseAuthentication):
    """
    Lê o header Authorization: Bearer <token>, valida com o JWTService e
    retorna (account, token). A conta precisa existir e estar ativa.
    """

    keyword = "bearer"

    def authenticate(self, request):
        parts = request.headers.get("Authorization", "").split()
        if len(parts) != 2 or parts[0].lower() != self.keyword:  # noqa: PLR2004
            return None

        token = parts[1]
        try:
            payload = JWTService.decode_token(token)
        except jwt.PyJWTError as e:
            raise exceptions.AuthenticationFailed(f"Token inválido: {e}")  # noqa: B904

        account_id = payload.get("sub")
        if not account_id:
            raise exceptions.AuthenticationFailed("Token não contém o claim 'sub'.")

        account = AccountRepoImpl().find_by_id(account_id)
        if account is None or not account.is_active:
            raise exceptions.AuthenticationFailed("Conta não encontrada.")

        return (AuthenticatedAccount(id=str(account.id), email=account.email), token)

    def authenticate_header(self, request):
        return "Bearer"
