from datetime import UTC, datetime, timedelta

import jwt
from django.conf import settings


class JWTService:
    """
    Validação de tokens JWT emitidos pelo provedor de autenticação.

    A emissão de tokens de usuário acontece fora deste serviço; `create_token`
    existe para integrações internas e testes.
    """

    @staticmethod
    def create_token(subject: str, expires_in: int, **claims) -> str:
        now = datetime.now(UTC)
        payload = {
            "sub": str(subject),
            "iat": now,
            "exp": now + timedelta(seconds=int(expires_in)),
            **claims,
        }
        return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

    @staticmethod
    def decode_token(token: str) -> dict:
        """
        Decodifica e valida o token JWT, retornando o payload.
        Lança jwt.PyJWTError se inválido ou expirado.
        """
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
