"""
Resolução telefone → conta
--------------------------
Único ponto do sistema que transforma um telefone digitado/recebido
(WhatsApp, formulário, n8n...) em uma conta. Todas as operações disparadas
por telefone devem passar por aqui.

A forma canônica com que o telefone foi gravado é desconhecida para quem
chama, então geramos um conjunto pequeno de candidatos e paramos no primeiro
que o lookup reconhecer.
"""
from __future__ import annotations

import re
from collections.abc import Callable

import structlog

from iafe_core.core.domain.exceptions import NotFoundError

logger = structlog.get_logger(__name__)

COUNTRY_CODE = "55"
_NATIONAL_LENGTHS = (10, 11)  # DDD + fixo (8) | DDD + celular com nono dígito (9)
_MOBILE_TRUNK_DIGIT = "9"

PhoneLookup = Callable[[str], "str | None"]


def only_digits(raw: str | None) -> str:
    return re.sub(r"\D+", "", raw or "")


def _national_part(digits: str) -> str | None:
    """DDD + número, se `digits` tiver forma plausível de telefone brasileiro."""
    if len(digits) in _NATIONAL_LENGTHS and not digits.startswith("0"):
        return digits
    if digits.startswith(COUNTRY_CODE) and len(digits) - len(COUNTRY_CODE) in _NATIONAL_LENGTHS:
        return digits[len(COUNTRY_CODE):]
    return None


def _trunk_variants(national: str) -> list[str]:
    """Celular com e sem o nono dígito (DDD + 9XXXXXXXX ↔ DDD + XXXXXXXX)."""
    ddd, local = national[:2], national[2:]
    if len(local) == 9 and local.startswith(_MOBILE_TRUNK_DIGIT):  # noqa: PLR2004
        return [national, ddd + local[1:]]
    if len(local) == 8:  # noqa: PLR2004
        return [national, ddd + _MOBILE_TRUNK_DIGIT + local]
    return [national]


def phone_candidates(raw: str | None) -> list[str]:
    """
    Gera os candidatos, sem repetição, na ordem de tentativa.

    "(87) 98805-3483" →
        5587988053483, +5587988053483, 87988053483,
        558788053483,  +558788053483,  8788053483
    """
    digits = only_digits(raw)
    # prefixo internacional '00' e zero de tronco antes do DDD
    if digits.startswith("00"):
        digits = digits[2:]
    digits = digits.lstrip("0")
    if not digits:
        return []

    national = _national_part(digits)
    if national is None:
        # forma desconhecida: tentamos apenas como veio
        return list(dict.fromkeys([digits, f"+{digits}"]))

    out: list[str] = []
    for variant in _trunk_variants(national):
        with_cc = COUNTRY_CODE + variant
        out.extend([with_cc, f"+{with_cc}", variant])
    if digits not in out:
        out.append(digits)
    return list(dict.fromkeys(out))


class PhoneIdentityResolver:
    """
    `resolve(raw) -> account_id` ou NotFoundError.

    `lookup` é a capacidade de identidade com um único argumento
    (ex.: `AccountRepository.lookup_by_phone`).
    """

    def __init__(self, lookup: PhoneLookup) -> None:
        self._lookup = lookup

    def find(self, raw: str | None) -> str | None:
        candidates = phone_candidates(raw)
        for candidate in candidates:
            account_id = self._lookup(candidate)
            if account_id:
                logger.debug("phone.resolved", candidate=candidate, tried=candidates.index(candidate) + 1)
                return str(account_id)
        logger.info("phone.not_found", candidates=len(candidates))
        return None

    def resolve(self, raw: str | None) -> str:
        account_id = self.find(raw)
        if account_id is None:
            raise NotFoundError("Conta não encontrada para este telefone.", code="account_not_found_for_phone")
        return account_id
