from __future__ import annotations

import phonenumbers
from phonenumbers import NumberParseException

from iafe_core.core.application.services.phone_identity_resolver import only_digits


def normalize_phone(raw: str | None, default_region: str = "BR", with_plus: bool = False) -> str | None:
    """
    Retorna o número em formato internacional, ou None se não for um telefone possível.
    - with_plus=False => '5587988053483' ; with_plus=True => '+5587988053483'

    Usado apenas para validar/gravar telefones novos. Para encontrar a conta
    de um telefone use o PhoneIdentityResolver: contas antigas podem estar
    gravadas em outra forma.
    """
    if not raw or not only_digits(raw):
        return None

    try:
        num = phonenumbers.parse(raw, default_region)
    except NumberParseException:
        digits = only_digits(raw)
        if digits.startswith("00"):
            digits = digits[2:]
        try:
            num = phonenumbers.parse("+" + digits)
        except NumberParseException:
            return None

    # 'possible' em vez de 'valid': WhatsApp aceita números fora da numeração oficial
    if not phonenumbers.is_possible_number(num):
        return None

    e164 = phonenumbers.format_number(num, phonenumbers.PhoneNumberFormat.E164)
    return e164 if with_plus else only_digits(e164)
