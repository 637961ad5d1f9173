from __future__ import annotations

from pydantic import BaseModel


class AccountByPhoneDTO(BaseModel):
    account_id: str
    full_name: str
    email: str
    is_active: bool
