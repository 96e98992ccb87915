"""Referral code generation.

Codes are 8-character alphanumeric (A-Z, 0-9), generated server-side
with a cryptographic random source and matched case-insensitively.
"""

from __future__ import annotations

import secrets
import string

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orbit.db.models import User

REFERRAL_CHARSET = string.ascii_uppercase + string.digits
REFERRAL_CODE_LENGTH = 8


def generate_referral_code() -> str:
    return "".join(secrets.choice(REFERRAL_CHARSET) for _ in range(REFERRAL_CODE_LENGTH))


def normalize_referral_code(code: str) -> str:
    """Trim and uppercase a user-supplied code."""
    return code.strip().upper()


async def generate_unique_referral_code(db: AsyncSession) -> str:
    """Generate a referral code no user holds yet."""
    for _ in range(10):
        code = generate_referral_code()
        existing = await db.scalar(select(User.id).where(User.referral_code == code))
        if existing is None:
            return code
    raise RuntimeError("Failed to generate unique referral code after 10 attempts")
