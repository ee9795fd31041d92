"""Join codes for private groups."""

import secrets
from typing import Optional

from app.config import settings

# 32 symbols: no 0/O, 1/I or lowercase, so codes survive being read aloud
JOIN_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_join_code(length: Optional[int] = None) -> str:
    length = length or settings.join_code_length
    return "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(length))
