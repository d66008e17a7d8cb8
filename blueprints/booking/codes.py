from __future__ import annotations
import secrets

# без 0/O и 1/I: код диктуют на ресепшене
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

def generate_booking_code(length: int = 8) -> str:
    if length < 4:
        raise ValueError("booking code length must be >= 4")
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))

def is_valid_booking_code(value: str | None, length: int = 8) -> bool:
    if not value or len(value) != length:
        return False
    return all(ch in CODE_ALPHABET for ch in value)
