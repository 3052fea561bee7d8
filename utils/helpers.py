"""Helper utilities for the GameVault marketplace"""

import logging
import secrets
import string
import time
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional, Union

from config import Config

logger = logging.getLogger(__name__)

SUPPORT_SENDER_ID = "admin-support"
_CODE_ALPHABET = string.ascii_uppercase + string.digits


def _random_code(length: int) -> str:
    return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(length))


def generate_order_code() -> str:
    """Public order reference, e.g. GV-482913-K3J9QZ"""
    timestamp = str(int(time.time() * 1000))
    return f"GV-{timestamp[-6:]}-{_random_code(6)}"


def generate_ticket_code() -> str:
    """Public ticket reference, e.g. ST-2024-8812AB3Q"""
    timestamp = str(int(time.time() * 1000))
    year = datetime.now(timezone.utc).year
    return f"ST-{year}-{timestamp[-4:]}{_random_code(4)}"


def chat_room_id(user_a: str, user_b: str) -> str:
    """Deterministic room id: both participants sorted and joined with '_'"""
    if not user_a or not user_b:
        raise ValueError("Both participants are required for a chat room")
    first, second = sorted([user_a, user_b])
    return f"{first}_{second}"


def format_currency(amount: Union[Decimal, int, float, None], symbol: Optional[str] = None) -> str:
    """Format amount with currency, dropping trailing zero cents"""
    symbol = symbol or Config.CURRENCY_SYMBOL
    if amount is None:
        return f"0 {symbol}"
    value = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    if value == value.to_integral_value():
        return f"{value:,.0f} {symbol}"
    return f"{value:,.2f} {symbol}"


def matches_search(term: Optional[str], *fields: Any) -> bool:
    """Case-insensitive substring match of ``term`` against any field"""
    if not term or not term.strip():
        return True
    needle = term.strip().lower()
    return any(needle in str(value).lower() for value in fields if value is not None)
