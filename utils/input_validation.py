"""
Input Validation Utilities
Field validators for marketplace forms, listing data and wallet requests
"""

import re
import math
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional

import phonenumbers
from phonenumbers import NumberParseException, PhoneNumberFormat

from config import Config
from utils.exception_handler import ValidationError

logger = logging.getLogger(__name__)


@dataclass
class GameDataValidation:
    is_valid: bool
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"is_valid": self.is_valid, "errors": list(self.errors)}


def _falsy(value: Any) -> bool:
    """Missing, empty, zero or False"""
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (int, float, Decimal)):
        return value == 0
    return False


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    # NaN compares False against both bounds
    if not math.isfinite(number):
        return None
    return number


def has_non_finite_number(value: Any) -> bool:
    """True when a NaN or infinity is nested anywhere in ``value``"""
    if isinstance(value, float):
        return not math.isfinite(value)
    if isinstance(value, Decimal):
        return not value.is_finite()
    if isinstance(value, Mapping):
        return any(has_non_finite_number(v) for v in value.values())
    if isinstance(value, (list, tuple)):
        return any(has_non_finite_number(v) for v in value)
    return False


def _out_of_range(value: Any, low: Optional[float] = None, high: Optional[float] = None) -> bool:
    """True when a required numeric field is missing, non numeric or outside [low, high]"""
    if _falsy(value):
        return True
    number = _number(value)
    if number is None:
        return True
    if low is not None and number < low:
        return True
    if high is not None and number > high:
        return True
    return False


class InputValidator:
    """Comprehensive input validation"""

    USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")
    EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
    SIMPLE_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
    CONTACT_INFO_PATTERN = re.compile(
        r"@|\.com|phone|discord|skype|telegram|whatsapp|email|gmail|yahoo|hotmail"
        r"|\+\d{1,3}[-.\s]?\d|call\s*me|text\s*me|contact\s*me",
        re.IGNORECASE,
    )
    SCRIPT_TAG_PATTERN = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)

    MIN_PASSWORD_LENGTH = 6

    @classmethod
    def _validate_length(cls, value: Optional[str], name: str, min_len: int, max_len: int) -> str:
        if value is None:
            raise ValidationError(f"{name} is required")
        value = value.strip()
        if len(value) < min_len:
            raise ValidationError(f"{name} must be at least {min_len} characters")
        if len(value) > max_len:
            raise ValidationError(f"{name} must be less than {max_len} characters")
        return value

    @classmethod
    def _validate_decimal_range(cls, value: Any, name: str, min_value: Decimal, max_value: Decimal) -> Decimal:
        if value is None or value == "":
            raise ValidationError(f"{name} cannot be empty")
        if isinstance(value, str):
            value = value.strip().replace(",", "")
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            raise ValidationError(f"Invalid {name.lower()} format. Please enter a valid number")
        if not amount.is_finite():
            raise ValidationError(f"Invalid {name.lower()} format. Please enter a valid number")

        symbol = Config.CURRENCY_SYMBOL
        if amount < min_value:
            raise ValidationError(f"{name} must be at least {min_value} {symbol}")
        if amount > max_value:
            raise ValidationError(f"{name} cannot exceed {max_value:,} {symbol}")

        # Trailing zeros such as 10.000 are fine
        if amount != amount.quantize(Decimal("0.01")):
            raise ValidationError(f"{name} cannot have more than 2 decimal places")
        return amount

    @classmethod
    def validate_email(cls, email: Optional[str]) -> str:
        """Validate email address format"""
        if not email or not email.strip():
            raise ValidationError("Email cannot be empty")

        email = email.strip().lower()
        if len(email) > 254:
            raise ValidationError("Email address too long (maximum 254 characters)")

        local_part, _, domain_part = email.rpartition("@")
        if not local_part or ".." in email or domain_part.startswith(".") or domain_part.endswith("."):
            raise ValidationError("Please enter a valid email address")
        if not cls.EMAIL_PATTERN.match(email):
            raise ValidationError("Please enter a valid email address")
        return email

    @classmethod
    def validate_password(cls, password: Optional[str]) -> str:
        if not password or len(password) < cls.MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {cls.MIN_PASSWORD_LENGTH} characters")
        return password

    @classmethod
    def validate_username(cls, username: Optional[str]) -> str:
        """Validate marketplace username: 3-20 letters, digits or underscores"""
        if not username:
            raise ValidationError("Username cannot be empty")
        username = username.strip()
        if len(username) < 3:
            raise ValidationError("Username must be at least 3 characters")
        if len(username) > 20:
            raise ValidationError("Username must be less than 20 characters")
        if not cls.USERNAME_PATTERN.match(username):
            raise ValidationError("Username can only contain letters, numbers, and underscores")
        return username

    @classmethod
    def validate_price(cls, price: Any) -> Decimal:
        return cls._validate_decimal_range(price, "Price", Config.MIN_LISTING_PRICE, Config.MAX_LISTING_PRICE)

    @classmethod
    def validate_wallet_amount(cls, amount: Any) -> Decimal:
        return cls._validate_decimal_range(amount, "Amount", Config.MIN_WALLET_AMOUNT, Config.MAX_WALLET_AMOUNT)

    @classmethod
    def validate_title(cls, title: Optional[str]) -> str:
        return cls._validate_length(title, "Title", 10, 100)

    @classmethod
    def validate_description(cls, description: Optional[str]) -> str:
        return cls._validate_length(description, "Description", 50, 1000)

    @classmethod
    def validate_support_subject(cls, subject: Optional[str]) -> str:
        return cls._validate_length(subject, "Subject", 5, 100)

    @classmethod
    def validate_support_description(cls, description: Optional[str]) -> str:
        return cls._validate_length(description, "Description", 20, 1000)

    @classmethod
    def validate_chat_message(cls, content: Optional[str]) -> str:
        if content is None or not content.strip():
            raise ValidationError("Message cannot be empty")
        content = content.strip()
        if len(content) > 500:
            raise ValidationError("Message must be less than 500 characters")
        return content

    @classmethod
    def validate_phone_number(cls, phone: Optional[str], region: Optional[str] = None) -> str:
        """Validate phone number and return it in E.164 form"""
        if not phone or not phone.strip():
            raise ValidationError("Phone number cannot be empty")

        phone = phone.strip()
        region = None if phone.startswith("+") else (region or Config.DEFAULT_PHONE_REGION)
        try:
            parsed_number = phonenumbers.parse(phone, region)
        except NumberParseException:
            raise ValidationError(
                "Invalid phone number format. Use your local number or + followed by country code"
            )

        if not phonenumbers.is_possible_number(parsed_number) or not phonenumbers.is_valid_number(parsed_number):
            raise ValidationError("Invalid phone number, please verify the country code and number")

        return phonenumbers.format_number(parsed_number, PhoneNumberFormat.E164)

    @classmethod
    def validate_required_fields(cls, data: Mapping[str, Any], required: Iterable[str], labels: Optional[Mapping[str, str]] = None) -> None:
        """Reject when any required field is missing or blank after trimming"""
        labels = labels or {}
        missing = [
            labels.get(name, name)
            for name in required
            if data.get(name) is None or not str(data.get(name)).strip()
        ]
        if missing:
            raise ValidationError(f"Please fill in all required fields: {', '.join(missing)}")

    @classmethod
    def is_valid_email(cls, email: str) -> bool:
        return bool(email) and bool(cls.SIMPLE_EMAIL_PATTERN.match(email))

    @classmethod
    def is_valid_username(cls, username: str) -> bool:
        return bool(username) and 3 <= len(username) <= 20 and bool(cls.USERNAME_PATTERN.match(username))

    @classmethod
    def contains_contact_info(cls, text: str) -> bool:
        """Detect attempts to move the conversation off-platform"""
        return bool(text) and cls.CONTACT_INFO_PATTERN.search(text) is not None

    @classmethod
    def sanitize_input(cls, text: str) -> str:
        """Strip script blocks and angle brackets"""
        if not text:
            return ""
        return re.sub(r"[<>]", "", cls.SCRIPT_TAG_PATTERN.sub("", text))

    @classmethod
    def validate_game_specific_data(cls, game: str, data: Optional[Mapping[str, Any]]) -> GameDataValidation:
        """
        Check the per-game required listing attributes.

        Errors are reported in a fixed order per game so forms can show them
        as a list. An unknown game yields a single error.
        """
        data = data or {}
        errors: List[str] = []

        if game == "fifa":
            if _falsy(data.get("platform")):
                errors.append("Platform is required")
            if _out_of_range(data.get("coins"), low=0):
                errors.append("FIFA Coins must be specified")
            if _out_of_range(data.get("level"), 1, 100):
                errors.append("Level must be between 1-100")
            if _out_of_range(data.get("overallRating"), 1, 99):
                errors.append("Overall Rating must be between 1-99")
            if _falsy(data.get("region")):
                errors.append("Region is required")

        elif game == "valorant":
            if _falsy(data.get("rank")):
                errors.append("Rank is required")
            if _out_of_range(data.get("rr"), low=0):
                errors.append("Rank Rating must be specified")
            if _out_of_range(data.get("agents"), 0, 25):
                errors.append("Agents must be between 0-25")
            if _out_of_range(data.get("level"), low=1):
                errors.append("Account level is required")
            if _falsy(data.get("region")):
                errors.append("Region is required")

        elif game == "lol":
            if _falsy(data.get("rank")):
                errors.append("Rank is required")
            if _out_of_range(data.get("lp"), low=0):
                errors.append("League Points must be specified")
            if _out_of_range(data.get("champions"), 0, 164):
                errors.append("Champions must be between 0-164")
            if _out_of_range(data.get("level"), low=1):
                errors.append("Account level is required")

        elif game == "pubg":
            if _falsy(data.get("rank")):
                errors.append("Rank is required")
            if _falsy(data.get("tier")):
                errors.append("Tier is required")
            if _out_of_range(data.get("level"), low=1):
                errors.append("Account level is required")
            if _falsy(data.get("region")):
                errors.append("Region is required")

        elif game == "cod":
            if _falsy(data.get("rank")):
                errors.append("Rank is required")
            if _out_of_range(data.get("level"), low=1):
                errors.append("Account level is required")
            # Prestige is optional, but bounded when given
            if "prestige" in data and data["prestige"] is not None:
                prestige = _number(data["prestige"])
                if prestige is None or prestige < 0 or prestige > 10:
                    errors.append("Prestige must be between 0-10")
            if _falsy(data.get("region")):
                errors.append("Region is required")

        else:
            errors.append("Invalid game selected")

        return GameDataValidation(is_valid=not errors, errors=errors)


def validate_game_specific_data(game: str, data: Optional[Mapping[str, Any]]) -> GameDataValidation:
    return InputValidator.validate_game_specific_data(game, data)
