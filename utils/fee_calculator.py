"""Wallet fee calculation utilities for deposits and withdrawals"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Dict, Optional, Union

from config import Config
from utils.exception_handler import ValidationError

logger = logging.getLogger(__name__)

Number = Union[Decimal, int, float, str]


@dataclass(frozen=True)
class FeeBreakdown:
    """Result of applying the wallet fee to an amount"""

    amount_after_fee: Decimal
    fee_amount: Decimal
    original_amount: Decimal

    def to_dict(self) -> Dict[str, str]:
        return {
            "amount_after_fee": str(self.amount_after_fee),
            "fee_amount": str(self.fee_amount),
            "original_amount": str(self.original_amount),
        }


class FeeCalculator:
    """Handles all fee-related calculations with mathematical precision"""

    # 2 decimal places for the wallet currency
    MONEY_PRECISION = Decimal("0.01")

    @classmethod
    def get_fee_percentage(cls) -> Decimal:
        """Configured wallet fee as a fraction (0.05 == 5%)"""
        return Decimal(str(Config.WALLET_FEE_PERCENTAGE))

    @classmethod
    def round_money(cls, value: Decimal) -> Decimal:
        return value.quantize(cls.MONEY_PRECISION, rounding=ROUND_HALF_UP)

    @classmethod
    def _to_decimal(cls, value: Number, name: str) -> Decimal:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValidationError(f"Invalid {name}: {value!r}")
        if not result.is_finite():
            raise ValidationError(f"Invalid {name}: {value!r}")
        return result

    @classmethod
    def _fee_fraction(cls, fee_percentage: Optional[Number]) -> Decimal:
        p = cls.get_fee_percentage() if fee_percentage is None else cls._to_decimal(fee_percentage, "fee percentage")
        if p < 0 or p >= 1:
            raise ValidationError(f"Fee percentage must be in [0, 1), got {p}")
        return p

    @classmethod
    def calculate_fee(cls, amount: Number, fee_percentage: Optional[Number] = None) -> FeeBreakdown:
        """
        Split an amount into fee and remainder.

        Both parts are derived from the unrounded fee and rounded half-up to
        two places independently, so their sum may differ from the original
        amount by at most one cent.
        """
        original = cls._to_decimal(amount, "amount")
        if original < 0:
            raise ValidationError("Amount cannot be negative")
        p = cls._fee_fraction(fee_percentage)

        raw_fee = original * p
        return FeeBreakdown(
            amount_after_fee=cls.round_money(original - raw_fee),
            fee_amount=cls.round_money(raw_fee),
            original_amount=original,
        )

    @classmethod
    def calculate_required_payment(cls, desired_credit: Number, fee_percentage: Optional[Number] = None) -> Decimal:
        """Amount to pay so that ``desired_credit`` remains after the fee"""
        desired = cls._to_decimal(desired_credit, "amount")
        if desired < 0:
            raise ValidationError("Amount cannot be negative")
        p = cls._fee_fraction(fee_percentage)
        return cls.round_money(desired / (Decimal("1") - p))


def calculate_fee(amount: Number, fee_percentage: Optional[Number] = None) -> FeeBreakdown:
    return FeeCalculator.calculate_fee(amount, fee_percentage)


def calculate_required_payment(desired_credit: Number, fee_percentage: Optional[Number] = None) -> Decimal:
    return FeeCalculator.calculate_required_payment(desired_credit, fee_percentage)
