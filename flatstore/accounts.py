"""
Account Model Module

Bank accounts, their tiers and the bonus point rules. Accounts are plain
value objects; persistence is handled by the record store and the
orchestration by the Bank service.
"""

from decimal import Decimal
from dataclasses import dataclass
from enum import Enum

from .binary import to_float32
from .currency import Currency, format_money
from .errors import ValidationError


# Amount of money the bank considers effective for bonus accrual
EFFECTIVE_AMOUNT = Decimal('10000')

MAX_BONUS_POINTS = 100.0


class AccountTier(Enum):
    """Account tiers with their balance ceiling and bonus weights"""
    STANDARD = ("standard", Decimal('1000'), 1, 3)
    GOLD = ("gold", Decimal('5000'), 5, 4)
    PLATINUM = ("platinum", None, 10, 5)

    def __init__(self, tag: str, ceiling, balance_value: int, deposit_value: int):
        self.tag = tag
        self.ceiling = ceiling
        self.balance_value = balance_value
        self.deposit_value = deposit_value

    @classmethod
    def from_tag(cls, tag: str) -> 'AccountTier':
        """Resolve the stored discriminator tag to a tier"""
        for tier in cls:
            if tier.tag == tag:
                return tier
        raise ValueError(f"Unknown account tier tag: {tag!r}")

    @classmethod
    def for_balance(cls, balance: Decimal) -> 'AccountTier':
        """Pick the tier whose ceiling covers the given balance"""
        for tier in cls:
            if tier.ceiling is None or balance <= tier.ceiling:
                return tier
        return cls.PLATINUM


def _clamp_points(points: float) -> float:
    return to_float32(min(max(points, 0.0), MAX_BONUS_POINTS))


@dataclass
class BankAccount:
    """
    Bank account persisted by the record store

    The IBAN is the record key and the tier is its discriminator; both are
    fixed for the life of the account. Balance and bonus points are
    fixed-width on disk so they can be rewritten in place.
    """
    iban: str
    owner: str
    balance: Decimal = Decimal('0')
    bonus_points: float = 0.0
    tier: AccountTier = AccountTier.STANDARD

    def __post_init__(self):
        if not isinstance(self.iban, str) or not self.iban.strip():
            raise ValidationError("IBAN must be a non-blank string")
        if not isinstance(self.owner, str) or not self.owner.strip():
            raise ValidationError("Owner must be a non-blank string", key=self.iban)
        if not isinstance(self.balance, Decimal):
            self.balance = Decimal(str(self.balance))
        if not 0 <= self.bonus_points <= MAX_BONUS_POINTS:
            raise ValidationError(
                f"Bonus points range is from 0 to {MAX_BONUS_POINTS:g}", key=self.iban
            )
        self.bonus_points = to_float32(self.bonus_points)

    def deposit(self, amount: Decimal, points: float) -> None:
        """Add money and earned bonus points"""
        self.balance += amount
        self.bonus_points = _clamp_points(self.bonus_points + points)

    def withdraw(self, amount: Decimal, points: float) -> None:
        """
        Take money out and deduct bonus points

        Raises:
            ValidationError: If the balance does not cover the amount
        """
        if self.balance < amount:
            raise ValidationError(
                "Account balance is lesser than the requested withdrawal amount",
                key=self.iban
            )
        self.balance -= amount
        self.bonus_points = _clamp_points(self.bonus_points - points)

    def describe(self, currency: Currency = Currency.USD) -> str:
        """Full account info, one field per line"""
        return "\n".join([
            f"IBAN: {self.iban}",
            f"Owner: {self.owner}",
            f"Tier: {self.tier.tag}",
            f"Balance: {format_money(self.balance, currency)}",
            f"Bonus points: {round(self.bonus_points, 2)}",
        ])


class BonusPointsCalculator:
    """Calculates bonus points earned or lost by a transaction"""

    def deposit_points(self, account: BankAccount, amount: Decimal) -> float:
        weight = account.tier.balance_value + account.tier.deposit_value
        return float(amount / EFFECTIVE_AMOUNT * weight)

    def withdrawal_points(self, account: BankAccount, amount: Decimal) -> float:
        return float(amount / EFFECTIVE_AMOUNT * account.tier.balance_value)
