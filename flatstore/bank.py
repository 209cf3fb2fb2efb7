"""
Bank Service Module

Opens and closes accounts and applies deposits and withdrawals. Every
operation validates its arguments before touching storage, then reads the
account, mutates it in memory and writes it back through the store.
"""

from decimal import Decimal
from typing import Callable, Optional
import uuid

from .accounts import AccountTier, BankAccount, BonusPointsCalculator
from .config import FlatstoreConfig, get_config
from .currency import Currency, format_money
from .errors import ValidationError
from .logging_config import get_logger, log_action
from .storage import RecordStorage


def generate_iban() -> str:
    """Default IBAN generator"""
    return str(uuid.uuid4())


class Bank:
    """
    Account service on top of a record store
    """

    def __init__(
        self,
        storage: RecordStorage[BankAccount],
        iban_generator: Optional[Callable[[], str]] = None,
        calculator: Optional[BonusPointsCalculator] = None,
        config: Optional[FlatstoreConfig] = None
    ):
        self.storage = storage
        self.iban_generator = iban_generator or generate_iban
        self.calculator = calculator or BonusPointsCalculator()
        if config is None:
            config = get_config()
        self.minimum_deposit = config.minimum_deposit
        self.minimum_withdrawal = config.minimum_withdrawal
        self.currency = Currency.from_code(config.display_currency)
        self.logger = get_logger("flatstore.bank")

    def _to_amount(self, amount) -> Decimal:
        if not isinstance(amount, Decimal):
            amount = Decimal(str(amount))
        if not amount.is_finite():
            raise ValidationError(f"Amount must be a finite number, got {amount}")
        return amount

    def open_account(self, holder: str, start_balance: Decimal) -> str:
        """
        Open a new account with a first deposit

        Args:
            holder: Account owner's full name
            start_balance: First deposit amount; decides the account tier

        Returns:
            IBAN of the new account

        Raises:
            ValidationError: If the start balance is below the minimum deposit
                or the holder name is blank
        """
        start_balance = self._to_amount(start_balance)
        if start_balance < self.minimum_deposit:
            raise ValidationError(
                f"Cannot create a bank account with balance lesser than "
                f"{format_money(self.minimum_deposit, self.currency)}"
            )

        tier = AccountTier.for_balance(start_balance)
        account = BankAccount(iban=self.iban_generator(), owner=holder, tier=tier)
        account.deposit(start_balance, self.calculator.deposit_points(account, start_balance))
        self.storage.add(account)

        log_action(
            self.logger, "info", f"Account opened: {tier.tag}",
            action="open_account", resource=f"account:{account.iban}",
            extra={"tier": tier.tag, "balance": str(account.balance)}
        )
        return account.iban

    def get_account(self, iban: str) -> BankAccount:
        """Load an account by IBAN"""
        return self.storage.get(iban)

    def deposit(self, iban: str, amount: Decimal) -> Decimal:
        """
        Deposit money to an account

        Returns:
            New account balance

        Raises:
            ValidationError: If the amount is below the minimum deposit
            NotFoundError: If the account does not exist
        """
        amount = self._to_amount(amount)
        if amount < self.minimum_deposit:
            raise ValidationError(
                f"Minimum deposit amount is {format_money(self.minimum_deposit, self.currency)}",
                key=iban
            )

        account = self.storage.get(iban)
        account.deposit(amount, self.calculator.deposit_points(account, amount))
        self.storage.save(account)

        log_action(
            self.logger, "info", "Deposit made",
            action="deposit", resource=f"account:{iban}",
            extra={"amount": str(amount), "balance": str(account.balance)}
        )
        return account.balance

    def withdraw(self, iban: str, amount: Decimal) -> Decimal:
        """
        Withdraw money from an account

        Returns:
            New account balance

        Raises:
            ValidationError: If the amount is below the minimum withdrawal or
                exceeds the balance
            NotFoundError: If the account does not exist
        """
        amount = self._to_amount(amount)
        if amount < self.minimum_withdrawal:
            raise ValidationError(
                f"Minimum withdrawal amount is {format_money(self.minimum_withdrawal, self.currency)}",
                key=iban
            )

        account = self.storage.get(iban)
        account.withdraw(amount, self.calculator.withdrawal_points(account, amount))
        self.storage.save(account)

        log_action(
            self.logger, "info", "Withdrawal made",
            action="withdraw", resource=f"account:{iban}",
            extra={"amount": str(amount), "balance": str(account.balance)}
        )
        return account.balance

    def close_account(self, iban: str) -> Decimal:
        """
        Close an account and remove it from storage

        Returns:
            Balance held at closing

        Raises:
            NotFoundError: If the account does not exist
        """
        balance = self.storage.remove(iban)
        log_action(
            self.logger, "info", "Account closed",
            action="close_account", resource=f"account:{iban}",
            extra={"final_balance": str(balance)}
        )
        return balance
