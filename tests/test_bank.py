"""
Test suite for the bank service

Tests account opening, deposits, withdrawals and closing against both the
in-memory store and the binary file store.
"""

import itertools
import shutil
import tempfile
import pytest
from decimal import Decimal
from pathlib import Path

from flatstore.accounts import AccountTier
from flatstore.bank import Bank, generate_iban
from flatstore.binary import to_float32
from flatstore.codec import AccountCodec
from flatstore.config import FlatstoreConfig
from flatstore.errors import NotFoundError, ValidationError
from flatstore.storage import BinaryFileStorage, InMemoryStorage


def sequential_ibans():
    counter = itertools.count(1)
    return lambda: f"IBAN{next(counter)}"


class TestBank:
    """Test bank operations with in-memory storage"""

    def setup_method(self):
        """Set up test fixtures"""
        self.storage = InMemoryStorage(AccountCodec())
        self.bank = Bank(self.storage, iban_generator=sequential_ibans(),
                         config=FlatstoreConfig())

    def test_open_account(self):
        """Opening deposits the start balance and earns points"""
        iban = self.bank.open_account("Ann Smith", Decimal('100'))
        assert iban == "IBAN1"

        account = self.bank.get_account(iban)
        assert account.owner == "Ann Smith"
        assert account.balance == Decimal('100')
        assert account.tier is AccountTier.STANDARD
        # 100 / 10000 * (1 + 3)
        assert account.bonus_points == to_float32(0.04)

    def test_open_account_tiers(self):
        """The start balance decides the tier"""
        standard = self.bank.open_account("Ann", Decimal('1000'))
        gold = self.bank.open_account("Bob", Decimal('5000'))
        platinum = self.bank.open_account("Cid", Decimal('20000'))
        assert self.bank.get_account(standard).tier is AccountTier.STANDARD
        assert self.bank.get_account(gold).tier is AccountTier.GOLD
        assert self.bank.get_account(platinum).tier is AccountTier.PLATINUM

    def test_open_account_below_minimum(self):
        """A start balance under the minimum deposit is refused before storage"""
        with pytest.raises(ValidationError):
            self.bank.open_account("Ann Smith", Decimal('49.99'))
        assert self.storage.count() == 0

    def test_open_account_blank_holder(self):
        """Holder names must be significant"""
        with pytest.raises(ValidationError):
            self.bank.open_account("   ", Decimal('100'))
        assert self.storage.count() == 0

    def test_deposit(self):
        """Deposits return the new balance and persist it"""
        iban = self.bank.open_account("Ann Smith", Decimal('100'))
        assert self.bank.deposit(iban, Decimal('50')) == Decimal('150')
        account = self.bank.get_account(iban)
        assert account.balance == Decimal('150')
        assert account.bonus_points == pytest.approx(0.06, abs=1e-6)

    def test_deposit_below_minimum(self):
        """Small deposits are refused"""
        iban = self.bank.open_account("Ann Smith", Decimal('100'))
        with pytest.raises(ValidationError):
            self.bank.deposit(iban, Decimal('49'))
        assert self.bank.get_account(iban).balance == Decimal('100')

    def test_withdraw(self):
        """Withdrawals return the new balance and deduct points"""
        iban = self.bank.open_account("Ann Smith", Decimal('200'))
        assert self.bank.withdraw(iban, Decimal('100')) == Decimal('100')
        assert self.bank.get_account(iban).bonus_points == pytest.approx(0.07, abs=1e-6)

    def test_withdraw_limits(self):
        """Withdrawals must meet the minimum and fit the balance"""
        iban = self.bank.open_account("Ann Smith", Decimal('100'))
        with pytest.raises(ValidationError):
            self.bank.withdraw(iban, Decimal('9.99'))
        with pytest.raises(ValidationError):
            self.bank.withdraw(iban, Decimal('100.01'))
        assert self.bank.get_account(iban).balance == Decimal('100')

    def test_unknown_account(self):
        """Operations on an absent IBAN raise NotFoundError"""
        with pytest.raises(NotFoundError):
            self.bank.deposit("NOPE", Decimal('100'))
        with pytest.raises(NotFoundError):
            self.bank.withdraw("NOPE", Decimal('100'))
        with pytest.raises(NotFoundError):
            self.bank.close_account("NOPE")

    def test_close_account(self):
        """Closing returns the final balance and removes the account"""
        iban = self.bank.open_account("Ann Smith", Decimal('100'))
        self.bank.deposit(iban, Decimal('75.25'))
        assert self.bank.close_account(iban) == Decimal('175.25')
        with pytest.raises(NotFoundError):
            self.bank.get_account(iban)

    def test_configured_minimums(self):
        """Minimum amounts come from configuration"""
        bank = Bank(InMemoryStorage(AccountCodec()),
                    config=FlatstoreConfig(minimum_deposit="500", minimum_withdrawal="100"))
        with pytest.raises(ValidationError):
            bank.open_account("Ann Smith", Decimal('499'))
        iban = bank.open_account("Ann Smith", Decimal('500'))
        with pytest.raises(ValidationError):
            bank.withdraw(iban, Decimal('99'))

    def test_non_finite_amount(self):
        """NaN and infinity are not amounts"""
        with pytest.raises(ValidationError):
            self.bank.open_account("Ann Smith", Decimal('Infinity'))

    def test_default_iban_generator(self):
        """Generated IBANs are unique"""
        assert generate_iban() != generate_iban()


class TestBankWithBinaryFile:
    """Test bank operations persisted to a binary file"""

    def setup_method(self):
        """Set up test fixtures"""
        self.temp_dir = tempfile.mkdtemp()
        self.path = Path(self.temp_dir) / "accounts.bin"
        self.codec = AccountCodec()
        self.bank = Bank(BinaryFileStorage(self.path, self.codec),
                         iban_generator=sequential_ibans(), config=FlatstoreConfig())

    def teardown_method(self):
        shutil.rmtree(self.temp_dir)

    def test_balances_survive_reopen(self):
        """A new bank over the same file sees the saved balances"""
        first = self.bank.open_account("Ann Smith", Decimal('100'))
        second = self.bank.open_account("Bob Brown", Decimal('5000'))
        self.bank.deposit(first, Decimal('900'))
        self.bank.withdraw(second, Decimal('250.50'))

        reopened = Bank(BinaryFileStorage(self.path, self.codec), config=FlatstoreConfig())
        assert reopened.get_account(first).balance == Decimal('1000')
        assert reopened.get_account(second).balance == Decimal('4749.50')
        # Deposits never change the tier chosen at opening
        assert reopened.get_account(first).tier is AccountTier.STANDARD

    def test_close_compacts_file(self):
        """Closing the first account leaves only the second on disk"""
        first = self.bank.open_account("Ann Smith", Decimal('100'))
        second = self.bank.open_account("Bob Brown", Decimal('5000'))
        remaining = self.bank.get_account(second)

        assert self.bank.close_account(first) == Decimal('100')
        assert self.path.stat().st_size == self.codec.measure(remaining)
        assert self.bank.get_account(second) == remaining
