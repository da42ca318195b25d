import pytest
from fakes import FakeClock, FakeLedger, InMemoryWalletRepository
from solders.keypair import Keypair

from solwallet.executor import TransactionExecutor
from solwallet.wallet import WalletLedgerRecord


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def executor(ledger, clock):
    """Executor polling every 100 ms on a fake clock."""
    return TransactionExecutor(ledger, poll_interval=0.1, sleep=clock.sleep, clock=clock)


@pytest.fixture
def keypair():
    return Keypair()


@pytest.fixture
def record():
    return WalletLedgerRecord(id="w1", user_id=42, pub_key=str(Keypair().pubkey()), balance=100)


@pytest.fixture
def repository(record):
    return InMemoryWalletRepository(record)
