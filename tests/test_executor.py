import asyncio

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from solwallet.errors import (
    InvalidStateTransition,
    RpcError,
    SigningError,
    TransactionExpired,
    TransactionFailed,
    TransportError,
)
from solwallet.executor import raise_for_status
from solwallet.transact import TransactionBuilder
from solwallet.transaction import ConfirmationState, ConfirmationStatus, TxState


@pytest.fixture
def tx(ledger, keypair):
    return TransactionBuilder(ledger).transfer(keypair.pubkey(), Pubkey.new_unique(), 5_000)


@pytest.mark.asyncio
class TestExecute:
    """Tests for the sign, submit, confirm pipeline"""

    async def test_confirmed_transfer(self, executor, ledger, tx, keypair):
        result = await executor.execute(tx, [keypair], timeout=1)
        assert result.state is TxState.CONFIRMED
        assert len(ledger.sent) == 1
        sent = ledger.sent[0]
        assert sent.message.recent_blockhash == ledger.blockhash
        assert sent.message.account_keys[0] == keypair.pubkey()
        assert result.signature == sent.signatures[0]

    async def test_confirms_after_pending_polls(self, executor, ledger, tx, keypair):
        ledger.confirmations = [ConfirmationStatus.pending()] * 2 + [ConfirmationStatus.confirmed()]
        await executor.execute(tx, [keypair], timeout=1)
        assert ledger.calls["confirm_transaction"] == 3
        assert tx.state is TxState.CONFIRMED

    async def test_expires_within_budget(self, executor, ledger, clock, tx, keypair):
        """500 ms budget at a 100 ms interval polls at most 5 times"""
        ledger.confirmations = [ConfirmationStatus.pending()]
        with pytest.raises(TransactionExpired) as exc_info:
            await executor.execute(tx, [keypair], timeout=0.5)
        assert ledger.calls["confirm_transaction"] <= 5
        assert tx.state is TxState.EXPIRED
        assert exc_info.value.retryable
        assert exc_info.value.signature == tx.signature
        assert clock.now == pytest.approx(1000.5)

    async def test_poll_errors_count_as_pending(self, executor, ledger, tx, keypair):
        ledger.errors["confirm_transaction"] = TransportError("connection reset")
        with pytest.raises(TransactionExpired):
            await executor.execute(tx, [keypair], timeout=0.5)
        assert 1 <= ledger.calls["confirm_transaction"] <= 5

    async def test_node_reported_failure_stops_polling(self, executor, ledger, tx, keypair):
        ledger.confirmations = [
            ConfirmationStatus.pending(),
            ConfirmationStatus.failed("InstructionError(0, Custom(1))"),
            ConfirmationStatus.confirmed(),
        ]
        with pytest.raises(TransactionFailed) as exc_info:
            await executor.execute(tx, [keypair], timeout=1)
        assert ledger.calls["confirm_transaction"] == 2
        assert tx.state is TxState.FAILED
        assert "Custom(1)" in exc_info.value.reason
        assert not exc_info.value.retryable

    async def test_transport_failure_on_submit_is_not_retried(self, executor, ledger, tx, keypair):
        ledger.errors["send_transaction"] = TransportError("timed out")
        with pytest.raises(TransportError):
            await executor.execute(tx, [keypair], timeout=1)
        assert ledger.calls["send_transaction"] == 1
        assert "confirm_transaction" not in ledger.calls
        assert tx.state is TxState.SIGNED

    async def test_node_rejection_fails_transaction(self, executor, ledger, tx, keypair):
        ledger.errors["send_transaction"] = RpcError("Blockhash not found", -32002)
        with pytest.raises(TransactionFailed):
            await executor.execute(tx, [keypair], timeout=1)
        assert tx.state is TxState.FAILED
        assert "Blockhash not found" in tx.status.reason
        assert "confirm_transaction" not in ledger.calls

    async def test_cancel_leaves_transaction_submitted(self, executor, ledger, tx, keypair):
        ledger.confirmations = [ConfirmationStatus.pending()]
        cancel = asyncio.Event()
        cancel.set()
        result = await executor.execute(tx, [keypair], timeout=1, cancel_event=cancel)
        assert result.state is TxState.SUBMITTED
        assert "confirm_transaction" not in ledger.calls

    async def test_missing_signer(self, executor, ledger, tx):
        with pytest.raises(SigningError):
            await executor.execute(tx, [Keypair()], timeout=1)
        assert tx.state is TxState.BUILT
        assert ledger.sent == []

    async def test_transaction_is_single_use(self, executor, ledger, tx, keypair):
        await executor.execute(tx, [keypair], timeout=1)
        with pytest.raises(InvalidStateTransition):
            await executor.execute(tx, [keypair], timeout=1)
        assert len(ledger.sent) == 1

    async def test_reset_allows_resubmission_with_new_hash(self, executor, ledger, tx, keypair):
        ledger.confirmations = [ConfirmationStatus.pending()]
        with pytest.raises(TransactionExpired):
            await executor.execute(tx, [keypair], timeout=0.2)
        first_hash = ledger.blockhash
        tx.reset()
        assert tx.state is TxState.BUILT
        assert tx.recent_blockhash is None
        assert tx.signature is None

        ledger.blockhash = Hash.new_unique()
        ledger.confirmations = [ConfirmationStatus.confirmed()]
        await executor.execute(tx, [keypair], timeout=1)
        assert ledger.sent[1].message.recent_blockhash != first_hash
        assert tx.state is TxState.CONFIRMED


@pytest.mark.asyncio
class TestConfirmSignature:
    """Tests for polling a signature produced outside the executor"""

    async def test_returns_terminal_status(self, executor, ledger):
        status = await executor.confirm_signature(await ledger.request_airdrop(Pubkey.new_unique(), 1), 1)
        assert status.state is ConfirmationState.CONFIRMED

    async def test_expired_status_after_budget(self, executor, ledger):
        ledger.confirmations = [ConfirmationStatus.pending()]
        status = await executor.confirm_signature(await ledger.request_airdrop(Pubkey.new_unique(), 1), 0.3)
        assert status.state is ConfirmationState.EXPIRED
        assert ledger.calls["confirm_transaction"] <= 3


class TestRaiseForStatus:
    def test_pending_and_confirmed_do_not_raise(self):
        raise_for_status(ConfirmationStatus.pending(), "sig")
        raise_for_status(ConfirmationStatus.confirmed(), "sig")

    def test_expired(self):
        with pytest.raises(TransactionExpired):
            raise_for_status(ConfirmationStatus.expired(), "sig")

    def test_failed(self):
        with pytest.raises(TransactionFailed):
            raise_for_status(ConfirmationStatus.failed("boom"), "sig")
