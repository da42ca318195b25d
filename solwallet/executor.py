import asyncio
import logging
import time
from typing import Optional, Sequence

from solders.keypair import Keypair
from solders.signature import Signature

from solwallet.config import config
from solwallet.errors import (
    LedgerError,
    RpcError,
    TransactionExpired,
    TransactionFailed,
)
from solwallet.ledger import LedgerClient
from solwallet.transaction import ConfirmationState, ConfirmationStatus, PendingTransaction

logger = logging.getLogger(__name__)


class TransactionExecutor:
    """
    Drives a `PendingTransaction` from BUILT to a terminal state.

    Order within one call is fixed: reference hash, then signing, then a
    single submission, then polling. Submission is never retried; only
    confirmation polls tolerate errors.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        poll_interval: Optional[float] = None,
        sleep=asyncio.sleep,
        clock=time.monotonic,
    ):
        self.ledger = ledger
        self.poll_interval = config.poll_interval if poll_interval is None else poll_interval
        self._sleep = sleep
        self._clock = clock

    async def sign(self, tx: PendingTransaction, signers: Sequence[Keypair]) -> PendingTransaction:
        blockhash = await self.ledger.get_latest_blockhash()
        tx.mark_signed(blockhash, signers)
        return tx

    async def submit(self, tx: PendingTransaction) -> PendingTransaction:
        raw = bytes(tx)
        try:
            signature = await self.ledger.send_transaction(raw)
        except RpcError as e:
            logger.warning(f"Node rejected transaction {tx.signature}: {e}")
            tx.mark_failed(e)
            return tx
        tx.mark_submitted(signature)
        logger.info(f"Submitted transaction {signature}")
        return tx

    async def confirm_signature(
        self,
        signature: Signature,
        timeout: float,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ConfirmationStatus:
        """
        Poll the node every `poll_interval` seconds for at most `timeout`
        seconds. Returns PENDING only when cancelled.
        """
        deadline = self._clock() + timeout
        polls = 0
        while self._clock() < deadline:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Stopped waiting for {signature} after {polls} polls")
                return ConfirmationStatus.pending()
            polls += 1
            try:
                status = await self.ledger.confirm_transaction(signature)
            except LedgerError as e:
                logger.debug(f"Status poll {polls} for {signature} failed: {e}")
                status = ConfirmationStatus.pending()
            if status.is_terminal:
                return status
            remaining = deadline - self._clock()
            if remaining <= 0:
                break
            await self._sleep(min(self.poll_interval, remaining))
        logger.info(f"Transaction {signature} not confirmed after {polls} polls")
        return ConfirmationStatus.expired()

    async def await_confirmation(
        self,
        tx: PendingTransaction,
        timeout: float,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> PendingTransaction:
        status = await self.confirm_signature(tx.signature, timeout, cancel_event)
        if status.state is ConfirmationState.CONFIRMED:
            tx.mark_confirmed()
        elif status.state is ConfirmationState.EXPIRED:
            tx.mark_expired()
        elif status.state is ConfirmationState.FAILED:
            tx.mark_failed(status.reason)
        return tx

    async def execute(
        self,
        tx: PendingTransaction,
        signers: Sequence[Keypair],
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> PendingTransaction:
        timeout = config.confirmation_timeout if timeout is None else timeout
        await self.sign(tx, signers)
        await self.submit(tx)
        if tx.is_terminal:
            raise TransactionFailed(tx.status.reason, tx)
        await self.await_confirmation(tx, timeout, cancel_event)
        raise_for_status(tx.status, tx.signature, tx)
        return tx


def raise_for_status(status: ConfirmationStatus, signature, tx=None) -> None:
    if status.state is ConfirmationState.EXPIRED:
        raise TransactionExpired(signature, tx)
    if status.state is ConfirmationState.FAILED:
        raise TransactionFailed(status.reason, tx)
