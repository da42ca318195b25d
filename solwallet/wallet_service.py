import asyncio
import logging
from decimal import Decimal
from typing import Optional, Tuple

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from solwallet.config import config
from solwallet.constants import SYSTEM_PROGRAM_ID
from solwallet.db import WalletRepository
from solwallet.errors import InvalidAmount, WalletDisabled, WalletNotFound
from solwallet.executor import raise_for_status, TransactionExecutor
from solwallet.ledger import LedgerClient, SolanaLedgerClient, Supply
from solwallet.swap import SwapOrchestrator, SwapQuote, SwapQuoteClient
from solwallet.throughput import ThroughputEstimator
from solwallet.transact import TransactionBuilder
from solwallet.transact_utils import parse_address, require_native_amount
from solwallet.transaction import PendingTransaction, TxState
from solwallet.wallet import apply_delta, to_decimal, WalletLedgerRecord

logger = logging.getLogger(__name__)


class WalletService:
    """
    Caller-facing wallet operations.

    Chain operations go through the ledger; `deposit`/`withdraw` only touch
    the off-chain wallet records held by `repository`.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        repository: Optional[WalletRepository] = None,
        quote_client: Optional[SwapQuoteClient] = None,
        executor: Optional[TransactionExecutor] = None,
        timeout: Optional[float] = None,
    ):
        self.ledger = ledger
        self.repository = repository
        self.executor = executor or TransactionExecutor(ledger)
        self.builder = TransactionBuilder(ledger)
        self.swapper = SwapOrchestrator(quote_client or SwapQuoteClient(), self.executor)
        self.throughput = ThroughputEstimator(ledger)
        self.timeout = config.confirmation_timeout if timeout is None else timeout

    @classmethod
    def from_config(cls, repository: Optional[WalletRepository] = None) -> "WalletService":
        return cls(SolanaLedgerClient(config.solana_rpc_url), repository=repository)

    async def get_balance(self, address) -> int:
        return await self.ledger.get_balance(parse_address(address))

    async def transfer(
        self, keypair: Keypair, to, lamports: int, cancel_event: Optional[asyncio.Event] = None
    ) -> PendingTransaction:
        tx = self.builder.transfer(keypair.pubkey(), to, lamports)
        tx = await self.executor.execute(tx, [keypair], timeout=self.timeout, cancel_event=cancel_event)
        if tx.state is TxState.CONFIRMED:
            logger.info(f"Transferred {lamports} lamports from {keypair.pubkey()} to {to}: {tx.signature}")
        else:
            logger.info(f"Transfer of {lamports} lamports to {to} still {tx.state.name.lower()}: {tx.signature}")
        return tx

    async def airdrop(self, address, lamports: int, cancel_event: Optional[asyncio.Event] = None) -> Signature:
        address = parse_address(address)
        lamports = require_native_amount(lamports)
        signature = await self.ledger.request_airdrop(address, lamports)
        status = await self.executor.confirm_signature(signature, self.timeout, cancel_event)
        raise_for_status(status, signature)
        logger.info(f"Airdropped {lamports} lamports to {address}: {signature}")
        return signature

    def _get_wallet(self, record_id) -> WalletLedgerRecord:
        if self.repository is None:
            raise RuntimeError("No wallet repository configured")
        record = self.repository.find_wallet_by_id(record_id)
        if record is None:
            raise WalletNotFound(record_id)
        if record.disabled:
            raise WalletDisabled(record_id)
        return record

    def deposit(self, record_id, amount) -> WalletLedgerRecord:
        """Applies a signed delta to the wallet record and persists it."""
        record = self._get_wallet(record_id)
        apply_delta(record, amount)
        self.repository.save_wallet(record)
        logger.info(f"Wallet {record_id} balance changed by {amount}, now {record.balance}")
        return record

    def withdraw(self, record_id, amount) -> WalletLedgerRecord:
        amount = to_decimal(amount)
        if amount < 0:
            raise InvalidAmount(f"Withdrawal amount must be non-negative, got {amount}")
        return self.deposit(record_id, -amount)

    def create_wallet(self, user_id: int, pub_key, balance=Decimal(0)) -> WalletLedgerRecord:
        if self.repository is None:
            raise RuntimeError("No wallet repository configured")
        record = WalletLedgerRecord(
            user_id=user_id,
            pub_key=str(parse_address(pub_key)),
            balance=to_decimal(balance),
        )
        self.repository.add_wallet(record)
        return record

    async def swap(
        self,
        keypair: Keypair,
        from_asset,
        to_asset,
        amount,
        max_slippage,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Tuple[SwapQuote, PendingTransaction]:
        return await self.swapper.swap(
            keypair, from_asset, to_asset, amount, max_slippage, timeout=self.timeout, cancel_event=cancel_event
        )

    async def estimate_throughput(self, window_seconds: float) -> float:
        return await self.throughput.estimate(window_seconds)

    async def create_account(
        self, payer: Keypair, new_account: Keypair, space: int, owner: Pubkey = SYSTEM_PROGRAM_ID
    ) -> PendingTransaction:
        tx = await self.builder.create_account(payer.pubkey(), new_account.pubkey(), space, owner)
        return await self.executor.execute(tx, [payer, new_account], timeout=self.timeout)

    async def transfer_token(self, keypair: Keypair, mint, to, amount: int) -> PendingTransaction:
        tx = await self.builder.token_transfer(keypair.pubkey(), mint, to, amount)
        return await self.executor.execute(tx, [keypair], timeout=self.timeout)

    async def get_cluster_info(self) -> dict:
        """Endpoint, node version, current slot and its block time (None if the slot has no block)."""
        slot = await self.ledger.get_slot()
        return {
            "rpc_url": getattr(self.ledger, "url", None),
            "version": await self.ledger.get_version(),
            "slot": slot,
            "time": await self.ledger.get_block_time(slot),
        }

    async def get_supply(self) -> Supply:
        return await self.ledger.get_supply()
