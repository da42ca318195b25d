import logging
from dataclasses import dataclass
from functools import wraps
from typing import Optional, Protocol, Tuple

import aiolimiter
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.core import RPCException
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction
from solders.transaction_status import TransactionConfirmationStatus

from solwallet.config import config
from solwallet.errors import ProtocolError, RpcError, TransportError
from solwallet.transaction import ConfirmationStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlockTransaction:
    signature: Optional[str]
    program_ids: Tuple[Pubkey, ...]
    err: Optional[str] = None


@dataclass(frozen=True)
class Block:
    slot: int
    parent_slot: int
    block_time: Optional[int]
    block_height: Optional[int]
    transactions: Tuple[BlockTransaction, ...] = ()


@dataclass(frozen=True)
class AccountInfo:
    lamports: int
    owner: Pubkey
    data_size: int
    executable: bool


@dataclass(frozen=True)
class Supply:
    total: int
    circulating: int
    non_circulating: int


class LedgerClient(Protocol):
    """
    Everything the engine asks of the remote node. Each call is one round
    trip; no retries and no interpretation happen behind it.
    """

    async def get_balance(self, address: Pubkey) -> int: ...

    async def get_latest_blockhash(self) -> Hash: ...

    async def get_slot(self) -> int: ...

    async def get_block(self, slot: int) -> Block: ...

    async def get_block_time(self, slot: int) -> Optional[int]: ...

    async def send_transaction(self, raw: bytes) -> Signature: ...

    async def confirm_transaction(self, signature: Signature) -> ConfirmationStatus: ...

    async def request_airdrop(self, address: Pubkey, lamports: int) -> Signature: ...

    async def get_account(self, address: Pubkey) -> Optional[AccountInfo]: ...

    async def get_minimum_balance_for_rent_exemption(self, space: int) -> int: ...

    async def get_version(self) -> str: ...

    async def get_supply(self) -> Supply: ...


class RateLimitedAsyncClient:
    def __init__(self, url, max_requests_per_second=None, **kwargs):
        self._client = AsyncClient(url, **kwargs)
        self._rate_limiter = aiolimiter.AsyncLimiter(
            max_requests_per_second or config.max_requests_per_second, 1
        )

    async def __aenter__(self):
        await self._client.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self._client.__aexit__(exc_type, exc, tb)

    async def close(self):
        await self._client.close()

    def __getattr__(self, name):
        original_attr = getattr(self._client, name)
        if callable(original_attr):
            async def wrapper(*args, **kwargs):
                async with self._rate_limiter:
                    return await original_attr(*args, **kwargs)
            return wrapper
        return original_attr


def _translate_errors(method):
    """Map solana-py failures onto the ledger error taxonomy, keeping the cause."""

    @wraps(method)
    async def wrapper(self, *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except SolanaRpcException as exc:
            raise TransportError(f"{method.__name__}: {exc}") from exc
        except RPCException as exc:
            raise RpcError(f"{method.__name__}: {_rpc_error_message(exc)}", _rpc_error_code(exc)) from exc
        except (AttributeError, TypeError, ValueError) as exc:
            raise ProtocolError(f"{method.__name__}: malformed response ({exc})") from exc

    return wrapper


def _rpc_error_message(exc: RPCException) -> str:
    error = exc.args[0] if exc.args else exc
    return getattr(error, "message", None) or str(error)


def _rpc_error_code(exc: RPCException):
    error = exc.args[0] if exc.args else None
    return getattr(error, "code", None)


def parse_block(slot: int, value) -> Block:
    """Convert a base64-encoded `getBlock` result into a `Block`."""
    if value is None:
        raise ProtocolError(f"Block {slot} is not available")
    transactions = []
    for entry in value.transactions:
        tx = entry.transaction
        if not isinstance(tx, VersionedTransaction):
            raise ProtocolError(f"Unexpected transaction encoding in block {slot}")
        keys = tx.message.account_keys
        program_ids = tuple(keys[ix.program_id_index] for ix in tx.message.instructions)
        err = entry.meta.err if entry.meta is not None else None
        transactions.append(
            BlockTransaction(
                signature=str(tx.signatures[0]) if tx.signatures else None,
                program_ids=program_ids,
                err=str(err) if err is not None else None,
            )
        )
    return Block(
        slot=slot,
        parent_slot=value.parent_slot,
        block_time=value.block_time,
        block_height=value.block_height,
        transactions=tuple(transactions),
    )


class SolanaLedgerClient:
    """`LedgerClient` backed by a Solana JSON-RPC node."""

    def __init__(self, url=None, client=None, commitment=Confirmed, skip_preflight=False):
        self.url = url or config.solana_rpc_url
        self.client = client or RateLimitedAsyncClient(self.url, commitment=commitment)
        self.commitment = commitment
        self.skip_preflight = skip_preflight

    async def close(self):
        await self.client.close()

    @_translate_errors
    async def get_balance(self, address: Pubkey) -> int:
        return (await self.client.get_balance(address)).value

    @_translate_errors
    async def get_latest_blockhash(self) -> Hash:
        return (await self.client.get_latest_blockhash()).value.blockhash

    @_translate_errors
    async def get_slot(self) -> int:
        return (await self.client.get_slot()).value

    @_translate_errors
    async def get_block(self, slot: int) -> Block:
        resp = await self.client.get_block(
            slot, encoding="base64", max_supported_transaction_version=0
        )
        return parse_block(slot, resp.value)

    @_translate_errors
    async def get_block_time(self, slot: int) -> Optional[int]:
        return (await self.client.get_block_time(slot)).value

    @_translate_errors
    async def send_transaction(self, raw: bytes) -> Signature:
        opts = TxOpts(skip_preflight=self.skip_preflight, preflight_commitment=self.commitment)
        return (await self.client.send_raw_transaction(raw, opts=opts)).value

    @_translate_errors
    async def confirm_transaction(self, signature: Signature) -> ConfirmationStatus:
        statuses = (await self.client.get_signature_statuses([signature])).value
        status = statuses[0] if statuses else None
        if status is None:
            return ConfirmationStatus.pending()
        if status.err is not None:
            return ConfirmationStatus.failed(status.err)
        if status.confirmation_status in (
            TransactionConfirmationStatus.Confirmed,
            TransactionConfirmationStatus.Finalized,
        ):
            return ConfirmationStatus.confirmed()
        return ConfirmationStatus.pending()

    @_translate_errors
    async def request_airdrop(self, address: Pubkey, lamports: int) -> Signature:
        return (await self.client.request_airdrop(address, lamports)).value

    @_translate_errors
    async def get_account(self, address: Pubkey) -> Optional[AccountInfo]:
        account = (await self.client.get_account_info(address)).value
        if account is None:
            return None
        return AccountInfo(
            lamports=account.lamports,
            owner=account.owner,
            data_size=len(account.data),
            executable=account.executable,
        )

    @_translate_errors
    async def get_minimum_balance_for_rent_exemption(self, space: int) -> int:
        return (await self.client.get_minimum_balance_for_rent_exemption(space)).value

    @_translate_errors
    async def get_version(self) -> str:
        return (await self.client.get_version()).value.solana_core

    @_translate_errors
    async def get_supply(self) -> Supply:
        supply = (await self.client.get_supply()).value
        return Supply(
            total=supply.total,
            circulating=supply.circulating,
            non_circulating=supply.non_circulating,
        )
