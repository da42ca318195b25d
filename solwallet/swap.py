import base64
import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from solwallet.config import config
from solwallet.errors import (
    ProtocolError,
    QuoteUnavailable,
    SwapDecodeError,
    UnsupportedSwapEnvelope,
)
from solwallet.executor import TransactionExecutor
from solwallet.transact_utils import parse_address
from solwallet.transaction import PendingTransaction

logger = logging.getLogger(__name__)

SUPPORTED_TX_TYPES = ("v0", "legacy")


@dataclass(frozen=True)
class SwapRequest:
    from_asset: str
    to_asset: str
    amount: float
    slippage: float
    payer: str

    def to_params(self) -> dict:
        return {
            "from": self.from_asset,
            "to": self.to_asset,
            "amount": self.amount,
            "slip": self.slippage,
            "payer": self.payer,
        }


@dataclass(frozen=True)
class SwapQuote:
    serialized_tx: str
    tx_type: str
    swap_details: dict = field(default_factory=dict)
    token_info: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "SwapQuote":
        try:
            transaction = data["transaction"]
            serialized_tx = transaction["serializedTx"]
            tx_type = transaction["txType"]
        except (KeyError, TypeError) as e:
            raise ProtocolError(f"Swap quote is missing the transaction envelope: {e}") from e
        if tx_type not in SUPPORTED_TX_TYPES:
            raise UnsupportedSwapEnvelope(tx_type)
        return cls(
            serialized_tx=serialized_tx,
            tx_type=tx_type,
            swap_details=data.get("swapDetails") or {},
            token_info=data.get("tokenInfo") or {},
        )


def decode_envelope(quote: SwapQuote, payer: Pubkey) -> PendingTransaction:
    """
    Decode a quote's pre-built transaction into a BUILT transaction.
    Signatures in the envelope are dropped; they would not survive a new
    reference hash.
    """
    if quote.tx_type not in SUPPORTED_TX_TYPES:
        raise UnsupportedSwapEnvelope(quote.tx_type)
    try:
        raw = base64.b64decode(quote.serialized_tx, validate=True)
        # legacy wire format is a versioned transaction without the prefix
        message = VersionedTransaction.from_bytes(raw).message
    except Exception as e:
        raise SwapDecodeError(f"Could not decode {quote.tx_type} swap transaction: {e}") from e
    if not message.account_keys:
        raise SwapDecodeError("Swap transaction has no accounts")
    return PendingTransaction(fee_payer=message.account_keys[0], compiled=message)


class SwapQuoteClient:
    def __init__(self, base_url: Optional[str] = None, http_client: Optional[httpx.AsyncClient] = None, timeout=10):
        self.base_url = (base_url or config.swap_api_url).rstrip("/")
        self.http_client = http_client
        self.timeout = timeout

    async def _get(self, params: dict) -> httpx.Response:
        if self.http_client is not None:
            return await self.http_client.get(f"{self.base_url}/swap", params=params, timeout=self.timeout)
        async with httpx.AsyncClient() as client:
            return await client.get(f"{self.base_url}/swap", params=params, timeout=self.timeout)

    async def get_quote(self, request: SwapRequest) -> SwapQuote:
        try:
            response = await self._get(request.to_params())
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise QuoteUnavailable(f"Swap quote service unavailable: {e}") from e
        try:
            data = response.json()
        except ValueError as e:
            raise ProtocolError(f"Swap quote is not valid JSON: {e}") from e
        return SwapQuote.from_dict(data)


class SwapOrchestrator:
    def __init__(self, quote_client: SwapQuoteClient, executor: TransactionExecutor):
        self.quote_client = quote_client
        self.executor = executor

    async def prepare(self, payer: Pubkey, from_asset, to_asset, amount, max_slippage):
        request = SwapRequest(
            from_asset=str(parse_address(from_asset)),
            to_asset=str(parse_address(to_asset)),
            amount=amount,
            slippage=max_slippage,
            payer=str(payer),
        )
        quote = await self.quote_client.get_quote(request)
        logger.info(f"Swap quote {request.from_asset} -> {request.to_asset}: {quote.swap_details}")
        return quote, decode_envelope(quote, payer)

    async def swap(
        self,
        keypair: Keypair,
        from_asset,
        to_asset,
        amount,
        max_slippage,
        timeout=None,
        cancel_event=None,
    ):
        quote, tx = await self.prepare(keypair.pubkey(), from_asset, to_asset, amount, max_slippage)
        tx = await self.executor.execute(tx, [keypair], timeout=timeout, cancel_event=cancel_event)
        return quote, tx
