import logging
import math
from dataclasses import dataclass
from typing import Tuple

from solwallet.constants import GENESIS_BLOCK_HEIGHT, VOTE_PROGRAM_ID
from solwallet.errors import ProtocolError
from solwallet.ledger import Block, BlockTransaction, LedgerClient

logger = logging.getLogger(__name__)


def is_vote_transaction(tx: BlockTransaction) -> bool:
    # a transaction with no instructions is counted as user traffic
    return bool(tx.program_ids) and all(p == VOTE_PROGRAM_ID for p in tx.program_ids)


def classify_block(block: Block) -> Tuple[int, int]:
    """Returns (vote_count, user_count); the two always sum to the block's transaction count."""
    votes = sum(1 for tx in block.transactions if is_vote_transaction(tx))
    return votes, len(block.transactions) - votes


def is_genesis(block: Block) -> bool:
    return block.block_height == GENESIS_BLOCK_HEIGHT or block.parent_slot >= block.slot


@dataclass
class ThroughputWindow:
    newest_timestamp: int
    oldest_timestamp: int
    user_transactions: int = 0
    vote_transactions: int = 0
    blocks_scanned: int = 0

    @property
    def duration(self) -> int:
        # clock skew between leaders can make the oldest block look newer
        return max(self.newest_timestamp - self.oldest_timestamp, 0)

    @property
    def rate(self) -> float:
        if self.duration == 0:
            return 0.0
        rate = self.user_transactions / self.duration
        return rate if math.isfinite(rate) else 0.0


def _timestamp(block: Block) -> int:
    if block.block_time is None:
        raise ProtocolError(f"Block {block.slot} has no timestamp")
    return block.block_time


class ThroughputEstimator:
    """
    Estimates user transactions per second by walking the chain backward
    from the head until `window_seconds` of block time is covered.

    A failed block fetch aborts the whole walk.
    """

    def __init__(self, ledger: LedgerClient):
        self.ledger = ledger

    async def measure(self, window_seconds: float) -> ThroughputWindow:
        if window_seconds < 0:
            raise ValueError(f"window_seconds must be non-negative, got {window_seconds}")
        head_slot = await self.ledger.get_slot()
        current = await self.ledger.get_block(head_slot)
        newest = _timestamp(current)
        threshold = newest - window_seconds
        window = ThroughputWindow(newest_timestamp=newest, oldest_timestamp=newest)

        while True:
            if is_genesis(current):
                window.oldest_timestamp = _timestamp(current)
                break
            parent = await self.ledger.get_block(current.parent_slot)
            votes, users = classify_block(current)
            window.vote_transactions += votes
            window.user_transactions += users
            window.blocks_scanned += 1
            window.oldest_timestamp = _timestamp(parent)
            if window.oldest_timestamp <= threshold or parent.block_height == GENESIS_BLOCK_HEIGHT:
                break
            current = parent

        logger.info(
            f"Scanned {window.blocks_scanned} blocks from slot {head_slot}: "
            f"{window.user_transactions} user / {window.vote_transactions} vote transactions "
            f"over {window.duration}s"
        )
        return window

    async def estimate(self, window_seconds: float) -> float:
        return (await self.measure(window_seconds)).rate
