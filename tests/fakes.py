"""
Deterministic stand-ins for the network boundaries.

`FakeLedger` implements the `LedgerClient` protocol entirely in memory;
`FakeClock` lets confirmation loops run without real sleeping.
"""

from typing import Dict, List, Optional

from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from solwallet.ledger import AccountInfo, Block, Supply
from solwallet.transaction import ConfirmationStatus


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        # keep decimal steps exact so budgets divide evenly
        self.now = round(self.now + seconds, 6)


class FakeLedger:
    def __init__(self):
        self.url = "https://api.devnet.solana.com"
        self.balances: Dict[Pubkey, int] = {}
        self.accounts: Dict[Pubkey, AccountInfo] = {}
        self.blocks: Dict[int, Block] = {}
        self.slot = 0
        self.blockhash = Hash.new_unique()
        self.rent_per_byte = 6960
        self.version = "1.18.22"
        self.supply = Supply(total=580_000_000, circulating=400_000_000, non_circulating=180_000_000)

        # statuses returned by successive confirm_transaction calls; the last repeats
        self.confirmations: List[ConfirmationStatus] = [ConfirmationStatus.confirmed()]
        # method name -> exception raised on every call
        self.errors: Dict[str, Exception] = {}
        # slot -> exception raised when that block is fetched
        self.block_errors: Dict[int, Exception] = {}

        self.sent: List[VersionedTransaction] = []
        self.airdrops: List[tuple] = []
        self.calls: Dict[str, int] = {}
        self.closed = False

    def _call(self, name):
        self.calls[name] = self.calls.get(name, 0) + 1
        if name in self.errors:
            raise self.errors[name]

    def add_block(self, block: Block) -> Block:
        self.blocks[block.slot] = block
        self.slot = max(self.slot, block.slot)
        return block

    async def close(self):
        self.closed = True

    async def get_balance(self, address: Pubkey) -> int:
        self._call("get_balance")
        return self.balances.get(address, 0)

    async def get_latest_blockhash(self) -> Hash:
        self._call("get_latest_blockhash")
        return self.blockhash

    async def get_slot(self) -> int:
        self._call("get_slot")
        return self.slot

    async def get_block(self, slot: int) -> Block:
        self._call("get_block")
        if slot in self.block_errors:
            raise self.block_errors[slot]
        return self.blocks[slot]

    async def get_block_time(self, slot: int) -> Optional[int]:
        self._call("get_block_time")
        return self.blocks[slot].block_time if slot in self.blocks else None

    async def send_transaction(self, raw: bytes) -> Signature:
        self._call("send_transaction")
        tx = VersionedTransaction.from_bytes(raw)
        self.sent.append(tx)
        return tx.signatures[0]

    async def confirm_transaction(self, signature: Signature) -> ConfirmationStatus:
        self._call("confirm_transaction")
        if len(self.confirmations) > 1:
            return self.confirmations.pop(0)
        return self.confirmations[0]

    async def request_airdrop(self, address: Pubkey, lamports: int) -> Signature:
        self._call("request_airdrop")
        self.airdrops.append((address, lamports))
        self.balances[address] = self.balances.get(address, 0) + lamports
        return Signature.new_unique()

    async def get_account(self, address: Pubkey) -> Optional[AccountInfo]:
        self._call("get_account")
        return self.accounts.get(address)

    async def get_minimum_balance_for_rent_exemption(self, space: int) -> int:
        self._call("get_minimum_balance_for_rent_exemption")
        return (128 + space) * self.rent_per_byte

    async def get_version(self) -> str:
        self._call("get_version")
        return self.version

    async def get_supply(self) -> Supply:
        self._call("get_supply")
        return self.supply


class InMemoryWalletRepository:
    def __init__(self, *records):
        self.wallets = {r.id: r for r in records}
        self.saved = []

    def find_wallet_by_id(self, id):
        return self.wallets.get(id)

    def save_wallet(self, record) -> None:
        self.saved.append(record.id)
        self.wallets[record.id] = record

    def add_wallet(self, record) -> None:
        if record.id in self.wallets:
            raise ValueError(f"Wallet {record.id} already exists")
        self.wallets[record.id] = record
