import logging
from typing import List, Optional, Protocol

import pymongo

from solwallet.config import config
from solwallet.wallet import WalletLedgerRecord

logger = logging.getLogger(__name__)


class WalletRepository(Protocol):
    def find_wallet_by_id(self, id: str) -> Optional[WalletLedgerRecord]: ...

    def save_wallet(self, record: WalletLedgerRecord) -> None: ...

    def add_wallet(self, record: WalletLedgerRecord) -> None: ...


class WalletDB:
    def __init__(self, host: str = None, client: pymongo.MongoClient = None):
        self.client = client or pymongo.MongoClient(host or config.mongodb_url)
        self.wallets = self.client["solwallet"]["wallets"]
        self.wallets.create_index([("user_id", pymongo.ASCENDING)])

    def wallet_exists(self, id: str) -> bool:
        return self.wallets.find_one({"_id": id}) is not None

    def find_wallet_by_id(self, id: str) -> Optional[WalletLedgerRecord]:
        wallet_data = self.wallets.find_one({"_id": id})
        return WalletLedgerRecord.from_dict(wallet_data) if wallet_data else None

    def find_wallets_by_user(self, user_id: int) -> List[WalletLedgerRecord]:
        return [WalletLedgerRecord.from_dict(w) for w in self.wallets.find({"user_id": user_id})]

    def save_wallet(self, record: WalletLedgerRecord) -> None:
        self.wallets.replace_one({"_id": record.id}, record.to_dict(), upsert=True)

    def add_wallet(self, record: WalletLedgerRecord, override: bool = False) -> None:
        if self.wallet_exists(record.id):
            if not override:
                raise ValueError(f'Wallet {record.id} already in db. To add anyways pass "override=True".')
            self.delete_wallet(record.id)
        self.wallets.insert_one(record.to_dict())
        logger.info(f"Added wallet {record.id} for user {record.user_id}")

    def delete_wallet(self, id: str) -> None:
        self.wallets.delete_one({"_id": id})
