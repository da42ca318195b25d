import logging

from solders.pubkey import Pubkey

from solwallet.constants import SYSTEM_PROGRAM_ID
from solwallet.errors import InsufficientRentExemptionQuery, LedgerError
from solwallet.ledger import LedgerClient
from solwallet.transact_utils import (
    associated_token_account,
    create_account_ix,
    parse_address,
    require_native_amount,
    token_transfer_ix,
    transfer_ix,
)
from solwallet.transaction import PendingTransaction

logger = logging.getLogger(__name__)


class TransactionBuilder:
    """
    Turns a high-level intent into an unsigned `PendingTransaction`.

    Every transaction returned here is BUILT: no reference hash, no
    signatures. `TransactionExecutor.execute` completes it.
    """

    def __init__(self, ledger: LedgerClient):
        self.ledger = ledger

    def transfer(self, sender, to, lamports: int) -> PendingTransaction:
        sender, to = parse_address(sender), parse_address(to)
        lamports = require_native_amount(lamports)
        return PendingTransaction(fee_payer=sender, instructions=[transfer_ix(sender, to, lamports)])

    async def create_account(
        self, payer, new_account, space: int, owner: Pubkey = SYSTEM_PROGRAM_ID
    ) -> PendingTransaction:
        payer, new_account = parse_address(payer), parse_address(new_account)
        space = require_native_amount(space)
        try:
            lamports = await self.ledger.get_minimum_balance_for_rent_exemption(space)
        except LedgerError as e:
            raise InsufficientRentExemptionQuery(
                f"Could not look up the rent-exempt balance for {space} bytes: {e}"
            ) from e
        logger.info(f"Creating account {new_account} with {lamports} lamports for {space} bytes")
        return PendingTransaction(
            fee_payer=payer,
            instructions=[create_account_ix(payer, new_account, lamports, space, owner)],
        )

    async def token_transfer(self, owner, mint, to, amount: int) -> PendingTransaction:
        """SPL transfer between associated token accounts; `amount` is in base units."""
        owner, mint, to = parse_address(owner), parse_address(mint), parse_address(to)
        amount = require_native_amount(amount)
        source, _ = associated_token_account(owner, mint)
        dest, create_dest_ix = associated_token_account(to, mint, payer=owner)
        ixs = []
        if await self.ledger.get_account(dest) is None:
            ixs.append(create_dest_ix)
        ixs.append(token_transfer_ix(owner, source, dest, amount))
        return PendingTransaction(fee_payer=owner, instructions=ixs)
