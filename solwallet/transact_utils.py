from decimal import Decimal, InvalidOperation

import spl.token.instructions as spl_instructions
from solders.instruction import Instruction
from solders.pubkey import Pubkey
from solders.system_program import (
    create_account as system_create_account,
    CreateAccountParams,
    transfer,
    TransferParams,
)
from spl.token.instructions import create_associated_token_account, get_associated_token_address

from solwallet.constants import LAMPORTS_PER_SOL, TOKEN_PROGRAM_ID
from solwallet.errors import InvalidAddress, InvalidAmount


def parse_address(address) -> Pubkey:
    if isinstance(address, Pubkey):
        return address
    try:
        return Pubkey.from_string(str(address).strip())
    except ValueError as exc:
        raise InvalidAddress(f"Invalid Solana address: {address!r}") from exc


def require_native_amount(amount) -> int:
    """Amounts on the wire are non-negative integers of the smallest unit."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"Amount must be an integer number of native units, got {amount!r}")
    if amount < 0:
        raise InvalidAmount(f"Amount must be non-negative, got {amount}")
    return amount


def sol_to_lamports(sol) -> int:
    try:
        lamports = int(Decimal(str(sol)) * LAMPORTS_PER_SOL)
    except (InvalidOperation, ValueError, OverflowError) as exc:
        raise InvalidAmount(f"Invalid SOL amount: {sol!r}") from exc
    return require_native_amount(lamports)


def lamports_to_sol(lamports: int) -> float:
    return lamports / LAMPORTS_PER_SOL


def transfer_ix(sender: Pubkey, receiver: Pubkey, lamports: int) -> Instruction:
    return transfer(
        TransferParams(
            from_pubkey=sender,
            to_pubkey=receiver,
            lamports=require_native_amount(lamports),
        )
    )


def create_account_ix(payer: Pubkey, new_account: Pubkey, lamports: int, space: int, owner: Pubkey) -> Instruction:
    return system_create_account(
        CreateAccountParams(
            from_pubkey=payer,
            to_pubkey=new_account,
            lamports=require_native_amount(lamports),
            space=require_native_amount(space),
            owner=owner,
        )
    )


def token_transfer_ix(owner: Pubkey, source: Pubkey, dest: Pubkey, amount: int) -> Instruction:
    return spl_instructions.transfer(
        spl_instructions.TransferParams(
            amount=require_native_amount(amount),
            dest=dest,
            owner=owner,
            program_id=TOKEN_PROGRAM_ID,
            source=source,
        )
    )


def associated_token_account(owner: Pubkey, mint: Pubkey, payer: Pubkey = None):
    """Associated token address of `owner` for `mint` and the instruction creating it."""
    return (
        get_associated_token_address(owner, mint),
        create_associated_token_account(payer if payer else owner, owner, mint),
    )
