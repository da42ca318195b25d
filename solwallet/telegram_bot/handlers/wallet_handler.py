import html
import logging
from functools import wraps

from telegram import Update
from telegram.ext import ContextTypes

from solwallet.constants import SOLANA_MINT
from solwallet.errors import SolwalletError
from solwallet.keys import generate_keypair
from solwallet.telegram_bot.utils import (
    explorer_link,
    format_sol,
    format_unix_time,
    nice_float_price_format as nfpf,
    utc_time_now,
)
from solwallet.transact_utils import sol_to_lamports

logger = logging.getLogger(__name__)

DEFAULT_SWAP_SLIPPAGE = 10
DEFAULT_TPS_WINDOW = 10
MAX_TPS_WINDOW = 120
DEFAULT_SEED_WORDS = 12

HELP_TEXT = (
    "<u><b>Commands</b></u>\n"
    "/balance [address] · SOL balance\n"
    "/airdrop &lt;sol&gt; [address] · request test SOL\n"
    "/transfer &lt;address&gt; &lt;sol&gt; · send SOL\n"
    "/swap &lt;from&gt; &lt;to&gt; &lt;amount&gt; [slippage] · swap tokens (SOL for native)\n"
    "/tps [seconds] · user transactions per second\n"
    "/add_wallet &lt;address&gt; · track a wallet record\n"
    "/deposit &lt;wallet_id&gt; &lt;amount&gt; · credit a wallet record\n"
    "/withdraw &lt;wallet_id&gt; &lt;amount&gt; · debit a wallet record\n"
    "/cluster · node version, slot, block time and supply\n"
    "/new_keypair [words] [passphrase] · generate a keypair from a seed phrase\n"
)


class UsageError(ValueError):
    pass


def service_of(context: ContextTypes.DEFAULT_TYPE):
    return context.bot_data["wallet_service"]


def keypair_of(context: ContextTypes.DEFAULT_TYPE):
    return context.bot_data["keypair"]


async def reply(update: Update, text: str) -> None:
    await update.message.reply_text(text, parse_mode="HTML", disable_web_page_preview=True)


def reply_errors(usage: str):
    """Report argument and wallet errors back to the chat instead of the error handler."""

    def decorator(handler):
        @wraps(handler)
        async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE):
            try:
                return await handler(update, context)
            except UsageError:
                await reply(update, f"Usage: <code>{html.escape(usage)}</code>")
            except (SolwalletError, ValueError) as e:
                logger.warning(f"{handler.__name__} failed for {update.effective_user.id}: {e!r}")
                retry = " You can try again." if getattr(e, "retryable", False) else ""
                await reply(update, f"⚠️ <b>{type(e).__name__}</b>\n{html.escape(str(e))}{retry}")

        return wrapper

    return decorator


def arg(context, index, default=None):
    if context.args and len(context.args) > index:
        return context.args[index]
    if default is None:
        raise UsageError()
    return default


def asset(symbol: str) -> str:
    return SOLANA_MINT if symbol.upper() == "SOL" else symbol


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    service = service_of(context)
    pubkey = keypair_of(context).pubkey()
    balance = await service.get_balance(pubkey)
    cluster_url = getattr(service.ledger, "url", "")
    await reply(
        update,
        f'<b>Wallet</b> · <a href="{explorer_link("account", pubkey, cluster_url)}">🌐</a>\n'
        f"<code>{pubkey}</code>\n\n"
        f"<b>Balance</b>: <code>{format_sol(balance)}</code>\n\n"
        f"{HELP_TEXT}\n"
        f"🕒 <i>{utc_time_now()}</i>",
    )


async def help_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await reply(update, HELP_TEXT)


@reply_errors("/balance [address]")
async def balance(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    address = arg(context, 0, str(keypair_of(context).pubkey()))
    lamports = await service_of(context).get_balance(address)
    await reply(update, f"<code>{address}</code>\n<b>Balance</b>: <code>{format_sol(lamports)}</code>")


@reply_errors("/airdrop <sol> [address]")
async def airdrop(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    lamports = sol_to_lamports(arg(context, 0))
    address = arg(context, 1, str(keypair_of(context).pubkey()))
    service = service_of(context)
    message = await update.message.reply_text(f"Requesting {format_sol(lamports)}...")
    signature = await service.airdrop(address, lamports)
    await message.edit_text(
        text=(
            f"💧 Airdropped <code>{format_sol(lamports)}</code> to <code>{address}</code>\n"
            f"🔍 <a href='{explorer_link('tx', signature, getattr(service.ledger, 'url', ''))}'>View on Solscan</a>"
        ),
        parse_mode="HTML",
        disable_web_page_preview=True,
    )


@reply_errors("/transfer <address> <sol>")
async def transfer(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    to = arg(context, 0)
    lamports = sol_to_lamports(arg(context, 1))
    service = service_of(context)
    message = await update.message.reply_text(f"Sending {format_sol(lamports)}...")
    tx = await service.transfer(keypair_of(context), to, lamports)
    await message.edit_text(
        text=(
            f"🎉 Sent <code>{format_sol(lamports)}</code> to <code>{to}</code>\n"
            f"🔍 <a href='{explorer_link('tx', tx.signature, getattr(service.ledger, 'url', ''))}'>View on Solscan</a>"
        ),
        parse_mode="HTML",
        disable_web_page_preview=True,
    )


@reply_errors("/swap <from> <to> <amount> [slippage]")
async def swap(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    from_asset, to_asset = asset(arg(context, 0)), asset(arg(context, 1))
    amount = float(arg(context, 2))
    slippage = float(arg(context, 3, DEFAULT_SWAP_SLIPPAGE))
    if not amount > 0 or not 0 <= slippage <= 100:
        raise UsageError()
    service = service_of(context)
    message = await update.message.reply_text("Fetching a swap route...")
    quote, tx = await service.swap(keypair_of(context), from_asset, to_asset, amount, slippage)
    details = quote.swap_details
    received = details.get("amountOut") or details.get("outAmount")
    await message.edit_text(
        text=(
            f"🔄 Swapped <code>{nfpf(amount)}</code> with {nfpf(slippage)}% max slippage"
            + (f", received <code>{nfpf(float(received))}</code>" if received is not None else "")
            + f"\n🔍 <a href='{explorer_link('tx', tx.signature, getattr(service.ledger, 'url', ''))}'>View on Solscan</a>"
        ),
        parse_mode="HTML",
        disable_web_page_preview=True,
    )


@reply_errors(f"/tps [seconds, at most {MAX_TPS_WINDOW}]")
async def tps(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    seconds = int(arg(context, 0, DEFAULT_TPS_WINDOW))
    if not 0 <= seconds <= MAX_TPS_WINDOW:
        raise UsageError()
    message = await update.message.reply_text(f"Walking the last {seconds}s of blocks...")
    window = await service_of(context).throughput.measure(seconds)
    await message.edit_text(
        text=(
            f"⚡ <b>{nfpf(window.rate)} TPS</b> (user transactions)\n"
            f"{window.user_transactions} user · {window.vote_transactions} vote transactions\n"
            f"{window.blocks_scanned} blocks over {window.duration}s\n\n"
            f"🕒 <i>{utc_time_now()}</i>"
        ),
        parse_mode="HTML",
    )


@reply_errors("/add_wallet <address>")
async def add_wallet(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    record = service_of(context).create_wallet(update.effective_user.id, arg(context, 0))
    await reply(update, f"Wallet record <code>{record.id}</code> tracks <code>{record.pub_key}</code>")


@reply_errors("/deposit <wallet_id> <amount>")
async def deposit(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    record = service_of(context).deposit(arg(context, 0), arg(context, 1))
    await reply(update, f"Wallet <code>{record.id}</code> balance: <code>{record.balance}</code>")


@reply_errors("/withdraw <wallet_id> <amount>")
async def withdraw(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    record = service_of(context).withdraw(arg(context, 0), arg(context, 1))
    await reply(update, f"Wallet <code>{record.id}</code> balance: <code>{record.balance}</code>")


@reply_errors("/cluster")
async def cluster(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    service = service_of(context)
    info = await service.get_cluster_info()
    supply = await service.get_supply()
    await reply(
        update,
        f"<b>RPC</b>: <code>{info['rpc_url']}</code>\n"
        f"<b>Version</b>: <code>{info['version']}</code>\n"
        f"<b>Slot</b>: <code>{info['slot']}</code>\n"
        f"<b>Time</b>: <code>{format_unix_time(info['time'])}</code>\n"
        f"<b>Supply</b>: <code>{format_sol(supply.total)}</code> "
        f"(<code>{format_sol(supply.circulating)}</code> circulating)",
    )


@reply_errors("/new_keypair [words] [passphrase]")
async def new_keypair(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    word_count = int(arg(context, 0, DEFAULT_SEED_WORDS))
    passphrase = " ".join((context.args or [])[1:])
    keypair, phrase = generate_keypair(word_count=word_count, passphrase=passphrase)
    await reply(
        update,
        f"🔑 New keypair <code>{keypair.pubkey()}</code>\n"
        f"<b>Seed phrase</b>: <tg-spoiler>{phrase}</tg-spoiler>\n"
        f"<i>Not stored anywhere. Write it down and delete this message.</i>",
    )
