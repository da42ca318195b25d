import logging

from telegram import Update
from telegram.ext import (
    Application,
    CommandHandler,
    ContextTypes,
    filters,
)

from solwallet.config import config
from solwallet.db import WalletDB
from solwallet.keys import load_keypair
from solwallet.telegram_bot.handlers import wallet_handler
from solwallet.telegram_bot.user_sequential_update_processor import UserSequentialUpdateProcessor
from solwallet.wallet_service import WalletService

logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

COMMANDS = {
    "start": wallet_handler.start,
    "help": wallet_handler.help_message,
    "balance": wallet_handler.balance,
    "airdrop": wallet_handler.airdrop,
    "transfer": wallet_handler.transfer,
    "swap": wallet_handler.swap,
    "tps": wallet_handler.tps,
    "add_wallet": wallet_handler.add_wallet,
    "deposit": wallet_handler.deposit,
    "withdraw": wallet_handler.withdraw,
    "cluster": wallet_handler.cluster,
    "new_keypair": wallet_handler.new_keypair,
}


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.error("Exception while handling an update:", exc_info=context.error)
    if isinstance(update, Update) and update.effective_message:
        await update.effective_message.reply_text(f"⚠️ Something went wrong: {context.error}")


async def close_ledger(application: Application) -> None:
    await application.bot_data["wallet_service"].ledger.close()


def build_application(service: WalletService, keypair, token: str = None, admin_id: int = None) -> Application:
    application = (
        Application.builder()
        .token(token or config.telegram_bot_token)
        .concurrent_updates(UserSequentialUpdateProcessor(10))
        .post_shutdown(close_ledger)
        .build()
    )
    application.bot_data["wallet_service"] = service
    application.bot_data["keypair"] = keypair

    # Commands spend from the operator wallet, so admin only
    admin = filters.User(user_id=admin_id if admin_id is not None else config.admin_telegram_account_id)
    for command, callback in COMMANDS.items():
        application.add_handler(CommandHandler(command, callback, admin))
    application.add_error_handler(error_handler)
    return application


def main() -> None:
    """Run the bot."""
    keypair = load_keypair()
    service = WalletService.from_config(repository=WalletDB())
    logger.info(f"Operator wallet {keypair.pubkey()} on {config.solana_rpc_url}")
    application = build_application(service, keypair)

    # Development mode
    if not config.webhook_url:
        application.run_polling(allowed_updates=Update.ALL_TYPES)
    else:
        application.run_webhook(
            listen="0.0.0.0",
            port=int(config.webhook_port),
            secret_token=config.get("webhook_secret"),
            key="private.key",
            cert="cert.pem",
            url_path=config.telegram_bot_token,
            webhook_url=f"https://{config.webhook_url}:{config.webhook_port}/{config.telegram_bot_token}",
        )
