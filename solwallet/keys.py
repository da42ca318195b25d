import logging
import os
from pathlib import Path
from typing import Tuple

from mnemonic import Mnemonic
from solders.keypair import Keypair

from solwallet.config import config

logger = logging.getLogger(__name__)

MNEMONIC_WORD_COUNTS = (12, 15, 18, 21, 24)


def generate_keypair(path=None, word_count: int = 12, passphrase: str = "") -> Tuple[Keypair, str]:
    """
    New keypair derived from a fresh BIP39 English seed phrase and an
    optional passphrase, the same derivation `solana-keygen new` uses.
    Written as a Solana CLI keypair file when `path` is given.

    Returns the keypair and the seed phrase; the phrase is the only way
    to recover the key, so it is never logged.
    """
    if word_count not in MNEMONIC_WORD_COUNTS:
        raise ValueError(f"Seed phrases have {', '.join(map(str, MNEMONIC_WORD_COUNTS))} words, got {word_count}")
    # each word carries 11 bits, one of every 33 being checksum
    phrase = Mnemonic("english").generate(strength=word_count * 32 // 3)
    keypair = Keypair.from_seed_phrase_and_passphrase(phrase, passphrase)
    if path is not None:
        write_keypair(keypair, path)
    logger.info(f"Generated keypair {keypair.pubkey()} from a {word_count}-word seed phrase")
    return keypair, phrase


def write_keypair(keypair: Keypair, path) -> Path:
    path = Path(path).expanduser()
    if path.exists():
        raise FileExistsError(f"Refusing to overwrite keypair file {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(keypair.to_json())
    os.chmod(path, 0o600)
    logger.info(f"Wrote keypair {keypair.pubkey()} to {path}")
    return path


def load_keypair(secret: str = None) -> Keypair:
    """
    Accepts a base58 secret key, a JSON byte array, or a path to a Solana
    CLI keypair file. Defaults to WALLET_SECRET.
    """
    secret = (secret if secret is not None else config.wallet_secret) or ""
    secret = secret.strip()
    if not secret:
        raise ValueError("No wallet secret configured")
    if secret.startswith("["):
        return Keypair.from_json(secret)
    path = Path(secret).expanduser()
    if path.is_file():
        return Keypair.from_json(path.read_text())
    return Keypair.from_base58_string(secret)
