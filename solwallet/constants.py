from solders.pubkey import Pubkey

LAMPORTS_PER_SOL = 1_000_000_000
SOLANA_MINT = "So11111111111111111111111111111111111111112"

SYSTEM_PROGRAM_ID = Pubkey.from_string("11111111111111111111111111111111")
VOTE_PROGRAM_ID = Pubkey.from_string("Vote111111111111111111111111111111111111111")
TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
ASSOCIATED_TOKEN_ACCOUNT_PROGRAM_ID = Pubkey.from_string("ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL")

# Height reported for the first block of a cluster
GENESIS_BLOCK_HEIGHT = 0
