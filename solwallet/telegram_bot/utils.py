import datetime

from solwallet.transact_utils import lamports_to_sol


def utc_time_now():
    return datetime.datetime.now(datetime.timezone.utc).strftime("%H:%M:%S.%f")[:-5]


def format_unix_time(timestamp) -> str:
    if timestamp is None:
        return "unknown"
    return datetime.datetime.fromtimestamp(timestamp, datetime.timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def nice_float_price_format(price: float, underline=False) -> str:
    before_d, after_d = format(price, ".20f").split(".")
    zeros_after_d = len(after_d) - len(after_d.lstrip("0"))
    if price == 0:
        return "0"
    elif price >= 1_000_000_000:
        price = f"{price / 1_000_000_000:.2f}"
        return price.rstrip('0').rstrip('.')+'B'
    elif price >= 1_000_000:
        price = f"{price / 1_000_000:.2f}"
        return price.rstrip('0').rstrip('.')+'M'
    elif before_d != "0":
        return f"{price:.2f}".rstrip('0').rstrip('.')
    elif zeros_after_d > 2:
        return (
            f"0.0(<u>{zeros_after_d}</u>){after_d.lstrip('0')[:3].rstrip('0')}"
            if underline
            else f"0.0({zeros_after_d}){after_d.lstrip('0')[:3].rstrip('0')}"
        )
    else:
        return f"{price:.4f}".rstrip('0')


def format_sol(lamports: int) -> str:
    return f"{nice_float_price_format(lamports_to_sol(lamports))} SOL"


def explorer_link(kind: str, value, cluster_url: str = "") -> str:
    """Solscan link for an account or transaction; devnet/testnet clusters get the cluster query."""
    suffix = ""
    for cluster in ("devnet", "testnet"):
        if cluster in (cluster_url or ""):
            suffix = f"?cluster={cluster}"
    return f"https://solscan.io/{kind}/{value}{suffix}"
