# Simulated ledger metadata for complaints
#
# Nothing here talks to a chain. Hashes and block numbers are random display
# values stamped on a complaint when it is created.

import asyncio
import secrets

from . import config
from .models import LedgerVerification
from .utils import ensure_utc, now_utc

BLOCK_BASE = 9_000_000
BLOCK_SPREAD = 1_000_000
SECONDS_PER_BLOCK = 15
EXPLORER_URL = "https://explorer.example.com/tx/"


def generate_transaction_hash() -> str:
    return "0x" + secrets.token_hex(32)


def record_complaint() -> dict:
    """Return the ledger fields stored on a new complaint."""
    return {
        "transaction_hash": generate_transaction_hash(),
        "block_number": BLOCK_BASE + secrets.randbelow(BLOCK_SPREAD),
        "blockchain_timestamp": now_utc(),
    }


async def verify_complaint(complaint: dict) -> LedgerVerification:
    if config.LEDGER_DELAY_SECONDS > 0:
        await asyncio.sleep(config.LEDGER_DELAY_SECONDS)
    recorded_at = ensure_utc(complaint.get("blockchain_timestamp") or complaint["created_at"])
    elapsed = (now_utc() - recorded_at).total_seconds()
    tx = complaint.get("transaction_hash") or ""
    return LedgerVerification(
        complaint_id=complaint["_id"],
        transaction_hash=tx,
        block_number=complaint.get("block_number") or 0,
        verified=bool(tx),
        confirmations=max(int(elapsed // SECONDS_PER_BLOCK), 0) + 1 if tx else 0,
        explorer_url=f"{EXPLORER_URL}{tx}",
        recorded_at=recorded_at,
    )
