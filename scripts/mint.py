from __future__ import annotations

import argparse
import asyncio

from milkypay.config import load_settings
from milkypay.db import create_engine, create_schema, create_session_factory
from milkypay.token import LedgerTokenClient
from milkypay.validation import require_address, require_asset


async def mint(database_url: str, asset: str, account: str, amount: int) -> int:
    engine = create_engine(database_url)
    try:
        await create_schema(engine)
        session_factory = create_session_factory(engine)
        async with session_factory() as session:
            async with session.begin():
                return await LedgerTokenClient(session, asset).mint(account, amount)
    finally:
        await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Mint a token balance on the local escrow ledger.")
    parser.add_argument("--asset", required=True, help="Asset code, e.g. USDC.")
    parser.add_argument("--account", required=True, help="Hex Ed25519 public key of the holder.")
    parser.add_argument("--amount", required=True, type=int, help="Amount in the asset's smallest unit.")
    parser.add_argument("--database-url", help="Overrides DATABASE_URL.")
    args = parser.parse_args()

    database_url = args.database_url or load_settings().database_url
    balance = asyncio.run(
        mint(database_url, require_asset(args.asset), require_address(args.account, "account"), args.amount)
    )
    print(f"{args.account} now holds {balance} {args.asset}")


if __name__ == "__main__":
    main()
