import asyncio

import pytest

from sqlalchemy import event

from milkypay.errors import TransferError
from milkypay.token import LedgerTokenClient

ALICE = "aa" * 32
BOB = "bb" * 32


def test_transfer_moves_balance(build_harness):
    async def run():
        async with build_harness() as h:
            await h.mint("USDC", ALICE, 100)
            async with h.session_factory() as session:
                async with session.begin():
                    await LedgerTokenClient(session, "USDC").transfer(ALICE, BOB, 40)
            assert await h.balance("USDC", ALICE) == 60
            assert await h.balance("USDC", BOB) == 40
            assert await h.balance("XLM", BOB) == 0

    asyncio.run(run())


def test_transfer_failures(build_harness):
    async def run():
        async with build_harness() as h:
            await h.mint("USDC", ALICE, 100)
            async with h.session_factory() as session:
                token = LedgerTokenClient(session, "USDC")
                with pytest.raises(TransferError):
                    await token.transfer(ALICE, BOB, 101)
                with pytest.raises(TransferError):
                    await token.transfer(ALICE, BOB, -1)
                with pytest.raises(TransferError):
                    await token.transfer(BOB, ALICE, 1)
            await h.freeze("USDC", BOB)
            async with h.session_factory() as session:
                with pytest.raises(TransferError):
                    await LedgerTokenClient(session, "USDC").transfer(ALICE, BOB, 1)
            assert await h.balance("USDC", ALICE) == 100

    asyncio.run(run())


def test_transfer_locks_balances_in_account_order(build_harness):
    async def run():
        async with build_harness() as h:
            await h.mint("USDC", ALICE, 100)
            await h.mint("USDC", BOB, 100)
            statements = []

            def capture(conn, cursor, statement, parameters, context, executemany):
                if statement.lstrip().upper().startswith("SELECT") and "token_balances" in statement:
                    statements.append((statement, list(parameters)))

            event.listen(h.engine.sync_engine, "before_cursor_execute", capture)
            try:
                async with h.session_factory() as session:
                    async with session.begin():
                        await LedgerTokenClient(session, "USDC").transfer(BOB, ALICE, 30)
            finally:
                event.remove(h.engine.sync_engine, "before_cursor_execute", capture)

            assert len(statements) == 1
            statement, parameters = statements[0]
            assert "ORDER BY token_balances.account" in statement
            assert parameters[-2:] == [ALICE, BOB]
            assert await h.balance("USDC", ALICE) == 130
            assert await h.balance("USDC", BOB) == 70

    asyncio.run(run())


def test_transfer_creates_missing_destination(build_harness):
    async def run():
        async with build_harness() as h:
            await h.mint("USDC", BOB, 10)
            async with h.session_factory() as session:
                async with session.begin():
                    await LedgerTokenClient(session, "USDC").transfer(BOB, ALICE, 10)
            assert await h.balance("USDC", ALICE) == 10
            assert await h.balance("USDC", BOB) == 0

    asyncio.run(run())
