from __future__ import annotations

import json
import logging
from typing import Any

from aiohttp import web

from milkypay.attempts import check_claim_attempts, record_failed_claim, reset_claim_attempts
from milkypay.auth import Authorization, AuthorizationGate
from milkypay.clock import SystemClock
from milkypay.contract import EscrowContract
from milkypay.db import create_engine, create_session_factory
from milkypay.errors import (
    AlreadyResolved,
    AuthorizationError,
    ClaimLocked,
    DuplicateIdentifier,
    EscrowError,
    InvalidPreimage,
    NotFound,
    NotYetExpired,
    TransferError,
    ValidationError,
    WrongSender,
)
from milkypay.events import list_events
from milkypay.redis_client import create_redis
from milkypay.validation import parse_hex32, parse_int, require_address, require_payment_id
from services.contract.settings import load_settings

logging.basicConfig(level=logging.INFO)
log = logging.getLogger(__name__)

ERROR_STATUS: dict[type[EscrowError], type[web.HTTPException]] = {
    ValidationError: web.HTTPBadRequest,
    AuthorizationError: web.HTTPUnauthorized,
    WrongSender: web.HTTPForbidden,
    InvalidPreimage: web.HTTPForbidden,
    NotFound: web.HTTPNotFound,
    DuplicateIdentifier: web.HTTPConflict,
    AlreadyResolved: web.HTTPConflict,
    NotYetExpired: web.HTTPConflict,
    TransferError: web.HTTPUnprocessableEntity,
    ClaimLocked: web.HTTPTooManyRequests,
}


def error_response(exc: EscrowError) -> web.HTTPException:
    status = ERROR_STATUS.get(type(exc), web.HTTPBadRequest)
    body = json.dumps({"error": exc.code, "message": exc.message})
    return status(text=body, content_type="application/json")


async def read_payload(request: web.Request) -> dict[str, Any]:
    try:
        payload = await request.json()
    except ValueError as exc:
        raise web.HTTPBadRequest(text="Invalid JSON body") from exc
    if not isinstance(payload, dict):
        raise web.HTTPBadRequest(text="JSON body must be an object")
    return payload


def parse_auths(payload: dict[str, Any]) -> list[Authorization]:
    try:
        return [Authorization.from_dict(item) for item in payload.get("auths", [])]
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise web.HTTPBadRequest(text="Invalid auths") from exc


async def handle_create(request: web.Request) -> web.Response:
    app = request.app
    payload = await read_payload(request)
    payment_id = payload.get("payment_id")
    auths = parse_auths(payload)
    try:
        await app["contract"].create_escrow(
            payload.get("sender"),
            payment_id,
            payload.get("asset"),
            parse_hex32(payload.get("pin_hash"), "pin_hash"),
            parse_int(payload.get("amount"), "amount"),
            parse_int(payload.get("expiry"), "expiry"),
            auths=auths,
        )
    except EscrowError as exc:
        raise error_response(exc) from exc
    return web.json_response({"payment_id": payment_id}, status=201)


async def handle_claim(request: web.Request) -> web.Response:
    app = request.app
    settings = app["settings"]
    payment_id = request.match_info["payment_id"]
    payload = await read_payload(request)
    auths = parse_auths(payload)
    try:
        require_payment_id(payment_id)
        claimant = require_address(payload.get("claimant"), "claimant")
        preimage = parse_hex32(payload.get("pin_preimage"), "pin_preimage")
        await check_claim_attempts(app["redis"], payment_id, claimant, settings.claim_max_attempts)
        try:
            await app["contract"].claim_escrow(claimant, payment_id, preimage, auths=auths)
        except InvalidPreimage:
            count = await record_failed_claim(app["redis"], payment_id, claimant, settings.claim_lock_seconds)
            log.warning(
                "wrong preimage for %s from %s (%s/%s)", payment_id, claimant, count, settings.claim_max_attempts
            )
            raise
    except EscrowError as exc:
        raise error_response(exc) from exc
    await reset_claim_attempts(app["redis"], payment_id, claimant)
    return web.json_response({"payment_id": payment_id, "claimed": True})


async def handle_refund(request: web.Request) -> web.Response:
    app = request.app
    payment_id = request.match_info["payment_id"]
    payload = await read_payload(request)
    auths = parse_auths(payload)
    try:
        await app["contract"].refund_escrow(payload.get("sender"), payment_id, auths=auths)
    except EscrowError as exc:
        raise error_response(exc) from exc
    return web.json_response({"payment_id": payment_id, "refunded": True})


async def handle_get(request: web.Request) -> web.Response:
    payment_id = request.match_info["payment_id"]
    try:
        record = await request.app["contract"].get_escrow(payment_id)
    except EscrowError as exc:
        raise error_response(exc) from exc
    return web.json_response(
        {"payment_id": payment_id, "escrow": record.to_dict() if record else None}
    )


async def handle_events(request: web.Request) -> web.Response:
    app = request.app
    try:
        since = parse_int(request.query.get("since", "0"), "since")
    except EscrowError as exc:
        raise error_response(exc) from exc
    async with app["session_factory"]() as session:
        events = await list_events(session, since=since, limit=app["settings"].events_page_size)
    return web.json_response(
        {
            "events": [
                {
                    "id": event.id,
                    "topic": event.topic,
                    "payload": event.payload_json,
                    "created_at": event.created_at.isoformat(),
                }
                for event in events
            ]
        }
    )


async def close_owned(app: web.Application) -> None:
    for close in app["owned"]:
        await close()
    log.info("contract host resources closed")


def create_app(settings=None, *, redis=None, session_factory=None, clock=None) -> web.Application:
    settings = settings or load_settings()
    owned = []
    if redis is None:
        redis = create_redis(settings.redis_url)
        owned.append(redis.aclose)
    if session_factory is None:
        engine = create_engine(settings.database_url)
        owned.append(engine.dispose)
        session_factory = create_session_factory(engine)
    clock = clock or SystemClock()

    app = web.Application()
    app["settings"] = settings
    app["redis"] = redis
    app["session_factory"] = session_factory
    app["owned"] = owned
    gate = AuthorizationGate(
        redis,
        clock,
        settings.contract_address,
        max_age_seconds=settings.auth_max_age_seconds,
        nonce_ttl_seconds=settings.nonce_ttl_seconds,
    )
    app["contract"] = EscrowContract(session_factory, gate, clock, settings.contract_address)

    app.router.add_post("/escrows", handle_create)
    app.router.add_get("/escrows/{payment_id}", handle_get)
    app.router.add_post("/escrows/{payment_id}/claim", handle_claim)
    app.router.add_post("/escrows/{payment_id}/refund", handle_refund)
    app.router.add_get("/events", handle_events)
    app.on_cleanup.append(close_owned)
    return app


if __name__ == "__main__":
    host_settings = load_settings()
    web.run_app(create_app(host_settings), host=host_settings.host, port=host_settings.port)
