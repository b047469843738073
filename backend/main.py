from fastapi import FastAPI, Header, HTTPException, Path, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Optional

import structlog

import config
from logging_setup import setup_logging
from models.inventory import (
    HoldingResponse,
    HoldingsResponse,
    InventoryAdjustResponse,
    InventoryCardAdjust,
    TradeOffersResponse,
    TradePotentialResponse,
)
from models.trade import (
    RequestDirection,
    TradeDecisionResponse,
    TradeRequest,
    TradeRequestCreate,
    TradeRequestDecide,
    TradeRequestListResponse,
    TradeRequestStatus,
    TradeSession,
    TradeSessionListResponse,
    TradeSessionStatus,
)
from services.engine import TradeEngine, build_store
from services.errors import Forbidden, TradeEngineError
from services.retry import RetryPolicy

setup_logging(config.LOG_LEVEL, config.LOG_JSON)
logger = structlog.get_logger(__name__)

app = FastAPI()

# CORS for the web client
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Trade engine over the configured store
engine = TradeEngine(
    build_store(config.STORE_BACKEND, config.SUPABASE_URL, config.SUPABASE_KEY),
    mode=config.TRADE_CONFIRMATION_MODE,
    retry=RetryPolicy(
        max_retries=config.STORE_RETRY_ATTEMPTS,
        base_delay_ms=config.STORE_RETRY_BASE_DELAY_MS,
    ),
)


@app.exception_handler(TradeEngineError)
async def trade_engine_error_handler(request: Request, exc: TradeEngineError):
    """Render engine errors with a stable code clients can branch on."""
    log = logger.error if exc.http_status >= 500 else logger.info
    log("trade_engine_error", code=exc.code, path=request.url.path, detail=exc.message)
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


def get_actor(x_user_id: Optional[str]) -> str:
    """The authenticated user id supplied by the identity provider."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id


def require_self(actor_id: str, user_id: str) -> None:
    if actor_id != user_id:
        raise Forbidden("Cannot modify another user's collection", user_id=user_id)


@app.get("/")
def read_root():
    return {"message": "Card Swap API"}

@app.get("/health")
def health_check():
    return {"status": "healthy"}


# ============== Inventory Endpoints ==============

@app.get("/users/{user_id}/holdings", response_model=HoldingsResponse)
def get_holdings(user_id: str):
    """Get every card a user owns with its quantity."""
    holdings = engine.inventory.get_holdings(user_id)

    return {
        "user_id": user_id,
        "cards": [
            HoldingResponse(card_id=card_id, quantity=quantity)
            for card_id, quantity in sorted(holdings.items())
        ],
    }


@app.post("/users/{user_id}/cards/{card_id}/adjust", response_model=InventoryAdjustResponse)
def adjust_card_quantity(
    user_id: str,
    adjust: InventoryCardAdjust,
    card_id: int = Path(gt=0),
    x_user_id: Optional[str] = Header(None),
):
    """Adjust card quantity by adding or removing copies."""
    require_self(get_actor(x_user_id), user_id)

    quantity = engine.inventory.adjust(user_id, card_id, adjust.adjustment)

    return {"user_id": user_id, "card_id": card_id, "quantity": quantity}


# ============== Trade Offer Endpoints ==============

@app.get("/users/{user_id}/offers", response_model=TradeOffersResponse)
def get_trade_offers(user_id: str):
    """Get the cards a user has listed as available for trade."""
    return {"user_id": user_id, "card_ids": sorted(engine.inventory.list_offers(user_id))}


@app.put("/users/{user_id}/offers/{card_id}", response_model=TradeOffersResponse)
def list_card_for_trade(
    user_id: str,
    card_id: int = Path(gt=0),
    x_user_id: Optional[str] = Header(None),
):
    """Mark a card as available for trade."""
    require_self(get_actor(x_user_id), user_id)

    offers = engine.inventory.set_offer(user_id, card_id, listed=True)

    return {"user_id": user_id, "card_ids": sorted(offers)}


@app.delete("/users/{user_id}/offers/{card_id}", response_model=TradeOffersResponse)
def unlist_card_for_trade(
    user_id: str,
    card_id: int = Path(gt=0),
    x_user_id: Optional[str] = Header(None),
):
    """Remove a card from the trade offer list."""
    require_self(get_actor(x_user_id), user_id)

    offers = engine.inventory.set_offer(user_id, card_id, listed=False)

    return {"user_id": user_id, "card_ids": sorted(offers)}


@app.get("/users/{user_id}/trade-potential/{other_user_id}", response_model=TradePotentialResponse)
def get_trade_potential(user_id: str, other_user_id: str):
    """Cards the two users could trade, based on each other's duplicates."""
    potential = engine.matching.potential_between(user_id, other_user_id)

    return {
        "user_id": user_id,
        "other_user_id": other_user_id,
        "want_from_them": sorted(potential.want_from_them),
        "can_offer": sorted(potential.can_offer),
        "requestable": sorted(potential.requestable),
    }


# ============== Trade Request Endpoints ==============

@app.post("/trade-requests", response_model=TradeRequest, status_code=201)
def create_trade_request(body: TradeRequestCreate, x_user_id: Optional[str] = Header(None)):
    """Ask another user for one copy of a card."""
    actor_id = get_actor(x_user_id)

    return engine.ledger.create_request(actor_id, body.to_user_id, body.card_id)


@app.get("/trade-requests", response_model=TradeRequestListResponse)
def list_trade_requests(
    direction: RequestDirection = Query(RequestDirection.INCOMING),
    status: Optional[TradeRequestStatus] = Query(None),
    x_user_id: Optional[str] = Header(None),
):
    """List the caller's incoming or outgoing trade requests."""
    actor_id = get_actor(x_user_id)

    requests = engine.ledger.list_requests(actor_id, direction, status)

    return {"requests": requests, "total": len(requests)}


@app.delete("/trade-requests/pending", status_code=204)
def withdraw_trade_request(
    to_user_id: str = Query(...),
    card_id: int = Query(..., gt=0),
    x_user_id: Optional[str] = Header(None),
):
    """Withdraw the caller's pending request for a card."""
    actor_id = get_actor(x_user_id)

    engine.ledger.withdraw_request(actor_id, to_user_id, card_id)

    return Response(status_code=204)


@app.get("/trade-requests/{request_id}", response_model=TradeRequest)
def get_trade_request(request_id: int, x_user_id: Optional[str] = Header(None)):
    """Get a trade request the caller is party to."""
    return engine.ledger.get_request_for(request_id, get_actor(x_user_id))


@app.post("/trade-requests/{request_id}/decide", response_model=TradeDecisionResponse)
def decide_trade_request(
    request_id: int,
    body: TradeRequestDecide,
    x_user_id: Optional[str] = Header(None),
):
    """Accept or refuse a pending request. Accepting opens a trade session."""
    actor_id = get_actor(x_user_id)

    request, session = engine.ledger.decide(request_id, actor_id, body.decision)

    return {"request": request, "session_id": session.id if session else None}


# ============== Trade Session Endpoints ==============

@app.get("/trade-sessions", response_model=TradeSessionListResponse)
def list_trade_sessions(
    status: Optional[TradeSessionStatus] = Query(None),
    x_user_id: Optional[str] = Header(None),
):
    """List sessions the caller takes part in."""
    actor_id = get_actor(x_user_id)

    sessions = engine.sessions.list_sessions(actor_id, status)

    return {"sessions": sessions, "total": len(sessions)}


@app.get("/trade-sessions/{session_id}", response_model=TradeSession)
def get_trade_session(session_id: int, x_user_id: Optional[str] = Header(None)):
    return engine.sessions.get_session_for(session_id, get_actor(x_user_id))


@app.post("/trade-sessions/{session_id}/confirm", response_model=TradeSession)
def confirm_trade_session(session_id: int, x_user_id: Optional[str] = Header(None)):
    """Confirm the in-person exchange. Completion transfers the card."""
    actor_id = get_actor(x_user_id)

    return engine.sessions.confirm(session_id, actor_id)
