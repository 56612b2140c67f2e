"""
HTTP API for Note Forge.

Exposes note generation, note history and the coin summary. Callers
identify themselves with ``Authorization: Bearer <token>``; generation
also serves anonymous callers, who are never billed.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from note_forge.config.loader import Settings, default_settings
from note_forge.core.billing import SqliteBillingLedger
from note_forge.core.errors import (
    AccountNotFound,
    GenerationFailed,
    InsufficientFunds,
    InvalidRequest,
    NoteForgeError,
    QuotaExceeded,
)
from note_forge.core.orchestrator import GenerationOrchestrator
from note_forge.core.pricing import PagePricing
from note_forge.core.templates import DEFAULT_TEMPLATE_ID
from note_forge.sdk.generation_client import GenerationClient
from note_forge.storage.ledger import LedgerRepository
from note_forge.storage.models import (
    CoinAccount,
    GenerationArtifact,
    GenerationRequest,
    NoteSummary,
    Transaction,
)
from note_forge.storage.repository import NoteRepository, initialize_schema

logger = logging.getLogger(__name__)

MAX_PAGE_LIMIT = 100
RECENT_TRANSACTIONS = 10


class AuthenticationError(NoteForgeError):
    """Raised when a request carries a missing or unknown bearer token."""


class TokenVerifier(ABC):
    """Maps bearer tokens to user ids."""

    @abstractmethod
    def verify(self, token: str) -> Optional[str]:
        """Return the user id for a token, or None if it is not valid."""


class StaticTokenVerifier(TokenVerifier):
    """Token verifier backed by the ``server.api_tokens`` config table."""

    def __init__(self, tokens: Dict[str, str]):
        self.tokens = dict(tokens)

    def verify(self, token: str) -> Optional[str]:
        return self.tokens.get(token)


class GenerateNoteBody(BaseModel):
    """Request body for POST /api/generate-note.

    Fields are loosely typed on purpose: a bad topic maps to a 400 and a
    bad page count is normalized downstream rather than rejected.
    """
    model_config = ConfigDict(populate_by_name=True)

    topic: Any = None
    template_id: Any = Field(default=DEFAULT_TEMPLATE_ID, alias="templateId")
    page_count: Any = Field(default=1, alias="pageCount")


def _error_body(exc: NoteForgeError):
    if isinstance(exc, InvalidRequest):
        return 400, {"error": str(exc)}
    if isinstance(exc, AuthenticationError):
        return 401, {"error": str(exc)}
    if isinstance(exc, InsufficientFunds):
        return 402, {
            "error": "Insufficient coins",
            "required": exc.required,
            "available": exc.available,
        }
    if isinstance(exc, AccountNotFound):
        return 404, {"error": "Account not found"}
    if isinstance(exc, QuotaExceeded):
        return 429, {
            "error": "Monthly note limit reached",
            "limit": exc.limit,
            "current": exc.current,
        }
    if isinstance(exc, GenerationFailed):
        return 500, {"error": "Failed to generate note", "status": exc.status}
    return 500, {"error": "Internal server error"}


def _summary_json(note: NoteSummary) -> Dict[str, Any]:
    return {
        "id": note.id,
        "title": note.title,
        "templateId": note.template_id,
        "pageCount": note.page_count,
        "coinsSpent": note.coins_spent,
        "createdAt": note.created_at.isoformat(),
    }


def _note_json(note: GenerationArtifact) -> Dict[str, Any]:
    return {
        "id": note.id,
        "title": note.title,
        "templateId": note.template_id,
        "pageCount": note.page_count,
        "coinsSpent": note.coins_spent,
        "createdAt": note.created_at.isoformat(),
        "html": note.html_content,
        "warning": note.warning,
    }


def _transaction_json(tx: Transaction) -> Dict[str, Any]:
    return {
        "id": tx.id,
        "amount": tx.amount,
        "kind": tx.kind.value,
        "previousBalance": tx.previous_balance,
        "newBalance": tx.new_balance,
        "description": tx.description,
        "timestamp": tx.timestamp.isoformat(),
    }


def _bearer_token(authorization: str) -> str:
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return ""
    return token.strip()


def create_app(
    settings: Optional[Settings] = None,
    orchestrator: Optional[GenerationOrchestrator] = None,
    ledger: Optional[LedgerRepository] = None,
    notes: Optional[NoteRepository] = None,
    token_verifier: Optional[TokenVerifier] = None
) -> FastAPI:
    """Build the API application.

    Args:
        settings: Application settings (defaults to built-in defaults)
        orchestrator: Generation pipeline (built from settings if omitted)
        ledger: Coin ledger repository
        notes: Note history repository
        token_verifier: Bearer token verifier (defaults to server.api_tokens)

    Returns:
        Configured FastAPI application
    """
    settings = settings or default_settings()
    db_path = settings.storage.db_path
    if ledger is None or notes is None:
        initialize_schema(db_path)
    ledger = ledger or LedgerRepository(db_path, settings.billing)
    notes = notes or NoteRepository(db_path)
    verifier = token_verifier or StaticTokenVerifier(settings.server.api_tokens)
    if orchestrator is None:
        orchestrator = GenerationOrchestrator(
            client=GenerationClient.from_settings(settings.generation),
            ledger=SqliteBillingLedger(ledger),
            notes=notes,
            pricing=PagePricing(coins_per_page=settings.billing.coins_per_page),
            request_deadline=settings.generation.request_deadline_seconds
        )

    app = FastAPI(title="Note Forge")

    @app.exception_handler(NoteForgeError)
    async def handle_domain_error(request: Request, exc: NoteForgeError):
        status_code, body = _error_body(exc)
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content=body)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "Invalid request"})

    async def ensure_account(user_id: str) -> CoinAccount:
        """Accounts are opened with the signup bonus on first use."""
        try:
            return await asyncio.to_thread(ledger.get_account, user_id)
        except AccountNotFound:
            logger.info("Opening coin account on first request: user=%s", user_id)
            try:
                return await asyncio.to_thread(ledger.open_account, user_id)
            except ValueError:
                # Opened by a concurrent request
                return await asyncio.to_thread(ledger.get_account, user_id)

    async def optional_user(authorization: Optional[str] = Header(None)) -> Optional[str]:
        if authorization is None:
            return None
        user_id = verifier.verify(_bearer_token(authorization))
        if user_id is None:
            raise AuthenticationError("Invalid token")
        await ensure_account(user_id)
        return user_id

    async def current_user(user_id: Optional[str] = Depends(optional_user)) -> str:
        if user_id is None:
            raise AuthenticationError("No authorization header")
        return user_id

    @app.post("/api/generate-note")
    async def generate_note(
        body: GenerateNoteBody,
        user_id: Optional[str] = Depends(optional_user)
    ):
        request = GenerationRequest(
            topic=body.topic,
            template_id=body.template_id,
            page_count=body.page_count
        )
        outcome = await orchestrator.generate(request, user_id=user_id)
        return outcome.to_response()

    @app.get("/api/user/notes")
    async def list_notes(
        limit: int = Query(20, ge=1, le=MAX_PAGE_LIMIT),
        offset: int = Query(0, ge=0),
        user_id: str = Depends(current_user)
    ):
        page = await asyncio.to_thread(notes.list_notes, user_id, limit, offset)
        return {
            "items": [_summary_json(note) for note in page.items],
            "total": page.total,
            "limit": page.limit,
            "offset": page.offset,
            "hasMore": page.has_more,
        }

    @app.get("/api/user/notes/{note_id}")
    async def get_note(note_id: str, user_id: str = Depends(current_user)):
        note = await asyncio.to_thread(notes.get_note, user_id, note_id)
        if note is None:
            return JSONResponse(status_code=404, content={"error": "Note not found"})
        return _note_json(note)

    @app.delete("/api/user/notes/{note_id}")
    async def delete_note(note_id: str, user_id: str = Depends(current_user)):
        deleted = await asyncio.to_thread(notes.delete_note, user_id, note_id)
        if not deleted:
            return JSONResponse(status_code=404, content={"error": "Note not found"})
        logger.info("Deleted note %s for user=%s", note_id, user_id)
        return {"success": True}

    @app.get("/api/user/coins")
    async def coin_summary(user_id: str = Depends(current_user)):
        account = await ensure_account(user_id)
        transactions = await asyncio.to_thread(
            ledger.list_transactions, user_id, RECENT_TRANSACTIONS
        )
        return {
            "balance": account.balance,
            "tier": account.tier,
            "totalSpent": account.total_spent,
            "totalGenerated": account.total_generated,
            "monthlyCount": account.monthly_count,
            "monthlyLimit": account.monthly_limit,
            "transactions": [_transaction_json(tx) for tx in transactions],
        }

    return app
