"""
Generation orchestration.

Runs one request through the pipeline exactly once:

1. Precondition - coins and monthly quota checked before any costly call
2. Generate - prompt built and sent to the generation service
3. Reconcile - coins deducted only after a successful generation
4. Persist - note recorded in the user's history

Steps 1 and 3 are deliberately separate ledger calls. Holding a billing
lock across a generation call that takes seconds would serialize every
request from an account behind the upstream service, so a concurrent
request may drain the balance in between. When that happens the note is
still delivered with a warning and the shortfall is reconciled
out-of-band.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

from note_forge.config.loader import Settings
from note_forge.sdk.generation_client import GenerationClient, GenerationResult
from note_forge.storage.ledger import LedgerRepository
from note_forge.storage.models import GenerationArtifact, GenerationRequest
from note_forge.storage.repository import NoteRepository
from .billing import BillingLedger, SqliteBillingLedger
from .errors import (
    GenerationFailed,
    InsufficientFunds,
    InvalidRequest,
    QuotaExceeded,
    ReconciliationWarning,
)
from .pricing import PagePricing, normalize_page_count
from .prompts import build_prompt
from .sanitize import strip_code_fences
from .templates import resolve_template_id

logger = logging.getLogger(__name__)

MAX_TOPIC_LENGTH = 500
DEADLINE_STATUS = 504


@dataclass(frozen=True)
class GenerationOutcome:
    """Terminal success state of a generation request."""
    html: str
    title: str
    template_id: str
    page_count: int
    attempts: int
    coins_spent: Optional[int] = None
    coins_remaining: Optional[int] = None
    warning: Optional[str] = None
    note_id: Optional[str] = None

    def to_response(self) -> Dict[str, Any]:
        """Response body; billing fields are omitted for guest requests."""
        body: Dict[str, Any] = {"html": self.html}
        if self.coins_remaining is not None:
            body["coinsRemaining"] = self.coins_remaining
        if self.coins_spent is not None:
            body["coinsSpent"] = self.coins_spent
        if self.warning is not None:
            body["warning"] = self.warning
        if self.note_id is not None:
            body["noteId"] = self.note_id
        return body


def validate_topic(topic: Any) -> str:
    """Return the trimmed topic or raise InvalidRequest."""
    if not isinstance(topic, str) or not topic.strip():
        raise InvalidRequest("Topic is required")
    topic = topic.strip()
    if len(topic) > MAX_TOPIC_LENGTH:
        raise InvalidRequest(f"Topic must be at most {MAX_TOPIC_LENGTH} characters")
    return topic


class GenerationOrchestrator:
    """Coordinates prompt building, generation, billing and persistence."""

    def __init__(
        self,
        client: GenerationClient,
        ledger: Optional[BillingLedger] = None,
        notes: Optional[NoteRepository] = None,
        pricing: PagePricing = PagePricing(),
        prompt_builder: Callable[[str, str, int], str] = build_prompt,
        request_deadline: Optional[float] = None,
        clock: Callable[[], datetime] = datetime.now,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex
    ):
        """Initialize the orchestrator.

        Args:
            client: Generation service client
            ledger: Coin ledger; required to serve identified callers
            notes: Note history repository; history is skipped when None
            pricing: Page-to-coin exchange rate
            prompt_builder: Pure prompt function
            request_deadline: Seconds the Generate step may take, None for no limit
            clock: Source of creation timestamps
            id_factory: Source of note ids
        """
        self.client = client
        self.ledger = ledger
        self.notes = notes
        self.pricing = pricing
        self.prompt_builder = prompt_builder
        self.request_deadline = request_deadline
        self._clock = clock
        self._id_factory = id_factory

    @classmethod
    def from_settings(cls, settings: Settings) -> "GenerationOrchestrator":
        """Wire the pipeline against the configured service and database."""
        db_path = settings.storage.db_path
        return cls(
            client=GenerationClient.from_settings(settings.generation),
            ledger=SqliteBillingLedger(LedgerRepository(db_path, settings.billing)),
            notes=NoteRepository(db_path),
            pricing=PagePricing(coins_per_page=settings.billing.coins_per_page),
            request_deadline=settings.generation.request_deadline_seconds
        )

    async def generate(
        self,
        request: GenerationRequest,
        user_id: Optional[str] = None
    ) -> GenerationOutcome:
        """Serve one generation request.

        Args:
            request: Topic, template and page count from the caller
            user_id: Identified caller, or None for the guest path

        Returns:
            GenerationOutcome; ``warning`` is set when billing or persistence
            partially failed after a successful generation

        Raises:
            InvalidRequest: Empty or oversized topic
            InsufficientFunds: Balance below the coins required
            QuotaExceeded: Monthly note limit reached
            GenerationFailed: Upstream failure or deadline exceeded
            AccountNotFound: Identified caller without a coin account
        """
        topic = validate_topic(request.topic)
        page_count = normalize_page_count(request.page_count)
        template_id = resolve_template_id(request.template_id)
        coins = self.pricing.coins_for(page_count)

        if user_id is not None:
            if self.ledger is None:
                raise ValueError("a billing ledger is required for identified callers")
            await self._check_precondition(user_id, coins)

        prompt = self.prompt_builder(topic, template_id, page_count)
        result = await self._generate(prompt, page_count)

        html = strip_code_fences(result.text)
        if not html:
            raise GenerationFailed(
                "generation service returned no document", status=None, attempts=result.attempts
            )

        coins_spent: Optional[int] = None
        coins_remaining: Optional[int] = None
        warning: Optional[ReconciliationWarning] = None
        if user_id is not None:
            coins_spent, coins_remaining, warning = await self._reconcile(
                user_id, coins, topic, page_count
            )

        artifact = GenerationArtifact(
            id=self._id_factory(),
            user_id=user_id,
            title=topic,
            template_id=template_id,
            page_count=page_count,
            coins_spent=coins_spent or 0,
            html_content=html,
            created_at=self._clock(),
            warning=warning.value if warning else None
        )

        note_id: Optional[str] = None
        if user_id is not None and self.notes is not None:
            try:
                await asyncio.to_thread(self.notes.save_note, artifact)
                note_id = artifact.id
            except Exception:
                logger.exception(
                    "Failed to persist note %s for user=%s; coins stay spent",
                    artifact.id, user_id,
                )
                warning = warning or ReconciliationWarning.PERSISTENCE

        return GenerationOutcome(
            html=html,
            title=topic,
            template_id=template_id,
            page_count=page_count,
            attempts=result.attempts,
            coins_spent=coins_spent,
            coins_remaining=coins_remaining,
            warning=warning.value if warning else None,
            note_id=note_id
        )

    async def _check_precondition(self, user_id: str, coins: int) -> None:
        account = await self.ledger.get_account(user_id)
        if account.balance < coins:
            logger.info(
                "Rejected before generation: user=%s required=%s available=%s",
                user_id, coins, account.balance,
            )
            raise InsufficientFunds(user_id, required=coins, available=account.balance)
        if account.monthly_limit is not None and account.monthly_count >= account.monthly_limit:
            logger.info(
                "Rejected before generation: user=%s monthly quota %s/%s",
                user_id, account.monthly_count, account.monthly_limit,
            )
            raise QuotaExceeded(user_id, limit=account.monthly_limit, current=account.monthly_count)

    async def _generate(self, prompt: str, page_count: int) -> GenerationResult:
        call = self.client.generate(prompt, page_count)
        if self.request_deadline is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=self.request_deadline)
        except asyncio.TimeoutError as e:
            logger.error("Generation exceeded the %ss request deadline", self.request_deadline)
            raise GenerationFailed(
                f"generation exceeded the {self.request_deadline:g}s deadline",
                status=DEADLINE_STATUS
            ) from e

    async def _reconcile(
        self,
        user_id: str,
        coins: int,
        topic: str,
        page_count: int
    ) -> Tuple[int, Optional[int], Optional[ReconciliationWarning]]:
        description = f"Generated {page_count}-page note: {topic[:80]}"
        try:
            deduction = await self.ledger.try_deduct(user_id, coins, description)
        except Exception:
            logger.exception("Ledger deduction failed after generation: user=%s", user_id)
            return 0, None, ReconciliationWarning.BILLING

        if not deduction.ok:
            logger.warning(
                "Deduction rejected after generation: user=%s required=%s available=%s reason=%s",
                user_id, coins, deduction.available, deduction.reason,
            )
            return 0, deduction.available, ReconciliationWarning.BILLING

        return coins, deduction.transaction.new_balance, None
