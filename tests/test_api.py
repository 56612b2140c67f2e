"""
Tests for the HTTP API.
"""

import os
import tempfile
from unittest.mock import AsyncMock, Mock

from fastapi.testclient import TestClient

from note_forge.api.app import StaticTokenVerifier, create_app
from note_forge.config.loader import (
    BillingSettings,
    ServerSettings,
    Settings,
    StorageSettings,
    TierConfig
)
from note_forge.core.billing import SqliteBillingLedger
from note_forge.core.errors import GenerationFailed
from note_forge.core.orchestrator import GenerationOrchestrator
from note_forge.sdk.generation_client import GenerationClient, GenerationResult
from note_forge.storage.ledger import LedgerRepository
from note_forge.storage.repository import NoteRepository, initialize_schema

HTML = "<!DOCTYPE html><html><body>API note</body></html>"
ALICE = {"Authorization": "Bearer alice-token"}
BOB = {"Authorization": "Bearer bob-token"}


class TestApi:
    """Test API routes against a temporary database."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        db_path = os.path.join(self.temp_dir, "test.db")
        initialize_schema(db_path)

        billing = BillingSettings(tiers={
            "free": TierConfig(monthly_limit=None),
            "pro": TierConfig(monthly_limit=1),
        })
        self.settings = Settings(
            billing=billing,
            storage=StorageSettings(db_path=db_path),
            server=ServerSettings(api_tokens={"alice-token": "alice", "bob-token": "bob"})
        )
        self.ledger = LedgerRepository(db_path, billing)
        self.notes = NoteRepository(db_path)

        self.generation = Mock(spec=GenerationClient)
        self.generation.generate = AsyncMock(
            return_value=GenerationResult(text=HTML, attempts=1, model="m")
        )
        orchestrator = GenerationOrchestrator(
            client=self.generation,
            ledger=SqliteBillingLedger(self.ledger),
            notes=self.notes
        )
        app = create_app(
            self.settings,
            orchestrator=orchestrator,
            ledger=self.ledger,
            notes=self.notes,
            token_verifier=StaticTokenVerifier(self.settings.server.api_tokens)
        )
        self.client = TestClient(app)

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _generate(self, headers=None, **body):
        payload = {"topic": "Volcanoes", "templateId": "study", "pageCount": 1}
        payload.update(body)
        return self.client.post("/api/generate-note", json=payload, headers=headers or {})

    def test_generate_identified(self):
        response = self._generate(ALICE, pageCount=3)

        assert response.status_code == 200
        body = response.json()
        assert body["html"] == HTML
        assert body["coinsSpent"] == 3
        assert body["coinsRemaining"] == 7
        assert "warning" not in body
        assert self.ledger.get_account("alice").balance == 7

    def test_generate_anonymous(self):
        response = self._generate()

        assert response.status_code == 200
        assert response.json() == {"html": HTML}

    def test_generate_invalid_topic(self):
        response = self._generate(ALICE, topic="   ")

        assert response.status_code == 400
        assert response.json() == {"error": "Topic is required"}
        self.generation.generate.assert_not_awaited()

    def test_generate_missing_topic(self):
        response = self.client.post("/api/generate-note", json={"pageCount": 2})
        assert response.status_code == 400

    def test_generate_bad_token(self):
        response = self._generate({"Authorization": "Bearer nope"})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid token"}

    def test_generate_insufficient_funds(self):
        self.ledger.open_account("alice", initial_coins=2)

        response = self._generate(ALICE, pageCount=5)

        assert response.status_code == 402
        assert response.json() == {"error": "Insufficient coins", "required": 5, "available": 2}
        self.generation.generate.assert_not_awaited()

    def test_generate_quota_exceeded(self):
        self.ledger.open_account("alice", tier="pro")
        assert self._generate(ALICE).status_code == 200

        response = self._generate(ALICE)

        assert response.status_code == 429
        assert response.json() == {"error": "Monthly note limit reached", "limit": 1, "current": 1}

    def test_generate_upstream_failure(self):
        self.generation.generate.side_effect = GenerationFailed("down", status=503, attempts=3)

        response = self._generate(ALICE)

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to generate note", "status": 503}
        assert self.ledger.get_account("alice").balance == 10

    def test_invalid_page_count_is_normalized(self):
        response = self._generate(ALICE, pageCount="lots")

        assert response.status_code == 200
        assert response.json()["coinsSpent"] == 1

    def test_notes_history_flow(self):
        for topic in ("A", "B", "C"):
            self._generate(ALICE, topic=topic)

        listing = self.client.get("/api/user/notes?limit=2&offset=0", headers=ALICE).json()

        assert listing["total"] == 3
        assert listing["hasMore"] is True
        assert len(listing["items"]) == 2
        assert set(listing["items"][0]) == {
            "id", "title", "templateId", "pageCount", "coinsSpent", "createdAt"
        }

        note_id = listing["items"][0]["id"]
        note = self.client.get(f"/api/user/notes/{note_id}", headers=ALICE)
        assert note.status_code == 200
        assert note.json()["html"] == HTML

        assert self.client.get(f"/api/user/notes/{note_id}", headers=BOB).status_code == 404

        deleted = self.client.delete(f"/api/user/notes/{note_id}", headers=ALICE)
        assert deleted.json() == {"success": True}
        assert self.client.delete(f"/api/user/notes/{note_id}", headers=ALICE).status_code == 404
        assert self.client.get("/api/user/notes", headers=ALICE).json()["total"] == 2

    def test_notes_require_auth(self):
        response = self.client.get("/api/user/notes")

        assert response.status_code == 401
        assert response.json() == {"error": "No authorization header"}

    def test_notes_invalid_pagination(self):
        assert self.client.get("/api/user/notes?limit=0", headers=ALICE).status_code == 400
        assert self.client.get("/api/user/notes?offset=-1", headers=ALICE).status_code == 400

    def test_coin_summary_opens_account(self):
        response = self.client.get("/api/user/coins", headers=BOB)

        assert response.status_code == 200
        body = response.json()
        assert body["balance"] == 10
        assert body["tier"] == "free"
        assert body["transactions"][0]["kind"] == "bonus"
        assert body["transactions"][0]["newBalance"] == 10

    def test_coin_summary_after_generation(self):
        self._generate(ALICE, pageCount=2)

        body = self.client.get("/api/user/coins", headers=ALICE).json()

        assert body["balance"] == 8
        assert body["totalSpent"] == 2
        assert body["totalGenerated"] == 1
        assert body["transactions"][0]["amount"] == -2
