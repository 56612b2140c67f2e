# note_forge/demo/seed_demo_data.py

import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from note_forge.config.loader import DEFAULT_DB_PATH, BillingSettings
from note_forge.core.errors import AccountNotFound
from note_forge.storage.ledger import LedgerRepository
from note_forge.storage.models import GenerationArtifact
from note_forge.storage.repository import NoteRepository, initialize_schema

DEMO_USERS = {
    "demo-free": "free",
    "demo-pro": "pro",
}

SAMPLE_NOTE_HTML = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
body {{ font-family: sans-serif; color: #1f2937; padding: 24px; }}
h1 {{ color: #4f46e5; }}
.key {{ background: #eef2ff; padding: 8px 12px; border-radius: 6px; }}
</style>
</head>
<body>
<h1>{title}</h1>
<p class="key">{summary}</p>
<ul>
<li>Start from the core definition.</li>
<li>Connect each idea to a worked example.</li>
<li>Review with the summary box above.</li>
</ul>
</body>
</html>
"""

DEMO_NOTES = [
    ("demo-free", "Photosynthesis", "study", 1,
     "Light energy becomes chemical energy stored in glucose."),
    ("demo-pro", "The French Revolution", "timeline", 2,
     "From the Estates-General in 1789 to the rise of Napoleon."),
    ("demo-pro", "TCP vs UDP", "comparison", 1,
     "Reliable ordered streams versus lightweight datagrams."),
]


def seed_demo_data(
    db_path: str = DEFAULT_DB_PATH,
    billing: Optional[BillingSettings] = None
) -> List[str]:
    """Create demo accounts with a short spend history and sample notes.

    Existing demo accounts are left as they are.

    Returns:
        User ids of the accounts created
    """
    initialize_schema(db_path)
    ledger = LedgerRepository(db_path, billing)
    notes = NoteRepository(db_path)

    created = []
    for user_id, tier in DEMO_USERS.items():
        try:
            ledger.get_account(user_id)
            continue
        except AccountNotFound:
            pass
        ledger.open_account(user_id, tier=tier)
        created.append(user_id)

    now = datetime.now()
    for age, (user_id, title, template_id, pages, summary) in enumerate(DEMO_NOTES):
        if user_id not in created:
            continue
        if user_id == "demo-pro":
            ledger.grant(user_id, 20, "Demo coin pack")
        deduction = ledger.try_deduct(user_id, pages, f"Generated {pages}-page note: {title}")
        notes.save_note(GenerationArtifact(
            id=uuid.uuid4().hex,
            user_id=user_id,
            title=title,
            template_id=template_id,
            page_count=pages,
            coins_spent=pages if deduction.ok else 0,
            html_content=SAMPLE_NOTE_HTML.format(title=title, summary=summary),
            created_at=now - timedelta(days=age)
        ))

    return created


if __name__ == "__main__":
    users = seed_demo_data()
    print(f"Demo data inserted for: {', '.join(users) or 'no new users'}")
