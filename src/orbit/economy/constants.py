"""Economy policy constants. These are product policy, not deployment settings."""

from __future__ import annotations

from typing import Literal

STARFORGE_EXTRA_DRAFT_COST = 25
POST_BOOST_COST = 50
POST_BOOST_DURATION_HOURS = 12

LedgerEntryType = Literal[
    "purchase",
    "membership",
    "reward",
    "referral",
    "tip-sent",
    "tip-received",
    "ai-draft",
    "post-boost",
]

LEDGER_ENTRY_TYPES: frozenset[str] = frozenset(
    {
        "purchase",
        "membership",
        "reward",
        "referral",
        "tip-sent",
        "tip-received",
        "ai-draft",
        "post-boost",
    }
)

LEDGER_PAGE_LIMIT = 50
