"""Event type constants.

Centralizing event types as constants prevents typos and makes it
easy to discover everything that lands in the audit log.
"""

# ─── Boards ──────────────────────────────────────────────

BOARD_CREATED = "board.created"
BOARD_DELETED = "board.deleted"
BOARDS_REORDERED = "boards.reordered"

# ─── Guest lifecycle ─────────────────────────────────────

GUEST_MIGRATED = "guest.migrated"

# ─── Scrum ───────────────────────────────────────────────

SCRUM_IMPORTED = "scrum.imported"

# ─── Recurring tasks ─────────────────────────────────────

RECURRING_GENERATED = "recurring.generated"
