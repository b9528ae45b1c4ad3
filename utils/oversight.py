"""Super admin metrics: population, query progress, and who talks to whom."""
from models import AppState


def dashboard_stats(state: AppState) -> dict:
    queries = state.queries
    total = len(queries)
    resolved = sum(1 for q in queries if q.status == "RESOLVED")
    return {
        "total_users": len(state.users),
        "total_admins": sum(1 for u in state.users if u.is_admin),
        "total_residents": sum(1 for u in state.users if u.is_resident),
        "total_queries": total,
        "resolved_queries": resolved,
        "pending_queries": sum(1 for q in queries if q.status in ("NEW", "UNDER_REVIEW")),
        "active_queries": sum(1 for q in queries if q.status in ("UNDER_PROCESS", "BIG_ISSUE")),
        "resolution_rate": round(resolved / total * 100) if total else 0,
    }


def conversation_pairs(state: AppState) -> list[dict]:
    """Direct conversations keyed by the unordered pair of houses, newest first.

    Only metadata is exposed; message content stays private to the two parties.
    """
    pairs: dict[tuple[str, str], dict] = {}
    for message in state.chat_messages:
        if message.type != "DIRECT" or not message.recipient_house:
            continue
        participants = sorted([message.sender_house, message.recipient_house])
        key = (participants[0], participants[1])
        current = pairs.get(key)
        if current is None:
            pairs[key] = {"participants": participants, "last_active": message.timestamp, "message_count": 1}
            continue
        current["message_count"] += 1
        current["last_active"] = max(current["last_active"], message.timestamp)
    return sorted(pairs.values(), key=lambda p: p["last_active"], reverse=True)


def managed_users(state: AppState) -> list:
    return [u for u in state.users if not u.is_super_admin]
