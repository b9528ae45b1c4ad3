"""Query lifecycle: submission, triage transitions, and audited resolution.

Status flow::

    NEW -> UNDER_REVIEW -> UNDER_PROCESS -> BIG_ISSUE -> RESOLVED
                                         \\-------------> RESOLVED

A resolution whose AI audit fails sends the query back to UNDER_REVIEW with the
rejected solution still attached, so the audit report stays visible. RESOLVED
is terminal.
"""
from typing import Any, Callable, Dict

from flask import current_app

from models import (
    ACTIVE_QUERY_STATUSES,
    AIVerification,
    AppState,
    Query,
    Solution,
    StatusUpdate,
    User,
    generate_id,
    now_ms,
)
from utils.ai_auditor import AIServiceError, audit_resolution

Auditor = Callable[[str, str], Dict[str, Any]]

MSG_SUBMITTED = "Query submitted successfully."
MSG_VIEWED = "Admin has viewed your query."
MSG_ON_IT = "Admin is working 'On It'."
MSG_BIG_ISSUE = "Significant work required."
MSG_RESOLVED = "The problem has been resolved by the society admin."
MSG_AUDIT_FAILED = "Problem is being fixed. (AI Audit detected incomplete work)"
MANUAL_REVIEW_REASON = "Manual check required."

REVIEW_FROM: tuple[str, ...] = ("NEW",)
ON_IT_FROM: tuple[str, ...] = ("NEW", "UNDER_REVIEW")
BIG_ISSUE_FROM: tuple[str, ...] = ACTIVE_QUERY_STATUSES
RESOLVE_FROM: tuple[str, ...] = ACTIVE_QUERY_STATUSES


class QueryError(Exception):
    """Base class for query lifecycle errors."""


class QueryNotFoundError(QueryError):
    pass


class QueryValidationError(QueryError):
    pass


class ResolutionIncompleteError(QueryValidationError):
    pass


class InvalidTransitionError(QueryError):
    pass


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def get_query(state: AppState, query_id: str) -> Query:
    query = state.find_query(query_id)
    if not query:
        raise QueryNotFoundError(f"Query {query_id} not found.")
    return query


def _append_update(query: Query, status: str, message: str, eta: str | None = None) -> StatusUpdate:
    update = StatusUpdate(status=status, timestamp=now_ms(), message=message, timeline=eta)
    query.timeline.append(update)
    previous = query.status
    query.status = status
    current_app.logger.info(
        "Query status changed",
        extra={"query_id": query.id, "previous_status": previous, "new_status": status},
    )
    return update


def _require_status(query: Query, allowed: tuple[str, ...], action: str) -> None:
    if query.status not in allowed:
        raise InvalidTransitionError(f"Cannot {action} a query that is {query.status}.")


def create_query(
    state: AppState,
    resident_house_number: str,
    description: str | None = None,
    image: str | None = None,
    voice_mail: str | None = None,
    voice_transcript: str | None = None,
) -> Query:
    description = _clean(description)
    if not (description or image or voice_mail):
        raise QueryValidationError("Please provide at least one piece of information (Photo, Voice, or Text).")

    created_at = now_ms()
    query = Query(
        id=generate_id(),
        resident_house_number=resident_house_number,
        status="NEW",
        created_at=created_at,
        timeline=[StatusUpdate(status="NEW", timestamp=created_at, message=MSG_SUBMITTED)],
        description=description,
        image=image or None,
        voice_mail=voice_mail or None,
        voice_transcript=_clean(voice_transcript),
    )
    state.queries.insert(0, query)
    current_app.logger.info(
        "Query created",
        extra={
            "query_id": query.id,
            "house_number": resident_house_number,
            "has_image": bool(image),
            "has_voice": bool(voice_mail),
        },
    )
    return query


def record_view(state: AppState, query_id: str, viewer: User) -> bool:
    """Move a NEW query to UNDER_REVIEW the first time an admin opens it.

    Super admins are observers and residents are owners; neither triggers review.
    Returns True when the state changed.
    """
    query = get_query(state, query_id)
    if not viewer or not viewer.is_admin or query.status not in REVIEW_FROM:
        return False
    _append_update(query, "UNDER_REVIEW", MSG_VIEWED)
    return True


def mark_on_it(state: AppState, query_id: str) -> Query:
    query = get_query(state, query_id)
    _require_status(query, ON_IT_FROM, "start work on")
    _append_update(query, "UNDER_PROCESS", MSG_ON_IT)
    return query


def mark_big_issue(state: AppState, query_id: str, eta: str | None) -> Query:
    query = get_query(state, query_id)
    _require_status(query, BIG_ISSUE_FROM, "escalate")
    eta = _clean(eta)
    if not eta:
        raise QueryValidationError("Please give an estimated timeline for the big issue.")
    _append_update(query, "BIG_ISSUE", MSG_BIG_ISSUE, eta=eta)
    return query


def _run_audit(query: Query, fix_image: str, auditor: Auditor) -> AIVerification | None:
    if not query.image:
        return None
    try:
        result = auditor(query.image, fix_image)
        return AIVerification(is_resolved=bool(result["isResolved"]), reason=str(result.get("reason") or ""))
    except (AIServiceError, KeyError, TypeError) as exc:
        # Fail open: a provider outage must not block a legitimate resolution.
        current_app.logger.warning(
            "AI audit unavailable; accepting resolution for manual review",
            extra={"query_id": query.id, "error": str(exc)},
        )
        return AIVerification(is_resolved=True, reason=MANUAL_REVIEW_REASON, requires_manual_review=True)


def resolve_query(
    state: AppState,
    query_id: str,
    text: str | None,
    image: str | None,
    voice_mail: str | None,
    transcript: str | None = None,
    auditor: Auditor | None = None,
) -> Query:
    query = get_query(state, query_id)
    _require_status(query, RESOLVE_FROM, "resolve")
    text = _clean(text)
    if not (image and voice_mail and text):
        raise ResolutionIncompleteError(
            "Admin Resolution requires: 1. Fixed Photo, 2. Voice Summary, and 3. Written Note."
        )

    verification = _run_audit(query, image, auditor or audit_resolution)
    query.solution = Solution(
        text=text,
        image=image,
        voice_mail=voice_mail,
        resolution_transcript=_clean(transcript),
        ai_verification=verification,
    )

    if verification and not verification.is_resolved:
        _append_update(query, "UNDER_REVIEW", MSG_AUDIT_FAILED)
        current_app.logger.info(
            "AI audit rejected resolution",
            extra={"query_id": query.id, "reason": verification.reason},
        )
    else:
        _append_update(query, "RESOLVED", MSG_RESOLVED)
    return query


def audit_failed(query: Query) -> bool:
    verification = query.solution.ai_verification if query.solution else None
    return bool(verification and not verification.is_resolved)


def hides_original(query: Query) -> bool:
    """Once any solution exists, the detail view shows it instead of the complaint.

    This includes a rejected resolution; the timeline keeps the history.
    """
    return query.solution is not None


def available_actions(query: Query, viewer: User | None) -> list[str]:
    if not viewer or not viewer.is_admin or query.is_resolved:
        return []
    actions = []
    if query.status in ON_IT_FROM:
        actions.append("on_it")
    if query.status in BIG_ISSUE_FROM:
        actions.append("big_issue")
    if query.status in RESOLVE_FROM:
        actions.append("resolve")
    return actions


def queries_for_viewer(state: AppState, viewer: User, status: str | None = None) -> list[Query]:
    if viewer.is_resident:
        queries = [q for q in state.queries if q.resident_house_number == viewer.house_number]
    else:
        queries = list(state.queries)
    if status:
        queries = [q for q in queries if q.status == status]
    return queries


def can_view(query: Query, viewer: User) -> bool:
    return not viewer.is_resident or query.resident_house_number == viewer.house_number
