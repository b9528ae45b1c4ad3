import pytest

from models import User
from utils import query_engine
from utils.ai_auditor import AIServiceError
from utils.query_engine import (
    InvalidTransitionError,
    QueryValidationError,
    ResolutionIncompleteError,
)

PROBLEM = "data:image/png;base64,cHJvYmxlbQ=="
FIX = "data:image/png;base64,Zml4ZWQ="
VOICE = "data:audio/webm;base64,dm9pY2U="


def _admin():
    return User(house_number="ADM1", phone="03000000000", role="ADMIN")


def _resident(house="A-101"):
    return User(house_number=house, phone="03000000001", role="RESIDENT")


def _passing_auditor(problem, fix):
    return {"isResolved": True, "reason": "Looks clean."}


def _failing_auditor(problem, fix):
    return {"isResolved": False, "reason": "Trash still visible near the gate."}


def _broken_auditor(problem, fix):
    raise AIServiceError("quota exceeded")


def test_create_query_starts_new_with_one_update(state):
    query = query_engine.create_query(state, "A-101", description="Lift is stuck", image=PROBLEM)

    assert state.queries[0] is query
    assert query.status == "NEW"
    assert len(query.timeline) == 1
    assert query.timeline[0].status == "NEW"
    assert query.timeline[0].message == "Query submitted successfully."


def test_new_queries_are_listed_first(state):
    first = query_engine.create_query(state, "A-101", description="one")
    second = query_engine.create_query(state, "A-101", description="two")
    assert state.queries[:2] == [second, first]


def test_empty_query_is_rejected(state):
    with pytest.raises(QueryValidationError):
        query_engine.create_query(state, "A-101", description="   ")
    assert state.queries == []


def test_admin_view_moves_new_to_review_once(state):
    query = query_engine.create_query(state, "A-101", description="Leak")

    assert query_engine.record_view(state, query.id, _admin()) is True
    assert query_engine.record_view(state, query.id, _admin()) is False
    assert query.status == "UNDER_REVIEW"
    assert [u.status for u in query.timeline] == ["NEW", "UNDER_REVIEW"]
    assert query.timeline[-1].message == "Admin has viewed your query."


def test_resident_and_super_admin_views_do_not_change_status(state):
    query = query_engine.create_query(state, "A-101", description="Leak")
    observer = User(house_number="SA01", phone="0", role="SUPER_ADMIN")

    assert query_engine.record_view(state, query.id, _resident()) is False
    assert query_engine.record_view(state, query.id, observer) is False
    assert query.status == "NEW"


def test_full_lifecycle_for_a101(state):
    query = query_engine.create_query(state, "A-101", description="Garbage at gate", image=PROBLEM)
    query_engine.record_view(state, query.id, _admin())
    query_engine.mark_on_it(state, query.id)
    query_engine.resolve_query(state, query.id, "Cleared", FIX, VOICE, auditor=_passing_auditor)

    assert [u.status for u in query.timeline] == ["NEW", "UNDER_REVIEW", "UNDER_PROCESS", "RESOLVED"]
    assert query.status == "RESOLVED"
    assert query.solution.ai_verification.is_resolved is True
    assert query_engine.available_actions(query, _admin()) == []


def test_big_issue_requires_eta_and_records_it(state):
    query = query_engine.create_query(state, "A-101", description="Roof cracks")

    with pytest.raises(QueryValidationError):
        query_engine.mark_big_issue(state, query.id, "  ")
    assert query.status == "NEW"

    query_engine.mark_big_issue(state, query.id, "2 weeks")
    assert query.status == "BIG_ISSUE"
    assert query.timeline[-1].timeline == "2 weeks"
    assert query.timeline[-1].message == "Significant work required."


def test_on_it_not_allowed_after_escalation(state):
    query = query_engine.create_query(state, "A-101", description="Roof cracks")
    query_engine.mark_big_issue(state, query.id, "a month")

    with pytest.raises(InvalidTransitionError):
        query_engine.mark_on_it(state, query.id)
    assert query_engine.available_actions(query, _admin()) == ["big_issue", "resolve"]


def test_failed_audit_returns_query_to_review(state):
    query = query_engine.create_query(state, "A-101", description="Garbage", image=PROBLEM)
    query_engine.mark_on_it(state, query.id)
    before = [u.to_dict() for u in query.timeline]

    query_engine.resolve_query(state, query.id, "Done", FIX, VOICE, auditor=_failing_auditor)

    assert query.status == "UNDER_REVIEW"
    assert len(query.timeline) == len(before) + 1
    assert [u.to_dict() for u in query.timeline[:-1]] == before
    assert query.timeline[-1].message == "Problem is being fixed. (AI Audit detected incomplete work)"
    assert query.solution.ai_verification.reason == "Trash still visible near the gate."
    assert query_engine.audit_failed(query) is True
    assert query_engine.hides_original(query) is True


def test_audit_outage_accepts_resolution_for_manual_review(state):
    query = query_engine.create_query(state, "A-101", description="Garbage", image=PROBLEM)

    query_engine.resolve_query(state, query.id, "Done", FIX, VOICE, auditor=_broken_auditor)

    verification = query.solution.ai_verification
    assert query.status == "RESOLVED"
    assert verification.is_resolved is True
    assert verification.requires_manual_review is True
    assert verification.reason == "Manual check required."


def test_resolution_without_problem_photo_skips_audit(state):
    query = query_engine.create_query(state, "A-101", description="Noise complaint")

    def _never_called(problem, fix):
        raise AssertionError("audit should not run")

    query_engine.resolve_query(state, query.id, "Spoke to tenant", FIX, VOICE, auditor=_never_called)
    assert query.status == "RESOLVED"
    assert query.solution.ai_verification is None


@pytest.mark.parametrize(
    "text, image, voice",
    [("", FIX, VOICE), ("Done", None, VOICE), ("Done", FIX, None)],
)
def test_incomplete_resolution_is_rejected(state, text, image, voice):
    query = query_engine.create_query(state, "A-101", description="Leak")

    with pytest.raises(ResolutionIncompleteError):
        query_engine.resolve_query(state, query.id, text, image, voice, auditor=_passing_auditor)
    assert query.status == "NEW"
    assert query.solution is None


def test_resolved_is_terminal(state):
    query = query_engine.create_query(state, "A-101", description="Leak")
    query_engine.resolve_query(state, query.id, "Fixed", FIX, VOICE, auditor=_passing_auditor)

    with pytest.raises(InvalidTransitionError):
        query_engine.mark_big_issue(state, query.id, "later")
    with pytest.raises(InvalidTransitionError):
        query_engine.resolve_query(state, query.id, "Fixed", FIX, VOICE, auditor=_passing_auditor)


def test_residents_only_see_their_own_queries(state):
    mine = query_engine.create_query(state, "A-101", description="mine")
    theirs = query_engine.create_query(state, "B-202", description="theirs")

    assert query_engine.queries_for_viewer(state, _resident("A-101")) == [mine]
    assert query_engine.can_view(theirs, _resident("A-101")) is False
    assert query_engine.queries_for_viewer(state, _admin(), status="NEW") == [theirs, mine]


def test_description_only_query_walkthrough(state):
    query = query_engine.create_query(state, "A-101", description="leak")
    assert (query.status, len(query.timeline)) == ("NEW", 1)

    query_engine.record_view(state, query.id, _admin())
    assert (query.status, len(query.timeline)) == ("UNDER_REVIEW", 2)

    query_engine.mark_on_it(state, query.id)
    assert (query.status, len(query.timeline)) == ("UNDER_PROCESS", 3)

    query_engine.resolve_query(state, query.id, "Pipe replaced", FIX, VOICE, auditor=_passing_auditor)
    assert query.status == "RESOLVED"
    assert query.solution.text == "Pipe replaced"
    assert query_engine.hides_original(query) is True
