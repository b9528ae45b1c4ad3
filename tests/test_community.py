import pytest

from utils import auth_service, community, oversight
from utils.community import CommunityError


@pytest.fixture()
def houses(state):
    admin = auth_service.signup(state, "ADM1", "03000000000", "ADMIN", "111")
    a = auth_service.signup(state, "A-101", "03000000001", "RESIDENT", "111")
    b = auth_service.signup(state, "B-202", "03000000002", "RESIDENT", "111")
    c = auth_service.signup(state, "C-303", "03000000003", "RESIDENT", "111")
    return admin, a, b, c


def test_notices_newest_first_and_deletable(state, houses):
    admin = houses[0]
    first = community.post_notice(state, admin, "Water", "Tank cleaning on Sunday", "INFO")
    second = community.post_notice(state, admin, "Eid", "Gathering at the park", "EVENT")

    assert state.notices == [second, first]
    assert second.author == "ADM1"

    community.delete_notice(state, first.id)
    assert state.notices == [second]
    with pytest.raises(CommunityError):
        community.delete_notice(state, first.id)


def test_notice_permissions(houses):
    admin, resident = houses[0], houses[1]
    assert community.can_manage_notices(admin)
    assert not community.can_manage_notices(resident)


def test_direct_messages_are_private_to_the_pair(state, houses):
    _, a, b, c = houses
    community.post_message(state, a, "Hi B", "DIRECT", "B-202")
    community.post_message(state, b, "Hello A", "DIRECT", "A-101")
    community.post_message(state, c, "Morning all")

    assert [m.content for m in community.conversation(state, "A-101", "B-202")] == ["Hi B", "Hello A"]
    assert community.conversation(state, "B-202", "A-101") == community.conversation(state, "A-101", "B-202")
    assert community.conversation(state, "C-303", "A-101") == []
    assert [m.content for m in community.conversation(state, "C-303")] == ["Morning all"]
    assert [m.content for m in community.conversation(state, "A-101")] == ["Morning all"]


def test_direct_message_needs_a_real_recipient(state, houses):
    a = houses[1]
    with pytest.raises(CommunityError):
        community.post_message(state, a, "hello", "DIRECT", "Z-000")
    with pytest.raises(CommunityError):
        community.post_message(state, a, "hello", "DIRECT", "A-101")
    with pytest.raises(CommunityError):
        community.post_message(state, a, "   ")
    assert state.chat_messages == []


def test_contacts_split_management_and_residents(state, houses):
    a = houses[1]
    groups = community.contacts(state, a)
    assert {u.house_number for u in groups["admins"]} == {"SA01", "ADM1"}
    assert {u.house_number for u in groups["residents"]} == {"B-202", "C-303"}


def test_conversation_pairs_count_unordered_pairs(state, houses):
    _, a, b, c = houses
    community.post_message(state, a, "1", "DIRECT", "B-202")
    community.post_message(state, b, "2", "DIRECT", "A-101")
    community.post_message(state, c, "group only")

    pairs = oversight.conversation_pairs(state)
    assert len(pairs) == 1
    assert pairs[0]["participants"] == ["A-101", "B-202"]
    assert pairs[0]["message_count"] == 2


def test_dashboard_stats(state, houses):
    from utils import query_engine

    query_engine.create_query(state, "A-101", description="Leak")
    stats = oversight.dashboard_stats(state)
    assert stats["total_users"] == 5
    assert stats["total_admins"] == 1
    assert stats["total_residents"] == 3
    assert stats["pending_queries"] == 1
    assert stats["resolution_rate"] == 0
    assert [u.house_number for u in oversight.managed_users(state)] == ["ADM1", "A-101", "B-202", "C-303"]


def test_conversation_pairs_keep_hyphenated_houses_apart(state):
    a_b = auth_service.signup(state, "A-B", "03000000011", "RESIDENT", "111")
    a = auth_service.signup(state, "A", "03000000012", "RESIDENT", "111")
    auth_service.signup(state, "C", "03000000013", "RESIDENT", "111")
    auth_service.signup(state, "B-C", "03000000014", "RESIDENT", "111")
    community.post_message(state, a_b, "to C", "DIRECT", "C")
    community.post_message(state, a, "to B-C", "DIRECT", "B-C")

    pairs = oversight.conversation_pairs(state)
    assert sorted(p["participants"] for p in pairs) == [["A", "B-C"], ["A-B", "C"]]
    assert [p["message_count"] for p in pairs] == [1, 1]
