"""
Committee coordination tests — invitations, responses and auto-activation.

Covers the invite error ladder (403 → 404 → role mismatch → self invite →
already member → duplicate pending), response rules and the activation
that fires on the third accepted seat.
"""

import pytest

from thesis_portal.models import db
from thesis_portal.models.thesis import (
    INVITATION_ACCEPTED,
    INVITATION_PENDING,
    INVITATION_REJECTED,
    STATE_ACTIVE,
    STATE_CANCELLED,
    STATE_COMPLETED,
    STATE_UNDER_ASSIGNMENT,
    CommitteeMember,
    Invitation,
    Thesis,
)
from thesis_portal.services.thesis_lifecycle import activate_if_committee_complete

BASE = "/api/v1/invitations"


def _invite(client, headers, thesis_id, instructor_id):
    return client.post(f"{BASE}/theses/{thesis_id}/invite", headers=headers,
                       json={"instructor_id": instructor_id})


def _respond(client, headers, invitation_id, action):
    return client.post(f"{BASE}/{invitation_id}/respond", headers=headers, json={"action": action})


def _reload(thesis_id):
    db.session.expire_all()
    return db.session.get(Thesis, thesis_id)


class TestInvite:
    @pytest.mark.parametrize("actor", ["secretary", "supervisor", "student"])
    def test_allowed_inviters(self, request, client, thesis, member_a, auth_headers, actor):
        user = request.getfixturevalue(actor)
        res = _invite(client, auth_headers(user), thesis.id, member_a.id)
        assert res.status_code == 201
        invitation = res.get_json()["invitation"]
        assert invitation["status"] == INVITATION_PENDING
        assert invitation["instructor_id"] == member_a.id

    def test_topic_creator_may_invite(self, client, thesis, supervisor, make_user, member_a,
                                      auth_headers):
        # hand supervision to someone else so only topic ownership remains
        thesis.supervisor_id = make_user("instructor").id
        db.session.commit()
        res = _invite(client, auth_headers(supervisor), thesis.id, member_a.id)
        assert res.status_code == 201

    def test_outsider_forbidden(self, client, thesis, outsider, member_a, auth_headers):
        res = _invite(client, auth_headers(outsider), thesis.id, member_a.id)
        assert res.status_code == 403

    def test_other_student_forbidden(self, client, thesis, other_student, member_a, auth_headers):
        res = _invite(client, auth_headers(other_student), thesis.id, member_a.id)
        assert res.status_code == 403

    def test_missing_thesis(self, client, secretary, member_a, auth_headers):
        res = _invite(client, auth_headers(secretary), 404, member_a.id)
        assert res.status_code == 404

    def test_missing_instructor(self, client, secretary, thesis, auth_headers):
        res = _invite(client, auth_headers(secretary), thesis.id, 9999)
        assert res.status_code == 404

    def test_role_mismatch(self, client, secretary, thesis, other_student, auth_headers):
        res = _invite(client, auth_headers(secretary), thesis.id, other_student.id)
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_ROLE_MISMATCH"

    def test_self_invite_of_supervisor(self, client, secretary, supervisor, thesis, auth_headers):
        res = _invite(client, auth_headers(secretary), thesis.id, supervisor.id)
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_SELF_INVITE"

    def test_already_member(self, client, secretary, thesis, member_a, auth_headers):
        db.session.add(CommitteeMember(thesis_id=thesis.id, instructor_id=member_a.id,
                                       role="member", invited_at=thesis.assigned_at,
                                       accepted_at=thesis.assigned_at))
        db.session.commit()
        res = _invite(client, auth_headers(secretary), thesis.id, member_a.id)
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_ALREADY_MEMBER"

    def test_duplicate_pending(self, client, secretary, thesis, member_a, auth_headers):
        assert _invite(client, auth_headers(secretary), thesis.id, member_a.id).status_code == 201
        res = _invite(client, auth_headers(secretary), thesis.id, member_a.id)
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_DUPLICATE_INVITE"

    def test_reinvite_after_rejection(self, client, secretary, thesis, member_a, auth_headers):
        inv_id = _invite(client, auth_headers(secretary), thesis.id, member_a.id).get_json()["invitation"]["id"]
        assert _respond(client, auth_headers(member_a), inv_id, "reject").status_code == 200
        res = _invite(client, auth_headers(secretary), thesis.id, member_a.id)
        assert res.status_code == 201

    def test_instructor_id_required(self, client, secretary, thesis, auth_headers):
        res = client.post(f"{BASE}/theses/{thesis.id}/invite", headers=auth_headers(secretary), json={})
        assert res.status_code == 400


class TestRespond:
    def _pending(self, thesis, instructor):
        inv = Invitation(thesis_id=thesis.id, instructor_id=instructor.id,
                         status=INVITATION_PENDING, invited_at=thesis.assigned_at)
        db.session.add(inv)
        db.session.commit()
        return inv

    def test_scenario_b_third_acceptance_activates(self, client, student, thesis, member_a,
                                                   member_b, auth_headers):
        first = _invite(client, auth_headers(student), thesis.id, member_a.id).get_json()["invitation"]
        second = _invite(client, auth_headers(student), thesis.id, member_b.id).get_json()["invitation"]

        res = _respond(client, auth_headers(member_a), first["id"], "accept")
        assert res.status_code == 200
        body = res.get_json()
        assert body["activation"] is None
        assert body["committee_member"]["committee_role"] == "member"
        assert _reload(thesis.id).state == STATE_UNDER_ASSIGNMENT

        res = _respond(client, auth_headers(member_b), second["id"], "accept")
        assert res.status_code == 200
        activation = res.get_json()["activation"]
        assert activation == {
            "thesis_id": thesis.id,
            "previous_state": STATE_UNDER_ASSIGNMENT,
            "new_state": STATE_ACTIVE,
            "triggered_by": "system",
        }

        reloaded = _reload(thesis.id)
        assert reloaded.state == STATE_ACTIVE
        assert reloaded.started_at is not None
        assert reloaded.accepted_member_count() == 3

    def test_activation_idempotent_after_fire(self, client, thesis, member_a, member_b,
                                              make_user, auth_headers):
        inv_a, inv_b = self._pending(thesis, member_a), self._pending(thesis, member_b)
        _respond(client, auth_headers(member_a), inv_a.id, "accept")
        _respond(client, auth_headers(member_b), inv_b.id, "accept")
        started = _reload(thesis.id).started_at

        late = make_user("instructor")
        inv_c = self._pending(thesis, late)
        res = _respond(client, auth_headers(late), inv_c.id, "accept")
        assert res.status_code == 200
        assert res.get_json()["activation"] is None

        reloaded = _reload(thesis.id)
        assert reloaded.state == STATE_ACTIVE
        assert reloaded.started_at == started
        assert activate_if_committee_complete(reloaded) is None

    def test_reject_creates_no_member(self, client, thesis, member_a, auth_headers):
        inv = self._pending(thesis, member_a)
        res = _respond(client, auth_headers(member_a), inv.id, "reject")
        assert res.status_code == 200
        assert res.get_json()["invitation"]["status"] == INVITATION_REJECTED
        assert res.get_json()["committee_member"] is None
        assert CommitteeMember.query.filter_by(thesis_id=thesis.id, instructor_id=member_a.id).count() == 0

    def test_only_invitee_may_respond(self, client, thesis, member_a, member_b, auth_headers):
        inv = self._pending(thesis, member_a)
        res = _respond(client, auth_headers(member_b), inv.id, "accept")
        assert res.status_code == 403

    def test_already_responded(self, client, thesis, member_a, auth_headers):
        inv = self._pending(thesis, member_a)
        assert _respond(client, auth_headers(member_a), inv.id, "accept").status_code == 200
        res = _respond(client, auth_headers(member_a), inv.id, "reject")
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_ALREADY_RESPONDED"
        db.session.expire_all()
        assert db.session.get(Invitation, inv.id).status == INVITATION_ACCEPTED

    @pytest.mark.parametrize("state", [STATE_COMPLETED, STATE_CANCELLED])
    def test_closed_thesis(self, client, thesis, member_a, auth_headers, state):
        inv = self._pending(thesis, member_a)
        thesis.state = state
        thesis.cancellation_reason = "closed"
        db.session.commit()
        res = _respond(client, auth_headers(member_a), inv.id, "accept")
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_THESIS_CLOSED"
        db.session.expire_all()
        assert db.session.get(Invitation, inv.id).status == INVITATION_PENDING

    def test_invalid_action(self, client, thesis, member_a, auth_headers):
        inv = self._pending(thesis, member_a)
        assert _respond(client, auth_headers(member_a), inv.id, "maybe").status_code == 400

    def test_missing_invitation(self, client, member_a, auth_headers):
        assert _respond(client, auth_headers(member_a), 12345, "accept").status_code == 404


class TestCommitteeQueries:
    def test_list_own_invitations_newest_first(self, client, secretary, thesis, member_a,
                                               auth_headers):
        _invite(client, auth_headers(secretary), thesis.id, member_a.id)
        res = client.get(BASE, headers=auth_headers(member_a))
        assert res.status_code == 200
        invitations = res.get_json()["invitations"]
        assert len(invitations) == 1
        assert invitations[0]["topic_title"] == thesis.topic.title

    def test_list_invitations_status_filter(self, client, secretary, thesis, member_a,
                                            auth_headers):
        _invite(client, auth_headers(secretary), thesis.id, member_a.id)
        res = client.get(f"{BASE}?status=accepted", headers=auth_headers(member_a))
        assert res.get_json()["invitations"] == []

    def test_students_have_no_invitation_inbox(self, client, student, auth_headers):
        assert client.get(BASE, headers=auth_headers(student)).status_code == 403

    def test_committee_and_pending(self, client, secretary, supervisor, thesis, member_a,
                                   auth_headers):
        _invite(client, auth_headers(secretary), thesis.id, member_a.id)
        res = client.get(f"{BASE}/theses/{thesis.id}/committee", headers=auth_headers(supervisor))
        body = res.get_json()
        assert [m["instructor_id"] for m in body["committee"]] == [supervisor.id]
        assert [i["instructor_id"] for i in body["pending_invitations"]] == [member_a.id]

    def test_student_sees_committee_without_pending(self, client, secretary, student, thesis,
                                                    member_a, auth_headers):
        _invite(client, auth_headers(secretary), thesis.id, member_a.id)
        res = client.get(f"{BASE}/theses/{thesis.id}/committee", headers=auth_headers(student))
        assert res.status_code == 200
        assert res.get_json()["pending_invitations"] == []

    def test_available_instructors_excludes_members_and_pending(self, client, secretary, supervisor,
                                                               thesis, member_a, member_b,
                                                               outsider, auth_headers):
        _invite(client, auth_headers(secretary), thesis.id, member_a.id)
        res = client.get(f"{BASE}/theses/{thesis.id}/available-instructors",
                         headers=auth_headers(secretary))
        ids = {u["id"] for u in res.get_json()["instructors"]}
        assert ids == {member_b.id, outsider.id}
