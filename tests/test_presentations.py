"""
Presentation scheduler tests — scheduling rules, management window,
role-filtered listing and the public JSON/XML feed.
"""

import xml.etree.ElementTree as ET
from datetime import datetime, timedelta, timezone

import pytest

from thesis_portal.models import db
from thesis_portal.models.presentation import Presentation
from thesis_portal.models.thesis import (
    STATE_ACTIVE,
    STATE_CANCELLED,
    STATE_COMPLETED,
    STATE_UNDER_ASSIGNMENT,
    STATE_UNDER_REVIEW,
)

BASE = "/api/v1/presentations"


def _iso(days=7, hours=0):
    return (datetime.now(timezone.utc) + timedelta(days=days, hours=hours)).isoformat()


def _in_person(**overrides):
    body = {"scheduled_at": _iso(), "mode": "IN_PERSON", "room": "B-204"}
    body.update(overrides)
    return body


def _schedule(client, headers, thesis_id, body):
    return client.post(f"{BASE}/theses/{thesis_id}", headers=headers, json=body)


@pytest.fixture()
def active_thesis(thesis):
    thesis.state = STATE_ACTIVE
    db.session.commit()
    return thesis


def _past_presentation(thesis, creator):
    p = Presentation(
        thesis_id=thesis.id,
        scheduled_at=datetime.now(timezone.utc) - timedelta(days=1),
        mode="IN_PERSON",
        room="A-1",
        created_by=creator.id,
    )
    db.session.add(p)
    db.session.commit()
    return p


class TestSchedule:
    def test_supervisor_schedules_in_person(self, client, supervisor, active_thesis, auth_headers):
        res = _schedule(client, auth_headers(supervisor), active_thesis.id, _in_person())
        assert res.status_code == 201
        p = res.get_json()["presentation"]
        assert p["mode"] == "IN_PERSON"
        assert p["room"] == "B-204"
        assert p["online_link"] is None

    def test_student_schedules_online(self, client, student, active_thesis, auth_headers):
        res = _schedule(client, auth_headers(student), active_thesis.id, {
            "scheduled_at": _iso(), "mode": "online", "online_link": "https://meet.example.org/x",
        })
        assert res.status_code == 201
        assert res.get_json()["presentation"]["mode"] == "ONLINE"

    def test_hyphenated_mode_accepted(self, client, supervisor, active_thesis, auth_headers):
        res = _schedule(client, auth_headers(supervisor), active_thesis.id,
                        _in_person(mode="in-person"))
        assert res.status_code == 201

    @pytest.mark.parametrize("state", [STATE_UNDER_ASSIGNMENT, STATE_COMPLETED, STATE_CANCELLED])
    def test_wrong_state(self, client, supervisor, thesis, auth_headers, state):
        thesis.state = state
        thesis.cancellation_reason = "x"
        db.session.commit()
        res = _schedule(client, auth_headers(supervisor), thesis.id, _in_person())
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_INVALID_STATE"

    def test_under_review_is_schedulable(self, client, supervisor, thesis, auth_headers):
        thesis.state = STATE_UNDER_REVIEW
        db.session.commit()
        assert _schedule(client, auth_headers(supervisor), thesis.id, _in_person()).status_code == 201

    def test_past_time_rejected(self, client, supervisor, active_thesis, auth_headers):
        res = _schedule(client, auth_headers(supervisor), active_thesis.id,
                        _in_person(scheduled_at=_iso(days=-1)))
        assert res.status_code == 400

    def test_room_required_in_person(self, client, supervisor, active_thesis, auth_headers):
        res = _schedule(client, auth_headers(supervisor), active_thesis.id, _in_person(room=""))
        assert res.status_code == 400

    def test_link_required_online(self, client, supervisor, active_thesis, auth_headers):
        res = _schedule(client, auth_headers(supervisor), active_thesis.id,
                        {"scheduled_at": _iso(), "mode": "ONLINE", "room": "B-204"})
        assert res.status_code == 400

    def test_bad_mode(self, client, supervisor, active_thesis, auth_headers):
        res = _schedule(client, auth_headers(supervisor), active_thesis.id, _in_person(mode="HYBRID"))
        assert res.status_code == 400

    def test_bad_timestamp(self, client, supervisor, active_thesis, auth_headers):
        res = _schedule(client, auth_headers(supervisor), active_thesis.id,
                        _in_person(scheduled_at="next tuesday"))
        assert res.status_code == 400

    def test_already_scheduled(self, client, supervisor, active_thesis, auth_headers):
        assert _schedule(client, auth_headers(supervisor), active_thesis.id, _in_person()).status_code == 201
        res = _schedule(client, auth_headers(supervisor), active_thesis.id, _in_person())
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_ALREADY_SCHEDULED"

    def test_outsider_forbidden(self, client, outsider, active_thesis, auth_headers):
        res = _schedule(client, auth_headers(outsider), active_thesis.id, _in_person())
        assert res.status_code == 403


class TestManage:
    def _scheduled(self, client, supervisor, thesis, auth_headers):
        return _schedule(client, auth_headers(supervisor), thesis.id,
                         _in_person()).get_json()["presentation"]

    def test_switch_to_online_clears_room(self, client, supervisor, active_thesis, auth_headers):
        p = self._scheduled(client, supervisor, active_thesis, auth_headers)
        res = client.put(f"{BASE}/{p['id']}", headers=auth_headers(supervisor),
                         json={"mode": "ONLINE", "online_link": "https://meet.example.org/y"})
        assert res.status_code == 200
        updated = res.get_json()["presentation"]
        assert updated["mode"] == "ONLINE"
        assert updated["room"] is None

    def test_reschedule_into_past_rejected(self, client, supervisor, active_thesis, auth_headers):
        p = self._scheduled(client, supervisor, active_thesis, auth_headers)
        res = client.put(f"{BASE}/{p['id']}", headers=auth_headers(supervisor),
                         json={"scheduled_at": _iso(days=-2)})
        assert res.status_code == 400

    def test_student_cannot_manage(self, client, supervisor, student, active_thesis, auth_headers):
        p = self._scheduled(client, supervisor, active_thesis, auth_headers)
        res = client.put(f"{BASE}/{p['id']}", headers=auth_headers(student), json={"room": "C-1"})
        assert res.status_code == 403
        assert client.delete(f"{BASE}/{p['id']}", headers=auth_headers(student)).status_code == 403

    def test_past_presentation_locked_for_supervisor(self, client, supervisor, secretary,
                                                     active_thesis, auth_headers):
        p = _past_presentation(active_thesis, supervisor)
        res = client.put(f"{BASE}/{p.id}", headers=auth_headers(supervisor), json={"room": "C-1"})
        assert res.status_code == 409
        assert client.delete(f"{BASE}/{p.id}", headers=auth_headers(supervisor)).status_code == 409
        assert client.delete(f"{BASE}/{p.id}", headers=auth_headers(secretary)).status_code == 200

    def test_delete_future(self, client, supervisor, active_thesis, auth_headers):
        p = self._scheduled(client, supervisor, active_thesis, auth_headers)
        assert client.delete(f"{BASE}/{p['id']}", headers=auth_headers(supervisor)).status_code == 200
        assert db.session.get(Presentation, p["id"]) is None

    def test_detail_lists_accepted_committee(self, client, supervisor, student, active_thesis,
                                             auth_headers):
        p = self._scheduled(client, supervisor, active_thesis, auth_headers)
        res = client.get(f"{BASE}/{p['id']}", headers=auth_headers(student))
        assert res.status_code == 200
        committee = res.get_json()["presentation"]["committee"]
        assert [m["committee_role"] for m in committee] == ["supervisor"]


class TestListing:
    def test_student_sees_own_only(self, client, supervisor, student, other_student, active_thesis,
                                   auth_headers):
        _schedule(client, auth_headers(supervisor), active_thesis.id, _in_person())
        assert len(client.get(BASE, headers=auth_headers(student)).get_json()["presentations"]) == 1
        assert client.get(BASE, headers=auth_headers(other_student)).get_json()["presentations"] == []

    def test_window_filter(self, client, supervisor, secretary, active_thesis, auth_headers):
        _schedule(client, auth_headers(supervisor), active_thesis.id, _in_person(scheduled_at=_iso(days=10)))
        start = (datetime.now(timezone.utc) + timedelta(days=1)).strftime("%Y-%m-%dT%H:%M:%SZ")
        end = (datetime.now(timezone.utc) + timedelta(days=5)).strftime("%Y-%m-%dT%H:%M:%SZ")
        res = client.get(BASE, headers=auth_headers(secretary), query_string={"from": start, "to": end})
        assert res.get_json()["presentations"] == []
        res = client.get(BASE, headers=auth_headers(secretary), query_string={"from": start})
        assert len(res.get_json()["presentations"]) == 1

    def test_xml_format(self, client, supervisor, active_thesis, auth_headers):
        _schedule(client, auth_headers(supervisor), active_thesis.id, _in_person())
        res = client.get(f"{BASE}?format=xml", headers=auth_headers(supervisor))
        assert res.mimetype == "application/xml"
        root = ET.fromstring(res.data)
        assert root.tag == "presentations"
        assert root.find("presentation/room").text == "B-204"

    def test_unknown_format(self, client, supervisor, auth_headers):
        assert client.get(f"{BASE}?format=yaml", headers=auth_headers(supervisor)).status_code == 400


class TestPublicFeed:
    def test_no_auth_and_state_filter(self, client, supervisor, active_thesis, auth_headers):
        _schedule(client, auth_headers(supervisor), active_thesis.id, _in_person())
        assert client.get(f"{BASE}/public").get_json()["presentations"] == []

        active_thesis.state = STATE_UNDER_REVIEW
        db.session.commit()
        res = client.get(f"{BASE}/public")
        assert res.status_code == 200
        [row] = res.get_json()["presentations"]
        assert row["room"] == "B-204"
        assert row["topic_title"] == active_thesis.topic.title
        assert "online_link" not in row
        assert "student_am" not in row

    def test_public_xml(self, client, supervisor, active_thesis, auth_headers):
        _schedule(client, auth_headers(supervisor), active_thesis.id, _in_person())
        active_thesis.state = STATE_UNDER_REVIEW
        db.session.commit()
        res = client.get(f"{BASE}/public?format=xml")
        root = ET.fromstring(res.data)
        assert len(root.findall("presentation")) == 1

    def test_stale_token_ignored(self, client):
        res = client.get(f"{BASE}/public", headers={"Authorization": "Bearer garbage"})
        assert res.status_code == 200
