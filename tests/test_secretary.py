"""
Secretary reporting tests — thesis export (JSON/CSV), comprehensive
report and system health counters.
"""

import csv
import io

from thesis_portal.models import db
from thesis_portal.models.grade import Grade
from thesis_portal.models.thesis import STATE_ACTIVE, STATE_COMPLETED, STATE_UNDER_ASSIGNMENT
from thesis_portal.models.topic import Topic
from thesis_portal.services.reporting_service import EXPORT_COLUMNS

BASE = "/api/v1/secretary"


class TestExport:
    def test_json_export(self, client, secretary, thesis, auth_headers):
        res = client.get(f"{BASE}/export/theses", headers=auth_headers(secretary))
        assert res.status_code == 200
        body = res.get_json()
        assert body["total"] == 1
        row = body["theses"][0]
        assert set(row) == set(EXPORT_COLUMNS)
        assert row["student_am"] == "1066001"
        assert row["state"] == STATE_UNDER_ASSIGNMENT

    def test_csv_export(self, client, secretary, thesis, auth_headers):
        res = client.get(f"{BASE}/export/theses?format=csv", headers=auth_headers(secretary))
        assert res.status_code == 200
        assert res.mimetype == "text/csv"
        assert "attachment" in res.headers["Content-Disposition"]
        rows = list(csv.reader(io.StringIO(res.get_data(as_text=True))))
        assert tuple(rows[0]) == EXPORT_COLUMNS
        assert len(rows) == 2
        assert rows[1][EXPORT_COLUMNS.index("topic_title")] == thesis.topic.title

    def test_state_filter(self, client, secretary, thesis, auth_headers):
        res = client.get(f"{BASE}/export/theses?state={STATE_ACTIVE}", headers=auth_headers(secretary))
        assert res.get_json()["total"] == 0

    def test_bad_state_and_format(self, client, secretary, auth_headers):
        assert client.get(f"{BASE}/export/theses?state=DONE",
                          headers=auth_headers(secretary)).status_code == 400
        assert client.get(f"{BASE}/export/theses?format=xlsx",
                          headers=auth_headers(secretary)).status_code == 400

    def test_instructor_forbidden(self, client, supervisor, auth_headers):
        assert client.get(f"{BASE}/export/theses", headers=auth_headers(supervisor)).status_code == 403


class TestReports:
    def test_comprehensive_report(self, client, secretary, supervisor, student, other_student,
                                  thesis, make_thesis, auth_headers):
        done_topic = Topic(title="Finished work", creator_id=supervisor.id)
        db.session.add(done_topic)
        db.session.commit()
        done = make_thesis(done_topic, other_student, supervisor, state=STATE_COMPLETED)
        db.session.add(Grade(thesis_id=done.id, grader_id=supervisor.id, grade_numeric=9.5))
        db.session.commit()

        res = client.get(f"{BASE}/reports/comprehensive", headers=auth_headers(secretary))
        assert res.status_code == 200
        body = res.get_json()
        assert body["overall_statistics"]["total_theses"] == 2
        assert body["overall_statistics"]["by_state"][STATE_COMPLETED] == 1
        [sup] = body["supervisor_statistics"]
        assert sup["supervisor_id"] == supervisor.id
        assert sup["total_supervised"] == 2
        assert sup["completed_supervised"] == 1
        assert body["grading_statistics"]["average_grade"] == 9.5

    def test_system_health(self, client, secretary, thesis, auth_headers):
        res = client.get(f"{BASE}/system/health", headers=auth_headers(secretary))
        assert res.status_code == 200
        body = res.get_json()
        assert body["database"]["status"] == "ok"
        assert body["user_statistics"] == {"instructor": 1, "secretary": 1, "student": 1}
        assert body["thesis_statistics"][STATE_UNDER_ASSIGNMENT] == 1
        assert body["topic_statistics"]["total_topics"] == 1

    def test_student_forbidden(self, client, student, auth_headers):
        assert client.get(f"{BASE}/reports/comprehensive",
                          headers=auth_headers(student)).status_code == 403
