import pytest


@pytest.fixture()
def roster(client):
    client.post("/api/subjects", json={"name": "Maths", "total": 20})
    client.post("/api/subjects", json={"name": "French", "total": 40})
    for name in ("Alice", "Bob"):
        client.post("/api/students", json={"name": name})
    return client


def _mark(client, value, student=0, sequence="firstSequence", subject="Maths"):
    return client.post("/api/marks", json={
        "student_index": student, "sequence": sequence, "subject": subject, "value": value,
    })


def test_post_mark_then_get(roster):
    assert _mark(roster, 14.5).json() == {"accepted": True}
    assert _mark(roster, "9", student=1, sequence="thirdSequence").json() == {"accepted": True}

    marks = roster.get("/api/marks").json()
    assert marks[0]["firstSequence"] == {"Maths": 14.5}
    assert marks[1]["thirdSequence"] == {"Maths": 9.0}


def test_invalid_marks_are_ignored(roster):
    _mark(roster, 12)
    for bad in (21, -1, "twelve"):
        resp = _mark(roster, bad)
        assert resp.status_code == 200
        assert resp.json() == {"accepted": False}
    assert _mark(roster, 5, subject="History").json() == {"accepted": False}
    assert roster.get("/api/marks").json()[0]["firstSequence"] == {"Maths": 12.0}


def test_empty_value_unsets_mark(roster):
    _mark(roster, 12)
    assert _mark(roster, "").json() == {"accepted": True}
    assert roster.get("/api/marks").json()[0]["firstSequence"] == {"Maths": None}


def test_unknown_sequence_is_bad_request(roster):
    assert _mark(roster, 12, sequence="seventhSequence").status_code == 400


def test_bulk_entry_matches_single_entry(roster):
    resp = roster.post("/api/marks/bulk", json={
        "sequence": "secondSequence",
        "entries": [
            {"student_index": 0, "subject": "Maths", "value": 15},
            {"student_index": 0, "subject": "French", "value": 41},
            {"student_index": 1, "subject": "French", "value": "30"},
        ],
    })
    assert resp.json() == {"accepted": [True, False, True], "accepted_count": 2}
    marks = roster.get("/api/marks").json()
    assert marks[0]["secondSequence"] == {"Maths": 15.0}
    assert marks[1]["secondSequence"] == {"French": 30.0}


def test_comments(roster):
    resp = roster.post("/api/comments", json={"student_index": 1, "slot": "annual", "text": "Great year"})
    assert resp.json() == {"changed": True}
    roster.post("/api/comments", json={"student_index": 1, "slot": "fifthSequence", "text": "Improving"})

    assert roster.get("/api/comments").json() == {
        "1": {"annual": "Great year", "fifthSequence": "Improving"}
    }
    assert roster.post("/api/comments", json={"student_index": 1, "slot": "weekly", "text": "x"}).status_code == 400
    assert roster.post("/api/comments", json={"student_index": 9, "slot": "annual", "text": "x"}).json() == {"changed": False}
