import json

import pytest

from pathfinder.storage import LOCAL_KEYS, LocalBackend, LocalCollection, SqlBackend


@pytest.fixture(params=["local", "remote"])
def backend(request, tmp_path):
    if request.param == "local":
        b = LocalBackend(tmp_path / "store")
    else:
        b = SqlBackend(f"sqlite:///{tmp_path / 'remote.db'}")
    b.prepare()
    yield b
    b.close()


def assignment(id_, email, paper_id="p1"):
    return {"id": id_, "email": email, "paper_id": paper_id, "assigned_by": "Admin", "assigned_at": 1}


def test_put_get_find(backend):
    backend.assignments.put(assignment("a1", "x@example.com"))

    assert backend.assignments.get("a1")["email"] == "x@example.com"
    assert backend.assignments.find("email", "x@example.com")["id"] == "a1"
    assert backend.assignments.get("missing") is None
    assert backend.assignments.find("email", "nobody@example.com") is None


def test_put_replaces_whole_record(backend):
    backend.assignments.put(assignment("a1", "x@example.com", "p1"))
    backend.assignments.put(assignment("a1", "x@example.com", "p2"))

    records = backend.assignments.all()
    assert len(records) == 1
    assert records[0]["paper_id"] == "p2"


def test_update_missing_is_noop(backend):
    assert backend.assignments.update("missing", {"paper_id": "p9"}) is None
    assert backend.assignments.all() == []


def test_update_keeps_key_and_other_fields(backend):
    backend.assignments.put(assignment("a1", "x@example.com"))

    updated = backend.assignments.update("a1", {"paper_id": "p2", "id": "hijack"})

    assert updated["id"] == "a1"
    assert updated["paper_id"] == "p2"
    assert updated["email"] == "x@example.com"


def test_merge_creates_then_merges(backend):
    backend.assignments.merge(assignment("a1", "x@example.com"))
    backend.assignments.merge({"id": "a1", "paper_id": "p2"})

    record = backend.assignments.get("a1")
    assert record["paper_id"] == "p2"
    assert record["email"] == "x@example.com"
    assert len(backend.assignments.all()) == 1


def test_delete_and_delete_where(backend):
    backend.assignments.put(assignment("a1", "x@example.com"))
    backend.assignments.put(assignment("a2", "y@example.com"))

    backend.assignments.delete("a1")
    backend.assignments.delete("a1")
    assert [r["id"] for r in backend.assignments.all()] == ["a2"]

    assert backend.assignments.delete_where("email", "y@example.com") == 1
    assert backend.assignments.all() == []


def test_submissions_keyed_by_candidate(backend):
    submission = {
        "candidate_id": "c1",
        "paper_id": "p1",
        "start_time": 10,
        "end_time": None,
        "answers": {"q1": "print(1)"},
        "proctor_logs": [{"timestamp": 11, "type": "TAB_SWITCH", "details": ""}],
        "status": "IN_PROGRESS",
        "ai_evaluation": None,
    }
    backend.submissions.put(submission)
    backend.submissions.update("c1", {"answers": {"q1": "print(2)"}})

    stored = backend.submissions.get("c1")
    assert stored["answers"] == {"q1": "print(2)"}
    assert stored["proctor_logs"][0]["type"] == "TAB_SWITCH"


def test_local_layout_is_one_json_array_per_key(tmp_path):
    b = LocalBackend(tmp_path / "store")
    b.prepare()
    b.papers.put({"id": "p1", "title": "Paper"})

    path = tmp_path / "store" / f"{LOCAL_KEYS['papers']}.json"
    assert json.loads(path.read_text()) == [{"id": "p1", "title": "Paper"}]
    assert LOCAL_KEYS == {
        "candidates": "pathfinder_candidates",
        "submissions": "pathfinder_submissions",
        "papers": "pathfinder_papers",
        "assignments": "pathfinder_assignments",
    }


def test_corrupt_local_file_reads_as_empty(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json")
    collection = LocalCollection(path)

    assert collection.all() == []
    collection.put({"id": "a"})
    assert collection.all() == [{"id": "a"}]
