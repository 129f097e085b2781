from pathfinder.seed import DEFAULT_PAPER_ID, QUESTIONS, bootstrap_assignment_id
from pathfinder.service import DatabaseService

from conftest import BOOTSTRAP, make_service


def test_initialize_seeds_default_paper_and_assignments(service):
    papers = service.get_all_papers()
    assert [p.id for p in papers] == [DEFAULT_PAPER_ID]
    assert len(papers[0].questions) == len(QUESTIONS)
    assert all(q.marks > 0 for q in papers[0].questions)

    assignments = service.get_all_assignments()
    assert len(assignments) == 1
    assert assignments[0].email == BOOTSTRAP[0]
    assert assignments[0].id == bootstrap_assignment_id(BOOTSTRAP[0])
    assert assignments[0].assigned_by == "System"


def test_initialize_is_idempotent(service):
    service.initialize()
    service.initialize()

    assert len(service.get_all_papers()) == 1
    assert len(service.get_all_assignments()) == 1


def test_reseeding_a_fresh_process_does_not_duplicate(tmp_path):
    for _ in range(2):
        svc = make_service(tmp_path, "local")
        svc.initialize()
        svc.close()

    svc = make_service(tmp_path, "local")
    svc.initialize()
    assert len(svc.get_all_papers()) == 1
    assert len(svc.get_all_assignments()) == 1


def test_reseed_keeps_admin_reassignment_but_restores_paper(tmp_path):
    svc = make_service(tmp_path, "remote")
    svc.initialize()
    svc.assign_exam(BOOTSTRAP[0], "custom-paper")
    paper = svc.get_paper(DEFAULT_PAPER_ID)
    svc.update_question_paper(paper.model_copy(update={"title": "Edited"}))
    svc.close()

    svc = make_service(tmp_path, "remote")
    svc.initialize()
    assert svc.get_assignment(BOOTSTRAP[0]).paper_id == "custom-paper"
    assert svc.get_paper(DEFAULT_PAPER_ID).title == "Comprehensive Developer Assessment"
    svc.close()


def test_unreachable_remote_falls_back_to_local(tmp_path):
    svc = DatabaseService(
        "sqlite:////nonexistent-dir/pathfinder/remote.db",
        str(tmp_path / "store"),
        bootstrap_emails=BOOTSTRAP,
    )
    svc.initialize()

    assert svc.initialized
    assert svc.mode == "local"
    assert svc.get_paper(DEFAULT_PAPER_ID) is not None
    assert (tmp_path / "store" / "pathfinder_papers.json").exists()


def test_unusable_url_falls_back_to_local(tmp_path):
    svc = DatabaseService("not-a-database-url", str(tmp_path / "store"), bootstrap_emails=BOOTSTRAP)
    svc.initialize()
    assert svc.mode == "local"


def test_no_url_means_local_mode(tmp_path):
    svc = make_service(tmp_path, "local")
    svc.initialize()
    assert svc.mode == "local"


def test_local_seeding_failure_still_initializes(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("a file where the store directory should be")
    svc = DatabaseService("", str(blocker / "store"), bootstrap_emails=BOOTSTRAP)

    svc.initialize()

    assert svc.initialized
    assert svc.mode == "local"
    assert svc.get_all_papers() == []


def test_mode_does_not_change_after_initialize(tmp_path):
    svc = make_service(tmp_path, "remote")
    svc.initialize()
    svc.database_url = ""
    svc.initialize()
    assert svc.mode == "remote"
    svc.close()


def test_first_operation_initializes_lazily(tmp_path):
    svc = make_service(tmp_path, "local")
    assert svc.get_paper(DEFAULT_PAPER_ID) is not None
    assert svc.initialized
