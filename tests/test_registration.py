from pathfinder.schemas import EvaluationResult, PassFail, Question, QuestionPaper, RegistrationStatus
from pathfinder.service import ALREADY_SUBMITTED_ERROR, NO_ASSIGNMENT_ERROR, normalize_email, is_demo_email


def test_normalize_email():
    assert normalize_email("  Jane.Doe@Example.COM ") == "jane.doe@example.com"
    assert is_demo_email(" Demo.strong.1@example.com")
    assert not is_demo_email("jane.demo@example.com")


def test_register_without_assignment_is_rejected(service, candidate_factory):
    result = service.register_candidate(candidate_factory(email="stranger@example.com"))

    assert result.status == RegistrationStatus.REJECTED
    assert result.error == NO_ASSIGNMENT_ERROR
    assert result.candidate is None
    assert service.get_all_candidates() == []


def test_register_creates_candidate_with_assigned_paper(service, candidate_factory):
    service.assign_exam("jane@example.com", "paperA")

    result = service.register_candidate(candidate_factory())

    assert result.status == RegistrationStatus.CREATED
    stored = service.get_candidate("cand-1")
    assert stored.assigned_paper_id == "paperA"
    assert stored.email == "jane@example.com"


def test_register_normalizes_mixed_case_email(service, candidate_factory):
    service.assign_exam("a@x.com", "paperA")

    result = service.register_candidate(candidate_factory(email="A@X.com"))

    assert result.status == RegistrationStatus.CREATED
    assert result.candidate.assigned_paper_id == "paperA"
    assert service.get_candidate("cand-1").email == "a@x.com"


def test_reregistration_resumes_and_merges_profile(service, candidate_factory):
    service.assign_exam("jane@example.com", "paperA")
    service.register_candidate(candidate_factory(current_company="Old Co"))
    service.assign_exam("jane@example.com", "paperB")

    result = service.register_candidate(candidate_factory(
        email=" JANE@example.com", candidate_id="other-id", current_company="New Co", notice_period="30 days",
    ))

    assert result.status == RegistrationStatus.RESUMED
    assert result.candidate.id == "cand-1"
    stored = service.get_candidate("cand-1")
    assert stored.current_company == "New Co"
    assert stored.notice_period == "30 days"
    assert stored.assigned_paper_id == "paperB"
    assert service.get_candidate("other-id") is None
    assert len(service.get_all_candidates()) == 1


def test_resume_allowed_while_in_progress(service, candidate_factory):
    service.assign_exam("jane@example.com", "paperA")
    service.register_candidate(candidate_factory())
    service.init_submission("cand-1", "paperA")

    assert service.register_candidate(candidate_factory()).status == RegistrationStatus.RESUMED


def test_reregistration_after_submit_is_rejected(service, candidate_factory):
    service.assign_exam("jane@example.com", "paperA")
    service.register_candidate(candidate_factory())
    service.init_submission("cand-1", "paperA")
    service.submit_exam("cand-1")

    result = service.register_candidate(candidate_factory(current_company="Sneaky Co"))

    assert result.status == RegistrationStatus.REJECTED
    assert result.error == ALREADY_SUBMITTED_ERROR
    assert service.get_candidate("cand-1").current_company == ""


def test_reregistration_after_grading_is_rejected(service, candidate_factory):
    service.assign_exam("jane@example.com", "paperA")
    service.register_candidate(candidate_factory())
    service.init_submission("cand-1", "paperA")
    service.submit_exam("cand-1")
    service.save_evaluation("cand-1", EvaluationResult(
        total_score=5, max_score=10, summary="ok", pass_fail=PassFail.FAIL,
    ))

    assert service.register_candidate(candidate_factory()).status == RegistrationStatus.REJECTED


def test_demo_email_may_resume_after_submit(service, candidate_factory):
    email = "demo.strong.1@example.com"
    service.assign_exam(email, "paperA")
    service.register_candidate(candidate_factory(email=email))
    service.init_submission("cand-1", "paperA")
    service.submit_exam("cand-1")

    assert service.register_candidate(candidate_factory(email=email)).status == RegistrationStatus.RESUMED


def test_registration_creates_no_submission(service, candidate_factory):
    service.assign_exam("jane@example.com", "paperA")
    service.register_candidate(candidate_factory())

    assert service.get_submission("cand-1") is None


def test_paper_round_trip(service):
    paper = QuestionPaper(
        id="paper-1",
        title="Backend Screen",
        description="SQL and APIs",
        duration=45,
        created_at=1700000000000,
        questions=[
            Question(id="q1", section="Technical Assessment", title="Joins",
                     text="Explain LEFT JOIN.", ideal_answer_key="Keeps all left rows.",
                     code_type="text", marks=7),
            Question(id="q2", title="FizzBuzz", text="Write FizzBuzz.", code_type="python"),
        ],
    )

    service.create_question_paper(paper)

    assert service.get_paper("paper-1") == paper


def test_update_missing_paper_is_noop(service):
    ghost = QuestionPaper(id="ghost", title="Ghost")
    assert service.update_question_paper(ghost) is None
    assert service.get_paper("ghost") is None


def test_assign_exam_upserts_by_email(service):
    first = service.assign_exam("Lee@Example.com ", "paperA")
    second = service.assign_exam("lee@example.com", "paperB")

    assert first.id == second.id
    matching = [a for a in service.get_all_assignments() if a.email == "lee@example.com"]
    assert len(matching) == 1
    assert matching[0].paper_id == "paperB"


def test_delete_assignment(service):
    assignment = service.assign_exam("lee@example.com", "paperA")
    service.delete_assignment(assignment.id)
    assert service.get_assignment("lee@example.com") is None
