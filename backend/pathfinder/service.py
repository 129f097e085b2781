# backend/pathfinder/service.py
"""
Persistence context for the portal.

``DatabaseService`` is constructed once per process, initialized once, and
handed to whoever needs it (the FastAPI app keeps it on ``app.state``).
``initialize()`` picks the storage backend for the lifetime of the process:
the remote database when it is configured and seeding against it works,
local JSON storage otherwise. All record operations below go through the
chosen backend's collections and behave the same on either one.

Missing records are never an error here: reads return None and writes to a
missing submission/paper return None without touching anything.
"""
import logging
import uuid
from typing import Callable, Dict, Iterable, List, Optional, Union

from . import config, grading
from .exam import InvalidTransition, accepts_drafts, can_transition, is_final, transition, violation_count
from .schemas import (
    Candidate,
    EvaluationResult,
    ExamAssignment,
    ExamSubmission,
    ProctorLog,
    QuestionPaper,
    RegistrationResult,
    RegistrationStatus,
    ResultRow,
    SubmissionStatus,
    now_ms,
)
from .seed import DEFAULT_PAPER_ID, default_paper, ensure_assignment, seed_defaults
from .storage import LocalBackend, SqlBackend, StorageBackend

logger = logging.getLogger(__name__)

DEMO_EMAIL_PREFIX = "demo."

NO_ASSIGNMENT_ERROR = "No exam has been assigned to this email address."
ALREADY_SUBMITTED_ERROR = "Assessment already submitted."

AVERAGE_DEMO_ANSWER = (
    "[Demo Answer] I believe the concept involves... {title}. "
    "However, I am not fully sure of the exact syntax."
)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def is_demo_email(email: str) -> bool:
    # TODO: confirm with admins whether demo re-entry should also be limited
    # to provisioned demo candidates instead of any "demo." address.
    return normalize_email(email).startswith(DEMO_EMAIL_PREFIX)


class DatabaseService:
    def __init__(self, database_url: str = "", local_dir: str = "local_store",
                 bootstrap_emails: Optional[Iterable[str]] = None):
        self.database_url = database_url
        self.local_dir = local_dir
        if bootstrap_emails is None:
            bootstrap_emails = config.BOOTSTRAP_EMAILS
        self.bootstrap_emails = [normalize_email(e) for e in bootstrap_emails]
        self.backend: Optional[StorageBackend] = None
        self.initialized = False

    # -------------------- LIFECYCLE --------------------
    def initialize(self):
        if self.initialized:
            return

        if self.database_url:
            remote = None
            try:
                remote = SqlBackend(self.database_url)
                self._seed(remote)
                self.backend = remote
            except Exception as e:
                logger.warning("Remote database unavailable (%s). Falling back to local storage.", e)
                if remote is not None:
                    remote.close()
        else:
            logger.warning("DATABASE_URL not configured. Running in local storage mode.")

        if self.backend is None:
            self.backend = LocalBackend(self.local_dir)
            try:
                self._seed(self.backend)
            except Exception:
                logger.exception("Local storage seeding failed; continuing without defaults")

        self.initialized = True
        logger.info("Database service initialized in %s mode", self.backend.mode)

    def _seed(self, backend: StorageBackend):
        backend.prepare()
        seed_defaults(backend, self.bootstrap_emails)

    def close(self):
        if self.backend is not None:
            self.backend.close()
        self.backend = None
        self.initialized = False

    @property
    def mode(self) -> Optional[str]:
        return self.backend.mode if self.backend is not None else None

    @property
    def store(self) -> StorageBackend:
        if not self.initialized:
            self.initialize()
        return self.backend

    # -------------------- DEMO PROVISIONING --------------------
    def provision_demo_candidate(self, profile: str = "strong") -> Candidate:
        timestamp = now_ms()
        demo_id = f"demo-{profile}-{timestamp}"
        email = f"demo.{profile}.{timestamp}@example.com"
        paper = self.get_paper(DEFAULT_PAPER_ID) or default_paper()

        candidate = Candidate(
            id=demo_id,
            full_name="Demo User (Expert)" if profile == "strong" else "Demo User (Average)",
            email=email,
            current_company="Demo Inc.",
            current_salary="N/A",
            notice_period="Immediate",
            registered_at=timestamp,
            assigned_paper_id=paper.id,
        )

        ensure_assignment(self.store.assignments, email, paper.id, f"assign-{demo_id}")
        self.store.candidates.put(candidate.model_dump(mode="json"))

        answers: Dict[str, str] = {}
        for q in paper.questions:
            if profile == "strong":
                answers[q.id] = q.ideal_answer_key
            else:
                answers[q.id] = AVERAGE_DEMO_ANSWER.format(title=q.title.lower())

        submission = ExamSubmission(
            candidate_id=demo_id,
            paper_id=paper.id,
            start_time=timestamp,
            end_time=timestamp,
            answers=answers,
            status=SubmissionStatus.SUBMITTED,
        )
        self.store.submissions.put(submission.model_dump(mode="json"))
        logger.info("Provisioned %s demo candidate %s", profile, demo_id)
        return candidate

    # -------------------- ASSIGNMENTS --------------------
    def assign_exam(self, email: str, paper_id: str, assigned_by: str = "Admin") -> ExamAssignment:
        email = normalize_email(email)
        existing = self.store.assignments.find("email", email)
        if existing is not None:
            updated = self.store.assignments.update(existing["id"], {
                "paper_id": paper_id,
                "assigned_at": now_ms(),
                "assigned_by": assigned_by,
            })
            return ExamAssignment.model_validate(updated)

        assignment = ExamAssignment(
            id=str(uuid.uuid4()),
            email=email,
            paper_id=paper_id,
            assigned_by=assigned_by,
        )
        self.store.assignments.put(assignment.model_dump(mode="json"))
        return assignment

    def ensure_assignment(self, email: str, paper_id: str, assign_id: str) -> bool:
        return ensure_assignment(self.store.assignments, normalize_email(email), paper_id, assign_id)

    def get_assignment(self, email: str) -> Optional[ExamAssignment]:
        record = self.store.assignments.find("email", normalize_email(email))
        return ExamAssignment.model_validate(record) if record else None

    def get_all_assignments(self) -> List[ExamAssignment]:
        return [ExamAssignment.model_validate(r) for r in self.store.assignments.all()]

    def delete_assignment(self, assignment_id: str):
        self.store.assignments.delete(assignment_id)

    # -------------------- PAPERS --------------------
    def create_question_paper(self, paper: QuestionPaper) -> QuestionPaper:
        self.store.papers.put(paper.model_dump(mode="json"))
        return paper

    def update_question_paper(self, paper: QuestionPaper) -> Optional[QuestionPaper]:
        if self.store.papers.get(paper.id) is None:
            return None
        self.store.papers.put(paper.model_dump(mode="json"))
        return paper

    def delete_question_paper(self, paper_id: str):
        self.store.papers.delete(paper_id)

    def get_paper(self, paper_id: str) -> Optional[QuestionPaper]:
        record = self.store.papers.get(paper_id)
        return QuestionPaper.model_validate(record) if record else None

    def get_all_papers(self) -> List[QuestionPaper]:
        return [QuestionPaper.model_validate(r) for r in self.store.papers.all()]

    # -------------------- CANDIDATES --------------------
    def register_candidate(self, candidate: Candidate) -> RegistrationResult:
        email = normalize_email(candidate.email)

        assignment = self.get_assignment(email)
        if assignment is None:
            logger.info("Registration rejected for %s: no assignment", email)
            return RegistrationResult(status=RegistrationStatus.REJECTED, error=NO_ASSIGNMENT_ERROR)

        record = self.store.candidates.find("email", email)
        if record is None:
            created = candidate.model_copy(update={
                "email": email,
                "assigned_paper_id": assignment.paper_id,
                "registered_at": now_ms(),
            })
            self.store.candidates.put(created.model_dump(mode="json"))
            return RegistrationResult(status=RegistrationStatus.CREATED, candidate=created)

        existing = Candidate.model_validate(record)
        submission = self.get_submission(existing.id)
        if submission is not None and is_final(submission.status) and not is_demo_email(email):
            logger.info("Registration rejected for %s: already %s", email, submission.status.value)
            return RegistrationResult(status=RegistrationStatus.REJECTED, error=ALREADY_SUBMITTED_ERROR)

        changes = {
            "full_name": candidate.full_name or existing.full_name,
            "current_company": candidate.current_company,
            "current_salary": candidate.current_salary,
            "notice_period": candidate.notice_period,
            "assigned_paper_id": assignment.paper_id,
        }
        updated = self.store.candidates.update(existing.id, changes)
        resumed = Candidate.model_validate(updated) if updated else existing.model_copy(update=changes)
        return RegistrationResult(status=RegistrationStatus.RESUMED, candidate=resumed)

    def get_candidate(self, candidate_id: str) -> Optional[Candidate]:
        record = self.store.candidates.get(candidate_id)
        return Candidate.model_validate(record) if record else None

    def get_all_candidates(self) -> List[Candidate]:
        return [Candidate.model_validate(r) for r in self.store.candidates.all()]

    def delete_candidate(self, candidate_id: str):
        candidate = self.get_candidate(candidate_id)
        self.store.candidates.delete(candidate_id)
        self.store.submissions.delete_where("candidate_id", candidate_id)
        if candidate is not None:
            self.store.assignments.delete_where("email", candidate.email)

    # -------------------- SUBMISSIONS --------------------
    def init_submission(self, candidate_id: str, paper_id: str) -> ExamSubmission:
        existing = self.get_submission(candidate_id)
        if existing is not None:
            return existing

        submission = ExamSubmission(candidate_id=candidate_id, paper_id=paper_id, start_time=now_ms())
        self.store.submissions.put(submission.model_dump(mode="json"))
        return submission

    def save_draft(self, candidate_id: str, answers: Dict[str, str],
                   logs: Iterable[Union[ProctorLog, dict]]) -> Optional[ExamSubmission]:
        submission = self.get_submission(candidate_id)
        if submission is None:
            return None
        if not accepts_drafts(submission):
            logger.warning("Ignoring draft for %s: submission is %s", candidate_id, submission.status.value)
            return None

        proctor_logs = [ProctorLog.model_validate(log) for log in logs]
        updated = self.store.submissions.update(candidate_id, {
            "answers": dict(answers),
            "proctor_logs": [log.model_dump(mode="json") for log in proctor_logs],
        })
        return ExamSubmission.model_validate(updated) if updated else None

    def submit_exam(self, candidate_id: str) -> Optional[ExamSubmission]:
        return self._advance(candidate_id, SubmissionStatus.SUBMITTED, {"end_time": now_ms()})

    def save_evaluation(self, candidate_id: str, result: EvaluationResult) -> Optional[ExamSubmission]:
        return self._advance(candidate_id, SubmissionStatus.GRADED,
                             {"ai_evaluation": result.model_dump(mode="json")})

    def _advance(self, candidate_id: str, target: SubmissionStatus, changes: dict) -> Optional[ExamSubmission]:
        submission = self.get_submission(candidate_id)
        if submission is None:
            return None
        try:
            status = transition(submission.status, target)
        except InvalidTransition as e:
            logger.warning("Submission %s left unchanged: %s", candidate_id, e)
            return None

        updated = self.store.submissions.update(candidate_id, {**changes, "status": status.value})
        return ExamSubmission.model_validate(updated) if updated else None

    def delete_submission(self, candidate_id: str):
        self.store.submissions.delete(candidate_id)

    def get_submission(self, candidate_id: str) -> Optional[ExamSubmission]:
        record = self.store.submissions.get(candidate_id)
        return ExamSubmission.model_validate(record) if record else None

    def get_all_submissions(self) -> List[ExamSubmission]:
        return [ExamSubmission.model_validate(r) for r in self.store.submissions.all()]

    # -------------------- GRADING --------------------
    def evaluate_submission(self, candidate_id: str,
                            grader: Optional[Callable] = None) -> Optional[EvaluationResult]:
        """Grade a submitted exam and store the result.

        Any exception from the grader becomes the zero-score fallback result,
        so this only returns None when there is nothing gradable.
        """
        grader = grader or grading.evaluate_exam

        submission = self.get_submission(candidate_id)
        if submission is None:
            return None
        if not can_transition(submission.status, SubmissionStatus.GRADED):
            logger.warning("Submission %s is %s and cannot be graded yet",
                           candidate_id, submission.status.value)
            return None

        paper = self.get_paper(submission.paper_id)
        if paper is None:
            logger.warning("Paper %s for submission %s not found", submission.paper_id, candidate_id)
            return None

        try:
            result = grader(paper.questions, submission.answers, paper.title)
        except Exception as e:
            logger.exception("Grading failed for %s", candidate_id)
            result = grading.fallback_result(paper.questions, f"AI evaluation failed: {e}")

        self.save_evaluation(candidate_id, result)
        return result

    # -------------------- RESULTS --------------------
    def get_results(self) -> List[ResultRow]:
        papers = {p.id: p for p in self.get_all_papers()}
        submissions = {s.candidate_id: s for s in self.get_all_submissions()}

        rows = []
        for c in sorted(self.get_all_candidates(), key=lambda c: c.registered_at, reverse=True):
            sub = submissions.get(c.id)
            paper = papers.get(sub.paper_id if sub else c.assigned_paper_id)
            evaluation = sub.ai_evaluation if sub else None
            rows.append(ResultRow(
                candidate_id=c.id,
                candidate_name=c.full_name,
                candidate_email=c.email,
                paper_title=paper.title if paper else None,
                status=sub.status.value if sub else "NOT_STARTED",
                total_score=evaluation.total_score if evaluation else None,
                max_score=evaluation.max_score if evaluation else None,
                pass_fail=evaluation.pass_fail.value if evaluation else None,
                violations=violation_count(sub) if sub else 0,
                start_time=sub.start_time if sub else None,
                end_time=sub.end_time if sub else None,
            ))
        return rows
