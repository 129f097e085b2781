# backend/pathfinder/exam.py
from typing import Dict, FrozenSet, List

from .schemas import SubmissionStatus, Question, ExamSubmission

# Forward-only lifecycle. A submission that does not exist yet is
# NOT_STARTED; that state is never stored.
ALLOWED_TRANSITIONS: Dict[SubmissionStatus, FrozenSet[SubmissionStatus]] = {
    SubmissionStatus.IN_PROGRESS: frozenset({SubmissionStatus.SUBMITTED}),
    SubmissionStatus.SUBMITTED: frozenset({SubmissionStatus.GRADED}),
    # re-evaluation replaces the previous result
    SubmissionStatus.GRADED: frozenset({SubmissionStatus.GRADED}),
}

FINAL_STATUSES = frozenset({SubmissionStatus.SUBMITTED, SubmissionStatus.GRADED})


class InvalidTransition(ValueError):
    def __init__(self, current: SubmissionStatus, target: SubmissionStatus):
        super().__init__(f"cannot move submission from {current.value} to {target.value}")
        self.current = current
        self.target = target


def can_transition(current: SubmissionStatus, target: SubmissionStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(SubmissionStatus(current), frozenset())


def transition(current: SubmissionStatus, target: SubmissionStatus) -> SubmissionStatus:
    current = SubmissionStatus(current)
    target = SubmissionStatus(target)
    if not can_transition(current, target):
        raise InvalidTransition(current, target)
    return target


def is_final(status: SubmissionStatus) -> bool:
    return SubmissionStatus(status) in FINAL_STATUSES


def accepts_drafts(submission: ExamSubmission) -> bool:
    return submission.status == SubmissionStatus.IN_PROGRESS


def max_score(questions: List[Question]) -> float:
    return float(sum(q.marks or 10 for q in questions))


def violation_count(submission: ExamSubmission) -> int:
    return len(submission.proctor_logs)
