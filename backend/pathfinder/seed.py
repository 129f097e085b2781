# backend/pathfinder/seed.py
import logging
import re
from typing import Iterable

from .schemas import ExamAssignment, Question, QuestionPaper, now_ms
from .storage import StorageBackend, Collection

logger = logging.getLogger(__name__)

DEFAULT_PAPER_ID = "comprehensive-dev-v1"

APTITUDE = "Aptitude & Reasoning"
TECHNICAL = "Technical Assessment"

QUESTIONS = [
    {
        "id": "apt-1",
        "section": APTITUDE,
        "title": "Work Rate",
        "text": "A can finish a task in 12 days and B in 18 days. Working together, "
                "how many days do they need? Show your working.",
        "ideal_answer_key": "Combined rate 1/12 + 1/18 = 5/36 per day, so 36/5 = 7.2 days.",
        "marks": 5,
    },
    {
        "id": "apt-2",
        "section": APTITUDE,
        "title": "Number Series",
        "text": "Find the next number in the series 2, 6, 12, 20, 30, ? and explain the pattern.",
        "ideal_answer_key": "Differences are 4, 6, 8, 10, 12 (or n*(n+1)), so the next number is 42.",
        "marks": 5,
    },
    {
        "id": "apt-3",
        "section": APTITUDE,
        "title": "Logical Deduction",
        "text": "All engineers are problem solvers. Some problem solvers are musicians. "
                "Can we conclude that some engineers are musicians? Justify.",
        "ideal_answer_key": "No. The overlap between problem solvers and musicians need not "
                            "include any engineers; the conclusion does not follow.",
        "marks": 5,
    },
    {
        "id": "apt-4",
        "section": APTITUDE,
        "title": "Percentages",
        "text": "A price rises by 20% and then falls by 20%. What is the net change?",
        "ideal_answer_key": "1.2 * 0.8 = 0.96, a net decrease of 4%.",
        "marks": 5,
    },
    {
        "id": "tech-python-1",
        "section": TECHNICAL,
        "title": "Python: Deduplicate Preserving Order",
        "text": "Write a Python function dedupe(items) that removes duplicates from a list "
                "while keeping the first occurrence order.",
        "ideal_answer_key": "Track seen values in a set and append unseen items to a result list, "
                            "or use list(dict.fromkeys(items)). O(n) time.",
        "code_type": "python",
        "marks": 10,
    },
    {
        "id": "tech-dl-1",
        "section": TECHNICAL,
        "title": "Deep Learning: Overfitting",
        "text": "Your model reaches 99% training accuracy but 70% validation accuracy. "
                "What is happening and how would you address it?",
        "ideal_answer_key": "Overfitting. Regularisation (dropout, weight decay), data augmentation, "
                            "more data, early stopping, smaller model, cross-validation.",
        "marks": 10,
    },
    {
        "id": "tech-git-1",
        "section": TECHNICAL,
        "title": "Git: Undo a Pushed Commit",
        "text": "A bad commit has already been pushed to a shared branch. How do you undo it safely?",
        "ideal_answer_key": "Use git revert <sha> to create an inverse commit and push it; avoid "
                            "rewriting shared history with reset/force-push.",
        "marks": 10,
    },
    {
        "id": "tech-react-1",
        "section": TECHNICAL,
        "title": "React: Stale State in Effects",
        "text": "Write a React component that shows a counter incremented every second with "
                "setInterval, without stale state or leaked timers.",
        "ideal_answer_key": "useEffect with empty deps, functional update setCount(c => c + 1), "
                            "return a cleanup that calls clearInterval.",
        "code_type": "javascript",
        "marks": 10,
    },
    {
        "id": "tech-aws-1",
        "section": TECHNICAL,
        "title": "AWS: Static Site Hosting",
        "text": "Describe how you would host a static single-page app on AWS with HTTPS and low latency.",
        "ideal_answer_key": "S3 bucket for assets, CloudFront distribution with ACM certificate, "
                            "origin access control, Route 53 alias record, cache invalidation on deploy.",
        "marks": 10,
    },
]


def default_paper() -> QuestionPaper:
    return QuestionPaper(
        id=DEFAULT_PAPER_ID,
        title="Comprehensive Developer Assessment",
        description="A structured two-module assessment covering aptitude and technical "
                    "skills (Python, DL, Git, React, AWS).",
        duration=90,
        questions=[Question(**{"marks": 10, **q}) for q in QUESTIONS],
        created_at=now_ms(),
    )


def bootstrap_assignment_id(email: str) -> str:
    return "assign-" + re.sub(r"[^a-z0-9]+", "-", email.lower()).strip("-") + "-comp-dev-1"


def ensure_assignment(assignments: Collection, email: str, paper_id: str, assign_id: str,
                      assigned_by: str = "System") -> bool:
    """Create the assignment only if the email has none. Returns True if created."""
    if assignments.find("email", email) is not None:
        return False
    assignments.put(ExamAssignment(
        id=assign_id,
        email=email,
        paper_id=paper_id,
        assigned_by=assigned_by,
    ).model_dump(mode="json"))
    return True


def seed_defaults(backend: StorageBackend, bootstrap_emails: Iterable[str]):
    # Paper content always follows the code defaults
    backend.papers.merge(default_paper().model_dump(mode="json"))

    # Admin re-assignments must survive reseeding
    created = 0
    for email in bootstrap_emails:
        if ensure_assignment(backend.assignments, email, DEFAULT_PAPER_ID,
                             bootstrap_assignment_id(email)):
            created += 1

    logger.info("Seeded default paper %s on %s backend (%d new assignments)",
                DEFAULT_PAPER_ID, backend.mode, created)


if __name__ == "__main__":
    from . import config
    from .service import DatabaseService

    logging.basicConfig(level=config.LOG_LEVEL)
    service = DatabaseService(config.DATABASE_URL, config.LOCAL_STORE_DIR,
                              bootstrap_emails=config.BOOTSTRAP_EMAILS)
    service.initialize()
    print(f"Seeded defaults in {service.mode} mode.")
    service.close()
