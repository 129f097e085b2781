# backend/pathfinder/schemas.py
import enum
import time
from typing import List, Dict, Literal, Optional

from pydantic import BaseModel, EmailStr, Field


def now_ms() -> int:
    return int(time.time() * 1000)


# -------------------- ENUMS --------------------
class SubmissionStatus(str, enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    SUBMITTED = "SUBMITTED"
    GRADED = "GRADED"


class RegistrationStatus(str, enum.Enum):
    CREATED = "CREATED"
    RESUMED = "RESUMED"
    REJECTED = "REJECTED"


class PassFail(str, enum.Enum):
    PASS = "PASS"
    FAIL = "FAIL"


class ProctorEventType(str, enum.Enum):
    TAB_SWITCH = "TAB_SWITCH"
    COPY_PASTE = "COPY_PASTE"
    RIGHT_CLICK = "RIGHT_CLICK"
    FULLSCREEN_EXIT = "FULLSCREEN_EXIT"
    OTHER = "OTHER"


# -------------------- RECORDS --------------------
class Question(BaseModel):
    id: str
    section: str = "Technical Assessment"
    title: str
    text: str
    ideal_answer_key: str = ""
    code_type: str = "text"  # language tag or "text"
    marks: int = 10


class QuestionPaper(BaseModel):
    id: str
    title: str
    description: str = ""
    duration: int = 60  # minutes
    questions: List[Question] = Field(default_factory=list)
    created_at: int = Field(default_factory=now_ms)


class Candidate(BaseModel):
    id: str
    email: str
    full_name: str
    current_company: str = ""
    current_salary: str = ""
    notice_period: str = ""
    assigned_paper_id: Optional[str] = None
    registered_at: int = Field(default_factory=now_ms)


class ExamAssignment(BaseModel):
    id: str
    email: str
    paper_id: str
    assigned_by: str = "Admin"
    assigned_at: int = Field(default_factory=now_ms)


class ProctorLog(BaseModel):
    timestamp: int = Field(default_factory=now_ms)
    type: ProctorEventType = ProctorEventType.OTHER
    details: str = ""


class QuestionEvaluation(BaseModel):
    score: float = 0
    feedback: str = ""


class EvaluationResult(BaseModel):
    total_score: float
    max_score: float
    summary: str
    pass_fail: PassFail
    question_evaluations: Dict[str, QuestionEvaluation] = Field(default_factory=dict)


class ExamSubmission(BaseModel):
    candidate_id: str
    paper_id: str
    start_time: int = Field(default_factory=now_ms)
    end_time: Optional[int] = None
    answers: Dict[str, str] = Field(default_factory=dict)
    proctor_logs: List[ProctorLog] = Field(default_factory=list)
    status: SubmissionStatus = SubmissionStatus.IN_PROGRESS
    ai_evaluation: Optional[EvaluationResult] = None


class RegistrationResult(BaseModel):
    status: RegistrationStatus
    candidate: Optional[Candidate] = None
    error: Optional[str] = None


# -------------------- API IN --------------------
class RegisterIn(BaseModel):
    email: EmailStr
    full_name: str
    current_company: str = ""
    current_salary: str = ""
    notice_period: str = ""


class AssignIn(BaseModel):
    email: EmailStr
    paper_id: str


class QuestionIn(BaseModel):
    id: Optional[str] = None
    section: str = "Technical Assessment"
    title: str
    text: str
    ideal_answer_key: str = ""
    code_type: str = "text"
    marks: int = 10


class PaperIn(BaseModel):
    id: Optional[str] = None
    title: str
    description: str = ""
    duration: int = 60
    questions: List[QuestionIn]


class PaperImportIn(BaseModel):
    title: str
    description: str = ""
    duration: int = 60
    csv_text: str


class DraftIn(BaseModel):
    answers: Dict[str, str]
    proctor_logs: List[ProctorLog] = Field(default_factory=list)


class CodeIn(BaseModel):
    code: str
    language: str = "python"


class DemoIn(BaseModel):
    profile: Literal["strong", "average"] = "strong"


class AdminLoginIn(BaseModel):
    password: str


# -------------------- API OUT --------------------
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class PublicQuestionOut(BaseModel):
    id: str
    section: str
    title: str
    text: str
    code_type: str
    marks: int


class PublicPaperOut(BaseModel):
    id: str
    title: str
    description: str
    duration: int
    questions: List[PublicQuestionOut]


class ExamSessionOut(BaseModel):
    submission: ExamSubmission
    paper: PublicPaperOut


class CodeResult(BaseModel):
    type: str  # "output" / "error"
    content: str


class ResultRow(BaseModel):
    candidate_id: str
    candidate_name: str
    candidate_email: str
    paper_title: Optional[str] = None
    status: str  # NOT_STARTED when no submission exists
    total_score: Optional[float] = None
    max_score: Optional[float] = None
    pass_fail: Optional[str] = None
    violations: int = 0
    start_time: Optional[int] = None
    end_time: Optional[int] = None
