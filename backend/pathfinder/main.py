import logging
import uuid
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI, Depends, HTTPException, APIRouter, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from . import auth, config, grading, papers_csv, schemas
from .exam import can_transition
from .schemas import SubmissionStatus, now_ms
from .service import DatabaseService

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# APP SETUP


@asynccontextmanager
async def lifespan(app: FastAPI):
    service = DatabaseService(
        config.DATABASE_URL,
        config.LOCAL_STORE_DIR,
        bootstrap_emails=config.BOOTSTRAP_EMAILS,
    )
    service.initialize()
    app.state.db = service
    yield
    service.close()


app = FastAPI(title="Pathfinder Assessment Portal", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_service(request: Request) -> DatabaseService:
    return request.app.state.db


def public_paper(paper: schemas.QuestionPaper) -> schemas.PublicPaperOut:
    # candidates never see the grading guideline
    return schemas.PublicPaperOut(
        id=paper.id,
        title=paper.title,
        description=paper.description,
        duration=paper.duration,
        questions=[
            schemas.PublicQuestionOut(
                id=q.id,
                section=q.section,
                title=q.title,
                text=q.text,
                code_type=q.code_type,
                marks=q.marks,
            )
            for q in paper.questions
        ],
    )


def csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/health")
def health(service: DatabaseService = Depends(get_service)):
    return {"status": "ok", "mode": service.mode}


# CANDIDATE


@app.post("/register", response_model=schemas.RegistrationResult)
def register(payload: schemas.RegisterIn, service: DatabaseService = Depends(get_service)):
    candidate = schemas.Candidate(id=str(uuid.uuid4()), **payload.model_dump())
    return service.register_candidate(candidate)


@app.get("/candidates/{candidate_id}", response_model=schemas.Candidate)
def get_candidate(candidate_id: str, service: DatabaseService = Depends(get_service)):
    candidate = service.get_candidate(candidate_id)
    if not candidate:
        raise HTTPException(status_code=404, detail="Candidate not found")
    return candidate


# EXAM


@app.post("/exam/{candidate_id}/start", response_model=schemas.ExamSessionOut)
def start_exam(candidate_id: str, service: DatabaseService = Depends(get_service)):
    candidate = service.get_candidate(candidate_id)
    if not candidate:
        raise HTTPException(status_code=404, detail="Candidate not found")

    if not candidate.assigned_paper_id or not service.get_paper(candidate.assigned_paper_id):
        raise HTTPException(status_code=404, detail="Assigned exam paper not found")

    submission = service.init_submission(candidate.id, candidate.assigned_paper_id)

    # an existing submission keeps the paper it was started on
    paper = service.get_paper(submission.paper_id)
    if not paper:
        raise HTTPException(status_code=404, detail="Exam paper not found")

    return {"submission": submission, "paper": public_paper(paper)}


@app.get("/exam/{candidate_id}", response_model=schemas.ExamSessionOut)
def get_exam(candidate_id: str, service: DatabaseService = Depends(get_service)):
    submission = service.get_submission(candidate_id)
    if not submission:
        raise HTTPException(status_code=404, detail="Exam not started")

    paper = service.get_paper(submission.paper_id)
    if not paper:
        raise HTTPException(status_code=404, detail="Exam paper not found")

    return {"submission": submission, "paper": public_paper(paper)}


# SAVE DRAFT

@app.put("/exam/{candidate_id}/draft")
def save_draft(candidate_id: str, payload: schemas.DraftIn,
               service: DatabaseService = Depends(get_service)):
    saved = service.save_draft(candidate_id, payload.answers, payload.proctor_logs)
    return {"msg": "draft_saved" if saved else "draft_ignored"}


@app.post("/exam/{candidate_id}/submit")
def submit_exam(candidate_id: str, service: DatabaseService = Depends(get_service)):
    submission = service.submit_exam(candidate_id)
    if submission:
        return {"msg": "exam_submitted", "status": submission.status}

    if not service.get_submission(candidate_id):
        raise HTTPException(status_code=404, detail="Exam not started")
    raise HTTPException(status_code=409, detail="Exam already submitted")


@app.post("/execute", response_model=schemas.CodeResult)
def execute(payload: schemas.CodeIn):
    return grading.execute_code(payload.code, payload.language)


# ADMIN


app.include_router(auth.router)

admin = APIRouter(prefix="/admin", dependencies=[Depends(auth.get_current_admin)])


def build_paper(payload: schemas.PaperIn, paper_id: str, created_at: int) -> schemas.QuestionPaper:
    stamp = now_ms()
    questions = [
        schemas.Question(**{**q.model_dump(), "id": q.id or f"q-{stamp}-{i}"})
        for i, q in enumerate(payload.questions)
    ]
    return schemas.QuestionPaper(
        id=paper_id,
        title=payload.title,
        description=payload.description,
        duration=payload.duration,
        questions=questions,
        created_at=created_at,
    )


# ADMIN: PAPERS


@admin.get("/papers", response_model=List[schemas.QuestionPaper])
def list_papers(service: DatabaseService = Depends(get_service)):
    return sorted(service.get_all_papers(), key=lambda p: p.created_at, reverse=True)


@admin.get("/papers/template")
def paper_template():
    return csv_response(papers_csv.csv_template(), "exam_template_20q.csv")


@admin.post("/papers/import", response_model=schemas.QuestionPaper)
def import_paper(payload: schemas.PaperImportIn, service: DatabaseService = Depends(get_service)):
    try:
        questions = papers_csv.import_questions_csv(payload.csv_text)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not questions:
        raise HTTPException(status_code=400, detail="No valid questions found in CSV.")

    paper = schemas.QuestionPaper(
        id=f"paper-{now_ms()}",
        title=payload.title,
        description=payload.description,
        duration=payload.duration,
        questions=questions,
    )
    return service.create_question_paper(paper)


@admin.get("/papers/{paper_id}", response_model=schemas.QuestionPaper)
def get_paper(paper_id: str, service: DatabaseService = Depends(get_service)):
    paper = service.get_paper(paper_id)
    if not paper:
        raise HTTPException(status_code=404, detail="Paper not found")
    return paper


@admin.get("/papers/{paper_id}/export")
def export_paper(paper_id: str, service: DatabaseService = Depends(get_service)):
    paper = service.get_paper(paper_id)
    if not paper:
        raise HTTPException(status_code=404, detail="Paper not found")
    return csv_response(papers_csv.export_paper_csv(paper), papers_csv.export_filename(paper))


@admin.post("/papers", response_model=schemas.QuestionPaper)
def create_paper(payload: schemas.PaperIn, service: DatabaseService = Depends(get_service)):
    if not payload.questions:
        raise HTTPException(status_code=400, detail="Please add at least one question.")

    paper = build_paper(payload, payload.id or f"paper-{now_ms()}", now_ms())
    return service.create_question_paper(paper)


@admin.put("/papers/{paper_id}", response_model=schemas.QuestionPaper)
def update_paper(paper_id: str, payload: schemas.PaperIn,
                 service: DatabaseService = Depends(get_service)):
    existing = service.get_paper(paper_id)
    if not existing:
        raise HTTPException(status_code=404, detail="Paper not found")

    return service.update_question_paper(build_paper(payload, paper_id, existing.created_at))


@admin.delete("/papers/{paper_id}")
def delete_paper(paper_id: str, service: DatabaseService = Depends(get_service)):
    service.delete_question_paper(paper_id)
    return {"msg": "paper_deleted"}


# ADMIN: ASSIGNMENTS


@admin.get("/assignments", response_model=List[schemas.ExamAssignment])
def list_assignments(service: DatabaseService = Depends(get_service)):
    return sorted(service.get_all_assignments(), key=lambda a: a.assigned_at, reverse=True)


@admin.post("/assignments", response_model=schemas.ExamAssignment)
def assign_exam(payload: schemas.AssignIn, service: DatabaseService = Depends(get_service)):
    if not service.get_paper(payload.paper_id):
        raise HTTPException(status_code=404, detail="Paper not found")
    return service.assign_exam(payload.email, payload.paper_id)


@admin.delete("/assignments/{assignment_id}")
def delete_assignment(assignment_id: str, service: DatabaseService = Depends(get_service)):
    service.delete_assignment(assignment_id)
    return {"msg": "assignment_deleted"}


# ADMIN: CANDIDATES & SUBMISSIONS


@admin.get("/candidates", response_model=List[schemas.Candidate])
def list_candidates(service: DatabaseService = Depends(get_service)):
    return service.get_all_candidates()


@admin.delete("/candidates/{candidate_id}")
def delete_candidate(candidate_id: str, service: DatabaseService = Depends(get_service)):
    service.delete_candidate(candidate_id)
    return {"msg": "candidate_deleted"}


@admin.post("/demo-candidates", response_model=schemas.Candidate)
def provision_demo(payload: schemas.DemoIn, service: DatabaseService = Depends(get_service)):
    return service.provision_demo_candidate(payload.profile)


@admin.get("/submissions", response_model=List[schemas.ExamSubmission])
def list_submissions(service: DatabaseService = Depends(get_service)):
    return service.get_all_submissions()


@admin.delete("/submissions/{candidate_id}")
def reset_submission(candidate_id: str, service: DatabaseService = Depends(get_service)):
    service.delete_submission(candidate_id)
    return {"msg": "submission_reset"}


@admin.post("/submissions/{candidate_id}/evaluate", response_model=schemas.EvaluationResult)
def evaluate_submission(candidate_id: str, service: DatabaseService = Depends(get_service)):
    submission = service.get_submission(candidate_id)
    if not submission:
        raise HTTPException(status_code=404, detail="Submission not found")
    if not can_transition(submission.status, SubmissionStatus.GRADED):
        raise HTTPException(status_code=409, detail="Submission has not been submitted yet")
    if not service.get_paper(submission.paper_id):
        raise HTTPException(status_code=404, detail="Original question paper for this submission not found")

    return service.evaluate_submission(candidate_id)


# RESULTS


@admin.get("/results", response_model=List[schemas.ResultRow])
def get_results(service: DatabaseService = Depends(get_service)):
    return service.get_results()


app.include_router(admin)
