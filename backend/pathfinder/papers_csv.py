# backend/pathfinder/papers_csv.py
import csv
import io
import re
from typing import List

import pandas as pd

from .schemas import Question, QuestionPaper, now_ms

EXPORT_COLUMNS = ["Section", "Title", "QuestionText", "IdealAnswer", "Type", "Marks"]
TEMPLATE_COLUMNS = ["Section", "Title", "QuestionText", "IdealAnswer",
                    "Type(text/python/javascript/java/cpp)", "Marks"]

APTITUDE = "Aptitude & Reasoning"
TECHNICAL = "Technical Assessment"
APTITUDE_ROWS = 10
DEFAULT_IMPORT_MARKS = 5


def export_filename(paper: QuestionPaper) -> str:
    return re.sub(r"[^a-z0-9]", "_", paper.title, flags=re.IGNORECASE).lower() + "_export.csv"


def export_paper_csv(paper: QuestionPaper) -> str:
    df = pd.DataFrame(
        [
            [q.section, q.title, q.text, q.ideal_answer_key, q.code_type or "text", q.marks or 10]
            for q in paper.questions
        ],
        columns=EXPORT_COLUMNS,
    )
    return df.to_csv(index=False, quoting=csv.QUOTE_NONNUMERIC)


def csv_template() -> str:
    rows = [
        [APTITUDE, f"Aptitude Q{i}", "Enter question text here...", "Enter answer key...", "text", 5]
        for i in range(1, 11)
    ] + [
        [TECHNICAL, f"Technical Q{i}", "Enter question text here...", "Enter answer key...", "text", 10]
        for i in range(1, 11)
    ]
    return pd.DataFrame(rows, columns=TEMPLATE_COLUMNS).to_csv(index=False)


def _marks(value: str) -> int:
    try:
        marks = int(float(value))
    except (ValueError, OverflowError):
        return DEFAULT_IMPORT_MARKS
    return marks or DEFAULT_IMPORT_MARKS


def import_questions_csv(text: str) -> List[Question]:
    """Parse questions laid out like the export/template (columns by position).

    Rows without question text are skipped. Blank sections fall back to the
    aptitude section for the first ten rows and the technical one after.
    """
    try:
        df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False,
                         skipinitialspace=True)
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise ValueError(f"Failed to parse CSV: {e}") from e

    df = df.fillna("")
    stamp = now_ms()
    questions = []
    for index, row in enumerate(df.itertuples(index=False)):
        cols = [str(v).strip() for v in row] + [""] * 6
        section, title, q_text, ideal, q_type, marks = cols[:6]
        q_type = q_type.lower() or "text"

        if not section:
            if index < APTITUDE_ROWS:
                section = APTITUDE
                q_type = "text"
            else:
                section = TECHNICAL

        if not q_text:
            continue

        questions.append(Question(
            id=f"q-csv-{stamp}-{index}",
            section=section,
            title=title or f"Question {index + 1}",
            text=q_text,
            ideal_answer_key=ideal,
            code_type=q_type,
            marks=_marks(marks),
        ))
    return questions
