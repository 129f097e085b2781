# backend/pathfinder/grading.py
"""
AI grading and code execution through the Gemini REST API.

Neither entry point raises: a missing key, an HTTP failure or a reply that
is not the JSON we asked for all turn into a well-formed fallback value.
"""
import json
import logging
import re
from typing import Dict, List

import requests

from . import config
from .exam import max_score
from .schemas import CodeResult, EvaluationResult, PassFail, Question, QuestionEvaluation

logger = logging.getLogger(__name__)

GRADER_INSTRUCTION = """
You are a Senior Technical Interviewer evaluating a candidate.
The context of the exam is: {context}
Evaluate the answers based on technical accuracy, conceptual understanding, and problem-solving approach.
IMPORTANT INSTRUCTIONS FOR GRADING:
1. The 'Context/Ideal Key' provided is a GUIDELINE for expected concepts, NOT a strict answer key. Do not require exact text matches.
2. If the candidate provides a valid alternative solution or uses different wording that demonstrates correct understanding, award appropriate marks.
3. For coding questions, focus on the logic, state management, algorithmic efficiency and syntax.
4. For architectural/design questions, evaluate the feasibility and reasoning of their approach.
5. Return the output strictly in JSON format.
6. For each question, provide a score (0 to Max Marks) and brief feedback (max 2 sentences).
7. Also provide a pass/fail status (PASS if total score > 60% of max).
"""

EXECUTOR_INSTRUCTION = """
You are a Code Execution Engine. Act as a compiler/interpreter for the programming language: "{language}".
1. Analyze the provided code for syntax correctness.
2. SIMULATE the execution of the code as if it were run in a standard environment for that language.
3. Return the Standard Output (stdout) if successful.
4. Return the Compiler/Runtime Error message if it fails.
The output must be a JSON object with two keys:
- "type": "output" (for success/stdout) or "error" (for syntax/runtime errors).
- "content": The actual output string or error message.
Do NOT provide hints, fixes, or explanations. Just the raw execution output or error.
"""


class GradingError(Exception):
    pass


def strip_json_fences(raw_text: str) -> str:
    # Remove markdown fences
    return re.sub(r"```json|```", "", raw_text or "", flags=re.IGNORECASE).strip()


def generate_json(system_instruction: str, prompt: str, response_schema: dict) -> dict:
    """Call generateContent and decode the JSON reply."""
    if not config.GEMINI_API_KEY:
        raise GradingError("GEMINI_API_KEY is not configured")

    url = f"{config.GEMINI_API_URL}/{config.GEMINI_MODEL}:generateContent"
    payload = {
        "systemInstruction": {"parts": [{"text": system_instruction}]},
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": response_schema,
        },
    }
    response = requests.post(
        url,
        json=payload,
        headers={"x-goog-api-key": config.GEMINI_API_KEY},
        timeout=config.GEMINI_TIMEOUT,
    )
    if response.status_code != 200:
        raise GradingError(f"Gemini returned HTTP {response.status_code}")

    try:
        text = response.json()["candidates"][0]["content"]["parts"][0]["text"]
        return json.loads(strip_json_fences(text))
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise GradingError(f"Malformed model response: {e}") from e


def evaluation_schema(questions: List[Question]) -> dict:
    return {
        "type": "OBJECT",
        "properties": {
            "summary": {"type": "STRING"},
            "pass_fail": {"type": "STRING", "enum": ["PASS", "FAIL"]},
            "question_evaluations": {
                "type": "OBJECT",
                "properties": {
                    q.id: {
                        "type": "OBJECT",
                        "properties": {
                            "score": {"type": "NUMBER"},
                            "feedback": {"type": "STRING"},
                        },
                        "required": ["score", "feedback"],
                    }
                    for q in questions
                },
            },
        },
        "required": ["summary", "pass_fail", "question_evaluations"],
    }


def build_prompt(questions: List[Question], answers: Dict[str, str]) -> str:
    parts = ["Here are the Question/Answer pairs:"]
    for index, q in enumerate(questions, start=1):
        parts += [
            "---",
            f"Q{index} ID: {q.id}",
            f"Question: {q.text}",
            f"Max Marks: {q.marks or 10}",
            f"Context/Ideal Key: {q.ideal_answer_key}",
            f"Candidate Answer: {answers.get(q.id) or 'NO ANSWER PROVIDED'}",
        ]
    return "\n".join(parts)


def fallback_result(questions: List[Question], reason: str) -> EvaluationResult:
    return EvaluationResult(
        total_score=0,
        max_score=max_score(questions),
        summary=reason,
        pass_fail=PassFail.FAIL,
        question_evaluations={
            q.id: QuestionEvaluation(score=0, feedback="Evaluation failed") for q in questions
        },
    )


def parse_evaluation(questions: List[Question], result: dict) -> EvaluationResult:
    raw_evaluations = result.get("question_evaluations") or {}
    evaluations = {}
    total = 0.0
    for q in questions:
        q_eval = raw_evaluations.get(q.id) or {}
        score = q_eval.get("score")
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            score = 0
        total += score
        evaluations[q.id] = QuestionEvaluation(
            score=score,
            feedback=q_eval.get("feedback") or "Could not evaluate",
        )

    pass_fail = result.get("pass_fail")
    return EvaluationResult(
        total_score=total,
        max_score=max_score(questions),
        summary=result.get("summary") or "Evaluation completed.",
        pass_fail=pass_fail if pass_fail in ("PASS", "FAIL") else PassFail.FAIL,
        question_evaluations=evaluations,
    )


def evaluate_exam(questions: List[Question], answers: Dict[str, str],
                  exam_context: str = "Standard Technical Assessment") -> EvaluationResult:
    if not config.GEMINI_API_KEY:
        logger.error("No GEMINI_API_KEY found, returning fallback evaluation")
        return fallback_result(questions, "AI Evaluation Failed: No API Key configured.")

    try:
        result = generate_json(
            GRADER_INSTRUCTION.format(context=exam_context),
            build_prompt(questions, answers),
            evaluation_schema(questions),
        )
        if not isinstance(result, dict):
            raise GradingError("Model response is not a JSON object")
        return parse_evaluation(questions, result)
    except (GradingError, requests.RequestException, AttributeError, TypeError, ValueError) as e:
        logger.error("AI evaluation error: %s", e)
        return fallback_result(questions, "Error during AI evaluation process. See server logs for details.")


def execute_code(code: str, language: str) -> CodeResult:
    if not config.GEMINI_API_KEY:
        return CodeResult(type="error", content="Execution failed: API Key not configured.")
    if not code.strip():
        return CodeResult(type="output", content="There is no code to check.")

    try:
        result = generate_json(
            EXECUTOR_INSTRUCTION.format(language=language),
            code,
            {
                "type": "OBJECT",
                "properties": {
                    "type": {"type": "STRING", "enum": ["output", "error"]},
                    "content": {"type": "STRING"},
                },
                "required": ["type", "content"],
            },
        )
        return CodeResult(
            type="error" if result.get("type") == "error" else "output",
            content=str(result.get("content", "")),
        )
    except (GradingError, requests.RequestException, AttributeError) as e:
        logger.error("AI code execution error: %s", e)
        return CodeResult(type="error",
                          content="An error occurred while trying to execute the code with the AI.")
