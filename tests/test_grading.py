import pytest
import requests

from pathfinder import config, grading
from pathfinder.schemas import PassFail, Question

from conftest import FakeResponse, gemini_reply

QUESTIONS = [
    Question(id="q1", title="Rates", text="Work rate?", ideal_answer_key="7.2 days", marks=5),
    Question(id="q2", title="Dedupe", text="Dedupe a list", ideal_answer_key="dict.fromkeys",
             code_type="python", marks=10),
]


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setattr(config, "GEMINI_API_KEY", "test-key")


@pytest.fixture
def reply(monkeypatch):
    """Make requests.post return the given response and record the call."""
    calls = []

    def install(response):
        def fake_post(url, json=None, headers=None, timeout=None):
            calls.append({"url": url, "json": json, "headers": headers})
            if isinstance(response, Exception):
                raise response
            return response
        monkeypatch.setattr(grading.requests, "post", fake_post)
        return calls

    return install


def test_missing_key_gives_fallback(monkeypatch):
    monkeypatch.setattr(config, "GEMINI_API_KEY", "")

    result = grading.evaluate_exam(QUESTIONS, {"q1": "7 days"})

    assert result.total_score == 0
    assert result.max_score == 15
    assert result.pass_fail == PassFail.FAIL
    assert "No API Key" in result.summary
    assert {k: v.score for k, v in result.question_evaluations.items()} == {"q1": 0, "q2": 0}


def test_successful_evaluation_recomputes_total(api_key, reply):
    calls = reply(gemini_reply({
        "summary": "Strong candidate.",
        "pass_fail": "PASS",
        "question_evaluations": {
            "q1": {"score": 5, "feedback": "Correct."},
            "q2": {"score": 7.5, "feedback": "Works, misses order."},
        },
    }))

    result = grading.evaluate_exam(QUESTIONS, {"q1": "7.2", "q2": "set()"}, "Backend Screen")

    assert result.total_score == 12.5
    assert result.max_score == 15
    assert result.pass_fail == PassFail.PASS
    assert result.question_evaluations["q2"].feedback == "Works, misses order."

    call = calls[0]
    assert call["url"].endswith(f"{config.GEMINI_MODEL}:generateContent")
    assert call["headers"] == {"x-goog-api-key": "test-key"}
    assert "Backend Screen" in call["json"]["systemInstruction"]["parts"][0]["text"]
    prompt = call["json"]["contents"][0]["parts"][0]["text"]
    assert "Q2 ID: q2" in prompt and "Candidate Answer: set()" in prompt
    schema = call["json"]["generationConfig"]["responseSchema"]
    assert set(schema["properties"]["question_evaluations"]["properties"]) == {"q1", "q2"}


def test_missing_answers_are_marked_in_prompt():
    prompt = grading.build_prompt(QUESTIONS, {"q1": ""})
    assert prompt.count("NO ANSWER PROVIDED") == 2


def test_fenced_json_and_partial_scores(api_key, reply):
    reply(gemini_reply({
        "summary": "",
        "pass_fail": "MAYBE",
        "question_evaluations": {"q1": {"score": "five", "feedback": ""}},
    }, fenced=True))

    result = grading.evaluate_exam(QUESTIONS, {})

    assert result.total_score == 0
    assert result.pass_fail == PassFail.FAIL
    assert result.summary == "Evaluation completed."
    assert result.question_evaluations["q2"].feedback == "Could not evaluate"


@pytest.mark.parametrize("response", [
    FakeResponse(500, {"error": "boom"}),
    FakeResponse(200, {"candidates": []}),
    gemini_reply("this is not json"),
    gemini_reply("[1, 2, 3]"),
    requests.ConnectionError("offline"),
])
def test_failures_become_fallback(api_key, reply, response):
    reply(response)

    result = grading.evaluate_exam(QUESTIONS, {"q1": "x"})

    assert result.total_score == 0
    assert result.pass_fail == PassFail.FAIL
    assert result.summary.startswith("Error during AI evaluation")


def test_execute_code_guards(monkeypatch):
    monkeypatch.setattr(config, "GEMINI_API_KEY", "")
    assert grading.execute_code("print(1)", "python").type == "error"

    monkeypatch.setattr(config, "GEMINI_API_KEY", "test-key")
    empty = grading.execute_code("   ", "python")
    assert empty.type == "output"
    assert empty.content == "There is no code to check."


def test_execute_code_returns_simulated_output(api_key, reply):
    calls = reply(gemini_reply({"type": "output", "content": "3\n"}))

    result = grading.execute_code("print(1 + 2)", "python")

    assert result.type == "output"
    assert result.content == "3\n"
    assert '"python"' in calls[0]["json"]["systemInstruction"]["parts"][0]["text"]


def test_execute_code_failure(api_key, reply):
    reply(FakeResponse(503))
    result = grading.execute_code("print(1)", "python")
    assert result.type == "error"
