import pytest

from tutor.errors import InvalidPayloadError
from tutor.types import ExplainResult, SocraticStep, ValidationResult, VideoChunk
from tutor.validation import validate_explain_payload, validate_socratic_path


def _step(**overrides):
    raw = {
        "ia_question": "What is f'(x)?",
        "expected_answer_keywords": ["2x"],
        "hint_for_wrong_answer": "Differentiate term by term",
        "positive_feedback": "Correct!",
    }
    raw.update(overrides)
    return raw


def test_valid_path_has_no_issues():
    assert validate_socratic_path([_step(), _step(ia_question="Then?")]) == []


def test_missing_question_is_an_error():
    issues = validate_socratic_path([_step(), _step(ia_question="  ")])
    assert [(i.severity, i.step_index) for i in issues] == [("error", 1)]


def test_missing_hint_and_keywords_are_warnings():
    issues = validate_socratic_path([_step(hint_for_wrong_answer="", expected_answer_keywords=[])])
    assert {i.severity for i in issues} == {"warning"}
    assert len(issues) == 2


@pytest.mark.parametrize("payload", [
    None,
    {"socratic_path": []},
    {"socratic_path": "step one"},
    {"socratic_path": [_step(expected_answer_keywords="2x")]},
    {"socratic_path": [_step()], "starting_step_index": -1},
    {"socratic_path": [_step()], "starting_step_index": "1"},
    {"explanation": 42},
    {"plan": {"steps": "one"}},
])
def test_malformed_payloads_are_rejected(payload):
    assert any(i.severity == "error" for i in validate_explain_payload(payload))
    with pytest.raises(InvalidPayloadError):
        ExplainResult.from_payload(payload)


def test_socratic_payload_parsing():
    payload = {
        "socratic_path": [
            _step(expected_answer_keywords=["2x", " 2x", "2 x"], student_response_prompt="f'(x) = ..."),
            _step(ia_question="And f'(1)?", expected_answer_keywords=["2"]),
        ],
        "starting_step_index": 1,
        "videoChunk": {"video_id": "abc", "chunk_text": "power rule", "start_time_seconds": 42.5},
    }
    result = ExplainResult.from_payload(payload)
    first = result.socratic_path[0]
    assert first.expected_keywords == ("2x", "2 x")
    assert first.student_response_prompt == "f'(x) = ..."
    assert result.starting_step_index == 1
    assert result.video_chunk == VideoChunk("abc", "power rule", 42.5)
    assert result.artifact()["socratic_path"][1]["ia_question"] == "And f'(1)?"


def test_explanation_payload_parsing():
    result = ExplainResult.from_payload({"explanation": "  f'(x) = 2x  "})
    assert result.explanation == "f'(x) = 2x"
    assert result.artifact() == {"explanation": "f'(x) = 2x"}
    assert ExplainResult().artifact() is None


def test_plan_payload_parsing():
    result = ExplainResult.from_payload({"plan": {"steps": ["derive", ""], "key_concepts": ["power rule"]}})
    assert result.plan.steps == ("derive",)
    assert result.plan.key_concepts == ("power rule",)
    assert result.has_content


def test_step_payload_round_trip_keeps_wire_names():
    raw = _step(student_response_prompt="Your answer")
    assert SocraticStep.from_payload(raw).to_payload() == raw


def test_validation_payload():
    assert ValidationResult.from_payload({"is_correct": True, "feedback_message": " Yes "}) == ValidationResult(True, "Yes")
    assert ValidationResult.from_payload({"is_correct": False}).feedback is None
    with pytest.raises(InvalidPayloadError):
        ValidationResult.from_payload({"is_correct": "yes"})


def test_video_chunk_needs_a_source():
    assert VideoChunk.from_payload({"chunk_text": "x"}) is None
    assert VideoChunk.from_payload(None) is None
    assert VideoChunk.from_payload({"video_id": "v", "start_time_seconds": "bad"}).start_offset_seconds == 0.0
