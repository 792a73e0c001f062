"""Tests for quiz response validation."""

import json

import pytest

from studyset.errors import QuizValidationError
from studyset.models.quiz import QuizQuestion, quiz_response_model
from studyset.services.quiz_validator import clean_json_response, validate_quiz_response


def make_question(i: int = 1, **overrides):
    question = {
        "question": f"What is fact number {i}?",
        "options": ["A", "B", "C", "D"],
        "answer": "A",
        "category": "Biology",
        "explanation": "Because A.",
    }
    question.update(overrides)
    return question


def make_payload(n: int, key: str = "quiz_questions"):
    return {key: [make_question(i) for i in range(1, n + 1)]}


class TestCleanJsonResponse:

    def test_strips_code_fences(self):
        raw = '```json\n{"quiz_questions": []}\n```'
        assert clean_json_response(raw) == '{"quiz_questions": []}'

    def test_strips_preamble(self):
        raw = 'Here is your quiz:\n[{"question": "q"}]'
        assert clean_json_response(raw) == '[{"question": "q"}]'

    def test_plain_json_unchanged(self):
        assert clean_json_response('{"a": 1}') == '{"a": 1}'


class TestValidateQuizResponse:

    def test_accepts_exact_count(self):
        questions = validate_quiz_response(json.dumps(make_payload(5)), 5)

        assert len(questions) == 5
        assert all(isinstance(q, QuizQuestion) for q in questions)

    def test_accepts_more_than_required(self):
        assert len(validate_quiz_response(make_payload(7), 5)) == 7

    @pytest.mark.parametrize("required", [1, 2, 5, 10])
    def test_count_bound_is_per_request(self, required):
        assert len(validate_quiz_response(make_payload(required), required)) == required
        with pytest.raises(QuizValidationError):
            validate_quiz_response(make_payload(required - 1), required)

    def test_three_of_five_is_rejected_as_a_unit(self):
        with pytest.raises(QuizValidationError) as exc_info:
            validate_quiz_response(json.dumps(make_payload(3)), 5)

        error = exc_info.value
        assert error.insufficient_count
        assert error.required_count == 5
        assert error.received_count == 3
        assert any("at least 5 questions" in failure for failure in error.failures)
        # Reported once, not again by the schema's own length check
        assert len(error.failures) == 1

    def test_accepts_questions_key_and_bare_array(self):
        assert len(validate_quiz_response(make_payload(2, key="questions"), 2)) == 2
        assert len(validate_quiz_response([make_question(1), make_question(2)], 2)) == 2

    def test_accepts_fenced_bytes(self):
        raw = ("```json\n" + json.dumps(make_payload(1)) + "\n```").encode()

        assert len(validate_quiz_response(raw, 1)) == 1

    def test_optional_fields_may_be_null(self):
        question = make_question(explanation=None, related_material=None)

        [validated] = validate_quiz_response([question], 1)

        assert validated.explanation is None
        assert validated.related_material is None

    def test_answer_need_not_be_an_option(self):
        [validated] = validate_quiz_response([make_question(answer="See chapter 4")], 1)

        assert validated.answer == "See chapter 4"

    def test_one_malformed_question_rejects_everything(self):
        questions = [make_question(i) for i in range(1, 5)]
        del questions[2]["answer"]

        with pytest.raises(QuizValidationError) as exc_info:
            validate_quiz_response(questions, 4)

        assert exc_info.value.failures == ["questions.2.answer: Field required"]
        assert not exc_info.value.insufficient_count

    def test_blank_question_text_is_rejected(self):
        with pytest.raises(QuizValidationError) as exc_info:
            validate_quiz_response([make_question(question="   ")], 1)

        assert "questions.0.question" in exc_info.value.failures[0]

    def test_count_and_shape_failures_are_aggregated(self):
        questions = [make_question(1), make_question(2, category=None)]

        with pytest.raises(QuizValidationError) as exc_info:
            validate_quiz_response(questions, 3)

        assert len(exc_info.value.failures) == 2

    def test_invalid_json(self):
        with pytest.raises(QuizValidationError) as exc_info:
            validate_quiz_response("not json at all", 1)

        assert exc_info.value.received_count is None
        assert "not valid JSON" in exc_info.value.failures[0]

    def test_missing_questions_array(self):
        with pytest.raises(QuizValidationError, match="questions array"):
            validate_quiz_response({"items": []}, 1)

    def test_required_count_below_one_is_a_programming_error(self):
        with pytest.raises(ValueError):
            validate_quiz_response(make_payload(1), 0)

    def test_payload_shape(self):
        with pytest.raises(QuizValidationError) as exc_info:
            validate_quiz_response(make_payload(1), 2)

        payload = exc_info.value.to_payload()
        assert payload["kind"] == "quiz_validation_failed"
        assert payload["required_count"] == 2
        assert payload["received_count"] == 1
        assert payload["failures"]


class TestQuizResponseModel:

    def test_models_are_cached_per_count(self):
        assert quiz_response_model(3) is quiz_response_model(3)
        assert quiz_response_model(3) is not quiz_response_model(4)
