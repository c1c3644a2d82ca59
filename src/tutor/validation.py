from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .normalize import norm_text


@dataclass(frozen=True)
class ValidationIssue:
    severity: str  # "error" | "warning"
    message: str
    step_index: int | None = None


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(norm_text(value))


def validate_socratic_path(raw_path: Any) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    if not isinstance(raw_path, list):
        return [ValidationIssue("error", "socratic_path must be a list")]
    if not raw_path:
        return [ValidationIssue("error", "socratic_path must not be empty")]
    for idx, step in enumerate(raw_path):
        if not isinstance(step, dict):
            issues.append(ValidationIssue("error", "step must be an object", idx))
            continue
        if not _is_text(step.get("ia_question")):
            issues.append(ValidationIssue("error", "ia_question is required", idx))
        keywords = step.get("expected_answer_keywords")
        if keywords is None:
            keywords = []
        if not isinstance(keywords, list):
            issues.append(
                ValidationIssue("error", "expected_answer_keywords must be a list", idx)
            )
        elif not any(_is_text(str(k)) for k in keywords):
            issues.append(
                ValidationIssue("warning", "expected_answer_keywords is empty", idx)
            )
        for key in ("hint_for_wrong_answer", "positive_feedback"):
            if not _is_text(step.get(key)):
                issues.append(ValidationIssue("warning", f"{key} is missing", idx))
    return issues


def validate_starting_step_index(raw_index: Any) -> list[ValidationIssue]:
    if raw_index is None:
        return []
    if isinstance(raw_index, bool) or not isinstance(raw_index, int):
        return [ValidationIssue("error", "starting_step_index must be an integer")]
    if raw_index < 0:
        return [ValidationIssue("error", "starting_step_index must not be negative")]
    return []


def validate_explain_payload(payload: Any) -> list[ValidationIssue]:
    if not isinstance(payload, dict):
        return [ValidationIssue("error", "response must be an object")]
    issues: list[ValidationIssue] = []
    if "socratic_path" in payload and payload["socratic_path"] is not None:
        issues.extend(validate_socratic_path(payload["socratic_path"]))
        issues.extend(validate_starting_step_index(payload.get("starting_step_index")))
    plan = payload.get("plan")
    if plan is not None:
        if not isinstance(plan, dict) or not isinstance(plan.get("steps", []), list):
            issues.append(ValidationIssue("error", "plan.steps must be a list"))
    explanation = payload.get("explanation")
    if explanation is not None and not isinstance(explanation, str):
        issues.append(ValidationIssue("error", "explanation must be text"))
    return issues
