"""Decode model output into ScenarioPayload objects.

Strict pydantic decode first; if that fails, an explicit table of key aliases
and value normalizers maps the common variants onto the canonical shape.
Items that still do not decode are dropped.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import ValidationError

from scenario_engine.models.schemas import (
    ScenarioPayload,
    StrictEnvelope,
    StrictScenarioPayload,
    TestStep,
)
from scenario_engine.observability.logger import get_logger

logger = get_logger("scenario_decoder")

ENVELOPE_KEYS = ("scenarios", "test_scenarios", "testScenarios", "items", "data")

ITEM_FIELD_ALIASES: dict[str, str] = {
    "title": "test_name",
    "name": "test_name",
    "testName": "test_name",
    "steps": "test_steps",
    "testSteps": "test_steps",
    "classification": "scenario_classification",
    "scenario_type": "scenario_classification",
    "scenarioClassification": "scenario_classification",
    "type": "test_type",
    "testType": "test_type",
    "severity": "priority",
    "precondition": "preconditions",
    "expected": "expected_result",
    "expected_outcome": "expected_result",
    "expectedResult": "expected_result",
}

_PRIORITY_CODES = {"p1": "critical", "p2": "high", "p3": "medium", "p4": "low"}
_STEP_NUMBER_PREFIX = re.compile(r"^\s*(?:step\s*)?\d+[.):-]?\s+", re.IGNORECASE)


# --- Envelope ---------------------------------------------------------------


def extract_items(data: Any) -> list[Any]:
    """Pull the scenario list out of whatever envelope the model used."""
    try:
        return StrictEnvelope.model_validate(data).scenarios
    except ValidationError:
        pass

    if isinstance(data, list):
        return data
    if not isinstance(data, dict):
        return []

    for key in ENVELOPE_KEYS:
        value = data.get(key)
        if isinstance(value, list):
            return value
    for value in data.values():
        if isinstance(value, list):
            return value
    return []


# --- Field and value mappings ------------------------------------------------


def map_item_fields(item: dict) -> dict:
    """Rename aliased keys. A canonical key already present wins over its aliases."""
    mapped: dict = {}
    for key, value in item.items():
        if key in ITEM_FIELD_ALIASES:
            continue
        mapped[key] = value
    for alias, canonical in ITEM_FIELD_ALIASES.items():
        if alias in item and canonical not in mapped:
            mapped[canonical] = item[alias]
    return mapped


def normalize_classification(value: Any) -> str:
    raw = re.sub(r"[\s-]+", "_", str(value or "").strip().lower())
    if raw in ("happy", "positive") or raw.startswith("happy"):
        return "happy_path"
    if raw.startswith("edge"):
        return "edge_case"
    if raw.startswith("neg"):
        return "negative"
    return raw


def normalize_test_type(value: Any) -> str:
    raw = str(value or "").strip().lower()
    if "regress" in raw:
        return "regression"
    if "smoke" in raw:
        return "smoke"
    if "function" in raw:
        return "functional"
    return raw


def normalize_priority(value: Any) -> str:
    raw = str(value or "").strip().lower()
    return _PRIORITY_CODES.get(raw, raw)


def normalize_preconditions(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    return [line.strip() for line in str(value).splitlines() if line.strip()]


def _step_from_string(text: str, number: int) -> TestStep:
    return TestStep(step_number=number, action=_STEP_NUMBER_PREFIX.sub("", text).strip())


def _step_from_dict(raw: dict, number: int) -> TestStep | None:
    action = raw.get("action") or raw.get("step") or raw.get("description") or ""
    if not str(action).strip():
        return None
    return TestStep(
        step_number=number,
        action=str(action).strip(),
        input=str(raw.get("input") or raw.get("data") or raw.get("test_data") or "").strip(),
        expected_result=str(
            raw.get("expected_result") or raw.get("expected") or raw.get("expectedResult") or ""
        ).strip(),
    )


def normalize_steps(value: Any) -> list[TestStep]:
    """Accept a list of strings, a list of step dicts, or one newline-separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [line for line in value.splitlines() if line.strip()]
    if not isinstance(value, list):
        return []

    steps: list[TestStep] = []
    for raw in value:
        number = len(steps) + 1
        if isinstance(raw, dict):
            step = _step_from_dict(raw, number)
        else:
            text = str(raw).strip()
            step = _step_from_string(text, number) if text else None
        if step is not None:
            steps.append(step)
    return steps


# --- Items -------------------------------------------------------------------


def _from_strict(strict: StrictScenarioPayload) -> ScenarioPayload:
    return ScenarioPayload(
        test_name=strict.test_name.strip(),
        description=strict.description,
        test_type=strict.test_type,
        scenario_classification=strict.scenario_classification,
        preconditions=strict.preconditions,
        test_steps=[
            TestStep(
                step_number=i,
                action=s.action,
                input=s.input,
                expected_result=s.expected_result,
            )
            for i, s in enumerate(strict.test_steps, 1)
        ],
        expected_result=strict.expected_result,
        priority=strict.priority,
    )


def decode_item(raw: Any) -> ScenarioPayload | None:
    if not isinstance(raw, dict):
        return None
    try:
        return _from_strict(StrictScenarioPayload.model_validate(raw))
    except ValidationError:
        pass

    item = map_item_fields(raw)
    test_name = str(item.get("test_name") or "").strip()
    if not test_name:
        return None
    try:
        return ScenarioPayload(
            test_name=test_name,
            description=str(item.get("description") or "").strip(),
            test_type=normalize_test_type(item.get("test_type")),
            scenario_classification=normalize_classification(item.get("scenario_classification")),
            preconditions=normalize_preconditions(item.get("preconditions")),
            test_steps=normalize_steps(item.get("test_steps")),
            expected_result=str(item.get("expected_result") or "").strip(),
            priority=normalize_priority(item.get("priority")),
        )
    except ValidationError as e:
        logger.debug("scenario_item_dropped", error=str(e))
        return None


def decode_scenarios(data: Any) -> list[ScenarioPayload]:
    items = extract_items(data)
    decoded = [p for p in (decode_item(item) for item in items) if p is not None]
    if len(decoded) < len(items):
        logger.warning("scenario_items_dropped", raw=len(items), decoded=len(decoded))
    return decoded
