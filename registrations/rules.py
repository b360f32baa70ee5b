# registrations/rules.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from django.core.exceptions import ImproperlyConfigured


DEFAULT_MESSAGE = "This field is required"


@dataclass(frozen=True)
class ConditionalRequirement:
    """
    "trigger_field == trigger_value" makes dependent_field required.

    Defined once per form class and shared by the server-side clean() and the
    client script (see to_client).
    """
    trigger_field: str
    trigger_value: Any
    dependent_field: str
    message: str = DEFAULT_MESSAGE


@dataclass(frozen=True)
class ValidationOutcome:
    valid: bool
    message: Optional[str] = None


VALID = ValidationOutcome(valid=True)


def invalid(message: str) -> ValidationOutcome:
    return ValidationOutcome(valid=False, message=message)


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    return str(value).strip() == ""


def is_active(record: Mapping[str, Any], rule: ConditionalRequirement) -> bool:
    return record.get(rule.trigger_field) == rule.trigger_value


def evaluate(record: Mapping[str, Any], rule: ConditionalRequirement) -> ValidationOutcome:
    if not is_active(record, rule):
        return VALID
    if is_blank(record.get(rule.dependent_field)):
        return invalid(rule.message)
    return VALID


def evaluate_all(
    record: Mapping[str, Any], rules: Iterable[ConditionalRequirement]
) -> Dict[str, List[str]]:
    """
    Evaluate every rule (a failing rule does not stop the others).
    Returns {dependent_field: [messages]}; empty when the record passes.
    """
    errors: Dict[str, List[str]] = {}
    for rule in rules:
        outcome = evaluate(record, rule)
        if not outcome.valid:
            errors.setdefault(rule.dependent_field, []).append(outcome.message)
    return errors


def validate_rules(field_names: Iterable[str], rules: Iterable[ConditionalRequirement]) -> None:
    names = set(field_names)
    for rule in rules:
        if rule.trigger_field not in names:
            raise ImproperlyConfigured(
                f"Conditional requirement on '{rule.dependent_field}' refers to "
                f"unknown trigger field '{rule.trigger_field}'."
            )
        if rule.dependent_field not in names:
            raise ImproperlyConfigured(
                f"Conditional requirement refers to unknown dependent field '{rule.dependent_field}'."
            )
        if rule.dependent_field == rule.trigger_field:
            raise ImproperlyConfigured(
                f"Field '{rule.trigger_field}' cannot be conditionally required on itself."
            )


# ----------------------------
# Client side description
# ----------------------------
def client_value(value: Any) -> str:
    """
    The string an HTML control submits for this value (radio "true"/"false").
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def container_id(field_name: str) -> str:
    return f"{field_name}-container"


def to_client(rule: ConditionalRequirement) -> dict:
    return {
        "trigger": rule.trigger_field,
        "value": client_value(rule.trigger_value),
        "dependent": rule.dependent_field,
        "container": container_id(rule.dependent_field),
    }
