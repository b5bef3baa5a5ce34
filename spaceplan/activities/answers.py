"""Write questionnaire answers into ProjectFacts by field path.

Field paths use the camelCase wire names ("budget", "location.locationType").
At most one level of nesting exists; nested writes merge into the parent
object and keep its sibling values.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from spaceplan.models.contracts import Location, ProjectFacts, Scale

logger = structlog.get_logger()


@dataclass(frozen=True)
class TopLevelField:
    name: str


@dataclass(frozen=True)
class NestedField:
    parent: str
    child: str


FieldPath = TopLevelField | NestedField

_NESTED_MODELS = {"location": Location, "scale": Scale}


def _aliases(model: type) -> set[str]:
    return {info.alias or name for name, info in model.model_fields.items()}


_TOP_LEVEL_NAMES = _aliases(ProjectFacts) - set(_NESTED_MODELS)
_NESTED_NAMES = {parent: _aliases(model) for parent, model in _NESTED_MODELS.items()}


def parse_field_path(raw: str) -> FieldPath | None:
    """Parse "name" or "parent.child"; None for anything the facts record cannot hold."""
    segments = raw.split(".")
    if any(not s for s in segments):
        return None
    match segments:
        case [name] if name in _TOP_LEVEL_NAMES:
            return TopLevelField(name)
        case [parent, child] if child in _NESTED_NAMES.get(parent, ()):
            return NestedField(parent, child)
        case _:
            return None


def apply_answer(facts: ProjectFacts, path: FieldPath | str | None, value: Any) -> ProjectFacts:
    """Return a new ProjectFacts with ``value`` written at ``path``.

    Invalid paths and values the model rejects leave the facts unchanged.
    """
    if isinstance(path, str):
        path = parse_field_path(path)

    data = facts.model_dump(by_alias=True)
    match path:
        case TopLevelField(name=name):
            data[name] = value
        case NestedField(parent=parent, child=child):
            data[parent] = {**data[parent], child: value}
        case _:
            logger.warning("answer_path_invalid", path=str(path))
            return facts

    try:
        return ProjectFacts.model_validate(data)
    except ValueError as exc:
        logger.warning("answer_value_rejected", path=str(path), error=str(exc))
        return facts


def read_field(facts: ProjectFacts, path: FieldPath | str | None) -> Any:
    if isinstance(path, str):
        path = parse_field_path(path)
    data = facts.model_dump(by_alias=True)
    match path:
        case TopLevelField(name=name):
            return data[name]
        case NestedField(parent=parent, child=child):
            return data[parent][child]
        case _:
            return None
