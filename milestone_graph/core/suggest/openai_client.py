from __future__ import annotations

import json
import os
from typing import Any, Protocol

from milestone_graph.core.suggest.contracts import (
    ProjectSuggestion,
    SuggestedSubtask,
    parse_project_suggestion,
    parse_subtask_suggestions,
)


class SuggestionSource(Protocol):
    def suggest_project(self, *, name: str, project_type: str, model: str) -> ProjectSuggestion: ...

    def suggest_subtasks(
        self, *, milestone_name: str, project_context: str, model: str
    ) -> list[SuggestedSubtask]: ...


SYSTEM_PROMPT = """You help plan construction and development projects.

Return ONLY the JSON object requested (no markdown, no extra text).
Keep dependsOn references inside the milestones you return, and never create
dependency loops.
"""


# OpenAI Structured Outputs requirements:
# - For ALL object schemas, `additionalProperties` MUST be present and MUST be false.
# - For ALL object schemas, `required` MUST include EVERY key in `properties`.

SUBTASK_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "name": {"type": "string"},
        "description": {"type": "string"},
    },
    "required": ["name", "description"],
}


PROJECT_STRUCTURE_JSON_SCHEMA: dict[str, Any] = {
    "name": "project_structure",
    "schema": {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "milestones": {
                "type": "array",
                "items": {
                    "type": "object",
                    "additionalProperties": False,
                    "properties": {
                        "id": {"type": "string"},
                        "name": {"type": "string"},
                        "dependsOn": {"type": "array", "items": {"type": "string"}},
                        "subtasks": {"type": "array", "items": SUBTASK_SCHEMA},
                    },
                    "required": ["id", "name", "dependsOn", "subtasks"],
                },
            },
        },
        "required": ["milestones"],
    },
}


# Structured outputs need an object at the top level, so the list is wrapped.
SUBTASKS_JSON_SCHEMA: dict[str, Any] = {
    "name": "subtask_suggestions",
    "schema": {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "subtasks": {"type": "array", "items": SUBTASK_SCHEMA},
        },
        "required": ["subtasks"],
    },
}


class OpenAISuggestionClient:
    def __init__(self, *, base_url: str | None = None) -> None:
        self._base_url = base_url

    def suggest_project(self, *, name: str, project_type: str, model: str) -> ProjectSuggestion:
        prompt = (
            f'Generate a logical project structure for a project named "{name}" of type "{project_type}". '
            "Each milestone must have a unique id, a name, a list of subtasks, and a dependsOn "
            "array of milestone ids forming a sequence or parallel paths. "
            "Ensure there is at least one start milestone (empty dependsOn). "
            "Each subtask needs a name and description."
        )
        obj = self._request(prompt=prompt, schema=PROJECT_STRUCTURE_JSON_SCHEMA, model=model)
        return parse_project_suggestion(obj)

    def suggest_subtasks(
        self, *, milestone_name: str, project_context: str, model: str
    ) -> list[SuggestedSubtask]:
        prompt = (
            f'Given a milestone called "{milestone_name}" in a project described as '
            f'"{project_context}", suggest 5 critical subtasks that might be required.'
        )
        obj = self._request(prompt=prompt, schema=SUBTASKS_JSON_SCHEMA, model=model)
        return parse_subtask_suggestions(obj.get("subtasks", []) if isinstance(obj, dict) else obj)

    def _request(self, *, prompt: str, schema: dict[str, Any], model: str) -> Any:
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY is not set")

        try:
            from openai import OpenAI  # type: ignore
        except Exception as e:
            raise RuntimeError(
                "openai package not installed; install with: pip install 'milestone-graph[ai]'"
            ) from e

        client = OpenAI(base_url=self._base_url) if self._base_url else OpenAI()

        resp = client.responses.create(
            model=model,
            temperature=0,
            input=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            text={
                "format": {
                    "type": "json_schema",
                    "name": schema["name"],
                    "schema": schema["schema"],
                    "strict": True,
                }
            },
        )

        raw_text = _extract_output_text(resp)
        try:
            return json.loads(raw_text)
        except Exception as e:
            snippet = raw_text[:800]
            raise RuntimeError(f"Failed to parse model JSON. First 800 chars: {snippet}") from e


def _extract_output_text(resp: Any) -> str:
    """Extract response text across OpenAI SDK response shapes."""
    raw = getattr(resp, "output_text", None)
    if isinstance(raw, str) and raw.strip():
        return raw

    out = getattr(resp, "output", None)
    if isinstance(out, list):
        texts: list[str] = []
        for item in out:
            content = getattr(item, "content", None)
            if isinstance(content, list):
                for c in content:
                    t = getattr(c, "text", None)
                    if isinstance(t, str) and t.strip():
                        texts.append(t)
        if texts:
            return "\n".join(texts)

    return str(resp)
