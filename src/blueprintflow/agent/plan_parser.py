"""
Parsing of assistant responses into plans.

Assistant output is untrusted. A response is accepted only when it is a single
JSON object ``{"explanation": str, "operations": [...]}``, either bare or as the
one fenced ```json block in the text, and every operation parses against the
primitive operation grammar. Anything else is a MalformedPlan; there is no
best-effort recovery.
"""

import json
import re
from typing import List

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from blueprintflow.builder.operations import Operation
from blueprintflow.exceptions import MalformedPlan

_FENCE = re.compile(r"```(?:json)?[ \t]*\n(.*?)```", re.DOTALL)


class Plan(BaseModel):
    model_config = ConfigDict(extra="forbid")

    explanation: str
    operations: List[Operation] = Field(default_factory=list)


def extract_json(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("{"):
        return stripped
    blocks = _FENCE.findall(stripped)
    if len(blocks) == 1:
        return blocks[0].strip()
    if not blocks:
        raise MalformedPlan("The assistant response contains no JSON plan", details={"response": text[:2000]})
    raise MalformedPlan(
        f"The assistant response contains {len(blocks)} JSON blocks; expected one",
        details={"response": text[:2000]},
    )


def parse_plan(text: str) -> Plan:
    """
    Parse an assistant response into a Plan.

    Raises:
        MalformedPlan: If the response is not exactly one plan in the operation grammar.
    """
    raw = extract_json(text)
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedPlan(f"The assistant plan is not valid JSON: {e}", details={"response": text[:2000]}) from e
    if not isinstance(payload, dict):
        raise MalformedPlan("The assistant plan must be a JSON object", details={"response": text[:2000]})
    try:
        return Plan.model_validate(payload)
    except ValidationError as e:
        raise MalformedPlan(
            f"The assistant plan does not match the operation grammar: {e.error_count()} error(s)",
            details={"errors": e.errors(include_url=False, include_context=False, include_input=False)},
        ) from e
