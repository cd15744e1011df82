"""
Decoding of generator (LLM) output.

Generator replies are untrusted text that is supposed to be JSON. Every
decoder here returns a usable value no matter what it is given: missing
or malformed arrays become empty lists, unparseable text becomes the
caller's default. Field contents are not range-checked (a phase running
past the project end is passed through).
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from .budget import format_budget_input
from .schema import Task, WbsPhase, Risk

logger = logging.getLogger(__name__)

EXTRACTION_FIELDS = ("projectName", "budget", "duration", "projectType", "objective", "constraints")


def strip_json_fences(raw: str) -> str:
    """Remove a surrounding ```json ... ``` fence if present."""
    text = (raw or "").strip()
    text = re.sub(r"^```(?:json)?\s*", "", text, flags=re.I)
    text = re.sub(r"\s*```$", "", text)
    return text.strip()


def decode_json(raw: Any, default: Any = None) -> Any:
    """Parse generator text as JSON, falling back to the first {...} or [...] block."""
    if not isinstance(raw, str):
        return default
    text = strip_json_fences(raw)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    # Try to extract JSON embedded in prose
    for opener, closer in (("{", "}"), ("[", "]")):
        start, end = text.find(opener), text.rfind(closer)
        if start != -1 and end > start:
            try:
                return json.loads(text[start:end + 1])
            except json.JSONDecodeError:
                continue
    logger.warning(f"Generator reply is not JSON: {text[:80]!r}")
    return default


def decode_tasks(value: Any) -> List[Task]:
    tasks = []
    for i, entry in enumerate(value if isinstance(value, list) else []):
        if isinstance(entry, str):
            entry = {"id": i + 1, "title": entry}
        if not isinstance(entry, dict):
            continue
        task = Task.from_dict(entry)
        if task.id in ("", None):
            task.id = i + 1
        if task.title.strip():
            tasks.append(task)
    return tasks


def decode_phases(value: Any) -> List[WbsPhase]:
    return [WbsPhase.from_dict(p) for p in (value if isinstance(value, list) else []) if isinstance(p, dict)]


def decode_risk_list(value: Any) -> List[Risk]:
    return [Risk.from_dict(r) for r in (value if isinstance(value, list) else []) if isinstance(r, dict)]


def decode_plan(raw: str) -> Optional[Tuple[List[WbsPhase], List[Task]]]:
    """`{"wbs": [...], "tasks": [...]}` -> (phases, tasks). None if not a JSON object."""
    parsed = decode_json(raw)
    if not isinstance(parsed, dict):
        return None
    return decode_phases(parsed.get("wbs")), decode_tasks(parsed.get("tasks"))


def decode_risks(raw: str) -> Optional[List[Risk]]:
    """JSON array of risks. None if the reply is not a JSON array."""
    parsed = decode_json(raw)
    if not isinstance(parsed, list):
        return None
    return decode_risk_list(parsed)


def decode_extraction(raw: str) -> Optional[Dict[str, str]]:
    """Project form fields pulled out of an uploaded document.

    Every field comes back as a string ("" when missing). The budget keeps
    its integer part only, grouped: "$1,500,000.00" -> "1,500,000".
    """
    parsed = decode_json(raw)
    if not isinstance(parsed, dict):
        return None
    result = {}
    for key in EXTRACTION_FIELDS:
        value = parsed.get(key)
        result[key] = "" if value is None else str(value).strip()
    if result["budget"]:
        result["budget"] = format_budget_input(result["budget"].split(".")[0])
    return result


def decode_generated(payload: Any) -> Dict[str, Any]:
    """Shape of a /api/generate-charter response, with every part defaulted."""
    if not isinstance(payload, dict):
        payload = {}
    charter = payload.get("charter")
    return {
        "charter": charter if isinstance(charter, str) else "",
        "risks": decode_risk_list(payload.get("risks")),
        "wbs": decode_phases(payload.get("wbs")),
        "tasks": decode_tasks(payload.get("tasks")),
    }
