"""
LLM-backed project generation.

  generate_charter() - charter text + risk register + WBS phases + starter tasks
  extract_project()  - project form fields read out of an uploaded document
  assistant_reply()  - one turn of the PM assistant chat

Charter failures propagate. Risk and plan replies that do not decode fall
back to the static defaults below so a generated project is always usable.
"""
import copy
import logging
from typing import Any, Dict, List, Optional

from .decoder import decode_extraction, decode_plan, decode_risks
from .llm import GeminiClient, LLMError, inline_part, text_part
from .schema import Risk, Task, WbsPhase

logger = logging.getLogger(__name__)


ASSISTANT_PROMPT = """You are PMX Assistant, an expert project management advisor built into the PMX planning tool.

You help users plan, manage and execute projects: risk management, stakeholder
engagement, scope control, Agile / Waterfall / Hybrid methods, charters, WBS,
risk registers, status reports, budgeting, scheduling and resource allocation.

Rules:
- Be concise but thorough
- Use bullet points and markdown formatting when helpful
- Work with whatever project context the user provides
- Give specific, actionable advice"""

CHARTER_PROMPT = """You are a professional project manager.

Using the inputs below, write a concise but structured project charter.
Include sections:
- Project Overview
- Objectives
- Scope (In Scope / Out of Scope)
- High-Level Timeline & Phases
- Key Stakeholders (generic roles)
- Key Risks & High-Level Responses
- Assumptions
- Constraints

{context}"""

RISK_PROMPT = """You are a project risk management expert.

Based on the following project information, identify 5-8 key project risks (threats only).

{context}

Return ONLY a valid JSON array (no backticks, no explanation) in this exact format:
[
  {{
    "id": "R1",
    "description": "Short one-line risk description",
    "category": "Scope | Schedule | Cost | Quality | Resource | Stakeholder | Technical | Other",
    "impact": "Low | Medium | High",
    "probability": "Low | Medium | High",
    "response": "Short one-line recommended response strategy",
    "owner": "Role responsible (e.g., Project Manager, Sponsor, Tech Lead)"
  }}
]"""

PLAN_PROMPT = """You are a project manager creating a Work Breakdown Structure and an initial task list.

Based on the project below, return ONLY valid JSON (no backticks, no prose) with this exact structure:

{{
  "wbs": [
    {{"id": "1", "name": "Phase name", "startWeek": 0, "durationWeeks": 2,
      "items": ["1.1 Deliverable or task", "1.2 Deliverable or task"]}}
  ],
  "tasks": [
    {{"id": 1, "title": "Short actionable task title"}}
  ]
}}

Rules:
- Generate 4-6 WBS phases that fit within {duration} weeks total. startWeek and durationWeeks must be integers and must not exceed the total duration.
- Generate 6-10 Kanban tasks (the most important early actions). Start task IDs at 1.
- Make everything specific to the project described.
- Return ONLY the JSON object, nothing else.

{context}"""

EXTRACTION_PROMPT = """You are a project management expert. Analyze this uploaded document and extract the following project details.

Return ONLY valid JSON (no backticks, no explanation) in this exact format:
{
  "projectName": "Name of the project",
  "budget": "Budget amount as a plain number string (no currency symbols, no commas)",
  "duration": "Duration in weeks as a plain number string",
  "projectType": "IT | Infrastructure | Construction | Other",
  "objective": "The project objective or business goal (1-3 sentences)",
  "constraints": "Key constraints mentioned in the document (1-3 sentences)"
}

Rules:
- If a field is not mentioned in the document, use an empty string "".
- For budget, convert to a plain number (e.g., "$1,500,000" -> "1500000").
- For duration, estimate in weeks if given in months/years (e.g., "6 months" -> "24").
- For projectType, choose the closest match from: IT, Infrastructure, Construction, Other."""


FALLBACK_RISKS: List[Risk] = [
    Risk(
        id="R1",
        description="Scope may expand beyond initial objectives if requirements are unclear.",
        category="Scope",
        impact="High",
        probability="Medium",
        response="Define a clear scope baseline and implement change control.",
        owner="Project Manager",
    ),
]

FALLBACK_PHASES: List[WbsPhase] = [
    WbsPhase("1", "Initiation", 0, 1, ["1.1 Define project scope", "1.2 Identify stakeholders"]),
    WbsPhase("2", "Planning", 1, 2, ["2.1 Create project plan", "2.2 Risk assessment"]),
    WbsPhase("3", "Execution", 3, 5, ["3.1 Deliver core work", "3.2 Track progress"]),
    WbsPhase("4", "Closure", 8, 1, ["4.1 Final review", "4.2 Handover"]),
]

FALLBACK_TASKS: List[Task] = [
    Task(1, "Define project scope"),
    Task(2, "Identify key stakeholders"),
    Task(3, "Create project plan"),
]


def project_context(form: Dict[str, Any]) -> str:
    """Prompt block describing the project. Missing fields say so."""
    def field(key: str) -> str:
        value = form.get(key)
        return str(value).strip() if value not in (None, "") else "Not specified"

    return "\n".join([
        f"Project name: {field('projectName')}",
        f"Budget: {field('budget')}",
        f"Duration (weeks): {field('duration')}",
        f"Objective / business goal: {field('objective')}",
        f"Key constraints: {field('constraints')}",
    ])


def generate_charter(client: GeminiClient, form: Dict[str, Any]) -> Dict[str, Any]:
    """Charter, risks, WBS and starter tasks for a project form.

    Returns plain dicts ready for JSON:
        {"charter": str, "risks": [...], "wbs": [...], "tasks": [...]}
    """
    context = project_context(form or {})
    duration = str((form or {}).get("duration") or "").strip() or "12"

    charter = client.generate_with_retry(CHARTER_PROMPT.format(context=context))

    risks: Optional[List[Risk]] = None
    try:
        risks = decode_risks(client.generate_with_retry(RISK_PROMPT.format(context=context)))
    except LLMError as e:
        logger.error(f"Risk generation failed: {e}")
    if risks is None:
        logger.warning("Using fallback risk register")
        risks = copy.deepcopy(FALLBACK_RISKS)

    plan = None
    try:
        plan = decode_plan(client.generate_with_retry(PLAN_PROMPT.format(context=context, duration=duration)))
    except LLMError as e:
        logger.error(f"Plan generation failed: {e}")
    if plan is None:
        logger.warning("Using fallback WBS and tasks")
        plan = (copy.deepcopy(FALLBACK_PHASES), copy.deepcopy(FALLBACK_TASKS))
    phases, tasks = plan

    return {
        "charter": charter,
        "risks": [r.to_dict() for r in risks],
        "wbs": [p.to_dict() for p in phases],
        "tasks": [t.to_dict() for t in tasks],
    }


def extract_project(client: GeminiClient, file_base64: str, mime_type: str = "") -> Dict[str, str]:
    """Form fields read from an uploaded document (base64)."""
    reply = client.generate([
        text_part(EXTRACTION_PROMPT),
        inline_part(file_base64, mime_type or "application/pdf"),
    ])
    fields = decode_extraction(reply)
    if fields is None:
        raise LLMError(500, "Failed to extract document content. Please try again.")
    return fields


def assistant_reply(client: GeminiClient, message: str, history: Optional[List[Dict[str, Any]]] = None) -> str:
    return client.chat(message, history=history or [], system_prompt=ASSISTANT_PROMPT)
