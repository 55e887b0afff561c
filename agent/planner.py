"""
Planning logic for multi-step editing requests.

This module provides:
- PlanPolicy / KeywordPlanPolicy: decide whether a request should be planned
  and shown to the user before anything is changed
- generate_plan(): one structured-output model call that turns the request
  into a TaskPlan
- format_plan_for_display(): Human-readable plan rendering
"""

import json
import logging
import re
from typing import Optional, Protocol

from .errors import external_service_error
from .llm import LLMAdapter, LLMResponse
from .tasks import TaskPlan, create_plan, create_task

logger = logging.getLogger("gutenberg_agent")


# JSON schema for the planner's structured output
PLAN_RESPONSE_SCHEMA = {
    "title": "submit_plan",
    "type": "object",
    "properties": {
        "summary": {
            "type": "string",
        },
        "tasks": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "description": {"type": "string"},
                    "agent": {
                        "type": "string",
                        "enum": ["orchestrator", "seo", "copywriting", "design", "technical"],
                    },
                    "tools": {
                        "type": "array",
                        "items": {"type": "string"},
                    },
                },
                "required": ["description"],
            },
        },
    },
    "required": ["summary", "tasks"],
}

PLANNER_SYSTEM_PROMPT = """You plan WordPress page edits before they are made.

Break the user's request into 3-8 concrete, ordered steps. Each step names
what is changed on the page and, when it needs expertise, which specialist
handles it (seo, copywriting, design, technical). Steps must be small enough
to verify one by one. Do not perform any step; only plan."""


class PlanPolicy(Protocol):
    """Decides whether a request gets a plan before execution."""

    def needs_plan(self, message: str) -> bool: ...


class KeywordPlanPolicy:
    """Plan requests that look like building or restructuring a whole page.

    Heuristic: a construction verb together with a page-scale noun, or a
    request long enough to describe several sections.
    """

    VERBS = ("create", "build", "design", "redesign", "restructure", "generate", "make")
    NOUNS = ("page", "landing", "site", "homepage", "layout", "sections", "template")

    def __init__(self, min_words: int = 60):
        self.min_words = min_words
        self._verbs = re.compile(r"\b(" + "|".join(self.VERBS) + r")\b", re.IGNORECASE)
        self._nouns = re.compile(r"\b(" + "|".join(self.NOUNS) + r")\b", re.IGNORECASE)

    def needs_plan(self, message: str) -> bool:
        if not message:
            return False
        if len(message.split()) >= self.min_words:
            return True
        return bool(self._verbs.search(message) and self._nouns.search(message))


def _parse_plan_payload(response: LLMResponse) -> Optional[dict]:
    """Extract the plan dict from a forced tool call, or from JSON text.

    Some models answer in text anyway, sometimes inside markdown code fences;
    we strip common wrappers before parsing.
    """
    for call in response.tool_calls:
        if call.input:
            return call.input

    text = response.text
    if not text:
        return None
    stripped = text.strip()
    if stripped.startswith("```"):
        # Remove opening fence (with optional language tag)
        first_newline = stripped.find("\n")
        stripped = stripped[first_newline + 1:] if first_newline >= 0 else ""
        if stripped.rstrip().endswith("```"):
            stripped = stripped.rstrip()[:-3].rstrip()
    try:
        data = json.loads(stripped)
    except (json.JSONDecodeError, ValueError) as e:
        logger.warning(f"[Planner] Failed to parse plan response: {e}")
        return None
    return data if isinstance(data, dict) else None


async def generate_plan(
    gateway: LLMAdapter,
    message: str,
    *,
    model: Optional[str] = None,
    max_output_tokens: int = 2048,
) -> TaskPlan:
    """Ask the model for a step plan for ``message``.

    Raises:
        AgentError: ``external_service`` when the model returns no usable plan.
    """
    response = await gateway.generate(
        message,
        system_prompt=PLANNER_SYSTEM_PROMPT,
        json_schema=PLAN_RESPONSE_SCHEMA,
        max_output_tokens=max_output_tokens,
        model=model,
    )
    data = _parse_plan_payload(response)
    if not data or not data.get("tasks"):
        raise external_service_error("Planner returned no usable plan", service="planner")

    tasks = []
    for item in data["tasks"]:
        if not isinstance(item, dict) or not item.get("description"):
            continue
        agent = item.get("agent")
        if agent in (None, "", "orchestrator", "null", "none"):
            agent = None
        tasks.append(create_task(item["description"], agent=agent, tools=item.get("tools")))
    if not tasks:
        raise external_service_error("Planner returned no usable plan", service="planner")

    plan = create_plan(message, tasks, summary=data.get("summary", ""))
    logger.info(f"[Planner] Plan {plan.id[:8]} with {len(tasks)} step(s)")
    return plan


def format_plan_for_display(plan: TaskPlan) -> str:
    """Format a plan for display to the user.

    Args:
        plan: The plan to format

    Returns:
        Human-readable string representation
    """
    lines = [f"Plan: {len(plan.tasks)} steps"]
    if plan.summary:
        lines.append(plan.summary)
    lines.append("-" * 40)
    for i, task in enumerate(plan.tasks):
        status_icon = {
            "pending": "o",
            "in_progress": "*",
            "completed": "+",
            "failed": "x",
            "skipped": "-",
        }.get(task.status.value, "~")
        agent_tag = f" [{task.agent}]" if task.agent else ""
        lines.append(f"  {i+1}. [{status_icon}]{agent_tag} {task.description}")
    lines.append("-" * 40)
    return "\n".join(lines)
