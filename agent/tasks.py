"""
Plan data structures for multi-step editing requests.

This module provides:
- TaskStatus: Enum for task lifecycle states
- Task: One step of a plan, optionally earmarked for a sub-agent role
- TaskPlan: The steps proposed for a user request, awaiting approval
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional
import uuid


class TaskStatus(Enum):
    """Lifecycle states for a task."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class Task:
    """A single step in a multi-step plan.

    Attributes:
        id: Unique identifier for the task
        description: Human-readable summary of the step
        agent: Sub-agent role expected to do it ("seo", "design", ...) or None
        tools: Tool names the step is expected to use
        status: Current lifecycle state
    """
    id: str
    description: str
    agent: Optional[str] = None
    tools: list[str] = field(default_factory=list)
    status: TaskStatus = TaskStatus.PENDING

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.id,
            "description": self.description,
            "agent": self.agent,
            "tools": self.tools,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        """Create a Task from a dictionary."""
        return cls(
            id=data.get("id") or str(uuid.uuid4()),
            description=data["description"],
            agent=data.get("agent"),
            tools=list(data.get("tools") or []),
            status=TaskStatus(data.get("status", TaskStatus.PENDING.value)),
        )


class PlanStatus(Enum):
    """Lifecycle states for a plan."""
    AWAITING_APPROVAL = "awaiting_approval"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class TaskPlan:
    """A plan proposed for a user request.

    Attributes:
        id: Unique identifier for the plan
        user_request: The request that triggered planning
        summary: One-sentence description of the overall approach
        tasks: Ordered steps
        created_at: When the plan was created
        status: Current lifecycle state of the plan
    """
    id: str
    user_request: str
    tasks: list[Task]
    created_at: datetime
    summary: str = ""
    status: PlanStatus = PlanStatus.AWAITING_APPROVAL

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.id,
            "user_request": self.user_request,
            "summary": self.summary,
            "tasks": [t.to_dict() for t in self.tasks],
            "created_at": self.created_at.isoformat(),
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TaskPlan":
        """Create a TaskPlan from a dictionary."""
        created_at = data.get("created_at")
        return cls(
            id=data.get("id") or str(uuid.uuid4()),
            user_request=data.get("user_request", ""),
            summary=data.get("summary", ""),
            tasks=[Task.from_dict(t) for t in data.get("tasks", [])],
            created_at=datetime.fromisoformat(created_at) if created_at else datetime.now(),
            status=PlanStatus(data.get("status", PlanStatus.AWAITING_APPROVAL.value)),
        )

    def to_prompt(self) -> str:
        """Render the plan as context for the model once the user approved it."""
        lines = ["APPROVED PLAN (the user validated these steps, follow them in order):"]
        if self.summary:
            lines.append(self.summary)
        for i, task in enumerate(self.tasks, 1):
            owner = f" [{task.agent}]" if task.agent else ""
            lines.append(f"{i}. {task.description}{owner}")
        return "\n".join(lines)

    def progress_summary(self) -> str:
        """Return a brief progress summary."""
        completed = sum(1 for t in self.tasks if t.status == TaskStatus.COMPLETED)
        return f"{completed}/{len(self.tasks)} completed"


def create_task(
    description: str,
    agent: Optional[str] = None,
    tools: Optional[list[str]] = None,
) -> Task:
    """Factory function to create a new task with a unique ID."""
    return Task(
        id=str(uuid.uuid4()),
        description=description,
        agent=agent,
        tools=tools or [],
    )


def create_plan(user_request: str, tasks: list[Task], summary: str = "") -> TaskPlan:
    """Factory function to create a new plan with a unique ID."""
    return TaskPlan(
        id=str(uuid.uuid4()),
        user_request=user_request,
        tasks=tasks,
        created_at=datetime.now(),
        summary=summary,
    )
