"""Plan file loading.

Plans are YAML (or JSON, which YAML parses too)::

    name: auth refactor
    tasks:
      - id: models
        title: Add user model
        description: Create the User model and migration.
        touches: [app/models.py]
        complexity: S
      - id: api
        title: Login endpoint
        requires: [models]
        prompt: Implement POST /login using the new User model.
        estimated_size: 3

Task sizes come from ``estimated_size`` or a ``complexity`` label.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from stackweave.core.errors import ValidationError
from stackweave.core.types import Task
from stackweave.core.validation import validate_task_id

COMPLEXITY_COST: dict[str, float] = {"XS": 1.0, "S": 2.0, "M": 4.0, "L": 8.0, "XL": 16.0}


class TaskModel(BaseModel):
    """One task entry in a plan file."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    id: str
    title: str = ""
    description: str = ""
    requires: list[str] = Field(default_factory=list)
    prompt: str = Field(default="", alias="agent_prompt")
    touches: list[str] = Field(default_factory=list)
    produces: list[str] = Field(default_factory=list)
    estimated_size: float | None = Field(default=None, gt=0)
    complexity: Literal["XS", "S", "M", "L", "XL"] | None = None

    @field_validator("id")
    @classmethod
    def check_id(cls, v: str) -> str:
        validate_task_id(v)
        return v

    @field_validator("complexity", mode="before")
    @classmethod
    def upper_complexity(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    def to_task(self) -> Task:
        size = self.estimated_size
        if size is None:
            size = COMPLEXITY_COST[self.complexity] if self.complexity else 1.0
        return Task(
            id=self.id,
            title=self.title,
            description=self.description,
            requires=tuple(self.requires),
            agent_prompt=self.prompt,
            touches=tuple(self.touches),
            produces=tuple(self.produces),
            estimated_size=size,
        )


class PlanFileModel(BaseModel):
    """Top-level plan file."""

    model_config = ConfigDict(extra="forbid")

    name: str = ""
    description: str = ""
    tasks: list[TaskModel]

    @model_validator(mode="after")
    def check_unique_ids(self) -> PlanFileModel:
        seen: set[str] = set()
        duplicates = []
        for task in self.tasks:
            if task.id in seen:
                duplicates.append(task.id)
            seen.add(task.id)
        if duplicates:
            raise ValueError(f"duplicate task ids: {', '.join(duplicates)}")
        return self

    def to_tasks(self) -> list[Task]:
        return [t.to_task() for t in self.tasks]


def parse_plan(data: Any, source: str = "<plan>") -> list[Task]:
    """Validate already-parsed plan data.

    Raises:
        ValidationError: The data does not describe a valid plan.
    """
    if isinstance(data, list):
        data = {"tasks": data}
    try:
        model = PlanFileModel.model_validate(data)
    except PydanticValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc']) or 'plan'}: {err['msg']}" for err in e.errors()
        ]
        raise ValidationError(f"Invalid plan {source}: {'; '.join(errors)}", errors) from e
    return model.to_tasks()


def load_plan(path: str | Path) -> list[Task]:
    """Read tasks from a YAML or JSON plan file.

    Raises:
        ValidationError: The file is unreadable or invalid.
    """
    path = Path(path)
    try:
        content = path.read_text()
    except OSError as e:
        raise ValidationError(f"Cannot read plan {path}: {e}") from e

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValidationError(f"Cannot parse plan {path}: {e}") from e
    return parse_plan(data, str(path))
