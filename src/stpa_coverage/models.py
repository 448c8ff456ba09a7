"""Pydantic models for validating snapshot documents."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .snapshot import (
    AnalysisSnapshot,
    ControlAction,
    ControlPath,
    Controller,
    ControllerType,
    Finding,
    Role,
)


class RoleModel(BaseModel):
    """Validated team role."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    assignee_id: str | None = Field(default=None)


class ControllerModel(BaseModel):
    """Validated controller input."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    name: str = Field(default="")
    ctrl_type: ControllerType = Field(default=ControllerType.SOFTWARE)
    roles: list[RoleModel] = Field(default_factory=list)
    layout_x: float | None = Field(default=None)

    @field_validator("ctrl_type", mode="before")
    @classmethod
    def _parse_type(cls, value: Any) -> ControllerType:
        # Stored documents use either "T" or "Team".
        return ControllerType.parse(value)


class ControlActionModel(BaseModel):
    """Validated control action input."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    controller_id: str = Field(min_length=1)
    verb: str = Field(default="")
    object: str = Field(default="")
    in_scope: bool = Field(default=True)


class ControlPathModel(BaseModel):
    """Validated control path input."""

    model_config = ConfigDict(extra="ignore")

    source_controller_id: str = Field(min_length=1)
    target_id: str = Field(min_length=1)


class FindingModel(BaseModel):
    """Validated finding input."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    control_action_id: str = Field(min_length=1)
    analysis_type: str = Field(default="")


class SnapshotModel(BaseModel):
    """Validated snapshot document."""

    model_config = ConfigDict(extra="ignore")

    controllers: list[ControllerModel] = Field(default_factory=list)
    control_actions: list[ControlActionModel] = Field(default_factory=list)
    control_paths: list[ControlPathModel] = Field(default_factory=list)
    findings: list[FindingModel] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_references(self) -> "SnapshotModel":
        ids = [controller.id for controller in self.controllers]
        if len(ids) != len(set(ids)):
            raise ValueError("controller ids must be unique")
        action_ids = [action.id for action in self.control_actions]
        if len(action_ids) != len(set(action_ids)):
            raise ValueError("control action ids must be unique")
        known = set(ids)
        for action in self.control_actions:
            if action.controller_id not in known:
                raise ValueError(f"control action {action.id} references unknown controller {action.controller_id}")
        return self

    def to_snapshot(self) -> AnalysisSnapshot:
        return AnalysisSnapshot.build(
            controllers=(
                Controller(
                    id=item.id,
                    name=item.name or item.id,
                    ctrl_type=item.ctrl_type,
                    roles=tuple(Role(name=role.name, assignee_id=role.assignee_id) for role in item.roles),
                    layout_x=item.layout_x,
                )
                for item in self.controllers
            ),
            control_actions=(
                ControlAction(
                    id=item.id,
                    controller_id=item.controller_id,
                    verb=item.verb,
                    object=item.object,
                    in_scope=item.in_scope,
                )
                for item in self.control_actions
            ),
            control_paths=(
                ControlPath(source_controller_id=item.source_controller_id, target_id=item.target_id)
                for item in self.control_paths
            ),
            findings=(
                Finding(id=item.id, control_action_id=item.control_action_id, analysis_type=item.analysis_type)
                for item in self.findings
            ),
        )


def load_snapshot(path: str | Path) -> AnalysisSnapshot:
    """Read and validate a JSON snapshot document."""

    return SnapshotModel.model_validate_json(Path(path).read_text()).to_snapshot()
