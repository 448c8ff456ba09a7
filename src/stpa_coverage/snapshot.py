"""Read-only snapshot of the analysis data the engine works on.

Controllers, control actions, control paths and existing findings are owned by
the external data store. The engine only ever receives an immutable copy of
them, so every computation below is a pure function of the snapshot content.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Iterable

import hashlib
import json


class ControllerType(str, Enum):
    """Controller categories used in control-structure diagrams."""

    HUMAN = "H"
    SOFTWARE = "S"
    TEAM = "T"
    ORGANIZATION = "O"
    HYBRID = "X"

    @classmethod
    def parse(cls, value: "str | ControllerType") -> "ControllerType":
        # Accept both the single-letter code and the member name.
        if isinstance(value, ControllerType):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Unknown controller type {value!r}")
        text = value.strip()
        for member in cls:
            if text.upper() == member.value or text.upper() == member.name:
                return member
        raise ValueError(f"Unknown controller type {value!r}")


@dataclass(frozen=True)
class Role:
    """Named role inside a Team controller, optionally held by another controller."""

    name: str
    assignee_id: str | None = None


@dataclass(frozen=True)
class Controller:
    """Entity able to issue control actions.

    Attributes:
        id: Stable identifier.
        name: Display name.
        ctrl_type: Controller category.
        roles: Declared roles; only meaningful for Team controllers.
        layout_x: Optional diagram x-position, used to order controllers
            left to right within a hierarchy level.
    """

    id: str
    name: str
    ctrl_type: ControllerType
    roles: tuple[Role, ...] = ()
    layout_x: float | None = None

    @property
    def is_team(self) -> bool:
        return self.ctrl_type is ControllerType.TEAM

    @property
    def member_ids(self) -> frozenset[str]:
        """Controllers holding one of this team's roles."""

        return frozenset(role.assignee_id for role in self.roles if role.assignee_id)


@dataclass(frozen=True)
class ControlAction:
    """A command a controller can issue to a controlled process."""

    id: str
    controller_id: str
    verb: str
    object: str = ""
    in_scope: bool = True

    @property
    def label(self) -> str:
        return f"{self.verb} {self.object}".strip()


@dataclass(frozen=True)
class ControlPath:
    """Directed control edge from a controller to a controlled element."""

    source_controller_id: str
    target_id: str


@dataclass(frozen=True)
class Finding:
    """Previously recorded unsafe-control-action finding."""

    id: str
    control_action_id: str
    analysis_type: str = ""


@dataclass(frozen=True)
class AnalysisSnapshot:
    """Immutable bundle of everything the engine reads from the data store."""

    controllers: tuple[Controller, ...] = ()
    control_actions: tuple[ControlAction, ...] = ()
    control_paths: tuple[ControlPath, ...] = ()
    findings: tuple[Finding, ...] = ()
    _controller_index: dict[str, Controller] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        # Frozen dataclass: populate the lookup table through object.__setattr__.
        object.__setattr__(self, "_controller_index", {c.id: c for c in self.controllers})

    @classmethod
    def build(
        cls,
        controllers: Iterable[Controller] = (),
        control_actions: Iterable[ControlAction] = (),
        control_paths: Iterable[ControlPath] = (),
        findings: Iterable[Finding] = (),
    ) -> "AnalysisSnapshot":
        return cls(
            controllers=tuple(controllers),
            control_actions=tuple(control_actions),
            control_paths=tuple(control_paths),
            findings=tuple(findings),
        )

    def controller(self, controller_id: str) -> Controller | None:
        return self._controller_index.get(controller_id)

    def in_scope_actions(self) -> list[ControlAction]:
        """In-scope actions owned by known controllers, sorted by (controller, action) id."""

        actions = [
            action
            for action in self.control_actions
            if action.in_scope and action.controller_id in self._controller_index
        ]
        return sorted(actions, key=lambda action: (action.controller_id, action.id))

    def actions_by_controller(self) -> dict[str, list[ControlAction]]:
        grouped: dict[str, list[ControlAction]] = {}
        for action in self.in_scope_actions():
            grouped.setdefault(action.controller_id, []).append(action)
        return grouped

    def in_scope_controller_ids(self) -> list[str]:
        return sorted(self.actions_by_controller())

    def flagged_action_ids(self) -> frozenset[str]:
        return frozenset(finding.control_action_id for finding in self.findings)

    def content_hash(self) -> str:
        """Return a sha1 digest of the canonical snapshot content."""

        payload = {
            "controllers": sorted((asdict(c) for c in self.controllers), key=lambda item: item["id"]),
            "control_actions": sorted((asdict(a) for a in self.control_actions), key=lambda item: item["id"]),
            "control_paths": sorted(
                [p.source_controller_id, p.target_id] for p in self.control_paths
            ),
            "findings": sorted((asdict(f) for f in self.findings), key=lambda item: item["id"]),
        }
        encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
        return hashlib.sha1(encoded.encode("utf-8")).hexdigest()
