"""
Resource models — typed units of desired host state.

A resource declares WHAT should be true of the host, never HOW to
get there. Behaviour (probing and converging) lives in the resource
handlers; these models are plain validated data, loaded from the
manifest and immutable for the rest of the run.

Every resource has a stable ``id``, a ``kind`` discriminator, and a
``depends_on`` list of other ids that must reach a successful terminal
state before it is attempted.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from hostconverge.core.domain.version_constraint import parse_constraint


class ResourceKind(StrEnum):
    """The five resource kinds the engine knows how to converge."""

    PACKAGE = "Package"
    FILE = "File"
    SERVICE = "Service"
    COMPOSE_STACK = "ComposeStack"
    COMMAND = "Command"


class ResourceBase(BaseModel, ABC):
    """Fields shared by every resource kind."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1)
    depends_on: list[str] = Field(default_factory=list)
    description: str = ""

    @field_validator("depends_on")
    @classmethod
    def _dedupe_depends_on(cls, value: list[str]) -> list[str]:
        # Keep declaration order; it drives plan ordering.
        return list(dict.fromkeys(value))

    @property
    @abstractmethod
    def identity(self) -> str:
        """The external thing this resource mutates.

        Two resources with the same identity never run concurrently.
        """

    @property
    def collaborator(self) -> str | None:
        """Name of the adapter this resource needs, if any."""
        return None


class PackageResource(ResourceBase):
    """A system or language-level package at a version satisfying ``version``."""

    kind: Literal["Package"] = "Package"
    name: str = Field(min_length=1)
    version: str | None = None
    manager: str = "apt"

    @field_validator("version")
    @classmethod
    def _valid_constraint(cls, value: str | None) -> str | None:
        parse_constraint(value)
        return value

    @property
    def identity(self) -> str:
        return f"package:{self.manager}:{self.name}"

    @property
    def collaborator(self) -> str:
        return self.manager


class FileResource(ResourceBase):
    """A file with exact content and, optionally, mode and ownership.

    ``mode`` is an octal string (``"0644"``). When it is omitted, a new
    file is created ``0644`` and an existing file keeps its mode.
    ``backup`` copies a file that is about to be replaced to
    ``<path>.bak`` first.
    """

    kind: Literal["File"] = "File"
    path: str = Field(min_length=1)
    content: str = ""
    mode: str | None = None
    owner: str | None = None
    group: str | None = None
    backup: bool = False

    @field_validator("mode")
    @classmethod
    def _octal_mode(cls, value: str | None) -> str | None:
        if value is None:
            return None
        try:
            parsed = int(value, 8)
        except ValueError as e:
            raise ValueError(f"mode must be an octal string like '0644', got {value!r}") from e
        if not 0 <= parsed <= 0o7777:
            raise ValueError(f"mode out of range: {value!r}")
        return value

    @property
    def mode_bits(self) -> int | None:
        return int(self.mode, 8) if self.mode is not None else None

    @property
    def identity(self) -> str:
        return f"file:{self.path}"


class ServiceResource(ResourceBase):
    """A supervised unit in the declared running / enabled-at-boot state.

    ``script`` and ``cwd`` only apply to process managers that start
    programs by path (pm2); systemd units are started by name.
    """

    kind: Literal["Service"] = "Service"
    unit: str = Field(min_length=1)
    running: bool = True
    enabled: bool = True
    supervisor: str = "systemd"
    script: str | None = None
    cwd: str | None = None

    @model_validator(mode="after")
    def _supervisor_options(self) -> ServiceResource:
        if self.supervisor == "systemd" and (self.script or self.cwd):
            raise ValueError("'script' and 'cwd' are not supported for systemd units")
        if self.supervisor == "pm2" and self.enabled and not self.running:
            raise ValueError("pm2 only restores running processes at boot; "
                             "enabled: true requires running: true")
        return self

    @property
    def identity(self) -> str:
        return f"service:{self.supervisor}:{self.unit}"

    @property
    def collaborator(self) -> str:
        return self.supervisor


class ComposeStackResource(ResourceBase):
    """A docker compose project with its containers up.

    ``services`` lists the compose services that must be running. When
    empty, every container of the project must be running and there
    must be at least one.
    """

    kind: Literal["ComposeStack"] = "ComposeStack"
    project_dir: str = Field(min_length=1)
    env_file: str | None = None
    services: list[str] = Field(default_factory=list)
    runtime: str = "compose"

    @property
    def identity(self) -> str:
        return f"compose:{self.project_dir}"

    @property
    def collaborator(self) -> str:
        return self.runtime


class CommandResource(ResourceBase):
    """An arbitrary command, guarded by an idempotency predicate.

    The command is considered converged when ``creates`` names a path
    that exists, or when ``unless`` is a command that exits 0. With
    neither predicate the command is NEVER converged and runs on every
    apply; ``validate`` reports such commands as hazards.

    ``best_effort`` records a non-zero exit as applied, with the exit
    status in the outcome detail, instead of failing the resource.
    """

    kind: Literal["Command"] = "Command"
    argv: list[str] = Field(min_length=1)
    env: dict[str, str] = Field(default_factory=dict)
    cwd: str | None = None
    creates: str | None = None
    unless: list[str] | None = None
    best_effort: bool = False
    runner: str = "shell"

    @field_validator("unless")
    @classmethod
    def _non_empty_unless(cls, value: list[str] | None) -> list[str] | None:
        if value is not None and not value:
            raise ValueError("'unless' must be a non-empty argv list")
        return value

    @property
    def has_predicate(self) -> bool:
        return self.creates is not None or self.unless is not None

    @property
    def identity(self) -> str:
        return f"command:{self.id}"

    @property
    def collaborator(self) -> str:
        return self.runner


Resource = Annotated[
    PackageResource
    | FileResource
    | ServiceResource
    | ComposeStackResource
    | CommandResource,
    Field(discriminator="kind"),
]


class ResourceGraph(BaseModel):
    """The declared resources of one run, in declaration order.

    Edges are the ``depends_on`` lists of the resources themselves.
    Referential integrity and acyclicity are checked by the planner,
    not here, so that a graph can be inspected before it is planned.
    """

    model_config = ConfigDict(frozen=True)

    name: str = ""
    resources: list[Resource] = Field(default_factory=list)

    @property
    def ids(self) -> list[str]:
        return [r.id for r in self.resources]

    def get(self, resource_id: str) -> Resource | None:
        for resource in self.resources:
            if resource.id == resource_id:
                return resource
        return None

    def commands_without_predicate(self) -> list[CommandResource]:
        """Commands that re-run on every apply."""
        return [
            r for r in self.resources
            if isinstance(r, CommandResource) and not r.has_predicate
        ]
