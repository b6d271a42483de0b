"""Entity models shared by the store and the freshness engine."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class ResourceType(str, Enum):
    """How a resource is addressed."""

    file = "file"
    url = "url"
    api = "api"
    command = "command"


class SourceType(str, Enum):
    """Where a fact came from."""

    user = "user"
    documentation = "documentation"
    code = "code"
    inference = "inference"


class ReferenceType(str, Enum):
    """Entity kinds a skill can depend on."""

    skill = "skill"
    resource = "resource"
    fact = "fact"


# -- retrieval methods ---------------------------------------------------------


class NoRetrieval(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["none"] = "none"


class FileRetrieval(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["file"] = "file"


class UrlRetrieval(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["url"] = "url"
    url: str
    headers: dict[str, str] = {}


class CommandRetrieval(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["command"] = "command"
    command: str


class ApiRetrieval(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["api"] = "api"
    url: str
    headers: dict[str, str] = {}


RetrievalMethod = Annotated[
    Union[NoRetrieval, FileRetrieval, UrlRetrieval, CommandRetrieval, ApiRetrieval],
    Field(discriminator="type"),
]


# -- entities --------------------------------------------------------------------


class Resource(BaseModel):
    """A file, URL, API or command whose content the agent has cached."""

    model_config = ConfigDict(frozen=True)

    id: int
    uri: str
    type: ResourceType
    tags: frozenset[str] = frozenset()
    snapshot: str | None = None
    snapshot_hash: str | None = None
    retrieval_method: RetrievalMethod = NoRetrieval()
    last_verified_at: datetime | None = None
    created_at: datetime
    deleted_at: datetime | None = None

    @property
    def deleted(self) -> bool:
        return self.deleted_at is not None


class Fact(BaseModel):
    """A single atomic piece of knowledge."""

    model_config = ConfigDict(frozen=True)

    id: int
    content: str
    tags: frozenset[str] = frozenset()
    verified: bool = False
    source_type: SourceType | None = None
    retrieval_count: int = 0
    created_at: datetime
    deleted_at: datetime | None = None

    @property
    def deleted(self) -> bool:
        return self.deleted_at is not None


class SkillReference(BaseModel):
    """A typed link from a skill to the entity it depends on.

    ``recorded_fingerprint`` is the target's fingerprint as of the last
    time the skill was reviewed against it.
    """

    model_config = ConfigDict(frozen=True)

    type: ReferenceType
    target_id: int
    relation: str = "references"
    recorded_fingerprint: str | None = None


class Skill(BaseModel):
    """A reusable procedure, usually mirrored to a markdown file on disk."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    title: str
    content: str
    content_hash: str | None = None
    tags: frozenset[str] = frozenset()
    references: tuple[SkillReference, ...] = ()
    reviewed: bool = True
    file_path: str | None = None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    @property
    def deleted(self) -> bool:
        return self.deleted_at is not None


class Tag(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    description: str = ""
    usage_count: int = 0


Entity = Union[Resource, Fact, Skill]


class TaskStatus(str, Enum):
    success = "success"
    error = "error"
    skipped = "skipped"


class WorkerTaskState(BaseModel):
    """Persisted outcome of the last run of a background maintenance task."""

    task_name: str
    last_run_at: datetime | None = None
    last_status: TaskStatus | None = None
    last_message: str | None = None
    items_processed: int = 0
