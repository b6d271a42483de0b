"""Entity models and the storage protocol."""

from factsets.interfaces.entities import (
    ApiRetrieval,
    CommandRetrieval,
    Entity,
    Fact,
    FileRetrieval,
    NoRetrieval,
    ReferenceType,
    Resource,
    ResourceType,
    RetrievalMethod,
    Skill,
    SkillReference,
    SourceType,
    Tag,
    TaskStatus,
    UrlRetrieval,
    WorkerTaskState,
)
from factsets.interfaces.store import UNSET, EntityReader, FreshnessWriter, KnowledgeStore

__all__ = [
    "ApiRetrieval",
    "CommandRetrieval",
    "Entity",
    "EntityReader",
    "Fact",
    "FileRetrieval",
    "FreshnessWriter",
    "KnowledgeStore",
    "NoRetrieval",
    "ReferenceType",
    "Resource",
    "ResourceType",
    "RetrievalMethod",
    "Skill",
    "SkillReference",
    "SourceType",
    "Tag",
    "TaskStatus",
    "UNSET",
    "UrlRetrieval",
    "WorkerTaskState",
]
