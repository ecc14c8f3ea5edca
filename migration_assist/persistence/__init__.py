"""Persistence — entity repositories and the MongoDB connection."""

from migration_assist.persistence.repository import (
    BaseRepository,
    InMemoryRepository,
    MongoRepository,
    build_repository,
)

__all__ = ["BaseRepository", "InMemoryRepository", "MongoRepository", "build_repository"]
