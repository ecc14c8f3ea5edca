"""
Tests: entity repository (in-memory backend) and activity feed.

Run with:
    pytest migration_assist/tests/test_repository.py -v
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from migration_assist.config import Settings
from migration_assist.models.enums import ActivityType
from migration_assist.persistence.repository import (
    PROJECTS,
    REQUIREMENTS,
    InMemoryRepository,
    build_repository,
)
from migration_assist.services.activity_service import ActivityService


class TestInMemoryRepository:
    def test_create_assigns_sequential_ids_per_collection(self):
        repo = InMemoryRepository()
        assert repo.create(PROJECTS, {"name": "A"})["id"] == 1
        assert repo.create(PROJECTS, {"name": "B"})["id"] == 2
        assert repo.create(REQUIREMENTS, {"title": "R"})["id"] == 1

    def test_returned_documents_are_copies(self):
        repo = InMemoryRepository()
        doc = repo.create(PROJECTS, {"name": "A", "tags": ["x"]})
        doc["tags"].append("mutated")
        assert repo.get(PROJECTS, doc["id"])["tags"] == ["x"]

    def test_list_filters(self):
        repo = InMemoryRepository()
        repo.create(REQUIREMENTS, {"projectId": 1, "title": "a"})
        repo.create(REQUIREMENTS, {"projectId": 2, "title": "b"})
        repo.create(REQUIREMENTS, {"projectId": 1, "title": "c"})
        assert [r["title"] for r in repo.list(REQUIREMENTS, projectId=1)] == ["a", "c"]

    def test_update_keeps_id_and_bumps_timestamp(self):
        repo = InMemoryRepository()
        doc = repo.create(PROJECTS, {"name": "A"})
        updated = repo.update(PROJECTS, doc["id"], {"name": "B", "id": 99})
        assert updated["id"] == doc["id"]
        assert updated["name"] == "B"
        assert updated["updatedAt"] >= doc["updatedAt"]

    def test_missing_documents(self):
        repo = InMemoryRepository()
        assert repo.get(PROJECTS, 1) is None
        assert repo.update(PROJECTS, 1, {"name": "x"}) is None
        assert repo.delete(PROJECTS, 1) is False

    def test_delete_where(self):
        repo = InMemoryRepository()
        for project_id in (1, 1, 2):
            repo.create(REQUIREMENTS, {"projectId": project_id})
        assert repo.delete_where(REQUIREMENTS, projectId=1) == 2
        assert len(repo.list(REQUIREMENTS)) == 1

    def test_named_sequences_are_independent(self):
        repo = InMemoryRepository()
        assert [repo.next_sequence("requirement-code-1") for _ in range(3)] == [1, 2, 3]
        assert repo.next_sequence("requirement-code-2") == 1
        assert repo.create(PROJECTS, {"name": "A"})["id"] == 1

    def test_concurrent_sequences_never_repeat(self):
        repo = InMemoryRepository()
        with ThreadPoolExecutor(max_workers=8) as pool:
            values = list(pool.map(lambda _: repo.next_sequence("codes"), range(400)))
        assert sorted(values) == list(range(1, 401))

    def test_list_during_concurrent_creates(self):
        repo = InMemoryRepository()

        def work(i):
            if i % 2:
                repo.create(REQUIREMENTS, {"projectId": 1, "title": str(i)})
            return len(repo.list(REQUIREMENTS, projectId=1))

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(work, range(400)))
        assert len(repo.list(REQUIREMENTS)) == 200


class TestBuildRepository:
    def test_memory_backend(self):
        repo = build_repository(Settings(_env_file=None, storage_backend="memory"))
        assert isinstance(repo, InMemoryRepository)

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown storage backend"):
            build_repository(Settings(_env_file=None, storage_backend="sqlite"))


class TestActivityService:
    def test_feed_newest_first(self):
        activities = ActivityService(InMemoryRepository())
        activities.record(1, ActivityType.CREATED_PROJECT, "Created project")
        activities.record(1, ActivityType.GENERATED_REQUIREMENTS, "Generated 3 requirements", 5)
        activities.record(2, ActivityType.CREATED_PROJECT, "Other project")

        feed = activities.get_feed(1)
        assert [a["type"] for a in feed] == ["generated_requirements", "created_project"]
        assert feed[0]["relatedEntityId"] == 5
        assert len(activities.get_feed(1, limit=1)) == 1

    def test_recent_spans_projects(self):
        activities = ActivityService(InMemoryRepository())
        for project_id in (1, 2, 1):
            activities.record(project_id, ActivityType.CREATED_REQUIREMENT, f"In {project_id}")

        recent = activities.get_recent(limit=2)
        assert [a["id"] for a in recent] == [3, 2]
        assert [a["projectId"] for a in recent] == [1, 2]


class FakeCursor(list):
    def sort(self, key, direction):
        return FakeCursor(sorted(self, key=lambda d: d[key], reverse=direction < 0))


class FakeCollection:
    """The handful of pymongo collection calls MongoRepository makes."""

    def __init__(self):
        self.docs = {}

    @staticmethod
    def _matches(doc, query):
        return all(doc.get(k) == v for k, v in query.items())

    def find_one_and_update(self, query, update, upsert=False, return_document=None):
        doc = self.docs.get(query["_id"])
        if doc is None:
            if not upsert:
                return None
            doc = self.docs[query["_id"]] = {"_id": query["_id"]}
        for key, amount in update.get("$inc", {}).items():
            doc[key] = doc.get(key, 0) + amount
        doc.update(update.get("$set", {}))
        return dict(doc)

    def insert_one(self, doc):
        self.docs[doc["_id"]] = dict(doc)

    def find_one(self, query):
        doc = self.docs.get(query["_id"])
        return dict(doc) if doc else None

    def find(self, query):
        return FakeCursor(dict(d) for d in self.docs.values() if self._matches(d, query))

    def delete_one(self, query):
        removed = self.docs.pop(query["_id"], None)
        return type("DeleteResult", (), {"deleted_count": 1 if removed else 0})()


class FakeDatabase(dict):
    def __missing__(self, name):
        self[name] = FakeCollection()
        return self[name]


class TestMongoRepository:
    def test_crud_round_trip(self):
        from migration_assist.persistence.repository import MongoRepository

        repo = MongoRepository(FakeDatabase())
        first = repo.create(PROJECTS, {"name": "A"})
        second = repo.create(PROJECTS, {"name": "B"})
        assert (first["id"], second["id"]) == (1, 2)
        assert "_id" not in first

        assert repo.update(PROJECTS, 1, {"name": "A2"})["name"] == "A2"
        assert [p["name"] for p in repo.list(PROJECTS)] == ["A2", "B"]
        assert repo.list(PROJECTS, id=2)[0]["name"] == "B"
        assert repo.delete(PROJECTS, 1) is True
        assert repo.get(PROJECTS, 1) is None

    def test_next_sequence_uses_counters(self):
        from migration_assist.persistence.repository import MongoRepository

        database = FakeDatabase()
        repo = MongoRepository(database)
        assert repo.next_sequence("requirement-code-1") == 1
        assert repo.next_sequence("requirement-code-1") == 2
        assert repo.create(PROJECTS, {"name": "A"})["id"] == 1
        assert database["counters"].docs["requirement-code-1"]["seq"] == 2

    def test_build_repository_uses_mongo_client(self, monkeypatch):
        from migration_assist.persistence import mongo_client
        from migration_assist.persistence.repository import MongoRepository

        opened = []

        class FakePyMongo(dict):
            def __init__(self, uri):
                opened.append(uri)

            def __missing__(self, name):
                return FakeDatabase()

            def close(self):
                opened.append("closed")

        monkeypatch.setattr(mongo_client, "PyMongoClient", FakePyMongo)
        settings = Settings(_env_file=None, storage_backend="mongo", mongodb_uri="mongodb://db:27017")

        repo = build_repository(settings)
        assert isinstance(repo, MongoRepository)
        repo.close()
        assert opened == ["mongodb://db:27017", "closed"]
