"""
Tests for the per-table import pipeline.

Each test runs TableImporter directly against an in-memory database, with a
deterministic suffix source (s1, s2, ...) so transformed values are predictable.
"""
import logging
import pytest
from datetime import datetime

from sqlalchemy import func, select

from chatvault.importer import ConflictStrategy, ImportPlan, ImportResult, TableName
from chatvault.importer.plans import get_plan
from chatvault.importer.table_importer import BATCH_SIZE, TableImporter, to_datetime
from chatvault.models import (
    Agent,
    AgentToSession,
    AiProvider,
    ChatSession,
    Message,
    MessageTranslate,
    SessionGroup,
    Topic,
    UserInstalledPlugin,
    UserSetting,
)


async def seed(session_maker, *objects):
    """Commit rows through a separate session so the test session starts clean."""
    async with session_maker() as session:
        session.add_all(objects)
        await session.commit()


async def count(session, model, *criteria):
    result = await session.execute(select(func.count()).select_from(model).where(*criteria))
    return result.scalar_one()


class TestToDatetime:

    def test_iso_string_with_offset(self):
        assert to_datetime("2024-03-01T12:00:00+02:00") == datetime(2024, 3, 1, 10, 0)

    def test_epoch_milliseconds(self):
        assert to_datetime(1709287200000) == datetime(2024, 3, 1, 10, 0)

    def test_naive_datetime_passes_through(self):
        value = datetime(2024, 1, 1, 8, 30)
        assert to_datetime(value) == value


class TestExistingRows:
    """Existing-row detection and mapping seed."""

    async def test_empty_rows(self, db_session, make_importer):
        result = await make_importer(db_session).import_table(get_plan(TableName.AGENTS), [])
        assert result == ImportResult()

    async def test_existing_client_id_is_skipped(self, db_session, session_maker, make_importer, id_map, owner_id):
        existing = Agent(client_id="c-agt-1", slug="helper", user_id=owner_id)
        await seed(session_maker, existing)

        result = await make_importer(db_session).import_table(
            get_plan(TableName.AGENTS),
            [{"id": "agt-1", "client_id": "c-agt-1", "slug": "helper"}],
        )

        assert result.skips == 1
        assert result.added == 0
        assert await count(db_session, Agent) == 1
        assert id_map.resolve(TableName.AGENTS, "c-agt-1") == existing.id
        assert id_map.resolve(TableName.AGENTS, "agt-1") == existing.id
        assert id_map.resolve(TableName.AGENTS, existing.id) == existing.id

    async def test_row_without_client_id_matches_by_source_id(
        self, db_session, session_maker, make_importer, id_map, owner_id
    ):
        existing = Agent(client_id="agt-1", slug="helper-s1", user_id=owner_id)
        await seed(session_maker, existing)

        result = await make_importer(db_session).import_table(
            get_plan(TableName.AGENTS), [{"id": "agt-1", "slug": "helper"}]
        )

        assert (result.added, result.skips, result.errors) == (0, 1, 0)
        assert await count(db_session, Agent) == 1
        assert id_map.resolve(TableName.AGENTS, "agt-1") == existing.id

    async def test_client_id_of_other_owner_is_not_matched(
        self, db_session, session_maker, make_importer, other_owner_id
    ):
        await seed(session_maker, Agent(client_id="c-agt-1", slug="helper", user_id=other_owner_id))

        result = await make_importer(db_session).import_table(
            get_plan(TableName.AGENTS),
            [{"id": "agt-1", "client_id": "c-agt-1", "slug": "helper"}],
        )

        assert result.added == 1
        assert result.skips == 0

    async def test_preserved_id_is_skipped_across_owners(
        self, db_session, session_maker, make_importer, other_owner_id
    ):
        await seed(session_maker, AiProvider(id="openai", name="OpenAI", user_id=other_owner_id))

        result = await make_importer(db_session).import_table(
            get_plan(TableName.AI_PROVIDERS),
            [{"id": "openai", "name": "OpenAI (mine)"}],
        )

        assert result.skips == 1
        assert result.added == 0
        provider = await db_session.get(AiProvider, "openai")
        assert provider.user_id == other_owner_id


class TestPreparation:
    """Row preparation: identity, owner, timestamps, relations, self references."""

    async def test_preserved_id_is_kept(self, db_session, make_importer, id_map, owner_id):
        result = await make_importer(db_session).import_table(
            get_plan(TableName.AI_PROVIDERS),
            [{"id": "anthropic", "name": "Anthropic", "enabled": True}],
        )

        assert result.added == 1
        provider = await db_session.get(AiProvider, "anthropic")
        assert provider.user_id == owner_id
        assert id_map.resolve(TableName.AI_PROVIDERS, "anthropic") == "anthropic"

    async def test_fresh_id_assigned_and_mapped(self, db_session, make_importer, id_map, owner_id):
        await make_importer(db_session).import_table(
            get_plan(TableName.TOPICS),
            [{"id": "top-1", "title": "Greetings", "user_id": "someone-else"}],
        )

        topic = (await db_session.execute(select(Topic))).scalar_one()
        assert topic.id != "top-1"
        # client id falls back to the source id
        assert topic.client_id == "top-1"
        assert topic.user_id == owner_id
        assert id_map.resolve(TableName.TOPICS, "top-1") == topic.id

    async def test_relation_is_remapped(self, db_session, make_importer, id_map):
        id_map.register(TableName.SESSIONS, "ses-1", "db-ses-1")

        await make_importer(db_session).import_table(
            get_plan(TableName.TOPICS),
            [{"id": "top-1", "client_id": "c-top-1", "session_id": "ses-1"}],
        )

        topic = (await db_session.execute(select(Topic))).scalar_one()
        assert topic.session_id == "db-ses-1"

    async def test_unresolved_relation_is_nulled(self, db_session, make_importer, caplog):
        caplog.set_level(logging.WARNING, logger="chatvault")

        result = await make_importer(db_session).import_table(
            get_plan(TableName.TOPICS),
            [{"id": "top-1", "client_id": "c-top-1", "session_id": "missing"}],
        )

        assert result.added == 1
        assert result.errors == 0
        topic = (await db_session.execute(select(Topic))).scalar_one()
        assert topic.session_id is None
        assert "Could not find mapped ID for session_id=missing in table sessions" in caplog.text

    async def test_self_references_are_nulled(self, db_session, make_importer, id_map):
        """A reply keeps its content but loses its link to the parent message."""
        await make_importer(db_session).import_table(
            get_plan(TableName.MESSAGES),
            [
                {"id": "msg-1", "client_id": "c-msg-1", "role": "user", "content": "Hello"},
                {
                    "id": "msg-2",
                    "client_id": "c-msg-2",
                    "role": "assistant",
                    "content": "Hi!",
                    "parent_id": "msg-1",
                    "quota_id": "msg-1",
                },
            ],
        )

        messages = (await db_session.execute(select(Message))).scalars().all()
        assert len(messages) == 2
        assert all(m.parent_id is None and m.quota_id is None for m in messages)
        assert id_map.resolve(TableName.MESSAGES, "msg-2") is not None

    async def test_timestamps_are_normalized(self, db_session, make_importer):
        await make_importer(db_session).import_table(
            get_plan(TableName.SESSIONS),
            [{
                "id": "ses-1",
                "client_id": "c-ses-1",
                "slug": "inbox",
                "created_at": "2024-03-01T10:00:00Z",
                "updated_at": 1709287200000,
                "accessed_at": "",
            }],
        )

        session = (await db_session.execute(select(ChatSession))).scalar_one()
        assert session.created_at == datetime(2024, 3, 1, 10, 0)
        assert session.updated_at == datetime(2024, 3, 1, 10, 0)
        # empty value falls back to the column default
        assert session.accessed_at is not None

    async def test_unknown_columns_are_dropped(self, db_session, make_importer):
        result = await make_importer(db_session).import_table(
            get_plan(TableName.SESSION_GROUPS),
            [{"id": "grp-1", "client_id": "c-grp-1", "name": "Work", "color": "blue"}],
        )
        assert result.added == 1


class TestConflictStrategies:
    """Uniqueness-conflict resolution per strategy."""

    async def test_slug_is_suffixed_proactively(self, db_session, session_maker, make_importer, owner_id):
        """Importing a colliding slug yields the transformed value, not the original."""
        await seed(session_maker, Agent(client_id="c-existing", slug="helper", user_id=owner_id))

        result = await make_importer(db_session).import_table(
            get_plan(TableName.AGENTS),
            [{"id": "agt-1", "client_id": "c-agt-1", "slug": "helper"}],
        )

        assert result.added == 1
        agent = (await db_session.execute(select(Agent).where(Agent.client_id == "c-agt-1"))).scalar_one()
        assert agent.slug == "helper-s1"

    async def test_modify_applies_transform_on_collision(
        self, db_session, session_maker, make_importer, conflict_log, owner_id
    ):
        await seed(session_maker, Agent(client_id="c-existing", slug="helper-s1", user_id=owner_id))

        result = await make_importer(db_session).import_table(
            get_plan(TableName.AGENTS),
            [{"id": "agt-1", "client_id": "c-agt-1", "slug": "helper"}],
        )

        assert result.added == 1
        assert result.conflict_fields == {"slug"}
        agent = (await db_session.execute(select(Agent).where(Agent.client_id == "c-agt-1"))).scalar_one()
        assert agent.slug == "helper-s1-s2"
        assert [(r.table, r.field, r.value) for r in conflict_log.records] == [
            (TableName.AGENTS, "slug", "helper-s1"),
        ]

    async def test_modify_without_transform_fails_the_batch(
        self, db_session, session_maker, make_importer, conflict_log, owner_id
    ):
        await seed(session_maker, Agent(client_id="c-existing", slug="helper", user_id=owner_id))
        plan = ImportPlan(table=TableName.AGENTS, unique_fields=("slug",))

        result = await make_importer(db_session).import_table(
            plan, [{"id": "agt-1", "client_id": "c-agt-1", "slug": "helper"}]
        )

        assert result.added == 0
        assert result.errors == 1
        assert "slug" in result.conflict_fields
        assert len(conflict_log) == 2
        assert await count(db_session, Agent) == 1

    async def test_skip_strategy(self, db_session, session_maker, make_importer, id_map, conflict_log, owner_id):
        await seed(
            session_maker,
            Message(id="db-msg", client_id="c-msg", role="user", user_id=owner_id),
            MessageTranslate(id="db-msg", content="Bonjour", user_id=owner_id),
        )
        id_map.register(TableName.MESSAGES, "msg-1", "db-msg")

        result = await make_importer(db_session).import_table(
            get_plan(TableName.MESSAGE_TRANSLATES),
            [{"id": "msg-1", "content": "Hola", "to_language": "es"}],
        )

        assert result.skips == 1
        assert result.added == 0
        assert result.updated == 0
        translate = await db_session.get(MessageTranslate, "db-msg")
        assert translate.content == "Bonjour"
        assert conflict_log.for_table(TableName.MESSAGE_TRANSLATES)[0].value == "db-msg"

    async def test_merge_settings_singleton(self, db_session, session_maker, make_importer, owner_id):
        await seed(session_maker, UserSetting(id=owner_id, general={"fontSize": 12}, tts={"voice": "a"}))

        result = await make_importer(db_session).import_table(
            get_plan(TableName.USER_SETTINGS),
            [{"id": "exporting-user", "general": {"fontSize": 16}, "tts": None}],
        )

        assert result.updated == 1
        assert result.added == 0
        assert await count(db_session, UserSetting) == 1
        setting = (await db_session.execute(select(UserSetting))).scalar_one()
        assert setting.id == owner_id
        assert setting.general == {"fontSize": 16}
        assert setting.tts is None

    async def test_settings_inserted_for_new_owner(self, db_session, make_importer, owner_id):
        result = await make_importer(db_session).import_table(
            get_plan(TableName.USER_SETTINGS),
            [{"id": "exporting-user", "general": {"fontSize": 16}}],
        )

        assert result.added == 1
        setting = await db_session.get(UserSetting, owner_id)
        assert setting.general == {"fontSize": 16}

    async def test_merge_composite_table(self, db_session, session_maker, make_importer, owner_id, other_owner_id):
        await seed(
            session_maker,
            UserInstalledPlugin(user_id=owner_id, identifier="search", settings={"engine": "a"}),
            UserInstalledPlugin(user_id=other_owner_id, identifier="search", settings={"engine": "a"}),
        )

        result = await make_importer(db_session).import_table(
            get_plan(TableName.USER_INSTALLED_PLUGINS),
            [
                {"user_id": "exporting-user", "identifier": "search", "settings": {"engine": "b"}},
                {"user_id": "exporting-user", "identifier": "web-crawler", "settings": {}},
            ],
        )

        assert result.updated == 1
        assert result.added == 1
        plugins = (
            await db_session.execute(select(UserInstalledPlugin).where(UserInstalledPlugin.identifier == "search"))
        ).scalars().all()
        assert {p.user_id: p.settings["engine"] for p in plugins} == {owner_id: "b", other_owner_id: "a"}


class TestBatches:
    """Batched insertion and per-batch failure containment."""

    async def test_failed_batch_is_contained(self, db_session, make_importer, id_map, conflict_log):
        rows = [
            {"id": "ses-1", "client_id": "dup", "title": "First"},
            {"id": "ses-2", "client_id": "dup", "title": "Second"},
            {"id": "ses-3", "client_id": "c-ses-3", "title": "Third"},
        ]

        result = await make_importer(db_session, batch_size=2).import_table(get_plan(TableName.SESSIONS), rows)

        assert result.errors == 2
        assert result.added == 1
        assert "client_id, user_id" in result.conflict_fields
        assert len(conflict_log) == 1
        sessions = (await db_session.execute(select(ChatSession))).scalars().all()
        assert [s.title for s in sessions] == ["Third"]
        assert id_map.resolve(TableName.SESSIONS, "ses-1") is None
        assert id_map.resolve(TableName.SESSIONS, "ses-3") == sessions[0].id

    async def test_rows_split_across_batches(self, db_session, make_importer, id_map):
        rows = [{"id": f"grp-{i}", "client_id": f"c-grp-{i}", "name": f"Group {i}"} for i in range(5)]

        result = await make_importer(db_session, batch_size=2).import_table(get_plan(TableName.SESSION_GROUPS), rows)

        assert result.added == 5
        assert len(id_map.entries(TableName.SESSION_GROUPS)) == 10

    async def test_default_batch_size_splits_at_one_hundred(self, db_session, owner_id, id_map, conflict_log):
        """With 101 rows, only the second, single-row batch fails on the duplicate."""
        rows = [{"id": f"grp-{i}", "client_id": f"c-grp-{i}", "name": f"Group {i}"} for i in range(100)]
        rows.append({"id": "grp-100", "client_id": "c-grp-0", "name": "Duplicate"})
        importer = TableImporter(db_session, owner_id, id_map, conflict_log)

        result = await importer.import_table(get_plan(TableName.SESSION_GROUPS), rows)

        assert BATCH_SIZE == 100
        assert importer.batch_size == BATCH_SIZE
        assert (result.added, result.errors) == (100, 1)
        assert await count(db_session, SessionGroup) == 100
        assert id_map.resolve(TableName.SESSION_GROUPS, "grp-100") is None

    async def test_composite_table_has_no_map_entries(self, db_session, make_importer, id_map, owner_id):
        id_map.register(TableName.AGENTS, "agt-1", "db-agt-1")
        id_map.register(TableName.SESSIONS, "ses-1", "db-ses-1")

        result = await make_importer(db_session).import_table(
            get_plan(TableName.AGENTS_TO_SESSIONS),
            [{"agent_id": "agt-1", "session_id": "ses-1"}],
        )

        assert result.added == 1
        assert TableName.AGENTS_TO_SESSIONS not in id_map
        link = await db_session.get(AgentToSession, ("db-agt-1", "db-ses-1"))
        assert link.user_id == owner_id
