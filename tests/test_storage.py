import json

import pytest

from cadence.agent.conversations import ConversationBook
from cadence.agent.structs import Message
from cadence.exceptions import StateFileError
from cadence.storage.manager import (
    STATE_VERSION,
    StateStore,
    default_state,
    validate_and_migrate,
)


@pytest.fixture
def store(tmp_path):
    return StateStore(tmp_path / "state" / "state.json")


@pytest.mark.asyncio
async def test_missing_file_gives_defaults(store):
    assert await store.load() == default_state()


@pytest.mark.asyncio
async def test_round_trip_conversations(store):
    book = ConversationBook()
    book.get("gpt-4o-mini").messages.append(
        Message(role="user", content="hi", id="u1", timestamp=5.0, token_count=1)
    )
    book.touch("gpt-4o-mini")

    await store.save(
        {
            "version": STATE_VERSION,
            "active_model": "gpt-4o-mini",
            "conversations": book.to_dict(),
            "preferences": {"show_tokens": True},
        }
    )
    state = await store.load()
    restored = ConversationBook.from_dict(state["conversations"])

    assert state["active_model"] == "gpt-4o-mini"
    assert state["preferences"]["show_tokens"] is True
    msg = restored.get("gpt-4o-mini").messages[0]
    assert (msg.id, msg.content, msg.timestamp, msg.token_count) == ("u1", "hi", 5.0, 1)
    assert restored.get("gpt-4o-mini").total_tokens == 1


@pytest.mark.asyncio
async def test_second_save_keeps_backup_and_leaves_no_temp_file(store):
    await store.save({**default_state(), "active_model": "first"})
    await store.save({**default_state(), "active_model": "second"})

    backup = json.loads(store.backup_path.read_text(encoding="utf-8"))
    assert backup["active_model"] == "first"
    assert not store.tmp_path.exists()


@pytest.mark.asyncio
async def test_corrupt_state_falls_back_to_backup(store):
    await store.save({**default_state(), "active_model": "first"})
    await store.save({**default_state(), "active_model": "second"})
    store.path.write_text("{not json", encoding="utf-8")

    state = await store.load()
    assert state["active_model"] == "first"


@pytest.mark.asyncio
async def test_unwritable_location_raises_state_file_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a directory", encoding="utf-8")
    store = StateStore(blocker / "state.json")
    with pytest.raises(StateFileError):
        await store.save(default_state())


def test_migration_merges_over_defaults():
    migrated = validate_and_migrate({"version": "0.9", "preferences": {"extra": 1}})
    assert migrated["version"] == STATE_VERSION
    assert migrated["active_model"] == "claude-sonnet-4.5"
    assert migrated["preferences"] == {"show_tokens": False, "extra": 1}
    assert migrated["conversations"] == {}
    assert validate_and_migrate(["not", "a", "dict"]) == default_state()
