from datetime import datetime, timezone

import pytest
import pytest_asyncio

from marketchat.errors import Forbidden, InvalidArgument, NotFound
from tests.conftest import ADMIN, BUYER, OUTSIDER, SELLER, STORE_ID


@pytest_asyncio.fixture
async def conversation_id(service):
    summary, _ = await service.find_or_create(BUYER, "u2", STORE_ID)
    return summary.id


@pytest.mark.asyncio
async def test_buyer_seller_exchange(service, conversation_id):
    first = await service.save_message(BUYER, conversation_id, "Is this in stock?", False)
    second = await service.save_message(SELLER, conversation_id, "Yes", False)

    assert (first.id, second.id) == (1, 2)
    assert second.sent_at >= first.sent_at

    messages = await service.list_messages(BUYER, conversation_id, page=1, page_size=10)
    assert [m.id for m in messages] == [1, 2]
    assert messages[0].sender_username == "buyer-one"

    assert await service.mark_read(BUYER, conversation_id) == 1
    messages = await service.list_messages(SELLER, conversation_id)
    assert messages[0].read_at is None
    assert messages[1].read_at is not None


@pytest.mark.asyncio
async def test_save_updates_last_message_pointer(service, db, conversation_id):
    message = await service.save_message(BUYER, conversation_id, "hello", False)
    stored = await db["conversations"].find_one({"_id": conversation_id})
    assert stored["last_message_id"] == message.id


@pytest.mark.asyncio
async def test_content_is_validated_before_storage(service, db, conversation_id):
    for content in ("", "   ", "x" * 4001):
        with pytest.raises(InvalidArgument):
            await service.save_message(BUYER, conversation_id, content, False)
    assert await db["messages"].count_documents({}) == 0

    accepted = await service.save_message(BUYER, conversation_id, "x" * 4000, False)
    assert len(accepted.content) == 4000


@pytest.mark.asyncio
async def test_content_is_stored_as_sent(service, db, conversation_id):
    sent = await service.save_message(BUYER, conversation_id, "  two spaces in front\n", False)

    assert sent.content == "  two spaces in front\n"
    stored = await db["messages"].find_one({"_id": sent.id})
    assert stored["content"] == "  two spaces in front\n"

    # the length limit counts surrounding whitespace too
    with pytest.raises(InvalidArgument):
        await service.save_message(BUYER, conversation_id, " " + "x" * 4000, False)


@pytest.mark.asyncio
async def test_ids_and_pages_beyond_int64_are_invalid(service, db, conversation_id):
    too_big = 2**63
    with pytest.raises(InvalidArgument):
        await service.save_message(BUYER, too_big, "hi", False)
    with pytest.raises(InvalidArgument):
        await service.list_messages(BUYER, too_big)
    with pytest.raises(InvalidArgument):
        await service.mark_read(BUYER, too_big)
    with pytest.raises(InvalidArgument):
        await service.list_messages(BUYER, conversation_id, page=10**20)
    assert await service.can_access(BUYER, too_big) is False
    assert await db["messages"].count_documents({}) == 0


@pytest.mark.asyncio
async def test_private_messages_are_hidden_from_the_other_participant(service, conversation_id):
    await service.save_message(BUYER, conversation_id, "public", False)
    await service.save_message(BUYER, conversation_id, "note to self", True)

    seller_view = [m.content for m in await service.list_messages(SELLER, conversation_id)]
    buyer_view = [m.content for m in await service.list_messages(BUYER, conversation_id)]
    admin_view = [m.content for m in await service.list_messages(ADMIN, conversation_id)]

    assert seller_view == ["public"]
    assert buyer_view == ["public", "note to self"]
    assert admin_view == ["public", "note to self"]


@pytest.mark.asyncio
async def test_paging_returns_latest_window_in_chronological_order(service, conversation_id):
    for n in range(5):
        await service.save_message(BUYER, conversation_id, f"m{n}", False)

    latest = await service.list_messages(BUYER, conversation_id, page=1, page_size=2)
    older = await service.list_messages(BUYER, conversation_id, page=2, page_size=2)

    assert [m.content for m in latest] == ["m3", "m4"]
    assert [m.content for m in older] == ["m1", "m2"]


@pytest.mark.asyncio
async def test_page_arguments_are_clamped(service, conversation_id):
    for n in range(3):
        await service.save_message(BUYER, conversation_id, f"m{n}", False)

    assert len(await service.list_messages(BUYER, conversation_id, page=0, page_size=0)) == 1
    assert len(await service.list_messages(BUYER, conversation_id, page=-3, page_size=1000)) == 3


@pytest.mark.asyncio
async def test_mark_read_never_marks_own_messages(service, conversation_id):
    await service.save_message(BUYER, conversation_id, "mine", False)
    assert await service.mark_read(BUYER, conversation_id) == 0

    await service.save_message(SELLER, conversation_id, "theirs", False)
    [summary] = await service.list_conversations(BUYER)
    assert summary.unread_messages_count == 1

    assert await service.mark_read(BUYER, conversation_id) == 1
    [summary] = await service.list_conversations(BUYER)
    assert summary.unread_messages_count == 0
    # the seller still has the buyer's message unread
    [seller_summary] = await service.list_conversations(SELLER)
    assert seller_summary.unread_messages_count == 1


@pytest.mark.asyncio
async def test_admin_mark_read_leaves_read_state_alone(service, conversation_id):
    await service.save_message(SELLER, conversation_id, "hello", False)
    assert await service.mark_read(ADMIN, conversation_id) == 0
    [summary] = await service.list_conversations(BUYER)
    assert summary.unread_messages_count == 1


@pytest.mark.asyncio
async def test_outsider_is_refused_everywhere(service, conversation_id):
    with pytest.raises(Forbidden):
        await service.save_message(OUTSIDER, conversation_id, "hi", False)
    with pytest.raises(Forbidden):
        await service.list_messages(OUTSIDER, conversation_id)
    with pytest.raises(Forbidden):
        await service.mark_read(OUTSIDER, conversation_id)
    assert await service.can_access(OUTSIDER, conversation_id) is False
    assert await service.list_conversations(OUTSIDER) == []


@pytest.mark.asyncio
async def test_missing_conversation_is_not_found(service):
    with pytest.raises(NotFound):
        await service.save_message(BUYER, 404, "hi", False)
    with pytest.raises(NotFound):
        await service.list_messages(BUYER, 404)
    assert await service.can_access(BUYER, 404) is False


@pytest.mark.asyncio
async def test_conversations_are_listed_by_recent_activity(service, db):
    older, _ = await service.find_or_create(BUYER, "u2", STORE_ID)
    newer, _ = await service.find_or_create(BUYER, "u2", STORE_ID, order_id=7)
    await db["conversations"].update_many({}, {"$set": {"last_message_at": datetime(2020, 1, 1, tzinfo=timezone.utc)}})
    assert [c.id for c in await service.list_conversations(BUYER)] == [newer.id, older.id]

    await service.save_message(SELLER, older.id, "back to the first thread", False)
    summaries = await service.list_conversations(BUYER)
    assert [c.id for c in summaries] == [older.id, newer.id]
    assert summaries[0].last_message.content == "back to the first thread"
    assert summaries[1].last_message is None


@pytest.mark.asyncio
async def test_private_last_message_is_not_leaked_in_summaries(service, conversation_id):
    await service.save_message(SELLER, conversation_id, "visible", False)
    await service.save_message(BUYER, conversation_id, "private draft", True)

    [buyer_summary] = await service.list_conversations(BUYER)
    [seller_summary] = await service.list_conversations(SELLER)

    assert buyer_summary.last_message.content == "private draft"
    assert seller_summary.last_message.content == "visible"
