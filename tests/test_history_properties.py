"""
Property-based tests for the conversation store, token history and key/value storage.
"""
import allure
from hypothesis import given, settings, strategies as st

from tradesxbt.constants import THREADS_KEY, TOKEN_HISTORY_KEY
from tradesxbt.history.models import AI, Message, Thread
from tradesxbt.history.thread_store import ConversationStore
from tradesxbt.history.token_history import TokenHistoryStore
from tradesxbt.llm.base import ToolCall, ToolResult
from tradesxbt.storage.db import KeyValueStore
from tradesxbt.utils import make_thread_title


token_symbols = st.sampled_from(["BTC", "ETH", "SOL", "SYMX", "DOGE", "LINK"])


@allure.feature("History")
@allure.story("Thread titles")
@allure.severity(allure.severity_level.NORMAL)
@settings(max_examples=100)
@given(st.text(min_size=1, max_size=80).filter(lambda s: s.strip()))
def test_title_is_first_30_chars(text):
    """
    Property 6: Titles keep the first 30 characters and mark truncation with "...".
    """
    title = make_thread_title(text)
    stripped = text.strip()
    if len(stripped) > 30:
        assert title == stripped[:30] + "..."
    else:
        assert title == stripped


@allure.feature("History")
@allure.story("Conversation store")
@allure.severity(allure.severity_level.CRITICAL)
def test_create_thread_selects_and_persists(kv_store):
    store = ConversationStore(kv_store)
    notified = []
    store.subscribe(lambda: notified.append(True))

    thread = store.create_thread(Message.user("Hello"))

    assert store.current_thread_id == thread.id
    assert thread.title == "Hello"
    assert kv_store.get_json(THREADS_KEY)[0]["id"] == thread.id
    assert notified


@allure.feature("History")
@allure.story("Conversation store")
@allure.severity(allure.severity_level.CRITICAL)
def test_threads_survive_reload(kv_store):
    store = ConversationStore(kv_store)
    thread = store.create_thread(Message.user("What about ETH?"))
    reply = Message(
        id="m2", content="ETH is steady.", sender=AI,
        tool_calls=(ToolCall.create("c1", "get_crypto_price", '{"symbol": "ETH"}'),),
        tool_results=(ToolResult("c1", '{"price": 3000}'),),
    )
    store.append_message(thread.id, reply)
    store.set_read(thread.id, False)

    reloaded = ConversationStore(kv_store)

    assert reloaded.threads == store.threads
    restored = reloaded.get(thread.id)
    assert restored.messages[1].tool_calls[0].function.name == "get_crypto_price"
    assert restored.messages[1].tool_results[0].tool_call_id == "c1"
    assert restored.is_read is False
    assert reloaded.current_thread is None


@allure.feature("History")
@allure.story("Conversation store")
@allure.severity(allure.severity_level.NORMAL)
def test_stored_document_uses_camel_case(kv_store):
    store = ConversationStore(kv_store)
    thread = store.create_thread(Message.user("hi"))
    store.append_message(thread.id, Message(
        id="a", content="x", sender=AI,
        tool_calls=(ToolCall.create("c", "analyze_token", "{}"),),
        tool_results=(ToolResult("c", "{}"),),
    ))

    document = kv_store.get_json(THREADS_KEY)[0]
    assert {"createdAt", "updatedAt", "isRead"} <= set(document)
    assert "toolCalls" in document["messages"][1]
    assert document["messages"][1]["toolResults"] == [{"toolCallId": "c", "result": "{}"}]


@allure.feature("History")
@allure.story("Conversation store")
@allure.severity(allure.severity_level.CRITICAL)
def test_update_message_replaces_copy_on_write(kv_store):
    store = ConversationStore(kv_store)
    thread = store.create_thread(Message.user("hi"))
    placeholder = Message.placeholder()
    store.append_message(thread.id, placeholder)
    before = store.threads

    store.update_message(thread.id, placeholder.id, lambda m: Message(
        id=m.id, content="done", sender=m.sender, timestamp=m.timestamp
    ))

    assert before[0].messages[-1].content == ""
    assert store.threads[0].messages[-1].content == "done"
    assert store.threads is not before


@allure.feature("History")
@allure.story("Conversation store")
@allure.severity(allure.severity_level.CRITICAL)
def test_deleting_selected_thread_clears_pointer(kv_store):
    store = ConversationStore(kv_store)
    first = store.create_thread(Message.user("first"))
    second = store.create_thread(Message.user("second"))

    assert store.delete_thread(first.id) is True
    assert store.current_thread_id == second.id

    assert store.delete_thread(second.id) is True
    assert store.current_thread_id is None
    assert store.delete_thread("missing") is False


@allure.feature("History")
@allure.story("Conversation store")
@allure.severity(allure.severity_level.NORMAL)
def test_select_thread_marks_read(kv_store):
    store = ConversationStore(kv_store)
    thread = store.create_thread(Message.user("first"))
    store.set_read(thread.id, False)
    store.select_thread(None)

    selected = store.select_thread(thread.id)

    assert selected.is_read is True
    assert store.unread_count() == 0


@allure.feature("History")
@allure.story("Conversation store")
@allure.severity(allure.severity_level.NORMAL)
@settings(max_examples=30)
@given(st.lists(st.text(min_size=1, max_size=40).filter(lambda s: s.strip()), min_size=1, max_size=8))
def test_new_threads_go_first(first_messages):
    """
    Property 7: Each created thread is placed at the front of the collection.
    """
    store = ConversationStore(KeyValueStore(":memory:"))
    created = [store.create_thread(Message.user(text)).id for text in first_messages]
    assert [t.id for t in store.threads] == list(reversed(created))


@allure.feature("History")
@allure.story("Token history")
@allure.severity(allure.severity_level.CRITICAL)
def test_add_token_moves_to_top_and_keeps_details(kv_store):
    history = TokenHistoryStore(kv_store)
    history.add_token("BTC", {"price": 50000})
    history.add_token("ETH", {"price": 3000})

    history.add_token("btc")

    assert [item.token for item in history.history] == ["BTC", "ETH"]
    assert history.history[0].details == {"price": 50000}

    history.add_token("ETH", {"price": 3100})
    assert history.history[0].details == {"price": 3100}


@allure.feature("History")
@allure.story("Token history")
@allure.severity(allure.severity_level.NORMAL)
@settings(max_examples=50)
@given(st.lists(token_symbols, min_size=1, max_size=20))
def test_token_history_has_no_duplicates(tokens):
    """
    Property 8: The history holds each token once, newest first.
    """
    history = TokenHistoryStore(KeyValueStore(":memory:"))
    for token in tokens:
        history.add_token(token)

    expected = list(dict.fromkeys(reversed(tokens)))
    assert [item.token for item in history.history] == expected


@allure.feature("History")
@allure.story("Token history")
@allure.severity(allure.severity_level.NORMAL)
def test_notifications_selection_and_reload(kv_store):
    history = TokenHistoryStore(kv_store)
    history.add_token("SOL")
    history.select_token("SOL")

    assert history.set_notifications("SOL", True) is True
    assert history.set_notifications("DOGE", True) is False

    reloaded = TokenHistoryStore(kv_store)
    assert reloaded.history[0].has_notifications is True
    assert kv_store.get_json(TOKEN_HISTORY_KEY)[0]["hasNotifications"] is True

    assert history.remove_token("SOL") is True
    assert history.selected_token is None
    assert history.history == ()


@allure.feature("Storage")
@allure.story("Key/value store")
@allure.severity(allure.severity_level.NORMAL)
def test_key_value_store_file_roundtrip(tmp_path):
    path = tmp_path / "nested" / "storage.db"
    store = KeyValueStore(path)
    store.set_json("chatThreads", [{"id": "t1"}])
    store.close()

    reopened = KeyValueStore(path)
    assert reopened.get_json("chatThreads") == [{"id": "t1"}]
    assert reopened.keys() == ["chatThreads"]
    assert reopened.delete("chatThreads") is True
    assert reopened.get_json("chatThreads", default=[]) == []
    reopened.close()


@allure.feature("Storage")
@allure.story("Key/value store")
@allure.severity(allure.severity_level.MINOR)
def test_corrupt_document_falls_back_to_default(kv_store):
    kv_store.set("tokenHistory", "{broken")
    assert kv_store.get_json("tokenHistory", default=[]) == []
    assert TokenHistoryStore(kv_store).history == ()


@allure.feature("History")
@allure.story("Models")
@allure.severity(allure.severity_level.MINOR)
def test_thread_from_dict_defaults():
    thread = Thread.from_dict({"id": "t", "messages": [{"id": "m", "content": "hey"}]})
    assert thread.title == "New Chat"
    assert thread.messages[0].sender == "user"
    assert thread.is_read is True
