# pylint: disable=missing-module-docstring,missing-function-docstring

from context.conversation import ConversationContext
from context.serialization import serialize_for_llm


def test_turns_are_ordered_with_monotonic_ids():
    ctx = ConversationContext("alice")
    ctx.add_user_turn("hi")
    ctx.add_assistant_turn("hello")

    turns = ctx.turns()
    assert [(t.role, t.text, t.turn_id) for t in turns] == [("user", "hi", 0), ("assistant", "hello", 1)]
    assert ctx.serialize() == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
    ]


def test_oldest_turns_dropped_over_turn_limit(log_events):
    ctx = ConversationContext("alice", max_turns=3)
    for i in range(5):
        ctx.add_user_turn(f"t{i}")

    assert [t.text for t in ctx.turns()] == ["t2", "t3", "t4"]
    dropped = [e["turn_id"] for e in log_events if e["event_type"] == "context_turn_dropped"]
    assert dropped == [0, 1]


def test_oldest_turns_dropped_over_char_limit():
    ctx = ConversationContext(max_chars=10)
    ctx.add_user_turn("aaaa")
    ctx.add_assistant_turn("bbbb")
    ctx.add_user_turn("cccc")

    assert [t.text for t in ctx.turns()] == ["bbbb", "cccc"]


def test_single_oversized_turn_is_kept(log_events):
    ctx = ConversationContext("alice", max_chars=5)
    ctx.add_user_turn("x" * 20)

    assert len(ctx) == 1
    assert any(e["event_type"] == "context_single_turn_oversized" for e in log_events)


def test_clear_keeps_ids_monotonic():
    ctx = ConversationContext()
    ctx.add_user_turn("a")
    ctx.clear()
    ctx.add_user_turn("b")

    assert len(ctx) == 1
    assert ctx.turns()[0].turn_id == 1


def test_serialize_for_llm_order():
    messages = serialize_for_llm(
        system_prompt="SYS",
        recent_turns=[{"role": "user", "content": "q"}, {"role": "assistant", "content": "a"}],
        user_text="now",
    )

    assert messages == [
        {"role": "system", "content": "SYS"},
        {"role": "user", "content": "q"},
        {"role": "assistant", "content": "a"},
        {"role": "user", "content": "now"},
    ]
