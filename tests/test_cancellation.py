from __future__ import annotations

from llmcord.cancellation import CancellationRegistry, CancelToken


def test_token_round_trips_through_custom_id() -> None:
    token = CancelToken(session_id=123, requester_id=456)
    assert token.encode() == "cancel#123#456"
    assert CancelToken.parse("cancel#123#456") == token


def test_malformed_custom_ids_are_rejected() -> None:
    for custom_id in (
        "",
        "cancel",
        "cancel#1",
        "cancel#1#2#3",
        "stop#1#2",
        "cancel#abc#2",
        "cancel#1#-2",
    ):
        assert CancelToken.parse(custom_id) is None


def test_token_allows_only_the_requester() -> None:
    token = CancelToken(session_id=1, requester_id=99)
    assert token.allows("99")
    assert token.allows(99)
    assert not token.allows("100")
    assert not token.allows(None)


def test_signal_reaches_every_listener_and_is_consumed_once() -> None:
    registry = CancellationRegistry()
    first = registry.subscribe()
    second = registry.subscribe()

    registry.signal(7)

    assert first.try_take(7)
    assert not first.try_take(7)
    assert second.try_take(7)


def test_signals_for_other_sessions_do_not_match() -> None:
    registry = CancellationRegistry()
    listener = registry.subscribe()
    registry.signal(1)
    assert not listener.try_take(2)


def test_listener_only_sees_signals_sent_after_subscribing() -> None:
    registry = CancellationRegistry()
    registry.signal(5)
    listener = registry.subscribe()
    assert not listener.try_take(5)


def test_closed_listener_is_unsubscribed() -> None:
    registry = CancellationRegistry()
    with registry.subscribe():
        assert registry.listener_count == 1
    assert registry.listener_count == 0
    registry.signal(3)
