from __future__ import annotations

import asyncio

import pytest

from adapters.telegram_bot_notifier import TelegramBotNotifier
from adapters.telegram_messages import (
    OutgoingMessage,
    TelegramDelivery,
    TelegramMessageRenderer,
    plan_messages,
)
from core.config import ChannelFilter, direct_message_budget
from core.models import EpisodeRangeEntry, EventType, GroupKey, ImageAttachment, ItemType
from core.newsletter import NewsletterBuilder
from factories import LIBRARY_NAMES, all_events_filter, episode, movie
from settings import TelegramChannelConfig

MOVIES_ADDED = GroupKey(EventType.ADD, ItemType.MOVIE, "Movies")


def _config(**overrides) -> TelegramChannelConfig:
    values = dict(name="Channel", channel_filter=ChannelFilter(), chat_ids=("1", "2"))
    values.update(overrides)
    return TelegramChannelConfig(**values)


def test_markdown_message_links_title_and_escapes_text() -> None:
    renderer = TelegramMessageRenderer(_config(), "https://media", "srv")
    record = movie("Mr. Robot", item_id="r1", overview="Hack (the) planet!", official_rating="TV-MA")

    text = renderer.message_text(record, [], MOVIES_ADDED)
    lines = text.split("\n")

    assert lines[0] == "*[Mr\\. Robot](https://media/web/index.html#/details?id=r1&serverId=srv&event=add)*"
    assert lines[1] == "🎬 Added to the library"
    assert "Hack \\(the\\) planet\\!" in lines
    assert "PG Rating: TV\\-MA" in lines
    assert lines[-1] == "Duration: 0 min"


def test_html_message_for_client_method() -> None:
    renderer = TelegramMessageRenderer(_config(), "", "", mode="html")
    record = episode("Tom & Jerry", 1, 1)

    text = renderer.message_text(record, [EpisodeRangeEntry(1, "1 - 3")], MOVIES_ADDED)

    assert text.startswith("<b>Tom &amp; Jerry</b>")
    assert "<b>Episodes:</b>\nSeason: 1 - Eps. 1 - 3" in text


def test_disabled_fields_are_left_out() -> None:
    config = _config(
        description_enabled=False,
        rating_enabled=False,
        pg_rating_enabled=False,
        duration_enabled=False,
        episodes_enabled=False,
    )
    renderer = TelegramMessageRenderer(config, "", "")

    text = renderer.message_text(episode("Show", 1, 1, overview="Plot"), [EpisodeRangeEntry(1, "1")], MOVIES_ADDED)

    assert text == "*Show*\n🎬 Added to the library"


def test_photo_post_splits_long_caption_into_follow_ups() -> None:
    text = "line of text\n" * 200

    messages = plan_messages(text, photo_url="https://img/p.jpg")

    assert messages[0].is_photo
    assert len(messages[0].text) <= 1024
    assert not any(message.is_photo for message in messages[1:])
    assert "".join(message.text for message in messages) == text


def test_text_post_splits_at_message_limit() -> None:
    text = "word " * 2000

    messages = plan_messages(text)

    assert len(messages) == 3
    assert all(len(message.text) <= 4096 for message in messages)


def test_renderer_prefers_attached_poster_over_url() -> None:
    poster = ImageAttachment(name="p.jpg", data=b"12345")
    renderer = TelegramMessageRenderer(_config(), "", "", image_loader=lambda record: poster)

    entry = renderer.render_entry(movie("Alien", image_url="https://img"), [], MOVIES_ADDED)

    assert entry.image == poster
    assert entry.content.photo_url == ""


class RecordingDelivery(TelegramDelivery):
    message_delay = 0

    def __init__(self, chat_ids, failing_chat=None) -> None:
        super().__init__("telegram:test", chat_ids)
        self.failing_chat = failing_chat
        self.sent = []

    async def _send_message(self, chat_id: str, message: OutgoingMessage) -> None:
        if chat_id == self.failing_chat:
            raise RuntimeError("Bot API sendMessage error 400: chat not found")
        self.sent.append((chat_id, message.text.split("\n")[0]))


def _result(records):
    renderer = TelegramMessageRenderer(_config(thumbnail_enabled=False), "", "")
    return NewsletterBuilder(renderer, all_events_filter(), direct_message_budget(), LIBRARY_NAMES).build(records)


def test_every_chat_gets_every_entry_in_order() -> None:
    delivery = RecordingDelivery(("1", "2"))

    delivered = asyncio.run(delivery.send(_result([movie("B"), movie("A", event=EventType.DELETE)])))

    assert delivered is True
    assert delivery.sent == [("1", "*B*"), ("1", "*A*"), ("2", "*B*"), ("2", "*A*")]


def test_failing_chat_does_not_stop_the_others() -> None:
    delivery = RecordingDelivery(("bad", "2"), failing_chat="bad")

    assert asyncio.run(delivery.send(_result([movie("A")]))) is True
    assert delivery.sent == [("2", "*A*")]


def test_all_chats_failing_reports_not_delivered() -> None:
    delivery = RecordingDelivery(("bad",), failing_chat="bad")

    assert asyncio.run(delivery.send(_result([movie("A")]))) is False


def test_bot_notifier_chooses_api_method_per_message(monkeypatch) -> None:
    notifier = TelegramBotNotifier("telegram:bot", "TOKEN", ("42",))
    calls = []
    monkeypatch.setattr(notifier, "_post_json", lambda method, payload: calls.append((method, payload)))
    monkeypatch.setattr(notifier, "_post_photo_file", lambda chat_id, message: calls.append(("upload", chat_id)))

    asyncio.run(notifier._send_message("42", OutgoingMessage(text="hi")))
    asyncio.run(notifier._send_message("42", OutgoingMessage(text="cap", photo_url="https://img")))
    asyncio.run(notifier._send_message("42", OutgoingMessage(text="cap", photo=ImageAttachment("p.jpg", b"1"))))

    assert calls[0] == (
        "sendMessage",
        {"chat_id": "42", "text": "hi", "parse_mode": "MarkdownV2", "disable_web_page_preview": True},
    )
    assert calls[1][0] == "sendPhoto"
    assert calls[1][1]["photo"] == "https://img"
    assert calls[2] == ("upload", "42")
    assert notifier._endpoint("sendMessage") == "https://api.telegram.org/botTOKEN/sendMessage"


def test_delivery_needs_a_transport() -> None:
    with pytest.raises(TypeError):
        TelegramDelivery("telegram:bare", ["1"])
