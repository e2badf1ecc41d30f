from lynae.bus.events import (
    ButtonReply,
    Conversation,
    ExtendedText,
    ImageMedia,
    InboundEvent,
    ListReply,
    MessageBatch,
    Unsupported,
    unwrap_view_once,
)
from lynae.handler.normalizer import MessageNormalizer, extract_body, parse_prefix

CHAT = "6281234567890@s.whatsapp.net"
GROUP = "120363000000000001@g.us"


def event(message: dict, chat: str = CHAT, participant: str | None = None, timestamp=None) -> InboundEvent:
    raw = {"key": {"remoteJid": chat, "id": "ID1", "participant": participant}, "message": message}
    if timestamp is not None:
        raw["messageTimestamp"] = timestamp
    return InboundEvent.from_raw(raw)


def test_from_raw_skips_envelopes_without_message() -> None:
    assert InboundEvent.from_raw({"key": {"remoteJid": CHAT, "id": "1"}}) is None
    assert InboundEvent.from_raw({"key": {"remoteJid": CHAT, "id": "1"}, "message": None}) is None


def test_timestamp_accepts_protocol_longs() -> None:
    assert event({"conversation": "x"}, timestamp={"low": 1700000000, "high": 0}).timestamp == 1700000000
    assert event({"conversation": "x"}, timestamp="1700000001").timestamp == 1700000001


def test_batch_types() -> None:
    assert MessageBatch("notify").accepted
    assert MessageBatch("append").accepted
    assert not MessageBatch("history").accepted


def test_content_variants() -> None:
    assert event({"conversation": "hi"}).content == Conversation("hi")
    assert isinstance(event({"extendedTextMessage": {"text": "hi"}}).content, ExtendedText)
    assert isinstance(event({"imageMessage": {"caption": ".s"}}).content, ImageMedia)
    assert event({"buttonsResponseMessage": {"selectedButtonId": ".tt a video"}}).content == ButtonReply(".tt a video")
    assert event({"listResponseMessage": {"singleSelectReply": {"selectedRowId": ".help"}}}).content == ListReply(".help")
    assert isinstance(event({"reactionMessage": {"text": "👍"}}).content, Unsupported)


def test_body_precedence() -> None:
    # conversation wins over an extended text in the same container
    body, _ = extract_body(event({"conversation": ".ping", "extendedTextMessage": {"text": ".help"}}))
    assert body == ".ping"

    body, has_image = extract_body(event({"imageMessage": {"caption": ".sticker"}}))
    assert body == ".sticker"
    assert has_image

    body, _ = extract_body(event({"templateButtonReplyMessage": {"selectedId": ".menu"}}))
    assert body == ".menu"


def test_view_once_media_caption_is_read() -> None:
    message = {"viewOnceMessageV2": {"message": {"videoMessage": {"caption": ".tomp3"}}}}
    assert unwrap_view_once(message) == {"videoMessage": {"caption": ".tomp3"}}
    body, _ = extract_body(event(message))
    assert body == ".tomp3"


def test_parse_prefix() -> None:
    assert parse_prefix(".ping") == (".", "ping")
    assert parse_prefix("#help  ") == ("#", "help")
    assert parse_prefix("ping") is None
    assert parse_prefix("") is None
    assert parse_prefix("$ping", ["$"]) == ("$", "ping")


def test_normalize_command_and_text() -> None:
    m = MessageNormalizer().normalize(event({"conversation": ".Tiktok https://Vm.TikTok.com/AbC"}), CHAT)
    assert m is not None
    assert m.command == "tiktok https://vm.tiktok.com/abc"
    assert m.text == "Tiktok https://Vm.TikTok.com/AbC"
    assert m.args == ["https://Vm.TikTok.com/AbC"]
    assert m.prefix == "."
    assert not m.is_group


def test_normalize_drops_non_commands() -> None:
    normalizer = MessageNormalizer()
    assert normalizer.normalize(event({"conversation": "hello"}), CHAT) is None
    assert normalizer.normalize(event({"conversation": "."}), CHAT) is None
    assert normalizer.normalize(event({"conversation": "   "}), CHAT) is None
    assert normalizer.normalize(event({"reactionMessage": {"text": "👍"}}), CHAT) is None


def test_normalize_quoted_mentions_and_media() -> None:
    quoted = {"viewOnceMessage": {"message": {"imageMessage": {"caption": "secret", "mediaKey": "a2V5"}}}}
    message = {
        "extendedTextMessage": {
            "text": ".pick",
            "contextInfo": {
                "stanzaID": "QUOTED1",
                "participant": "6289999@s.whatsapp.net",
                "quotedMessage": quoted,
                "mentionedJID": ["6281111@s.whatsapp.net", "12345@lid", GROUP],
            },
        }
    }
    m = MessageNormalizer().normalize(event(message, chat=GROUP, participant=CHAT), CHAT)

    assert m.is_group
    assert m.quoted.key.id == "QUOTED1"
    assert m.quoted.participant == "6289999@s.whatsapp.net"
    assert m.quoted.is_view_once
    assert m.quoted.image == {"caption": "secret", "mediaKey": "a2V5"}
    assert m.quoted_text == "secret"
    assert m.image == m.quoted.image
    assert m.mentions == ["6281111@s.whatsapp.net"]


def test_stale_events() -> None:
    normalizer = MessageNormalizer(max_age_seconds=120, clock=lambda: 10_000)
    assert normalizer.is_stale(event({"conversation": ".ping"}, timestamp=10_000 - 121))
    assert not normalizer.is_stale(event({"conversation": ".ping"}, timestamp=10_000 - 60))
    assert not normalizer.is_stale(event({"conversation": ".ping"}))
