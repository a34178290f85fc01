from fakes import BOT_LID, BOT_PN, GROUP, USER_LID, USER_PN, group_message, text_message
from wabot.cache import ContactCache, GroupCache
from wabot.models.account import Account, Address, GroupMetadata
from wabot.normalizer import (
    ContainerContent,
    MediaContent,
    TextContent,
    UnknownContent,
    classify_content,
    normalize_message,
    to_hex,
    to_int,
)

ACCOUNT = Account(jid=BOT_LID, pn=BOT_PN, name="Bot")


def test_private_text_message():
    record = normalize_message(text_message("  hello  "), ACCOUNT)
    assert record.id == "MSG1"
    assert record.timestamp == 1700000000
    assert record.chat.jid == USER_LID
    assert record.chat.pn == USER_PN
    assert record.chat.kind == "private"
    assert record.chat.addressing == "pn"
    assert record.sender == Address(jid=USER_LID, pn=USER_PN, name="Alice")
    assert record.content_type == "conversation"
    assert record.text == "hello"
    assert record.mimetype == "text/plain"
    assert record.size == 5
    assert record.quoted is None


def test_private_chat_prefers_linked_id_in_either_slot():
    record = normalize_message(text_message("x", remote=USER_PN, remote_alt=USER_LID), ACCOUNT)
    assert record.chat.jid == USER_LID
    assert record.chat.pn == USER_PN


def test_phone_only_private_chat_has_no_sender():
    record = normalize_message(text_message("x", remote=USER_PN, remote_alt=None), ACCOUNT)
    assert record.chat.jid == ""
    assert record.chat.pn == USER_PN
    assert record.sender == Address(name="")


def test_private_chat_name_from_contact_cache():
    contacts = ContactCache()
    contacts.add(Address(jid=USER_LID, pn=USER_PN, name="Alice Cached"))
    record = normalize_message(text_message("x"), ACCOUNT, contacts=contacts)
    assert record.chat.name == "Alice Cached"


def test_group_message():
    groups = GroupCache()
    groups.set(GROUP, GroupMetadata(id=GROUP, subject="Friends"))
    record = normalize_message(group_message("hi"), ACCOUNT, groups=groups)
    assert record.chat.jid == GROUP
    assert record.chat.kind == "group"
    assert record.chat.addressing == "lid"
    assert record.chat.name == "Friends"
    assert record.sender.jid == USER_LID
    assert record.sender.pn == USER_PN


def test_self_sent_group_message_uses_account():
    record = normalize_message(group_message("hi", from_me=True, participant=BOT_LID), ACCOUNT)
    assert record.from_me
    assert (record.sender.jid, record.sender.pn) == (BOT_LID, BOT_PN)


def test_self_sent_private_message_uses_account():
    record = normalize_message(text_message("hi", from_me=True), ACCOUNT)
    assert (record.sender.jid, record.sender.pn) == (BOT_LID, BOT_PN)


def test_container_is_unwrapped_to_media_leaf():
    raw = text_message("")
    raw["message"] = {
        "senderKeyDistributionMessage": {"groupId": GROUP},
        "viewOnceMessageV2": {
            "message": {
                "imageMessage": {
                    "caption": " look ",
                    "mimetype": "image/jpeg",
                    "fileSha256": "AAH/",
                    "fileLength": {"low": 2048, "high": 0},
                },
            },
        },
    }
    record = normalize_message(raw, ACCOUNT)
    assert record.content_type == "imageMessage"
    assert record.text == "look"
    assert record.mimetype == "image/jpeg"
    assert record.hash == "0001ff"
    assert record.size == 2048


def test_unknown_content():
    raw = text_message("")
    raw["message"] = {"reactionMessage": {"text": "+1"}}
    record = normalize_message(raw, ACCOUNT)
    assert record.content_type == "unknown"
    assert record.text == ""
    assert record.mentions == []


def test_missing_message_body():
    raw = text_message("")
    raw["message"] = None
    assert normalize_message(raw, ACCOUNT).content_type == "unknown"


def test_context_mentions_then_text_mentions():
    raw = group_message(
        "hey @222222222222222 and @333333333333",
        context={"mentionedJid": ["222222222222222@lid", "999999999999@lid"]},
    )
    record = normalize_message(raw, ACCOUNT)
    assert record.mentions == ["222222222222222@lid", "999999999999@lid", "333333333333@lid"]


def test_private_text_mentions_use_phone_server():
    record = normalize_message(text_message("ping @5215553334444"), ACCOUNT)
    assert record.mentions == ["5215553334444@s.whatsapp.net"]


def test_text_mentions_and_short_tld_links():
    record = normalize_message(text_message("hello @1234567890 check http://x.io"), ACCOUNT)
    assert "1234567890@s.whatsapp.net" in record.mentions
    assert "http://x.io" in record.links


def test_ad_reply_link_precedes_text_links():
    raw = text_message(
        "see https://example.com/a",
        context={"externalAdReply": {"sourceUrl": "https://ads.example.com/x"}},
    )
    record = normalize_message(raw, ACCOUNT)
    assert record.links == ["https://ads.example.com/x", "https://example.com/a"]


def test_invalid_ad_reply_link_is_ignored():
    raw = text_message("plain", context={"externalAdReply": {"sourceUrl": "not a link"}})
    assert normalize_message(raw, ACCOUNT).links == []


def test_quoted_message_from_account():
    raw = text_message("reply", context={
        "stanzaId": "Q1",
        "participant": BOT_LID,
        "quotedMessage": {"conversation": "original"},
    })
    raw["message"] = {"ephemeralMessage": {"message": raw["message"]}}
    record = normalize_message(raw, ACCOUNT)
    quoted = record.quoted
    assert quoted is not None
    assert quoted.id == "Q1"
    assert quoted.text == "original"
    assert quoted.from_me
    assert (quoted.sender.jid, quoted.sender.pn) == (BOT_LID, BOT_PN)
    assert quoted.chat == record.chat


def test_quote_chains_stop_at_one_level():
    inner = {"extendedTextMessage": {"text": "middle", "contextInfo": {
        "stanzaId": "Q0", "participant": USER_LID, "quotedMessage": {"conversation": "first"},
    }}}
    raw = text_message("last", context={"stanzaId": "Q1", "participant": USER_LID, "quotedMessage": inner})
    record = normalize_message(raw, ACCOUNT)
    assert record.quoted is not None
    assert record.quoted.text == "middle"
    assert not record.quoted.from_me
    assert record.quoted.quoted is None


def test_classify_content_variants():
    assert isinstance(classify_content({"conversation": "x"}), TextContent)
    assert classify_content({"stickerMessage": {}}) is None
    assert isinstance(classify_content({"audioMessage": {"mimetype": "audio/ogg"}}), MediaContent)
    assert isinstance(classify_content({"documentWithCaptionMessage": {"message": {}}}), ContainerContent)
    assert isinstance(classify_content({"pollCreationMessage": {"name": "q"}}), UnknownContent)
    assert classify_content({"messageContextInfo": {}}) is None


def test_to_int():
    assert to_int(5) == 5
    assert to_int("12") == 12
    assert to_int({"low": 1, "high": 1}) == (1 << 32) | 1
    assert to_int("abc") == 0
    assert to_int(None) == 0


def test_to_hex():
    assert to_hex(b"\x0a\x0b") == "0a0b"
    assert to_hex([10, 11]) == "0a0b"
    assert to_hex("AAH/") == "0001ff"
    assert to_hex("***") == ""
    assert to_hex(None) == ""
