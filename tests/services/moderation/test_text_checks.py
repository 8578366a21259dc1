import pytest

from chatguard.services.moderation.text_checks import (
    KeywordToxicityPredicate,
    caps_ratio,
    collapse_repeats,
    has_repeated_characters,
    is_excessive_caps,
    longest_run,
    resolve_predicate,
    special_char_count,
    validate_message,
)
from chatguard.services.moderation.models import MessageValidation


def test_caps_detection():
    assert is_excessive_caps("HELLO EVERYONE")
    assert is_excessive_caps("HELLO")
    assert not is_excessive_caps("HI")
    assert not is_excessive_caps("Hello World")
    assert not is_excessive_caps("12345 !!!")
    assert caps_ratio("") == 0.0


def test_caps_threshold_is_strict():
    # 7 из 10 букв заглавные: ровно 70% не превышает порог
    assert not is_excessive_caps("ABCDEFGhij", percentage=70)
    assert is_excessive_caps("ABCDEFGHij", percentage=70)


def test_repeated_characters():
    assert has_repeated_characters("hellooooooo")
    assert not has_repeated_characters("heyyyyy")
    assert not has_repeated_characters("a          b")
    assert longest_run("aabbbcc") == 3


def test_collapse_repeats():
    assert collapse_repeats("nooooooo way", 5) == "nooooo way"
    assert collapse_repeats("fine", 5) == "fine"


def test_keyword_predicate_matches_substrings():
    predicate = KeywordToxicityPredicate(["idiot", "hate", "kill yourself"])
    assert predicate("you are an IDIOT")
    assert predicate("just kill yourself")
    assert predicate("that was idiotic")
    assert predicate("so hateful")
    assert not predicate("have a nice day")
    assert not predicate("")


def test_empty_keyword_list_never_matches():
    assert not KeywordToxicityPredicate([])("anything at all")


@pytest.mark.asyncio
async def test_resolve_sync_and_async_predicates():
    async def async_predicate(text: str) -> bool:
        return "bad" in text

    assert await resolve_predicate(lambda text: "bad" in text, "bad words") is True
    assert await resolve_predicate(async_predicate, "bad words") is True
    assert await resolve_predicate(async_predicate, "good words") is False


def test_validate_message_length():
    assert validate_message("x" * 2048) is MessageValidation.VALID
    assert validate_message("x" * 2049) is MessageValidation.TOO_LONG
    assert validate_message("hello", max_length=4) is MessageValidation.TOO_LONG


@pytest.mark.parametrize(
    "text",
    [
        "try JavaScript:alert(1)",
        "data:text/html;base64,PHNjcmlwdD4=",
        "<SCRIPT src=x>",
        '<img src=x onerror="steal()">',
    ],
)
def test_validate_message_malicious(text):
    assert validate_message(text) is MessageValidation.MALICIOUS_CONTENT


def test_event_handler_outside_tag_is_not_malicious():
    assert validate_message("someone = the best") is MessageValidation.VALID
    assert validate_message("online=true") is MessageValidation.VALID


def test_validate_message_special_characters():
    assert special_char_count("a-b c!") == 2
    assert validate_message("!!!@@@###abc") is MessageValidation.EXCESSIVE_SPECIAL_CHARS
    # ровно половина спецсимволов допустима
    assert validate_message("!!!!abcd") is MessageValidation.VALID
    assert validate_message(":-)") is MessageValidation.VALID
    assert validate_message(":-)", special_min_length=1) is MessageValidation.EXCESSIVE_SPECIAL_CHARS


def test_length_is_checked_before_content():
    assert validate_message("<script>" * 10, max_length=16) is MessageValidation.TOO_LONG
