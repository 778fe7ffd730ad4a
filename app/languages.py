"""Original-language options offered alongside the English/international toggle."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

ENGLISH_LANGUAGE_CODE = "en"
OTHER_LANGUAGE_KEY = "other"


@dataclass(frozen=True)
class LanguageOption:
    """Maps a selectable language key to its ISO 639-1 code."""

    key: str
    name: str
    code: str

    def to_payload(self) -> dict[str, object]:
        return {"id": self.key, "name": self.name, "code": self.code}


# The "other" bucket has no code; it stands for every language not listed.
LANGUAGE_OPTIONS: tuple[LanguageOption, ...] = (
    LanguageOption(key="spanish", name="Spanish", code="es"),
    LanguageOption(key="french", name="French", code="fr"),
    LanguageOption(key="german", name="German", code="de"),
    LanguageOption(key="italian", name="Italian", code="it"),
    LanguageOption(key="japanese", name="Japanese", code="ja"),
    LanguageOption(key="korean", name="Korean", code="ko"),
    LanguageOption(key="chinese", name="Chinese", code="zh"),
    LanguageOption(key="hindi", name="Hindi", code="hi"),
    LanguageOption(key="portuguese", name="Portuguese", code="pt"),
    LanguageOption(key=OTHER_LANGUAGE_KEY, name="Other", code=""),
)

LANGUAGE_KEYS: tuple[str, ...] = tuple(option.key for option in LANGUAGE_OPTIONS)
LISTED_LANGUAGE_CODES: frozenset[str] = frozenset(
    option.code for option in LANGUAGE_OPTIONS if option.code
)


@dataclass(frozen=True)
class LanguageSelection:
    """The codes a viewer picked plus whether unlisted languages count."""

    codes: frozenset[str]
    include_other: bool

    def matches(self, language: str | None) -> bool:
        if language in self.codes:
            return True
        return self.include_other and language not in LISTED_LANGUAGE_CODES


def language_selection(
    keys: Iterable[str],
    options: Iterable[LanguageOption] = LANGUAGE_OPTIONS,
) -> LanguageSelection:
    lookup = {option.key: option for option in options}
    codes: set[str] = set()
    include_other = False
    for key in keys:
        if key == OTHER_LANGUAGE_KEY:
            include_other = True
            continue
        option = lookup.get(key)
        if option is not None and option.code:
            codes.add(option.code)
    return LanguageSelection(codes=frozenset(codes), include_other=include_other)
