"""English → Russian name mapping: known-name lookup with transliteration fallback."""

import logging
from dataclasses import dataclass
from typing import Optional

from models.enums import Gender
from models.glossary import Declensions
from tools.declension import decline, detect_gender_from_name

logger = logging.getLogger(__name__)


# Conventional Russian forms of common English given names
KNOWN_NAMES: dict[str, tuple[str, Gender]] = {
    # Male
    "John": ("Джон", Gender.MALE),
    "James": ("Джеймс", Gender.MALE),
    "Michael": ("Майкл", Gender.MALE),
    "William": ("Уильям", Gender.MALE),
    "David": ("Дэвид", Gender.MALE),
    "Richard": ("Ричард", Gender.MALE),
    "Robert": ("Роберт", Gender.MALE),
    "Charles": ("Чарльз", Gender.MALE),
    "Thomas": ("Томас", Gender.MALE),
    "Daniel": ("Дэниел", Gender.MALE),
    "Matthew": ("Мэтью", Gender.MALE),
    "Anthony": ("Энтони", Gender.MALE),
    "Mark": ("Марк", Gender.MALE),
    "Steven": ("Стивен", Gender.MALE),
    "Stephen": ("Стивен", Gender.MALE),
    "Paul": ("Пол", Gender.MALE),
    "Andrew": ("Эндрю", Gender.MALE),
    "Joshua": ("Джошуа", Gender.MALE),
    "Kenneth": ("Кеннет", Gender.MALE),
    "Kevin": ("Кевин", Gender.MALE),
    "Brian": ("Брайан", Gender.MALE),
    "George": ("Джордж", Gender.MALE),
    "Edward": ("Эдвард", Gender.MALE),
    "Jason": ("Джейсон", Gender.MALE),
    "Ryan": ("Райан", Gender.MALE),
    "Jacob": ("Джейкоб", Gender.MALE),
    "Nicholas": ("Николас", Gender.MALE),
    "Eric": ("Эрик", Gender.MALE),
    "Jonathan": ("Джонатан", Gender.MALE),
    "Justin": ("Джастин", Gender.MALE),
    "Scott": ("Скотт", Gender.MALE),
    "Brandon": ("Брэндон", Gender.MALE),
    "Benjamin": ("Бенджамин", Gender.MALE),
    "Samuel": ("Сэмюэл", Gender.MALE),
    "Alexander": ("Александр", Gender.MALE),
    "Patrick": ("Патрик", Gender.MALE),
    "Jack": ("Джек", Gender.MALE),
    "Henry": ("Генри", Gender.MALE),
    "Peter": ("Питер", Gender.MALE),
    "Arthur": ("Артур", Gender.MALE),
    "Harry": ("Гарри", Gender.MALE),
    "Luke": ("Люк", Gender.MALE),
    "Oliver": ("Оливер", Gender.MALE),
    "Max": ("Макс", Gender.MALE),
    "Ethan": ("Итан", Gender.MALE),
    "Noah": ("Ной", Gender.MALE),
    "Liam": ("Лиам", Gender.MALE),
    "Lucas": ("Лукас", Gender.MALE),
    "Logan": ("Логан", Gender.MALE),
    "Owen": ("Оуэн", Gender.MALE),
    "Isaac": ("Айзек", Gender.MALE),
    "Adam": ("Адам", Gender.MALE),
    "Victor": ("Виктор", Gender.MALE),
    "Simon": ("Саймон", Gender.MALE),
    # Female
    "Mary": ("Мэри", Gender.FEMALE),
    "Patricia": ("Патриция", Gender.FEMALE),
    "Jennifer": ("Дженнифер", Gender.FEMALE),
    "Linda": ("Линда", Gender.FEMALE),
    "Elizabeth": ("Элизабет", Gender.FEMALE),
    "Barbara": ("Барбара", Gender.FEMALE),
    "Susan": ("Сьюзан", Gender.FEMALE),
    "Jessica": ("Джессика", Gender.FEMALE),
    "Sarah": ("Сара", Gender.FEMALE),
    "Karen": ("Карен", Gender.FEMALE),
    "Lisa": ("Лиза", Gender.FEMALE),
    "Nancy": ("Нэнси", Gender.FEMALE),
    "Margaret": ("Маргарет", Gender.FEMALE),
    "Sandra": ("Сандра", Gender.FEMALE),
    "Ashley": ("Эшли", Gender.FEMALE),
    "Emily": ("Эмили", Gender.FEMALE),
    "Michelle": ("Мишель", Gender.FEMALE),
    "Amanda": ("Аманда", Gender.FEMALE),
    "Melissa": ("Мелисса", Gender.FEMALE),
    "Rebecca": ("Ребекка", Gender.FEMALE),
    "Laura": ("Лора", Gender.FEMALE),
    "Stephanie": ("Стефани", Gender.FEMALE),
    "Sharon": ("Шэрон", Gender.FEMALE),
    "Cynthia": ("Синтия", Gender.FEMALE),
    "Amy": ("Эми", Gender.FEMALE),
    "Angela": ("Анджела", Gender.FEMALE),
    "Anna": ("Анна", Gender.FEMALE),
    "Emma": ("Эмма", Gender.FEMALE),
    "Nicole": ("Николь", Gender.FEMALE),
    "Helen": ("Хелен", Gender.FEMALE),
    "Samantha": ("Саманта", Gender.FEMALE),
    "Katherine": ("Кэтрин", Gender.FEMALE),
    "Victoria": ("Виктория", Gender.FEMALE),
    "Alice": ("Элис", Gender.FEMALE),
    "Julia": ("Джулия", Gender.FEMALE),
    "Grace": ("Грейс", Gender.FEMALE),
    "Rose": ("Роуз", Gender.FEMALE),
    "Sophie": ("Софи", Gender.FEMALE),
    "Olivia": ("Оливия", Gender.FEMALE),
    "Ava": ("Ава", Gender.FEMALE),
    "Isabella": ("Изабелла", Gender.FEMALE),
    "Mia": ("Мия", Gender.FEMALE),
    "Charlotte": ("Шарлотта", Gender.FEMALE),
    "Lily": ("Лили", Gender.FEMALE),
    "Chloe": ("Хлоя", Gender.FEMALE),
}

_SINGLE: dict[str, str] = {
    "a": "а", "b": "б", "c": "к", "d": "д", "e": "е",
    "f": "ф", "g": "г", "h": "х", "i": "и", "j": "дж",
    "k": "к", "l": "л", "m": "м", "n": "н", "o": "о",
    "p": "п", "q": "к", "r": "р", "s": "с", "t": "т",
    "u": "у", "v": "в", "w": "в", "x": "кс", "y": "й",
    "z": "з",
}

_DIGRAPHS: dict[str, str] = {
    "sh": "ш", "ch": "ч", "th": "т", "ph": "ф",
    "ck": "к", "gh": "г", "wh": "в", "zh": "ж",
    "kh": "х", "ts": "ц", "oo": "у", "ee": "и",
    "ea": "и", "ou": "ау", "ow": "оу",
}

_LATIN_VOWELS = frozenset("aeiou")


@dataclass
class NameForms:
    """A source name resolved to its Russian surface form and case forms."""
    surface_form: str
    declensions: Declensions
    gender: Gender


def _transliterate_word(word: str) -> str:
    lower = word.lower()
    out: list[str] = []
    i = 0
    while i < len(word):
        pair = lower[i:i + 2]
        if pair in _DIGRAPHS:
            piece, step = _DIGRAPHS[pair], 2
        elif lower[i] == "y" and i == len(word) - 1 and i > 0 and lower[i - 1] not in _LATIN_VOWELS:
            # Harry, Lily: word-final y after a consonant sounds like и
            piece, step = "и", 1
        elif lower[i] in _SINGLE:
            piece, step = _SINGLE[lower[i]], 1
        else:
            piece, step = word[i], 1
        if word[i].isupper() and piece:
            piece = piece[0].upper() + piece[1:]
        out.append(piece)
        i += step
    return "".join(out)


def transliterate(name: str) -> str:
    """Map an English name to Russian.

    A whole-name match in ``KNOWN_NAMES`` wins; multi-word names are mapped
    word by word, each word looked up before falling back to
    letter-by-letter transliteration.
    """
    name = name.strip()
    if name in KNOWN_NAMES:
        return KNOWN_NAMES[name][0]
    words = name.split(" ")
    return " ".join(
        KNOWN_NAMES[w][0] if w in KNOWN_NAMES else _transliterate_word(w)
        for w in words
    )


def resolve_gender(name: str, target_form: str, gender: Optional[Gender | str] = None) -> Gender:
    """Resolve a usable gender for declension, defaulting to masculine."""
    if gender is not None:
        gender = Gender(gender)
        if gender in (Gender.MALE, Gender.FEMALE, Gender.NEUTRAL):
            return gender
    first_word = name.strip().split(" ")[0] if name.strip() else ""
    if first_word in KNOWN_NAMES:
        return KNOWN_NAMES[first_word][1]
    guessed = detect_gender_from_name(target_form)
    return guessed if guessed != Gender.UNKNOWN else Gender.MALE


def translate_and_decline(name: str, gender: Optional[Gender | str] = None) -> NameForms:
    """Transliterate a source name and compute its six case forms."""
    surface = transliterate(name)
    resolved = resolve_gender(name, surface, gender)
    logger.debug("Mapped name %r -> %r (%s)", name, surface, resolved.value)
    return NameForms(surface_form=surface, declensions=decline(surface, resolved), gender=resolved)
