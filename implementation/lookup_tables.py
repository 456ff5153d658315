"""
Static lookup data for scene understanding and candidate retrieval.

Everything here is immutable configuration data, loaded once at import:
  - SCENE_KEYWORD_RULES: keyword → (scene field, English tag) rules used by the
    rule-based scene analyzer. Keywords are lowercase stems matched at the
    start of a word, so "sink" catches "sinks" but "hit" never fires on "white".
    Rows flagged whole-word must match an entire word ("sea" is not "search")
    and list their inflections explicitly.
  - TIME_HINT_RULES: keyword → TimeHint cues, first match wins.
  - TERM_TRANSLATIONS: Turkish → English search terms appended by the
    canonicalizer.
  - KNOWN_TITLE_PATTERNS: distinctive scene terms → canonical title guesses.
  - SEARCH_STOPWORDS: words never sent to the catalog as standalone searches.

Rows are processed in declaration order, which fixes the order of extracted
tags. Keep keywords at least 3 characters long; shorter stems start too many
unrelated words.
"""

from types import MappingProxyType
from typing import Mapping, NamedTuple

from implementation.classes.enums import SceneField, TimeHint


class SceneKeywordRule(NamedTuple):
    keyword: str
    field: SceneField
    tag: str
    whole_word: bool = False


class KnownTitlePattern(NamedTuple):
    """
    A group of distinctive terms that point at one well-known title.

    The group fires when at least `min_matches` of its patterns start a word in the
    lowercased scene tags or raw query.
    """
    patterns: tuple[str, ...]
    title: str
    min_matches: int = 1


_E = SceneField.ENTITIES
_V = SceneField.EVENTS
_N = SceneField.ENVIRONMENT
_T = SceneField.THEMES
_WHOLE = True


# ===============================
#      Scene keyword rules
# ===============================

SCENE_KEYWORD_RULES: tuple[SceneKeywordRule, ...] = tuple(
    SceneKeywordRule(*row) for row in (
        # --- Entities (English) ---
        ("ship", _E, "ship"),
        ("boat", _E, "boat"),
        ("iceberg", _E, "iceberg"),
        ("clown", _E, "clown"),
        ("balloon", _E, "balloon"),
        ("alien", _E, "alien"),
        ("spaceship", _E, "spaceship"),
        ("robot", _E, "robot"),
        ("dinosaur", _E, "dinosaur"),
        ("shark", _E, "shark"),
        ("train", _E, "train", _WHOLE),
        ("trains", _E, "train", _WHOLE),
        ("plane", _E, "plane", _WHOLE),
        ("planes", _E, "plane", _WHOLE),
        ("airplane", _E, "plane"),
        ("sword", _E, "sword"),
        ("ghost", _E, "ghost"),
        ("zombie", _E, "zombie"),
        ("vampire", _E, "vampire"),
        ("monster", _E, "monster"),
        ("wizard", _E, "wizard"),
        ("soldier", _E, "soldier"),
        ("detective", _E, "detective"),
        ("killer", _E, "killer"),
        ("prisoner", _E, "prisoner"),
        ("child", _E, "child"),
        ("woman", _E, "woman"),
        ("man", _E, "man", _WHOLE),
        ("men", _E, "man", _WHOLE),
        ("dog", _E, "dog", _WHOLE),
        ("dogs", _E, "dog", _WHOLE),
        # --- Entities (Turkish) ---
        ("gemi", _E, "ship"),
        ("tekne", _E, "boat"),
        ("buzdağı", _E, "iceberg"),
        ("palyaço", _E, "clown"),
        ("palyanço", _E, "clown"),
        ("balon", _E, "balloon"),
        ("uzaylı", _E, "alien"),
        ("dinozor", _E, "dinosaur"),
        ("köpekbalığı", _E, "shark"),
        ("tren", _E, "train"),
        ("uçak", _E, "plane"),
        ("kılıç", _E, "sword"),
        ("hayalet", _E, "ghost"),
        ("zombi", _E, "zombie"),
        ("vampir", _E, "vampire"),
        ("canavar", _E, "monster"),
        ("büyücü", _E, "wizard"),
        ("asker", _E, "soldier"),
        ("dedektif", _E, "detective"),
        ("katil", _E, "killer"),
        ("mahkum", _E, "prisoner"),
        ("çocuk", _E, "child"),
        ("kadın", _E, "woman"),
        ("adam", _E, "man"),
        ("köpek", _E, "dog"),
        # --- Events (English) ---
        ("sink", _V, "sinking"),
        ("sank", _V, "sinking"),
        ("collision", _V, "collision"),
        ("collide", _V, "collision"),
        ("hit", _V, "collision", _WHOLE),
        ("hits", _V, "collision", _WHOLE),
        ("crash", _V, "collision"),
        ("die", _V, "death", _WHOLE),
        ("dies", _V, "death", _WHOLE),
        ("died", _V, "death", _WHOLE),
        ("dying", _V, "death", _WHOLE),
        ("dead", _V, "death", _WHOLE),
        ("death", _V, "death"),
        ("murder", _V, "murder"),
        ("kill", _V, "murder"),
        ("surviv", _V, "survival"),
        ("escape", _V, "escape"),
        ("chase", _V, "chase"),
        ("fight", _V, "fight"),
        ("explod", _V, "explosion"),
        ("explosi", _V, "explosion"),
        ("rescue", _V, "rescue"),
        ("heist", _V, "heist"),
        ("steal", _V, "heist"),
        ("flying", _V, "flying"),
        ("float", _V, "floating"),
        ("dream", _V, "dream"),
        ("time travel", _V, "time travel"),
        # --- Events (Turkish) ---
        ("batma", _V, "sinking"),
        ("batıyor", _V, "sinking"),
        ("battı", _V, "sinking"),
        ("batan", _V, "sinking"),
        ("çarp", _V, "collision"),
        ("ölüyor", _V, "death"),
        ("öldü", _V, "death"),
        ("ölüm", _V, "death"),
        ("öldür", _V, "murder"),
        ("hayatta kal", _V, "survival"),
        ("kurtul", _V, "survival"),
        ("kaçış", _V, "escape"),
        ("kaçıyor", _V, "escape"),
        ("kovala", _V, "chase"),
        ("dövüş", _V, "fight"),
        ("kavga", _V, "fight"),
        ("patla", _V, "explosion"),
        ("kurtar", _V, "rescue"),
        ("soygun", _V, "heist"),
        ("uçan", _V, "flying"),
        ("uçuyor", _V, "flying"),
        ("rüya", _V, "dream"),
        ("zaman yolculuğu", _V, "time travel"),
        # --- Environment (English) ---
        ("ocean", _N, "ocean"),
        ("sea", _N, "sea", _WHOLE),
        ("seas", _N, "sea", _WHOLE),
        ("water", _N, "water"),
        ("iceberg", _N, "ocean"),
        ("space", _N, "space"),
        ("desert", _N, "desert"),
        ("jungle", _N, "jungle"),
        ("forest", _N, "forest"),
        ("island", _N, "island"),
        ("mountain", _N, "mountain"),
        ("city", _N, "city"),
        ("school", _N, "school"),
        ("hospital", _N, "hospital"),
        ("prison", _N, "prison"),
        ("sewer", _N, "sewer"),
        ("storm", _N, "storm"),
        ("night", _N, "night"),
        # --- Environment (Turkish) ---
        ("okyanus", _N, "ocean"),
        ("deniz", _N, "sea"),
        ("buzdağı", _N, "ocean"),
        ("uzay", _N, "space"),
        ("çöl", _N, "desert"),
        ("orman", _N, "forest"),
        ("şehir", _N, "city"),
        ("okul", _N, "school"),
        ("hastane", _N, "hospital"),
        ("hapishane", _N, "prison"),
        ("kanalizasyon", _N, "sewer"),
        ("fırtına", _N, "storm"),
        ("gece", _N, "night"),
        # --- Themes (English) ---
        ("iceberg", _T, "disaster"),
        ("disaster", _T, "disaster"),
        ("love", _T, "romance"),
        ("romance", _T, "romance"),
        ("revenge", _T, "revenge"),
        ("friendship", _T, "friendship"),
        ("war", _T, "war", _WHOLE),
        ("wars", _T, "war", _WHOLE),
        ("horror", _T, "horror"),
        ("scary", _T, "horror"),
        ("funny", _T, "comedy"),
        ("comedy", _T, "comedy"),
        ("family", _T, "family"),
        ("betray", _T, "betrayal"),
        ("sacrific", _T, "sacrifice"),
        # --- Themes (Turkish) ---
        ("buzdağı", _T, "disaster"),
        ("felaket", _T, "disaster"),
        ("aşk", _T, "romance"),
        ("aşık", _T, "romance"),
        ("intikam", _T, "revenge"),
        ("dostluk", _T, "friendship"),
        ("arkadaşlık", _T, "friendship"),
        ("savaş", _T, "war"),
        ("korku", _T, "horror"),
        ("komik", _T, "comedy"),
        ("aile", _T, "family"),
        ("ihanet", _T, "betrayal"),
        ("fedakarlık", _T, "sacrifice"),
    )
)


TIME_HINT_RULES: tuple[tuple[str, TimeHint], ...] = (
    ("medieval", TimeHint.HISTORICAL),
    ("ancient", TimeHint.HISTORICAL),
    ("victorian", TimeHint.HISTORICAL),
    ("world war", TimeHint.HISTORICAL),
    ("century", TimeHint.HISTORICAL),
    ("ortaçağ", TimeHint.HISTORICAL),
    ("antik", TimeHint.HISTORICAL),
    ("dünya savaşı", TimeHint.HISTORICAL),
    ("yüzyıl", TimeHint.HISTORICAL),
    ("futur", TimeHint.FUTURE),
    ("dystopia", TimeHint.FUTURE),
    ("gelecek", TimeHint.FUTURE),
    ("fütüristik", TimeHint.FUTURE),
    ("distopya", TimeHint.FUTURE),
    ("smartphone", TimeHint.MODERN),
    ("phone", TimeHint.MODERN),
    ("internet", TimeHint.MODERN),
    ("computer", TimeHint.MODERN),
    ("telefon", TimeHint.MODERN),
    ("bilgisayar", TimeHint.MODERN),
)


# ===============================
#   Turkish → English search terms
# ===============================

TERM_TRANSLATIONS: Mapping[str, str] = MappingProxyType({
    "gemi": "ship",
    "tekne": "boat",
    "buzdağı": "iceberg",
    "batma": "sinking",
    "batıyor": "sinking",
    "battı": "sinking",
    "çarp": "collision",
    "palyaço": "clown",
    "palyanço": "clown",
    "balon": "balloon",
    "uzaylı": "alien",
    "uzay": "space",
    "deniz": "sea",
    "okyanus": "ocean",
    "köpekbalığı": "shark",
    "dinozor": "dinosaur",
    "hayalet": "ghost",
    "canavar": "monster",
    "kadın": "woman",
    "adam": "man",
    "çocuk": "child",
    "uçak": "plane",
    "tren": "train",
    "çöl": "desert",
    "orman": "forest",
    "hapishane": "prison",
    "kaçış": "escape",
    "aşk": "love",
    "savaş": "war",
    "intikam": "revenge",
    "ölüm": "death",
    "kurtarma": "rescue",
    "rüya": "dream",
    "zaman yolculuğu": "time travel",
    "bisiklet": "bicycle",
    "soygun": "heist",
})


# ===============================
#      Known-title heuristics
# ===============================

KNOWN_TITLE_PATTERNS: tuple[KnownTitlePattern, ...] = (
    KnownTitlePattern(("iceberg", "buzdağı", "titanic"), "Titanic"),
    KnownTitlePattern(("shark", "köpekbalığı"), "Jaws"),
    KnownTitlePattern(("dinosaur", "dinozor", "jurassic"), "Jurassic Park"),
    KnownTitlePattern(("clown", "palyaço", "palyanço"), "It"),
    KnownTitlePattern(("flying bicycle", "uçan bisiklet", "extra-terrestrial", "extraterrestrial"), "E.T. the Extra-Terrestrial"),
    KnownTitlePattern(("balloons", "flying house", "balonlar", "uçan ev"), "Up"),
    KnownTitlePattern(("red pill", "blue pill", "kırmızı hap", "mavi hap"), "The Matrix"),
    KnownTitlePattern(("spinning top", "dream within a dream", "topaç", "rüya içinde rüya"), "Inception"),
    KnownTitlePattern(("volleyball", "voleybol", "wilson"), "Cast Away"),
    KnownTitlePattern(("tunnel", "tünel"), "The Shawshank Redemption"),
    KnownTitlePattern(("booby trap", "home alone", "evde tek başına"), "Home Alone"),
)


# ===============================
#            Stopwords
# ===============================

SEARCH_STOPWORDS: frozenset[str] = frozenset({
    # English
    "the", "and", "but", "for", "with", "from", "into", "onto", "that", "this",
    "then", "than", "there", "their", "they", "them", "was", "were", "are", "has",
    "have", "had", "his", "her", "hers", "him", "she", "its", "who", "whom",
    "what", "when", "where", "which", "while", "after", "before", "about", "movie",
    "film", "scene", "remember", "some", "someone", "something", "very", "just",
    "also", "all", "any", "out", "off", "over", "under", "again", "one", "two",
    "not", "can", "could", "would", "should", "will", "did", "does", "been",
    "being", "like", "you", "your", "our", "each", "other", "only", "same",
    # Turkish
    "bir", "bu", "şu", "ve", "ile", "ama", "fakat", "için", "gibi", "çok",
    "daha", "olan", "oldu", "olur", "sonra", "önce", "film", "filmi", "filmde",
    "sahne", "sahnesi", "sahnede", "hatırlıyorum", "var", "yok", "ben", "sen",
    "onun", "onlar", "kadar", "değil", "veya", "ya", "de", "da", "ki", "mi",
    "en", "her", "hiç", "bazı", "içinde", "üzerinde",
})
