"""Keyword reclassification of taxonomy objects (genres, hosts, locations, ...)."""

import json
import logging
import re
from enum import StrEnum

from wwfm.exceptions import LLMAPIError
from wwfm.matching import bigram_similarity, normalize_title
from wwfm.models import CategoryMove

logger = logging.getLogger(__name__)

CATEGORY_TYPES = ["genres", "regular-hosts", "locations", "takeovers", "types"]
DUPLICATE_THRESHOLD = 0.8
LLM_BATCH_SIZE = 15

GENRES = {
    "worldmusic", "afro", "latin", "brazilian", "jazz", "funk", "soul", "electronic",
    "house", "techno", "ambient", "experimental", "pop", "rock", "classical", "folk",
    "reggae", "dub", "hiphop", "rap", "rnb", "blues", "country", "metal", "punk",
    "indie", "alternative", "dance", "disco", "dubstep", "garage", "grime", "trap",
    "calypso", "samba", "bossanova", "salsa", "merengue", "cumbia", "reggaeton",
    "ska", "rocksteady", "roots", "worldbeat", "fusion", "tribal", "traditional",
}

CONTENT_TYPES = {
    "interview", "podcast", "mix", "live", "session", "special", "series",
    "compilation", "playlist", "broadcast", "stream", "recording", "performance",
    "set", "radio show", "live set", "dj set", "mixtape", "album", "ep", "single",
}

LOCATIONS = {
    "chicago", "london", "paris", "berlin", "tokyo", "new york", "los angeles",
    "miami", "detroit", "atlanta", "seattle", "portland", "boston", "amsterdam",
    "africa", "asia", "europe", "america", "australia", "brazil", "japan", "china",
    "india", "russia", "mexico", "canada", "spain", "france", "germany", "italy",
    "uk", "usa", "caribbean", "mediterranean", "scandinavia", "middle east",
}

TAKEOVER_INDICATORS = [
    "records", "recordings", "label", "productions", "studios",
    "sound system", "collective", "radio", "fm", "presents",
    "takeover", "showcase", "festival",
]


class TermClass(StrEnum):
    """Labels the LLM may assign to a taxonomy term."""

    GENRE = "Music Genre"
    PERSON = "Person Name"
    LOCATION = "Location"
    ORGANIZATION = "Organization/Label"
    CONTENT_TYPE = "Content Type/Format"
    OTHER = "Other"


TERM_CLASS_CATEGORY: dict[TermClass, str] = {
    TermClass.GENRE: "genres",
    TermClass.PERSON: "regular-hosts",
    TermClass.LOCATION: "locations",
    TermClass.ORGANIZATION: "takeovers",
    TermClass.CONTENT_TYPE: "types",
    TermClass.OTHER: "takeovers",
}

_VALID_CLASSES = {c.value.lower(): c for c in TermClass}


def _matches_vocabulary(title: str, vocabulary: set[str]) -> bool:
    normalized = normalize_title(title)
    if not normalized:
        return False
    return normalized in vocabulary or any(
        word in normalized or normalized in word for word in vocabulary
    )


def is_genre(title: str) -> bool:
    return _matches_vocabulary(title, GENRES)


def is_location(title: str) -> bool:
    return _matches_vocabulary(title, LOCATIONS)


def is_content_type(title: str) -> bool:
    return _matches_vocabulary(title, CONTENT_TYPES)


def is_takeover(title: str) -> bool:
    normalized = normalize_title(title)
    return any(indicator in normalized for indicator in TAKEOVER_INDICATORS)


def is_regular_host(title: str) -> bool:
    """Person-like names: one to three purely alphabetic words."""
    if is_genre(title) or is_location(title) or is_content_type(title) or is_takeover(title):
        return False
    normalized = normalize_title(title)
    words = normalized.split(" ")
    return 1 <= len(words) <= 3 and bool(re.fullmatch(r"[a-z\s]+", normalized))


def determine_category(title: str) -> str:
    """Pick the taxonomy type for a title. Unclassifiable titles are takeovers."""
    if is_genre(title):
        return "genres"
    if is_location(title):
        return "locations"
    if is_content_type(title):
        return "types"
    if is_takeover(title):
        return "takeovers"
    if is_regular_host(title):
        return "regular-hosts"
    return "takeovers"


# --- LLM classification ---

_CLASSIFY_SYSTEM = """You are a music and media content classification expert.
You will be given a list of terms, one per line. For each term decide whether it is
primarily a music genre, a person's name (DJ, artist, host), a location (city, country,
region), an organization or label (record label, festival, radio station), a content
type or format ("live", "mix", "podcast"), or other.

Respond ONLY with a JSON array holding one object per input term, in input order:
{"original_term": "...", "classification": "Music Genre" | "Person Name" | "Location" |
"Organization/Label" | "Content Type/Format" | "Other",
"standardized_genre_name": "standard English genre name, or null if not a genre"}"""


def _parse_classification_response(response_text: str) -> dict[str, dict]:
    """Parse Gemini's JSON array into {original_term: item}."""
    cleaned = response_text.strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r"^```(?:json)?\s*", "", cleaned)
        cleaned = re.sub(r"\s*```$", "", cleaned)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.error("Failed to parse Gemini classification response: %s", response_text[:500])
        return {}
    if not isinstance(data, list):
        return {}

    results = {}
    for item in data:
        if not isinstance(item, dict) or not item.get("original_term"):
            continue
        label = _VALID_CLASSES.get(str(item.get("classification", "")).strip().lower())
        if label is None:
            logger.warning("Unknown classification from Gemini: '%s' for '%s'",
                           item.get("classification"), item["original_term"])
            continue
        results[item["original_term"]] = {
            "classification": label,
            "category": TERM_CLASS_CATEGORY[label],
            "standardized_genre_name": item.get("standardized_genre_name"),
        }
    return results


def classify_terms_with_llm(terms: list[str]) -> dict[str, dict]:
    """Classify taxonomy terms with Gemini, in batches.

    Terms the model misses, and whole batches whose call fails, fall back to
    keyword classification.

    Returns:
        Mapping of term to {classification, category, standardized_genre_name};
        ``classification`` is None for keyword fallbacks.
    """
    from wwfm.llm_client import call_fast

    results: dict[str, dict] = {}
    for start in range(0, len(terms), LLM_BATCH_SIZE):
        batch = terms[start:start + LLM_BATCH_SIZE]
        try:
            response = call_fast(_CLASSIFY_SYSTEM, "Input terms:\n" + "\n".join(batch))
            results.update(_parse_classification_response(response))
        except LLMAPIError as e:
            logger.warning("Gemini classification failed (%s), falling back to keywords", e)

        for term in batch:
            if term not in results:
                results[term] = {
                    "classification": None,
                    "category": determine_category(term),
                    "standardized_genre_name": None,
                }

    logger.info("Classified %d terms", len(results))
    return results


def plan_reorganization(objects: list[dict],
                        threshold: float = DUPLICATE_THRESHOLD) -> tuple[list[CategoryMove], dict]:
    """Recategorize taxonomy objects and fold near-duplicate titles together.

    Args:
        objects: Cosmic objects, each with id, title and its current ``type``.
        threshold: Titles scoring above this similarity are duplicates.

    Returns:
        Tuple of (moves, stats). A move with ``duplicate_of`` set marks an
        object to delete; otherwise it is a change of type.
    """
    kept: dict[str, dict] = {}
    moves: list[CategoryMove] = []
    stats = {
        "total": len(objects),
        "recategorized": 0,
        "duplicates_removed": 0,
        "by_type": {t: 0 for t in CATEGORY_TYPES},
    }

    for obj in objects:
        title = obj.get("title") or ""
        normalized = normalize_title(title)
        current_type = obj.get("type", "")
        new_type = determine_category(title)

        original = next(
            (existing for existing_title, existing in kept.items()
             if bigram_similarity(normalized, existing_title) > threshold),
            None,
        )
        if original is not None:
            logger.info("Found duplicate: '%s' matches '%s'", title, original.get("title"))
            moves.append(CategoryMove(
                object_id=obj.get("id", ""), title=title, from_type=current_type,
                to_type=current_type, duplicate_of=original.get("id"),
            ))
            stats["duplicates_removed"] += 1
            continue

        kept[normalized] = obj
        stats["by_type"][new_type] = stats["by_type"].get(new_type, 0) + 1
        if new_type != current_type:
            logger.info("Recategorizing: '%s' from %s to %s", title, current_type, new_type)
            moves.append(CategoryMove(
                object_id=obj.get("id", ""), title=title, from_type=current_type, to_type=new_type,
            ))
            stats["recategorized"] += 1

    return moves, stats
