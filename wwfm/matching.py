"""Fuzzy string matching for hosts, show slugs and taxonomy titles."""

import logging
import re
import unicodedata

logger = logging.getLogger(__name__)

HOST_MATCH_THRESHOLD = 0.6

# Legacy slug prefixes that hide the underlying show name
_SHOW_PREFIXES = re.compile(
    r"^(brownswood-basement-|worldwide-breakfast-|international-womens-day-|"
    r"sound-system-sisters-|raul-monsalve-y-los-forajidos-takeover-|"
    r"wewantsounds-takeover-|ghana-special-)"
)
_SHOW_SUFFIXES = re.compile(r"-takeover$|-mix$|-session$|-in-conversation$")

# Shows known under more than one slug
KNOWN_SHOW_MAPPINGS: dict[str, list[str]] = {
    "gilles-peterson": ["gilles-peterson", "brownswood"],
    "wewantsounds": ["wewantsounds"],
    "we-out-here": ["we-out-here"],
    "no-problemo": ["no-problemo", "con-problemo"],
    "raul-monsalve": ["raul-monsalve", "forajidos"],
    "tealeaves": ["tealeaves"],
    "first-light": ["first-light"],
}


def strip_accents(text: str) -> str:
    return "".join(
        c for c in unicodedata.normalize("NFD", text) if unicodedata.category(c) != "Mn"
    )


def name_to_slug(name: str) -> str:
    """Convert a display name to slug form ("Pedro Montenegro" -> "pedro-montenegro")."""
    slug = name.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def normalize_title(text: str) -> str:
    """Lowercase, turn -, _ and & into spaces, collapse whitespace."""
    text = re.sub(r"[-_&]", " ", text.lower())
    return re.sub(r"\s+", " ", text).strip()


def _bigrams(text: str) -> set[str]:
    return {text[i:i + 2] for i in range(len(text) - 1)}


def bigram_similarity(a: str, b: str) -> float:
    """Similarity in [0, 1] between two titles.

    Equal normalized titles score 1.0 and containment scores 0.9; otherwise
    the Dice coefficient over character bigrams.
    """
    s1, s2 = normalize_title(a), normalize_title(b)
    if s1 == s2:
        return 1.0
    if s1 in s2 or s2 in s1:
        return 0.9
    pairs1, pairs2 = _bigrams(s1), _bigrams(s2)
    if not pairs1 and not pairs2:
        return 0.0
    return 2.0 * len(pairs1 & pairs2) / (len(pairs1) + len(pairs2))


def levenshtein_distance(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(current[j - 1] + 1, previous[j] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def string_similarity(a: str, b: str) -> float:
    """(longer - edit distance) / longer; 1.0 for two empty strings."""
    longer, shorter = (a, b) if len(a) > len(b) else (b, a)
    if not longer:
        return 1.0
    return (len(longer) - levenshtein_distance(longer, shorter)) / len(longer)


def find_host_slug(display_name: str, hosts: list[dict],
                   threshold: float = HOST_MATCH_THRESHOLD) -> str | None:
    """Best matching host slug for a display name.

    Args:
        display_name: Host name as shown elsewhere, e.g. "Pedro Montenegro".
        hosts: Cosmic host objects with slug and title.
        threshold: Minimum similarity to accept.

    Returns:
        The slug with the highest similarity, or None.
    """
    if not display_name or not display_name.strip() or not hosts:
        return None

    target_slug = name_to_slug(display_name)
    best_slug, best_score = None, 0.0
    for host in hosts:
        slug = host.get("slug") or ""
        title = host.get("title") or ""
        score = max(
            string_similarity(target_slug, slug),
            string_similarity(target_slug, name_to_slug(title)),
            string_similarity(display_name.lower(), title.lower()),
        )
        if score >= threshold and score > best_score:
            best_slug, best_score = slug, score

    if best_slug:
        logger.debug("Matched host '%s' -> %s (%.2f)", display_name, best_slug, best_score)
    return best_slug


def extract_base_show_name(slug: str) -> str:
    """Reduce an episode slug to the slug of its underlying show.

    "brownswood-basement-gilles-peterson-w-guest-3" -> "gilles-peterson"
    """
    base = strip_accents(slug)
    base = _SHOW_PREFIXES.sub("", base)
    base = re.split(r"-w-|-with-", base)[0]
    base = _SHOW_SUFFIXES.sub("", base)
    return re.sub(r"-\d+$", "", base)


def _shares_three_words(a: list[str], b: list[str]) -> bool:
    triples = {tuple(a[i:i + 3]) for i in range(len(a) - 2)}
    return any(tuple(b[j:j + 3]) in triples for j in range(len(b) - 2))


def find_best_matching_slug(legacy_slug: str, cosmic_slugs: list[str]) -> str | None:
    """Match a legacy Craft slug to an existing Cosmic slug.

    Exact match first; then base show names sharing three consecutive words;
    then the known-mapping table.
    """
    if legacy_slug in cosmic_slugs:
        return legacy_slug

    base = extract_base_show_name(legacy_slug)
    base_words = base.split("-")
    for cosmic_slug in cosmic_slugs:
        cosmic_base = extract_base_show_name(cosmic_slug)
        if _shares_three_words(base_words, cosmic_base.split("-")):
            logger.info("Base name match: '%s' ~ '%s'", base, cosmic_base)
            return cosmic_slug
        for values in KNOWN_SHOW_MAPPINGS.values():
            if any(v in base for v in values) and any(v in cosmic_base for v in values):
                logger.info("Known mapping match: '%s' ~ '%s'", base, cosmic_base)
                return cosmic_slug

    logger.warning("No matching slug found in Cosmic for: %s", legacy_slug)
    return None
