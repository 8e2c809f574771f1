"""Data models for schedule, search and migration."""

from dataclasses import dataclass, field


@dataclass
class ScheduleShow:
    """One slot in the weekly schedule."""

    show_key: str
    event_id: str
    show_time: str  # HH:MM, UK local time
    show_day: str  # Monday..Sunday
    date: str  # YYYY-MM-DD
    name: str
    url: str = ""
    picture: str = ""
    created_time: str = ""
    tags: list[str] = field(default_factory=list)
    hosts: list[str] = field(default_factory=list)
    duration: int = 0  # seconds
    is_manual: bool = False
    is_replay: bool = False
    source: str = "cosmic"  # cosmic | radiocult

    @property
    def has_detail_page(self) -> bool:
        return self.url.startswith("/episode/")


@dataclass
class WeeklySchedule:
    """Result of reconciling every schedule source for one UK week."""

    items: list[ScheduleShow]
    day_dates: dict[str, str]
    is_active: bool
    error: str | None = None


@dataclass
class RadioCultArtist:
    """A RadioCult artist (host)."""

    id: str
    name: str
    slug: str = ""
    description: str = ""
    image_url: str = ""


@dataclass
class RadioCultEvent:
    """A scheduled instance of a RadioCult show."""

    id: str
    show_id: str
    show_name: str
    start_time: str  # ISO 8601, UTC
    end_time: str
    slug: str = ""
    description: str = ""
    image_url: str = ""
    duration: int = 0  # minutes
    artists: list[RadioCultArtist] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)


@dataclass
class FilterItem:
    """A taxonomy reference attached to a search result."""

    title: str
    slug: str
    type: str


@dataclass
class SearchResult:
    """Normalized content item for site search."""

    id: str
    type: str
    slug: str
    title: str
    description: str | None = None
    image: str | None = None
    date: str | None = None
    genres: list[FilterItem] = field(default_factory=list)
    locations: list[FilterItem] = field(default_factory=list)
    hosts: list[FilterItem] = field(default_factory=list)
    takeovers: list[FilterItem] = field(default_factory=list)


@dataclass
class LegacyImageRef:
    """A legacy Craft entry together with the filename of its image asset."""

    entry_id: str
    title: str
    slug: str
    image: str  # asset filename
    asset_id: str = ""
    date_created: str = ""


@dataclass
class ImageLinkReport:
    """Outcome of an image-linking run, printed for human review."""

    updated: list[str] = field(default_factory=list)
    missing_media: list[str] = field(default_factory=list)
    unmatched_slugs: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


@dataclass
class CategoryMove:
    """A planned reclassification of a taxonomy object."""

    object_id: str
    title: str
    from_type: str
    to_type: str
    duplicate_of: str | None = None
