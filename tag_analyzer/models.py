import msgspec
from collections.abc import Iterable, Sequence


class TagAnalyzerError(Exception):
    """Base class for errors raised by the analyzer."""


class EmptySelectionError(TagAnalyzerError):
    """A query strategy was invoked without any selected tag."""

    def __init__(self, message: str = "Select tags first."):
        super().__init__(message)


class DatasetNotFoundError(TagAnalyzerError):
    """The configured data directory does not exist."""


class DatasetExtractionError(TagAnalyzerError):
    """The dataset archive is present but could not be extracted."""


class VideoRecord(msgspec.Struct, frozen=True):
    """One parsed video row. `ratio` is always derived from likes/views when
    the record is built; a value passed in is overwritten."""

    title: str
    tags: tuple[str, ...]
    views: float
    likes: float
    ratio: float = 0.0

    def __post_init__(self):
        ratio = self.likes / self.views if self.views > 0 else 0.0
        msgspec.structs.force_setattr(self, "ratio", float(ratio))

    @classmethod
    def from_counts(
        cls, title: str, tags: Iterable[str], views: float, likes: float
    ) -> "VideoRecord":
        return cls(title, tuple(tags), float(views), float(likes))


def tag_matches(record_tag: str, selected_tag: str) -> bool:
    """A raw record tag matches a selected tag when it contains it (case-sensitive)."""
    return selected_tag in record_tag


def parse_tag_selection(raw: str, separator: str = ",") -> tuple[str, ...]:
    """Splits user input into an ordered tag selection, keeping tags as typed."""
    return tuple(tag for tag in raw.split(separator) if tag)


class AnalysisSession:
    """Holds the loaded Record Store and the active tag selection."""

    def __init__(self, records: Iterable[VideoRecord], selected_tags: Sequence[str] = ()):
        self.records = tuple(records)
        self.selected_tags = tuple(selected_tags)

    def select_tags(self, tags: Sequence[str]) -> tuple[str, ...]:
        self.selected_tags = tuple(tags)
        return self.selected_tags

    def require_selection(self) -> tuple[str, ...]:
        if not self.selected_tags:
            raise EmptySelectionError()
        return self.selected_tags
