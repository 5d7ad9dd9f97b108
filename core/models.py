"""
CodeShelf Content Models

Boundary data model for the organization engine. The persistence layer hands
the engine plain dicts (file rows and snippet rows); these dataclasses give
them one shape so every engine can treat files and snippets as a single item
stream.

Usage:
    from core.models import ContentItem, CorpusSnapshot

    corpus = CorpusSnapshot.from_records(file_rows, snippet_rows)
    for item in corpus.items():
        print(item.id, item.kind, item.language)
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import List, Dict, Optional, Tuple, Any

from core.errors import ValidationError

EPOCH = datetime(1970, 1, 1)

TIME_FORMATS = [
    '%Y-%m-%dT%H:%M:%S.%fZ',
    '%Y-%m-%dT%H:%M:%SZ',
    '%Y-%m-%dT%H:%M:%S.%f',
    '%Y-%m-%dT%H:%M:%S',
    '%Y-%m-%d %H:%M:%S',
    '%Y-%m-%d',
]


# Numbers above this are epoch milliseconds rather than seconds
EPOCH_MS_THRESHOLD = 1e11


def parse_time(value: Any) -> Optional[datetime]:
    """
    Parse a persistence-layer timestamp into a naive UTC datetime.

    Accepts datetimes (aware ones are converted to UTC), epoch seconds or
    milliseconds, and ISO-style strings. Unparseable strings give None;
    numbers outside the representable range raise ValidationError.
    """
    if value is None or value == '':
        return None

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    if isinstance(value, (int, float)):
        seconds = value / 1000 if abs(value) > EPOCH_MS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)
        except (OverflowError, ValueError, OSError) as e:
            raise ValidationError(f"Timestamp out of range: {value}", value=value, reason=str(e))

    text = str(value).strip()
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    # Offsets such as +00:00
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


@dataclass(frozen=True)
class ContentItem:
    """A saved file or snippet, or a freshly captured text."""
    id: str
    text: str
    timestamp: datetime = EPOCH
    kind: str = 'snippet'  # 'file' or 'snippet'
    file_id: Optional[str] = None
    title: str = ''
    language: Optional[str] = None
    tags: Tuple[str, ...] = ()
    is_favorite: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        # Engines compare timestamps directly, so keep them naive UTC
        object.__setattr__(self, 'timestamp', parse_time(self.timestamp) or EPOCH)

    @property
    def is_file(self) -> bool:
        return self.kind == 'file'

    @property
    def content(self) -> str:
        """Text used for code analysis; files fall back to their title."""
        return self.text or self.title

    @property
    def search_text(self) -> str:
        """Text a similarity search compares this item by."""
        if self.is_file:
            parts = [self.title, self.text, ' '.join(self.tags)]
            return ' '.join(p for p in parts if p)
        return self.text

    @property
    def owner_id(self) -> str:
        """Id of the file this item lives in (a file owns itself)."""
        if self.is_file:
            return self.id
        return self.file_id or self.id

    def with_text(self, text: str, **changes) -> 'ContentItem':
        return replace(self, text=text, **changes)

    @classmethod
    def from_dict(cls, record: dict, kind: Optional[str] = None) -> 'ContentItem':
        """
        Build an item from a file row or snippet row.

        File rows carry title/description/snippet_count; snippet rows carry
        extracted_text/file_id/position_in_file.
        """
        if not isinstance(record, dict):
            raise ValidationError("Content record must be a mapping", record=repr(record)[:200])

        item_id = record.get('id')
        if item_id is None or str(item_id) == '':
            raise ValidationError("Content record has no id", keys=sorted(record.keys()))

        if kind is None:
            kind = record.get('kind')
        if kind is None:
            kind = 'file' if ('title' in record and 'extracted_text' not in record) else 'snippet'
        if kind not in ('file', 'snippet'):
            raise ValidationError(f"Unknown content kind: {kind}", id=item_id)

        if kind == 'file':
            text = record.get('description') or record.get('text') or ''
        else:
            text = record.get('extracted_text') or record.get('text') or ''

        timestamp = parse_time(record.get('created_at') or record.get('timestamp'))
        tags = record.get('tags') or ()
        if isinstance(tags, str):
            tags = [t.strip() for t in tags.split(',') if t.strip()]

        known = {
            'id', 'kind', 'description', 'text', 'extracted_text', 'created_at',
            'timestamp', 'tags', 'file_id', 'title', 'language', 'is_favorite',
        }
        metadata = {k: v for k, v in record.items() if k not in known}

        return cls(
            id=str(item_id),
            text=str(text),
            timestamp=timestamp or EPOCH,
            kind=kind,
            file_id=str(record['file_id']) if record.get('file_id') is not None else None,
            title=str(record.get('title') or ''),
            language=record.get('language'),
            tags=tuple(str(t) for t in tags),
            is_favorite=bool(record.get('is_favorite', False)),
            metadata=metadata,
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'kind': self.kind,
            'text': self.text,
            'timestamp': self.timestamp.isoformat(),
            'file_id': self.file_id,
            'title': self.title,
            'language': self.language,
            'tags': list(self.tags),
            'is_favorite': self.is_favorite,
            'metadata': dict(self.metadata),
        }


@dataclass(frozen=True)
class CorpusSnapshot:
    """Read-only view of a user's saved files and snippets."""
    files: Tuple[ContentItem, ...] = ()
    snippets: Tuple[ContentItem, ...] = ()

    def items(self) -> List[ContentItem]:
        """Files and snippets as one stream."""
        return list(self.files) + list(self.snippets)

    def snippets_for_file(self, file_id: str) -> List[ContentItem]:
        return [s for s in self.snippets if s.file_id == file_id]

    def get(self, item_id: str) -> Optional[ContentItem]:
        for item in self.items():
            if item.id == item_id:
                return item
        return None

    def with_item(self, item: ContentItem) -> 'CorpusSnapshot':
        """Return a new snapshot that also contains item."""
        if item.is_file:
            return CorpusSnapshot(files=self.files + (item,), snippets=self.snippets)
        return CorpusSnapshot(files=self.files, snippets=self.snippets + (item,))

    def __len__(self) -> int:
        return len(self.files) + len(self.snippets)

    @classmethod
    def from_records(
        cls,
        files: Optional[List[dict]] = None,
        snippets: Optional[List[dict]] = None
    ) -> 'CorpusSnapshot':
        return cls(
            files=tuple(ContentItem.from_dict(r, kind='file') for r in (files or [])),
            snippets=tuple(ContentItem.from_dict(r, kind='snippet') for r in (snippets or [])),
        )

    @classmethod
    def from_items(cls, items: List[ContentItem]) -> 'CorpusSnapshot':
        return cls(
            files=tuple(i for i in items if i.is_file),
            snippets=tuple(i for i in items if not i.is_file),
        )
