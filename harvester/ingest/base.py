"""Core data types shared by the harvest pipeline."""

from dataclasses import asdict, dataclass, field
from typing import Optional
from urllib.parse import urlparse


@dataclass(frozen=True)
class CategoryRef:
    """A catalog category. Identity is the URL."""

    name: str
    url: str

    @classmethod
    def from_url(cls, url: str) -> "CategoryRef":
        """Build a category from a bare URL, naming it after its last path segment."""
        url = url.strip()
        name = ""
        try:
            path = urlparse(url).path
        except ValueError:
            path = ""
        for part in reversed(path.split("/")):
            if part:
                name = part.replace("_", " ").title()
                break
        return cls(name=name or url, url=url)


@dataclass
class Record:
    """A product record harvested from a listing page."""

    id: str
    name: str
    url: str
    description: str = ""
    price: str = ""
    image_url: str = ""
    category: str = ""
    features: list[str] = field(default_factory=list)

    @property
    def is_enriched(self) -> bool:
        """Whether the record already carries detail-page data."""
        return bool(self.description) and len(self.features) > 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DetailRecord:
    """Partial record extracted from a product detail page."""

    description: str = ""
    features: list[str] = field(default_factory=list)


@dataclass
class FetchOutcome:
    """Successful response of a single logical fetch."""

    url: str
    content: bytes
    status_code: int
    content_type: Optional[str] = None
    attempts: int = 1
