from dataclasses import dataclass
from typing import Optional

STORED = "stored"
URL = "url"

_URL_SCHEMES = ("http://", "https://")


@dataclass(frozen=True)
class ObjectRef:
    """An image/avatar reference: either a stored object id or a literal URL."""

    kind: str
    value: str

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["ObjectRef"]:
        # Legacy/external references arrive as bare strings; classify once on write.
        if raw is None or not raw.strip():
            return None
        if raw.strip().lower().startswith(_URL_SCHEMES):
            return cls(URL, raw.strip())
        return cls(STORED, raw.strip())

    @classmethod
    def from_columns(cls, kind: Optional[str], value: Optional[str]) -> Optional["ObjectRef"]:
        if not kind or not value:
            return None
        return cls(kind, value)

    @property
    def is_stored(self) -> bool:
        return self.kind == STORED

    @property
    def is_url(self) -> bool:
        return self.kind == URL
