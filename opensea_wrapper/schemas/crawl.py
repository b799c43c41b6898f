"""Pydantic value objects shared by the client and the crawler"""
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from opensea_wrapper.core.exceptions import DomainInconsistencyError


class Cursor(BaseModel):
    """Opaque next/previous tokens returned by cursor-paginated endpoints."""

    next: Optional[str] = None
    previous: Optional[str] = None

    model_config = ConfigDict(validate_assignment=True)

    def update_from(self, envelope: Mapping[str, Any]) -> bool:
        """Copy next/previous from a raw response; False when it carries neither."""
        if "next" not in envelope and "previous" not in envelope:
            return False
        self.next = envelope.get("next")
        self.previous = envelope.get("previous")
        return True


class OccurredAfter(BaseModel):
    """
    Watermark of an incremental crawl.

    A record whose `key` field is lower than or equal to `value` has already
    been seen; everything from it onwards is dropped.
    """

    key: str
    value: Any

    model_config = ConfigDict(frozen=True)

    @classmethod
    def parse(cls, raw: Union["OccurredAfter", Mapping[str, Any], None]) -> Optional["OccurredAfter"]:
        if raw is None or isinstance(raw, cls):
            return raw
        if not isinstance(raw, Mapping):
            raise DomainInconsistencyError(
                f"occurred_after must be a {{key, value}} pair, got {raw!r}"
            )
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise DomainInconsistencyError(f"Invalid occurred_after {dict(raw)!r}: {e}") from e

    def reached_by(self, record: Mapping[str, Any]) -> bool:
        # Records without the key never match
        if record.get(self.key) is None:
            return False
        return record[self.key] <= self.value

    def truncate(self, records: List[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], bool]:
        """Records before the first one at or below the watermark, and whether it was hit."""
        for index, record in enumerate(records):
            if self.reached_by(record):
                return records[:index], True
        return records, False
