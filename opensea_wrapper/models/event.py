"""Raw Data Layer: Event"""

from __future__ import annotations

import random
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, BigInteger, DateTime, Integer, Select, String, func, select
from sqlalchemy.orm import Mapped, mapped_column

from opensea_wrapper.db.base import Base


class Event(Base):
    __tablename__ = "opensea_events"

    # SQLite only autoincrements INTEGER primary keys
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    event_id: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)

    # Bundle events carry no single asset
    asset_contract_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    token_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    asset_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Plain JSON instead of JSONB: the payload keeps its key order
    raw: Mapped[dict] = mapped_column(JSON, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    event_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def related_events(self) -> Select:
        """Every stored event of the same contract/token pair."""
        return select(Event).where(
            Event.token_id == self.token_id,
            Event.asset_contract_address == self.asset_contract_address,
        )

    def asset_key(self, key: str) -> Any:
        """Read `key` from the event's asset, or from its bundle."""
        asset = self.raw.get("asset")
        if asset is not None:
            return asset.get(key)

        bundle = self.raw.get("asset_bundle")
        if bundle is not None:
            if key == "image_url":
                assets = bundle.get("assets") or []
                return random.choice(assets).get("image_url") if assets else None
            return bundle.get(key)

        return None
