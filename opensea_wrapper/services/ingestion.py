"""
Storage of raw OpenSea events in opensea_events.

The ingestor owns no state besides its collaborators: a session factory
for the store and a notifier for subscribers, both injected.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from opensea_wrapper.core.console import ConsoleOutput
from opensea_wrapper.core.exceptions import DomainInconsistencyError
from opensea_wrapper.models.event import Event
from opensea_wrapper.services.notifier import EventAddedNotifier


def event_identifier(payload: Dict[str, Any]) -> str:
    event_id = payload.get("id")
    if event_id is None:
        event_id = payload.get("order_hash")
    if event_id is None:
        raise DomainInconsistencyError("OpenSea event payload carries no identifier")
    return str(event_id)


def classify_event_type(payload: Dict[str, Any]) -> str:
    """Payloads carrying an order hash are orders; the rest keep OpenSea's tag."""
    if payload.get("order_hash"):
        return "order"
    return payload.get("event_type") or "unknown"


def parse_event_at(payload: Dict[str, Any]) -> Optional[datetime]:
    created_date = payload.get("created_date")
    if created_date:
        value = datetime.fromisoformat(created_date.replace("Z", "+00:00"))
        # OpenSea reports naive UTC timestamps
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    timestamp = payload.get("event_timestamp")
    if timestamp is not None:
        return datetime.fromtimestamp(int(timestamp), tz=timezone.utc)
    return None


def build_event(payload: Dict[str, Any]) -> Event:
    asset = payload.get("asset")
    return Event(
        event_id=event_identifier(payload),
        event_type=classify_event_type(payload),
        asset_contract_address=None if asset is None else asset["asset_contract"]["address"],
        token_id=None if asset is None else str(asset["token_id"]),
        asset_id=None if asset is None else str(asset["id"]),
        raw=payload,
        created_at=datetime.now(timezone.utc),
        event_at=parse_event_at(payload),
    )


class EventIngestor:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: Optional[EventAddedNotifier] = None,
        console: Optional[ConsoleOutput] = None,
    ):
        self.session_factory = session_factory
        self.notifier = notifier or EventAddedNotifier()
        self.console = console or ConsoleOutput()

    async def add_event(self, payload: Dict[str, Any]) -> Optional[Event]:
        """Store one payload; None when its event_id is already known."""
        added = await self.add_events([payload])
        return added[0] if added else None

    async def add_events(
        self,
        payloads: Sequence[Dict[str, Any]],
        skip_known_batches: bool = False,
    ) -> List[Event]:
        """
        Store every payload whose event_id is not known yet.

        With `skip_known_batches` the whole batch is dropped as soon as its
        first event_id is known, even when later payloads are new.

        Returns:
            the Event rows created, in payload order
        """
        if not payloads:
            return []

        added: List[Event] = []
        async with self.session_factory() as session:
            try:
                event_ids = [event_identifier(payload) for payload in payloads]
                known = await self._known_ids(session, event_ids)

                if skip_known_batches and event_ids[0] in known:
                    self.console.comment(
                        f"Skipping batch of {len(payloads)} events, #{event_ids[0]} already stored"
                    )
                    return []

                for event_id, payload in zip(event_ids, payloads):
                    if event_id in known:
                        self.console.comment(f"Skipping event #{event_id}")
                        continue
                    # Later duplicates in the same batch are skipped too
                    known.add(event_id)

                    event = build_event(payload)
                    session.add(event)
                    added.append(event)

                await session.commit()
            except Exception:
                await session.rollback()
                raise

        for event in added:
            self.console.info(f"Adding event #{event.event_id} ({event.event_type})")
            await self.notifier.notify(event)

        return added

    async def _known_ids(self, session: AsyncSession, event_ids: List[str]) -> Set[str]:
        result = await session.execute(select(Event.event_id).where(Event.event_id.in_(set(event_ids))))
        return set(result.scalars().all())
