"""Post-commit dispatch of domain events to the notification collaborator.

Runs strictly after the atomic scope has committed. A delivery failure is
logged and dropped; it never undoes a committed transition.
"""

import logging
from collections.abc import Iterable

from stayledger.collaborators.base import NotificationPublisher
from stayledger.domain.events import DomainEvent

logger = logging.getLogger(__name__)


class NotificationService:
    """Publishes buffered events one by one."""

    def __init__(self, publisher: NotificationPublisher) -> None:
        self.publisher = publisher

    async def dispatch(self, events: Iterable[DomainEvent]) -> int:
        """Publish each event, isolating failures.

        Args:
            events: Events collected during a committed scope

        Returns:
            int: Number of events delivered
        """
        delivered = 0
        for event in events:
            try:
                await self.publisher.publish(event)
                delivered += 1
            except Exception as e:
                logger.warning(f"Failed to publish {event.event_type}: {e}")
        return delivered

    async def close(self) -> None:
        await self.publisher.close()
