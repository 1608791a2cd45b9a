import asyncio
from typing import Any, Dict, Optional, Set

from campus_connect.config.settings import settings
from campus_connect.utils.datetime_utils import utc_now
from campus_connect.utils.logging import get_logger

logger = get_logger()


def chat_channel(room_id: int) -> str:
    return f"chat:{room_id}"


def game_channel(code: str) -> str:
    return f"game:{code.upper()}"


class Subscription:
    """One subscriber's bounded inbox on a channel"""

    def __init__(self, channel: str, maxsize: int):
        self.channel = channel
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def offer(self, event: Dict[str, Any]) -> None:
        """Enqueue without blocking; a full inbox loses its oldest event"""
        if self.queue.full():
            try:
                self.queue.get_nowait()
                self.dropped += 1
            except asyncio.QueueEmpty:
                pass
        self.queue.put_nowait(event)

    async def get(self, timeout: Optional[float] = None) -> Dict[str, Any]:
        if timeout is None:
            return await self.queue.get()
        return await asyncio.wait_for(self.queue.get(), timeout)


class RealtimeBroker:
    """
    In-process publish/subscribe hub for chat rooms and game rooms.

    Services publish after their transaction commits; WebSocket handlers
    subscribe per connection. Delivery is best effort per subscriber, clients
    recover missed events through the REST read endpoints or a replay.
    """

    def __init__(self, queue_size: int = settings.REALTIME_QUEUE_SIZE):
        self.queue_size = queue_size
        self._channels: Dict[str, Set[Subscription]] = {}

    def subscribe(self, channel: str) -> Subscription:
        subscription = Subscription(channel, self.queue_size)
        self._channels.setdefault(channel, set()).add(subscription)
        logger.debug(f"Subscribed to {channel} ({self.subscriber_count(channel)} listening)")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscribers = self._channels.get(subscription.channel)
        if not subscribers:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._channels[subscription.channel]
        if subscription.dropped:
            logger.warning(
                f"Subscriber on {subscription.channel} dropped {subscription.dropped} events"
            )

    def publish(self, channel: str, event: str, data: Dict[str, Any]) -> int:
        """Fan an event out to every subscriber; returns how many received it"""
        subscribers = list(self._channels.get(channel, ()))
        if not subscribers:
            return 0

        payload = {
            "event": event,
            "channel": channel,
            "data": data,
            "timestamp": utc_now().isoformat(),
        }
        for subscription in subscribers:
            subscription.offer(payload)
        logger.debug(f"Published {event} to {len(subscribers)} subscribers on {channel}")
        return len(subscribers)

    def subscriber_count(self, channel: str) -> int:
        return len(self._channels.get(channel, ()))


broker = RealtimeBroker()
