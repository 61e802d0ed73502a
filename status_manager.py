"""
Status Broadcast Manager for Prospect Searches
Fans search progress events out to listeners subscribed to a search id.
"""

from typing import Any, Awaitable, Callable, Dict, List, Union
import inspect
import logging

from services.prospect_matching.refinement import StatusEvent

logger = logging.getLogger(__name__)

StatusListener = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]


class StatusBroadcaster:
    """
    Manages status listeners for running prospect searches.
    Uses room-based architecture where each search_id represents a room.
    """

    def __init__(self):
        # Dictionary mapping search_id to its registered listeners
        self.active_listeners: Dict[str, List[StatusListener]] = {}

    def subscribe(self, search_id: str, listener: StatusListener):
        """
        Register a listener for a search's status events.

        Args:
            search_id: The search ID (room identifier)
            listener: Sync or async callable receiving the event dictionary
        """
        room = self.active_listeners.setdefault(search_id, [])
        if listener not in room:
            room.append(listener)
        logger.info(f"Status listener subscribed to search {search_id}")

    def unsubscribe(self, search_id: str, listener: StatusListener):
        """
        Remove a listener from a search's room.

        Args:
            search_id: The search ID
            listener: The listener to remove
        """
        room = self.active_listeners.get(search_id)
        if not room or listener not in room:
            return

        room.remove(listener)

        # Clean up empty rooms
        if not room:
            del self.active_listeners[search_id]

        logger.info(f"Status listener unsubscribed from search {search_id}")

    async def broadcast_status(self, search_id: str, event: StatusEvent):
        """
        Broadcast a status event to all listeners of a search.

        Args:
            search_id: The search ID (room identifier)
            event: The status event to broadcast
        """
        if search_id not in self.active_listeners:
            return

        message = {
            "type": "search_status",
            "search_id": search_id,
            "data": event.to_dict()
        }

        # Remove failed listeners
        failed_listeners = []

        for listener in list(self.active_listeners[search_id]):
            try:
                result = listener(message)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Error broadcasting status to listener: {e}")
                failed_listeners.append(listener)

        # Clean up failed listeners
        for listener in failed_listeners:
            self.unsubscribe(search_id, listener)

    def listener_for(self, search_id: str) -> Callable[[StatusEvent], Awaitable[None]]:
        """
        Build a status callback that broadcasts to a search's room.

        Args:
            search_id: The search ID

        Returns:
            Async callable accepting a StatusEvent
        """
        async def _broadcast(event: StatusEvent) -> None:
            await self.broadcast_status(search_id, event)

        return _broadcast

    def get_listener_count(self, search_id: str) -> int:
        """
        Get the number of active listeners for a search.

        Args:
            search_id: The search ID

        Returns:
            Number of active listeners
        """
        if search_id in self.active_listeners:
            return len(self.active_listeners[search_id])
        return 0


# Global status broadcaster instance
broadcaster = StatusBroadcaster()
