"""
In-process message ports
@file purpose: Named, bidirectional channels between a platform automation
(one per tab) and the background handler. Delivery is queued on the run's
Scheduler, never re-entrant.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from exceptions import PortDisconnectedException
from shared.scheduler import Scheduler

logger = logging.getLogger(__name__)


@dataclass
class PortSender:
    """Who opened the port: its tab and window, plus the URL at connect time"""

    tab_id: Optional[int] = None
    url: str = ""
    window_id: Optional[int] = None


class Port:
    """One end of a connected port pair"""

    def __init__(self, name: str, sender: PortSender, scheduler: Scheduler):
        self.name = name
        self.sender = sender
        self.scheduler = scheduler
        self.connected = True
        self._peer: Optional["Port"] = None
        self._message_listeners: List[Callable[[Dict[str, Any], "Port"], None]] = []
        self._disconnect_listeners: List[Callable[["Port"], None]] = []

    def on_message(self, listener: Callable[[Dict[str, Any], "Port"], None]):
        self._message_listeners.append(listener)

    def on_disconnect(self, listener: Callable[["Port"], None]):
        self._disconnect_listeners.append(listener)

    def post_message(self, message: Dict[str, Any]):
        """Queue a message for the other end"""
        if not self.connected or self._peer is None:
            raise PortDisconnectedException(
                f"Attempting to use a disconnected port: {self.name}", self.name
            )
        self.scheduler.call_soon(self._peer._deliver, copy.deepcopy(message))

    def disconnect(self):
        """Close both ends; only the other end's disconnect listeners fire"""
        if not self.connected:
            return
        self.connected = False
        peer = self._peer
        if peer is not None and peer.connected:
            peer.connected = False
            self.scheduler.call_soon(peer._fire_disconnect)

    def _deliver(self, message: Dict[str, Any]):
        if not self.connected:
            logger.debug(f"Dropping {message.get('type')} on closed port {self.name}")
            return
        for listener in list(self._message_listeners):
            listener(message, self)

    def _fire_disconnect(self):
        for listener in list(self._disconnect_listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Disconnect listener failed for {self.name}: {e}")

    def __repr__(self) -> str:
        state = "connected" if self.connected else "closed"
        return f"<Port {self.name} tab={self.sender.tab_id} {state}>"


class MessageHub:
    """
    Connects automations to the background handler

    ``connect()`` returns the automation's end; listeners registered with
    ``on_connect()`` receive the background end on the next scheduler tick.
    """

    def __init__(self, scheduler: Scheduler):
        self.scheduler = scheduler
        self._connect_listeners: List[Callable[[Port], None]] = []

    def on_connect(self, listener: Callable[[Port], None]):
        self._connect_listeners.append(listener)

    def connect(self, name: str, sender: PortSender) -> Port:
        if not self._connect_listeners:
            raise PortDisconnectedException(
                "Could not establish connection. Receiving end does not exist.", name
            )

        client_end = Port(name, sender, self.scheduler)
        background_end = Port(name, copy.copy(sender), self.scheduler)
        client_end._peer = background_end
        background_end._peer = client_end

        def notify():
            for listener in list(self._connect_listeners):
                listener(background_end)

        self.scheduler.call_soon(notify)
        logger.debug(f"Port connected: {name} (tab {sender.tab_id})")
        return client_end
