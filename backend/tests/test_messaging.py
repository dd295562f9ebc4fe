"""
Tests for in-process ports and the message hub
"""

import os
import sys
from unittest.mock import Mock

import pytest

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from exceptions import PortDisconnectedException
from shared.messaging import MessageHub, MessageType, PortSender, make_message


@pytest.fixture
def hub(scheduler):
    return MessageHub(scheduler)


@pytest.fixture
def connected(hub, pump):
    """(client end, background end) of one freshly connected port"""
    background_ends = []
    hub.on_connect(background_ends.append)
    client = hub.connect("indeed-search-1700000000000-abc123", PortSender(3, "https://www.indeed.com/jobs"))
    pump()
    return client, background_ends[0]


class TestMakeMessage:
    """Tests for make_message"""

    def test_data_and_extra_fields(self):
        """Should put data under "data" and extras at the top level"""
        message = make_message(MessageType.APPLICATION_ERROR, "Form not found", url="https://x.test/job")
        assert message == {
            "type": "APPLICATION_ERROR",
            "data": "Form not found",
            "url": "https://x.test/job",
        }

    def test_data_omitted_when_none(self):
        """Should leave out "data" when there is none"""
        assert make_message(MessageType.KEEPALIVE) == {"type": "KEEPALIVE"}


class TestMessageHub:
    """Tests for MessageHub.connect"""

    def test_connect_without_listener_raises(self, hub):
        """Connecting with no background handler fails like a missing receiver"""
        with pytest.raises(PortDisconnectedException) as exc_info:
            hub.connect("lever-apply-1-x", PortSender(1))
        assert exc_info.value.port_name == "lever-apply-1-x"

    def test_background_end_shares_name_and_sender(self, connected):
        """Should give the background end the same name and sender tab"""
        client, background = connected
        assert background.name == client.name
        assert background.sender.tab_id == 3
        assert background.sender.url == "https://www.indeed.com/jobs"


class TestPort:
    """Tests for Port delivery and disconnect"""

    def test_messages_are_delivered_on_next_tick(self, connected, pump):
        """Should deliver posted messages on the next scheduler tick"""
        client, background = connected
        listener = Mock()
        background.on_message(listener)

        client.post_message(make_message(MessageType.GET_SEARCH_TASK))
        listener.assert_not_called()

        pump()
        listener.assert_called_once_with({"type": "GET_SEARCH_TASK"}, background)

    def test_messages_are_copied(self, connected, pump):
        """Mutating a message after posting does not change what is delivered"""
        client, background = connected
        received = []
        background.on_message(lambda message, port: received.append(message))

        payload = {"type": MessageType.PROGRESS_UPDATE, "data": {"completed": 1}}
        client.post_message(payload)
        payload["data"]["completed"] = 99
        pump()

        assert received[0]["data"]["completed"] == 1

    def test_disconnect_notifies_only_the_other_end(self, connected, pump):
        """Should fire the disconnect listener on the peer only"""
        client, background = connected
        client_listener = Mock()
        background_listener = Mock()
        client.on_disconnect(client_listener)
        background.on_disconnect(background_listener)

        client.disconnect()
        pump()

        background_listener.assert_called_once_with(background)
        client_listener.assert_not_called()
        assert not background.connected

    def test_post_on_closed_port_raises(self, connected):
        """Should raise PortDisconnectedException when posting on a closed port"""
        client, _ = connected
        client.disconnect()
        with pytest.raises(PortDisconnectedException):
            client.post_message(make_message(MessageType.KEEPALIVE))

    def test_queued_message_to_closed_port_is_dropped(self, connected, pump):
        """Should drop queued messages when the receiver closes first"""
        client, background = connected
        listener = Mock()
        background.on_message(listener)

        client.post_message(make_message(MessageType.KEEPALIVE))
        background.disconnect()
        pump()

        listener.assert_not_called()
