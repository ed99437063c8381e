"""
Protocol definitions for the direct-message chat relay.

This module defines the message structures and data formats used in communication
between client and server components. Every event travels as one JSON object per
line; the ``type`` field names the event.
"""

import json
from typing import Dict, Any, Optional, List
from dataclasses import dataclass

from common.constants import InboundEvent, OutboundEvent


@dataclass
class OnlineUser:
    """Online user structure."""
    id: str
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}


@dataclass
class MessagePayload:
    """Delivered message structure, shared by receiveMessage and messageSent."""
    id: str
    sender_id: str
    receiver_id: str
    content: str
    timestamp: int  # epoch milliseconds

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "senderId": self.sender_id,
            "receiverId": self.receiver_id,
            "content": self.content,
            "timestamp": self.timestamp
        }


@dataclass
class ConversationEntry:
    """History entry structure."""
    id: str
    sender_id: str
    receiver_id: str
    content: str
    timestamp: int
    sender_name: Optional[str] = None
    receiver_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "senderId": self.sender_id,
            "receiverId": self.receiver_id,
            "content": self.content,
            "timestamp": self.timestamp,
            "senderName": self.sender_name,
            "receiverName": self.receiver_name
        }


def encode_message(message: Dict[str, Any]) -> bytes:
    """Serialize a message to a newline-terminated JSON line."""
    return json.dumps(message).encode('utf-8') + b'\n'


def decode_message(line: bytes) -> Dict[str, Any]:
    """Parse one JSON line. Raises ValueError on malformed input."""
    message = json.loads(line.decode('utf-8').strip())
    if not isinstance(message, dict):
        raise ValueError("Message must be a JSON object")
    return message


def parse_inbound_event(message: Dict[str, Any]) -> InboundEvent:
    """Resolve the event type of an inbound message. Raises ValueError if unknown."""
    msg_type = message.get('type')
    if not isinstance(msg_type, str) or not msg_type:
        raise ValueError("Missing message type")
    return InboundEvent(msg_type)


# Client to Server

def create_register_message(user_id: str) -> Dict[str, Any]:
    """Create a register message."""
    return {
        "type": InboundEvent.REGISTER.value,
        "userId": user_id
    }


def create_send_message(sender_id: str, receiver_id: str, content: str) -> Dict[str, Any]:
    """Create a direct message send request."""
    return {
        "type": InboundEvent.SEND.value,
        "senderId": sender_id,
        "receiverId": receiver_id,
        "content": content
    }


def create_get_conversation_message(user_b: str, user_a: Optional[str] = None) -> Dict[str, Any]:
    """Create a conversation history request."""
    message = {
        "type": InboundEvent.GET_CONVERSATION.value,
        "userB": user_b
    }
    if user_a is not None:
        message["userA"] = user_a
    return message


def create_disconnect_message() -> Dict[str, Any]:
    """Create a disconnect message."""
    return {
        "type": InboundEvent.DISCONNECT.value
    }


# Server to Client

def create_online_users_message(users: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Create an online users message."""
    return {
        "type": OutboundEvent.ONLINE_USERS.value,
        "users": users
    }


def create_receive_message(payload: MessagePayload) -> Dict[str, Any]:
    """Create a receiveMessage event."""
    return {"type": OutboundEvent.RECEIVE_MESSAGE.value, **payload.to_dict()}


def create_message_sent(payload: MessagePayload) -> Dict[str, Any]:
    """Create a messageSent confirmation."""
    return {"type": OutboundEvent.MESSAGE_SENT.value, **payload.to_dict()}


def create_message_error(error: str) -> Dict[str, Any]:
    """Create a messageError event."""
    return {
        "type": OutboundEvent.MESSAGE_ERROR.value,
        "error": error
    }


def create_conversation_message(user_a: str, user_b: str, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Create a conversation history response."""
    return {
        "type": OutboundEvent.CONVERSATION.value,
        "userA": user_a,
        "userB": user_b,
        "messages": messages,
        "count": len(messages)
    }


def create_error_message(message: str) -> Dict[str, Any]:
    """Create an error message."""
    return {
        "type": OutboundEvent.ERROR.value,
        "message": message
    }
