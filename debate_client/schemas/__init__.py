"""
debate_client.schemas
~~~~~~~~~~~~~~~~~~~~~
Pydantic schemas for the HTTP API and the real-time channel.
"""
from debate_client.schemas.realtime import (
    ChatMessage,
    ChatSendPayload,
    JoinSendPayload,
    ParticipantCount,
    ParticipantIdentity,
    RoomEvent,
    Topic,
    TypingSendPayload,
    TypingSignal,
    decode_event,
)
from debate_client.schemas.room import (
    RoomCreateRequest,
    RoomDetail,
    RoomSummary,
    UserInfo,
)
