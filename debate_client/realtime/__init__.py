"""
debate_client.realtime
~~~~~~~~~~~~~~~~~~~~~~
Real-time room synchronization over STOMP / WebSocket.
"""
from debate_client.realtime.channel import ChannelPhase, ChannelStateError, ConnectionState, RoomChannel
from debate_client.realtime.client import RealtimeClient
from debate_client.realtime.message_log import MessageLog, is_own
from debate_client.realtime.participants import ParticipantCounter
from debate_client.realtime.presence import TypingIndicator, TypingSignaler
from debate_client.realtime.router import RoomDestinations, SubscriptionRouter
