"""
debate_client.api
~~~~~~~~~~~~~~~~~
HTTP clients for the room and auth endpoints.
"""
from debate_client.api.auth import AuthApi
from debate_client.api.client import ApiError, create_http_client
from debate_client.api.rooms import RoomApi
