from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class RelationshipStatus(str, Enum):
    NONE = "none"
    REQUEST_SENT = "request_sent"
    REQUEST_RECEIVED = "request_received"
    FRIENDS = "friends"


class FriendRelationship(BaseModel):
    status: RelationshipStatus
    following: bool
    follows_you: bool
    friends: bool
    outgoing_request_id: str | None = None
    incoming_request_id: str | None = None
    friend_request_id: str | None = None


class FriendRequestCreate(BaseModel):
    recipient_id: int | None = None


class FriendRequestActionResponse(BaseModel):
    success: bool = True
    status: str
    request_id: str


class MarkSeenResponse(BaseModel):
    success: bool = True
    updated: int


class ProfileSummary(BaseModel):
    id: int
    display_name: str | None = None
    email: str | None = None


class FriendListResponse(BaseModel):
    friends: list[ProfileSummary]


class IncomingRequest(BaseModel):
    id: str
    requester: ProfileSummary
    created_at: datetime
    seen_at: datetime | None = None


class OutgoingRequest(BaseModel):
    id: str
    recipient: ProfileSummary
    created_at: datetime


class PendingRequestsResponse(BaseModel):
    incoming: list[IncomingRequest]
    outgoing: list[OutgoingRequest]


class PendingCountResponse(BaseModel):
    pending_incoming_count: int


class FriendSuggestion(ProfileSummary):
    mutual_count: int


class FriendSuggestionsResponse(BaseModel):
    suggestions: list[FriendSuggestion]
