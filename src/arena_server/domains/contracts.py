"""Public event contracts of the business modules.

Modules never import each other. What they share is this catalog: the topic
names each module publishes and the payload model of every topic. The
publishing module declares its payload models on the context's
``PayloadContracts`` during handler registration; subscribers decode with
those models.

Topic naming: ``<owning-module>.<entity>.<action>``, all lowercase.
"""

from pydantic import BaseModel


class IamTopics:
    USER_REGISTERED = "iam.user.registered"


class UsersTopics:
    PROFILE_CREATED = "users.profile.created"
    PROFILE_UPDATED = "users.profile.updated"
    FRIEND_ADDED = "users.friend.added"


class VenuesTopics:
    VENUE_CREATED = "venues.venue.created"


class TeamsTopics:
    TEAM_CREATED = "teams.team.created"
    MEMBER_JOINED = "teams.member.joined"


class MatchesTopics:
    MATCH_CREATED = "matches.match.created"
    SCORE_UPDATED = "matches.score.updated"
    MATCH_FINISHED = "matches.match.finished"


class TournamentsTopics:
    TOURNAMENT_CREATED = "tournaments.tournament.created"
    TEAM_REGISTERED = "tournaments.team.registered"
    STANDINGS_UPDATED = "tournaments.standings.updated"


class ChatTopics:
    ROOM_CREATED = "chat.room.created"
    MESSAGE_SENT = "chat.message.sent"


class NotificationsTopics:
    NOTIFICATION_CREATED = "notifications.notification.created"


class AiTopics:
    SUMMARY_GENERATED = "ai.summary.generated"


# iam


class UserRegisteredPayload(BaseModel):
    user_id: str
    email: str
    display_name: str


# users


class ProfileCreatedPayload(BaseModel):
    user_id: str
    display_name: str


class ProfileUpdatedPayload(BaseModel):
    user_id: str
    changed_fields: list[str]


class FriendAddedPayload(BaseModel):
    user_id: str
    friend_id: str


# venues


class VenueCreatedPayload(BaseModel):
    venue_id: str
    name: str
    city: str
    sports: list[str]


# teams


class TeamCreatedPayload(BaseModel):
    team_id: str
    name: str
    sport: str
    captain_id: str


class MemberJoinedPayload(BaseModel):
    team_id: str
    user_id: str


# matches


class MatchCreatedPayload(BaseModel):
    match_id: str
    sport: str
    home: str
    away: str
    venue_id: str | None = None
    tournament_id: str | None = None


class ScoreUpdatedPayload(BaseModel):
    match_id: str
    home_score: int
    away_score: int


class MatchFinishedPayload(BaseModel):
    match_id: str
    sport: str
    home: str
    away: str
    home_score: int
    away_score: int
    winner: str | None = None
    tournament_id: str | None = None


# tournaments


class TournamentCreatedPayload(BaseModel):
    tournament_id: str
    name: str
    sport: str
    organizer_id: str


class TeamRegisteredPayload(BaseModel):
    tournament_id: str
    team_id: str


class StandingsUpdatedPayload(BaseModel):
    tournament_id: str
    match_id: str
    standings: dict[str, int]


# chat


class RoomCreatedPayload(BaseModel):
    room_id: str
    name: str
    team_id: str | None = None


class MessageSentPayload(BaseModel):
    room_id: str
    message_id: str
    sender_id: str
    text: str


# notifications


class NotificationCreatedPayload(BaseModel):
    notification_id: str
    recipient_id: str
    source_topic: str


# ai


class SummaryGeneratedPayload(BaseModel):
    match_id: str
    summary: str
