"""Global constants for the arena server.

Module names double as the first segment of every topic the module owns,
so they are shared here rather than imported from the modules themselves.
"""

MODULE_IAM = "iam"
MODULE_USERS = "users"
MODULE_VENUES = "venues"
MODULE_TEAMS = "teams"
MODULE_MATCHES = "matches"
MODULE_TOURNAMENTS = "tournaments"
MODULE_CHAT = "chat"
MODULE_NOTIFICATIONS = "notifications"
MODULE_ANALYTICS = "analytics"
MODULE_AI = "ai"

ALL_MODULES = (
    MODULE_IAM,
    MODULE_USERS,
    MODULE_VENUES,
    MODULE_TEAMS,
    MODULE_MATCHES,
    MODULE_TOURNAMENTS,
    MODULE_CHAT,
    MODULE_NOTIFICATIONS,
    MODULE_ANALYTICS,
    MODULE_AI,
)

# Prefix under which all module routers are mounted
API_PREFIX = "/api"
