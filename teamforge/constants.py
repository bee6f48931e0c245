"""Global constants for the teamforge application."""

# Firestore collections
TOURNAMENTS_COLLECTION = "tournaments"
TOURNAMENT_DATES_COLLECTION = "tournament_dates"
TEAMS_COLLECTION = "teams"
INVITES_COLLECTION = "team_invites"
USERS_COLLECTION = "users"

# Tournament types and the roster size each one requires
TOURNAMENT_TYPE_TEAM_SIZE = {
    "solo": 1,
    "duo": 2,
    "squad": 4,
}
VALID_TEAM_SIZES = (1, 2, 4)

# Legacy date buckets only ever hosted squads
LEGACY_TEAM_SIZE = 4

# Roster sizes a team may shrink to after creation (3 only while a squad
# is waiting on a replacement)
POST_CREATION_ROSTER_SIZES = (1, 2, 3, 4)

# Roles
ROLE_PLAYER = "player"
ROLE_ADMIN = "admin"
ROLE_SUPER_ADMIN = "super_admin"
ADMIN_ROLES = (ROLE_ADMIN, ROLE_SUPER_ADMIN)

# Defaults
DEFAULT_BULK_MAX_WORKERS = 8
DEFAULT_INCOMPLETE_TEAM_GRACE_HOURS = 48
SUGGESTED_NAME_LIMIT = 5
MAX_SUGGESTED_NAME_LIMIT = 10

TEAM_NAME_CANDIDATES = (
    "Team Alpha",
    "Team Omega",
    "Dragon Slayers",
    "Squad One",
    "Night Owls",
    "Storm Chasers",
    "Phoenix Rising",
    "Shadow Squad",
    "Team Victory",
    "Elite Force",
    "Team Spirit",
    "Thunder Strike",
    "Team Nexus",
    "Frost Legends",
    "Blaze Squad",
)
