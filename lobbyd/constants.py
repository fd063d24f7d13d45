# lobbyd protocol constants (message types, field names, defaults)

PROTO_NAME = "lobbyd"
PROTO_VERSION = 1

# Message fields
F_TYPE = "type"
F_CLIENT_ID = "client_id"
F_LOBBY_ID = "lobby_id"
F_LOBBY = "lobby"
F_LOBBIES = "lobbies"
F_DISPLAY_NAME = "display_name"
F_GAME_VERSION = "game_version"
F_MEMBERS = "members"
F_CREATED_AT = "created_at"
F_MESSAGE = "message"
F_PAYLOAD = "payload"

# Inbound message types
T_HELLO = "hello"
T_LIST_LOBBIES = "list_lobbies"
T_CREATE_LOBBY = "create_lobby"
T_JOIN_LOBBY = "join_lobby"
T_LEAVE_LOBBY = "leave_lobby"
T_HEARTBEAT = "heartbeat"
T_RELAY = "relay"

# Outbound-only message types
T_LOBBY_LIST = "lobby_list"
T_JOINED_LOBBY = "joined_lobby"
T_ERROR = "error"

# Error texts sent to clients
E_LOBBY_NOT_FOUND = "Lobby not found"
E_NOT_MEMBER = "Not a member of lobby"

# Defaults applied to missing or empty fields
DEFAULT_DISPLAY_NAME = "Lobby"
DEFAULT_GAME_VERSION = "unknown"

# Identifier prefixes
CLIENT_ID_PREFIX = "c"
LOBBY_ID_PREFIX = "l"

# Presence timing (seconds)
REAP_INTERVAL_S = 15.0
STALE_AFTER_S = 45.0
