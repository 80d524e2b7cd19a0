from __future__ import annotations

SERVER_NAME = "docmost-gateway"
SERVER_VERSION = "0.1.0"

DEFAULT_PORT = 3000

# Docmost auth cookie set by POST /api/auth/login
AUTH_COOKIE_NAME = "authToken"

SPACES_PAGE_LIMIT = 50

JSONRPC_VERSION = "2.0"
# Every envelope-level failure is reported with this code ("Invalid Request").
ENVELOPE_ERROR_CODE = -32600

DISCOVERY_PROTOCOL = "mcp-http-1"

MAX_BODY_BYTES = 5_000_000
