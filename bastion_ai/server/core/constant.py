PROJECT_NAME = "Bastion-AI Gateway"
API_VERSION = "0.1.0"
ADMIN_API_PREFIX = "/api"
SESSION_COOKIE_NAME = "bastion_session"
AUDIT_SEARCH_LIMIT = 100
