"""HTTP routers: agent domain, admin domain and unauthenticated health checks."""
