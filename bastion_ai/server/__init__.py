"""
FastAPI server for the Bastion-AI gateway.

Two credential domains share one application:

- the agent domain (``/request...``), authenticated with the agent API key;
- the admin domain (``/api/...``), authenticated with the approver password
  or a session cookie obtained from ``POST /api/login``.
"""
