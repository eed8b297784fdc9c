"""Bastion-AI.

This package contains a human-approval gateway that sits between an autonomous
agent and a set of action-executing plugins. The agent proposes an action, a
human reviews a generated preview and approves it, and the agent must then
present a one-time code before the action is executed.

High-level architecture
-----------------------

The codebase is organized around a single guarded life cycle:

- **Submission**: the agent names a plugin action; the gateway asks the plugin
  to validate the parameters and to render a human-readable preview.
- **Decision**: a human approves (receiving a one-time code out of band) or
  rejects the request.
- **Confirmation**: the agent presents the code; only then is the plugin asked
  to execute the action.

Every transition is a conditional update against the request store and leaves
an append-only audit record.

Core subpackages
----------------

- ``bastion_ai.approval_core``:

  - Domain schemas (requests, audit events, plugin manifests).
  - Repository interfaces and SQL implementations with compare-and-set status
    transitions.
  - The approval engine, one-time-code service and expiry sweeper.

- ``bastion_ai.plugin_client``:

  - An async HTTP client for the plugin action protocol.
  - The plugin registry loaded once at startup.

- ``bastion_ai.server``:

  - The FastAPI application exposing the agent and admin credential domains.

- ``bastion_ai.core``:

  - Logging and Logfire monitoring configuration.
"""

__version__ = "0.1.0"
