"""Approval request engine.

Submodules:

- ``schemas``: request, audit and confirmation models.
- ``repos``: persistence interfaces and their SQL implementations.
- ``otp``: one-time code generation, hashing and verification.
- ``engine``: the request life cycle (submit, approve, reject, confirm).
- ``sweeper``: background expiry of stale requests.
- ``errors``: typed rejections carrying their HTTP status.

The package ``__init__`` does not import the engine so that
``bastion_ai.plugin_client`` can depend on the schemas without a cycle.
"""
