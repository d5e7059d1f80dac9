"""Domain layer: aggregates, status policy, specifications.

Depends only on the standard library and pydantic. Infrastructure,
services and the CLI build on top of it.
"""
