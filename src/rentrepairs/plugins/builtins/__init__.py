"""Plugins shipped with rentrepairs."""
