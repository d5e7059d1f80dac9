"""Infrastructure layer: SQLite schema, repositories and the store."""
