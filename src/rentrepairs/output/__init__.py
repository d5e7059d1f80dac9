"""Output layer: turns ServiceResult into human or JSON text."""
