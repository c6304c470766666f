"""Document storage backed by PostgreSQL JSONB."""
