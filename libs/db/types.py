"""Column types that map to PostgreSQL natives and still work on SQLite."""

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

# JSONB on PostgreSQL, plain JSON elsewhere (test database)
JSONDocument = JSON().with_variant(JSONB(), "postgresql")
