import os

# Tests run against an in-memory SQLite database unless told otherwise. These
# must be set before libs.common.config builds its cached Settings.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")
