"""Point settings at an in-memory database before any portal module builds its engine."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_ENV", "dev")
