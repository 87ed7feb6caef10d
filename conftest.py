"""Global pytest configuration."""

import os

# Pin the test environment before any app imports read settings
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.pop("DATABASE_URL", None)
os.environ.pop("REDIS_URL", None)
