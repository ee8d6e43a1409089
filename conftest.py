"""Root pytest configuration."""

import os

# Settings are cached on first use; point them at sqlite before the app is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
