import os

# Keep the import-time app in main.py away from ./data during tests.
os.environ.setdefault("EXPENSES_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("EXPENSES_DEFAULT_TIMEZONE", "UTC")
