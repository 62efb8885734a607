import os

# The application engine is created at import time; keep tests off postgres.
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
