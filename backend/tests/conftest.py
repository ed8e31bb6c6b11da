"""Root conftest — shared test configuration."""

import os

# Human-readable logs in test output; admin access off unless a test enables it
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("ADMIN_TOKEN", "")
