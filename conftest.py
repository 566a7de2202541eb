"""Global pytest configuration."""

import os

# Default to the in-memory store and stub clients; set these to opt in
os.environ.setdefault("REDIS_URL", "")
os.environ.setdefault("OPENAI_API_KEY", "")
os.environ.setdefault("TAVILY_API_KEY", "")
