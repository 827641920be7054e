"""JobScout AI gateway.

Streams research briefs, project ideas and outreach emails from a chat
completion API with per-user rate limiting, response caching and retries.
"""

__version__ = "0.1.0"
