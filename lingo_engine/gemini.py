"""Gemini client factory — one shared google-genai client, built on first use."""

import logging

from .config import Settings, settings

log = logging.getLogger("gemini")

# Lazy-loaded client
_client = None


def create_client(cfg: Settings):
    """Build a new google-genai client. Raises ConfigurationError without a key."""
    from google import genai

    client = genai.Client(api_key=cfg.require_api_key())
    log.info("Gemini client initialized")
    return client


def get_client(cfg: Settings = settings):
    """Return the process-wide client, creating it on first call."""
    global _client
    if _client is None:
        _client = create_client(cfg)
    return _client
