"""sbgateway: a local Safe Browsing API v4 lookup gateway.

Serves a small, stateless subset of the Safe Browsing API v4 over HTTP so that
clients on the same machine or LAN can look up URLs without holding their own
API key. The gateway itself is an API v4 client: it forwards lookups to a
shared threat classifier which owns the upstream credentials and the cache.

Layout:
    main.py       — FastAPI application factory, lifespan, dispatcher table
    run.py        — CLI / uvicorn entry point
    config.py     — YAML + env + flag configuration
    health.py     — /status and /_ah/health
    gateway/      — /v4/threatMatches:find and /v4/threatLists
    protocol/     — message schema, wire codec, content negotiation
    classifier/   — classifier interface and the Lookup API implementation
"""

__version__ = "1.0.0"
