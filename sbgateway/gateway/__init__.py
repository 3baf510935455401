"""sbgateway v4 endpoints.

    dependencies.py — FastAPI dependencies exposing the shared Config and classifier
    lookup.py       — POST /v4/threatMatches:find
    lists.py        — GET  /v4/threatLists
"""
