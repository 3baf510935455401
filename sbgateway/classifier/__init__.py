"""sbgateway classifier package.

    protocol.py   — ThreatClassifier Protocol, ThreatDescriptor, URLThreat, Stats
    cache.py      — ThreatCache (per-URL TTL cache)
    lookup_api.py — LookupAPIClassifier (Safe Browsing v4 Lookup API over httpx)
    factory.py    — create_classifier() — builds the classifier from Config
"""

from sbgateway.classifier.protocol import (
    DEFAULT_THREAT_LISTS,
    ClassifierError,
    ClassifierInitError,
    Stats,
    ThreatClassifier,
    ThreatDescriptor,
    URLThreat,
)

__all__ = [
    "DEFAULT_THREAT_LISTS",
    "ClassifierError",
    "ClassifierInitError",
    "Stats",
    "ThreatClassifier",
    "ThreatDescriptor",
    "URLThreat",
]
