"""Classifier factory: builds the shared ThreatClassifier from Config.

The Lookup API classifier is the only implementation shipped. It keeps no
local hash-prefix database, so a configured ``db_path`` is logged and not
used.

Raises ClassifierInitError on any construction failure; run.py turns that
into a non-zero exit before the listener starts.
"""

from __future__ import annotations

from sbgateway.classifier.cache import ThreatCache
from sbgateway.classifier.lookup_api import LookupAPIClassifier
from sbgateway.classifier.protocol import (
    DEFAULT_THREAT_LISTS,
    ClassifierInitError,
    ThreatClassifier,
)
from sbgateway.config import Config
from sbgateway.utils.logger import get_logger

logger = get_logger(__name__)


def create_classifier(config: Config) -> ThreatClassifier:
    """Create the classifier shared by all requests.

    Raises:
        ClassifierInitError: Missing API key, invalid upstream URL or cache
                             settings.
    """
    if config.cache.max_entries < 0:
        raise ClassifierInitError(
            f"cache.max_entries must not be negative, got {config.cache.max_entries}"
        )

    classifier = LookupAPIClassifier(
        config.upstream.api_key,
        base_url=config.upstream.base_url,
        threat_lists=config.threat_lists,
        client_id=config.upstream.client_id,
        client_version=config.upstream.client_version,
        negative_ttl_s=config.cache.negative_ttl_s,
        cache=ThreatCache(config.cache.max_entries),
        timeout_s=config.upstream.timeout_s,
    )

    if config.db_path:
        logger.warning(
            "Lookup API classifier keeps no local database, db_path ignored",
            db_path=config.db_path,
        )

    lists = config.threat_lists or DEFAULT_THREAT_LISTS
    logger.info(
        "classifier_selected",
        classifier="LookupAPIClassifier",
        base_url=config.upstream.base_url,
        threat_lists=["/".join(descriptor.names()) for descriptor in lists],
        negative_cache_ttl_s=config.cache.negative_ttl_s,
    )
    return classifier
