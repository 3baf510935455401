"""FastAPI dependencies for the process-wide collaborators.

create_app() stores the injected Config and ThreatClassifier on ``app.state``;
handlers receive them through these dependencies instead of reaching into
module globals. The Config is read-only; the classifier is safe for
concurrent use.
"""

from __future__ import annotations

from fastapi import Request

from sbgateway.classifier.protocol import ThreatClassifier
from sbgateway.config import Config


def get_config(request: Request) -> Config:
    return request.app.state.config


def get_classifier(request: Request) -> ThreatClassifier:
    return request.app.state.classifier
