"""relsync – Pytest Configuration.

Shared fixtures for all tests.
"""

import os

# Point the gateway at a fake upstream before any settings are loaded
os.environ["ENVIRONMENT"] = "testing"
os.environ["UPSTREAM_URL"] = "http://cms.test"
os.environ["LOG_LEVEL"] = "debug"
os.environ.pop("DEFAULT_LOCALE", None)
os.environ.pop("SYNC_CONFIG_PATH", None)

import pytest

from relsync.core.content_types import parse_sync_config
from tests.fakes import InMemoryStore


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def article_config():
    """Sync configuration with every relation shape on one content type."""
    return parse_sync_config(
        {
            "defaultLocale": "en",
            "types": [
                {
                    "api": "api::article.article",
                    "endpoint": "articles",
                    "rootRelations": ["author", "tags"],
                    "componentRelations": [
                        {"componentField": "relatedArticles", "relationField": "article"},
                    ],
                    "dynamicRelations": [
                        {
                            "dynamicField": "dynamicContent",
                            "componentField": "sections.hotspot-image",
                            "relationField": "hotspotImage",
                        },
                        {
                            "dynamicField": "dynamicContent",
                            "componentField": "sections.hotspot-gallery",
                            "repeatingComponentField": "hotspots",
                            "relationField": "hotspotImage",
                        },
                    ],
                }
            ],
        }
    )


@pytest.fixture
def article_type(article_config):
    return article_config.types[0]


@pytest.fixture
def store():
    return InMemoryStore()
