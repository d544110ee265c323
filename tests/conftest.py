"""
Shared Test Fixtures for HybridStore
=====================================

Reusable pytest fixtures, organized by layer:

    1. Configuration fixtures (everything rooted in pytest's tmp_path)
    2. Infrastructure fixtures (BlobStore, MetadataIndex)
    3. Facade fixtures (ArtifactAPI)
"""

from __future__ import annotations

from pathlib import Path

import pytest

from hybridstore.core.config import (
    BlobStoreConfig,
    HybridStoreConfig,
    IndexConfig,
)
from hybridstore.facade import ArtifactAPI
from hybridstore.infrastructure.blob_store import BlobStore
from hybridstore.infrastructure.metadata_index import MetadataIndex


# =============================================================================
# Configuration
# =============================================================================

@pytest.fixture
def blob_config(tmp_path: Path) -> BlobStoreConfig:
    """Blob store settings rooted in a temporary directory."""
    return BlobStoreConfig(base_path=str(tmp_path / "json"))


@pytest.fixture
def index_config(tmp_path: Path) -> IndexConfig:
    """Index settings with a temporary database file."""
    return IndexConfig(database_path=str(tmp_path / "sqlite" / "store.db"))


@pytest.fixture
def config(blob_config: BlobStoreConfig, index_config: IndexConfig) -> HybridStoreConfig:
    """Full configuration with temporary storage locations."""
    return HybridStoreConfig(blob_store=blob_config, index=index_config)


# =============================================================================
# Infrastructure
# =============================================================================

@pytest.fixture
def blob_store(blob_config: BlobStoreConfig) -> BlobStore:
    """Fresh BlobStore with the default TTL cache and gzip codec."""
    return BlobStore(blob_config)


@pytest.fixture
async def index(index_config: IndexConfig):
    """Connected MetadataIndex, closed after the test."""
    metadata_index = MetadataIndex(index_config)
    await metadata_index.connect()
    yield metadata_index
    await metadata_index.close()


# =============================================================================
# Facade
# =============================================================================

@pytest.fixture
async def api(config: HybridStoreConfig):
    """Initialized ArtifactAPI, shut down after the test."""
    artifact_api = ArtifactAPI(config)
    await artifact_api.initialize()
    yield artifact_api
    await artifact_api.shutdown()
