"""
HybridStore - Hybrid Artifact Storage
======================================

HybridStore keeps artifacts in two places at once:

    Metadata Index  →  SQLite rows: searchable, sortable attributes
    Blob Store      →  JSON files: checksummed, optionally gzip-compressed
                       payloads behind an in-process read cache

Both halves sit behind one facade, the ArtifactAPI, which validates input,
keeps each index row pointing at exactly one payload and composes search
filters the index cannot express on its own.

Architecture Layers (top to bottom):
    1. API Layer            - ArtifactAPI (facade)
    2. Validation Layer     - Pure field validators and sanitizers
    3. Infrastructure Layer - BlobStore, MetadataIndex, ReadCache, codecs
    4. Core                 - Config, models, enums, exceptions, logging

Quick Start:
    >>> from hybridstore import ArtifactAPI
    >>> async with ArtifactAPI() as api:
    ...     await api.create({"id": "a1", "type": "cache", "category": "knowledge",
    ...                       "title": "A", "data": {"name": "a"}})
    ...     data = await api.get_data("a1")
"""

# =============================================================================
# Package Version
# =============================================================================
# Single source of truth for the package version:
#   from hybridstore import __version__
# =============================================================================
__version__ = "0.1.0"

# =============================================================================
# Package-Level Exports
# =============================================================================
# The ArtifactAPI facade is the main entry point. For specific components,
# import from submodules directly:
#   from hybridstore.core.config import HybridStoreConfig
#   from hybridstore.infrastructure import BlobStore, MetadataIndex
#   from hybridstore.validation import validate_artifact
# =============================================================================
from hybridstore.facade import ArtifactAPI

__all__ = ["ArtifactAPI", "__version__"]
