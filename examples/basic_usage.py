"""
Basic Usage Example — Store, Find and Read Artifacts
=====================================================

This example walks through the everyday HybridStore calls:
create a few artifacts, search them, read a payload back, update
one, look at the statistics and clean up.

Everything is written under a temporary directory, so the example
leaves nothing behind.

Usage:
    python examples/basic_usage.py
"""

from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path

from hybridstore import ArtifactAPI
from hybridstore.core.config import BlobStoreConfig, HybridStoreConfig, IndexConfig
from hybridstore.core.enums import OrderBy, OrderDirection
from hybridstore.core.logging import configure_logging
from hybridstore.core.models import CreateArtifactRequest, SearchRequest


async def main() -> None:
    """Run one round of create / search / read / update / delete."""
    with tempfile.TemporaryDirectory() as workdir:
        root = Path(workdir)
        config = HybridStoreConfig(
            log_level="WARNING",
            blob_store=BlobStoreConfig(base_path=str(root / "json")),
            index=IndexConfig(database_path=str(root / "sqlite" / "hybridstore.db")),
        )
        configure_logging(config)

        async with ArtifactAPI(config) as api:
            # A small payload is stored as plain JSON
            await api.create(
                CreateArtifactRequest(
                    id="prefs_alice",
                    type="user_prefs",
                    category="preferences",
                    title="Alice's preferences",
                    data={"theme": "dark", "language": "en"},
                    tags=["user", "ui"],
                    priority=6,
                )
            )

            # A large payload crosses the compression threshold
            await api.create(
                CreateArtifactRequest(
                    id="doc_fastapi",
                    type="context7",
                    category="knowledge",
                    title="FastAPI documentation",
                    description="Routing and dependency injection notes",
                    data={"pages": ["routing " * 300, "dependencies " * 300]},
                    tags=["docs", "python"],
                )
            )

            result = await api.bulk_create(
                [
                    {
                        "id": f"log_{day}",
                        "type": "logs",
                        "category": "logs",
                        "title": f"Request log {day}",
                        "data": {"requests": day * 100},
                        "tags": ["logs"],
                        "priority": 2,
                    }
                    for day in range(1, 4)
                ]
            )

            print("Created")
            print("-" * 40)
            for artifact_id in ("prefs_alice", "doc_fastapi"):
                record = await api.get(artifact_id)
                print(
                    f"{record.id:<12} priority={record.priority:<2} "
                    f"size={record.file_size:<6} compressed={record.compressed}"
                )
            print(f"bulk: {len(result.created)} created, {len(result.failed)} failed")
            print()

            # Search by tag, then free text
            docs = await api.search(SearchRequest(tags=["docs", "ui"]))
            print("Tagged docs or ui :", [r.id for r in docs])

            by_title = await api.search(
                SearchRequest(
                    query="log",
                    order_by=OrderBy.TITLE,
                    order_direction=OrderDirection.ASC,
                )
            )
            print("Matching 'log'    :", [r.title for r in by_title])
            print()

            # Reading a payload counts an access
            prefs = await api.get_data("prefs_alice")
            print("Alice's theme     :", prefs["theme"])

            updated = await api.update(
                {"id": "prefs_alice", "metadata": {"device": "laptop"}, "data": {"theme": "light"}}
            )
            print("Access count      :", updated.access_count)
            print("Verified on disk  :", await api.verify("prefs_alice"))
            print()

            stats = await api.stats()
            print("Statistics")
            print("-" * 40)
            print(f"Total artifacts : {stats.total_artifacts}")
            print(f"By type         : {stats.by_type}")
            print(f"Top tags        : {[(t.tag, t.count) for t in stats.top_tags]}")

            health = await api.health_check()
            print(f"Health          : {health.status.value}")

            removed = await api.bulk_delete([f"log_{day}" for day in range(1, 4)])
            print(f"Removed logs    : {removed.deleted}")


if __name__ == "__main__":
    asyncio.run(main())
