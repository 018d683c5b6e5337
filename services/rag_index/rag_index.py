"""Index runner entry point.

Brings the RAG index of one or more users up to date with their
persona documents and private documents.

Usage:
    python -m services.rag_index.rag_index <user_id> [<user_id> ...]
"""

import asyncio
import sys

from shared.exceptions import RAGIndexError, SyncAbortedError
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from services.rag_index.Backends import Backends


async def main(user_ids: list[str]) -> int:
    """Run the incremental sync for each user.

    Returns:
        int: Process exit code, 1 if any sync failed.
    """
    logger = setup_logging()
    backends = Backends.from_config(HelperConfig(logger=logger))

    exit_code = 0
    await backends.boot()
    try:
        try:
            await backends.do_ensure_collection()
        except RAGIndexError as e:
            logger.error("Chunk store collection is not available: %s", e)
            return 1
        coordinator = backends.create_sync_coordinator()

        for user_id in user_ids:
            try:
                stats = await coordinator.do_ensure_up_to_date(user_id)
                logger.info(
                    "User '%s': %d fetched, %d indexed, %d chunks.",
                    user_id, stats.docs_fetched, stats.docs_indexed, stats.chunks_indexed,
                )
            except SyncAbortedError as e:
                logger.error("User '%s': sync aborted after %d documents: %s", user_id, e.stats.docs_indexed, e)
                exit_code = 1
            except RAGIndexError as e:
                logger.error("User '%s': sync failed: %s", user_id, e)
                exit_code = 1
    finally:
        await backends.close()
    return exit_code


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python -m services.rag_index.rag_index <user_id> [<user_id> ...]", file=sys.stderr)
        sys.exit(2)
    sys.exit(asyncio.run(main(sys.argv[1:])))
