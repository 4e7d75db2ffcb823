"""Search gateway: text query -> AutoRAG -> parsed stills."""

import logging

from ghibli_search.backend.workers_ai import WorkersAIClient
from ghibli_search.catalog.filenames import parse_search_results
from ghibli_search.config import AUTORAG_NAME, SEARCH_MAX_RESULTS, SEARCH_SCORE_THRESHOLD
from ghibli_search.errors import ValidationError
from ghibli_search.models import SearchResponse

logger = logging.getLogger(__name__)


async def search_images(
    backend: WorkersAIClient,
    query: str,
    rag_name: str = AUTORAG_NAME,
    max_results: int = SEARCH_MAX_RESULTS,
    score_threshold: float = SEARCH_SCORE_THRESHOLD,
) -> SearchResponse:
    """Run a semantic search over the stills corpus.

    Raises:
        ValidationError: The query is empty.
        BackendError: The search backend failed. Not retried.
    """
    if not query or not query.strip():
        raise ValidationError("Query parameter 'q' is required")

    records = await backend.autorag_search(
        rag_name,
        query,
        max_num_results=max_results,
        score_threshold=score_threshold,
    )
    results = parse_search_results(records)
    logger.info("Search %r returned %d results", query, len(results))
    return SearchResponse(query=query, results=results)
