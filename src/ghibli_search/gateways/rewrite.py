"""Query rewrite gateway: image caption -> short search phrase."""

import logging

from ghibli_search.backend.workers_ai import WorkersAIClient
from ghibli_search.config import REWRITE_MAX_TOKENS, REWRITE_MODEL_NAME
from ghibli_search.errors import ValidationError
from ghibli_search.sanitizer import sanitize_query

logger = logging.getLogger(__name__)

QUERY_REWRITE_PROMPT = """You are a search query writer for a Studio Ghibli movie stills search engine.

Your job: Convert a verbose image description into a short, poetic search phrase that will find similar anime scenes. The search engine uses semantic matching, so your phrase should capture the mood, subject, and atmosphere of the scene.

Your output will be used directly as a search query, so it MUST be a complete, meaningful phrase - not a fragment or incomplete sentence.

RULES:
- Write a COMPLETE phrase (4-8 words) that makes sense on its own
- NEVER end with articles or prepositions (e.g. "a", "an", "the", "of", "with", "in", "on", "to", "for", "and")
- NEVER mention "image", "picture", "shows", "depicts" - describe the scene itself
- Use dreamlike, atmospheric words that evoke Studio Ghibli's visual style
- NO markdown, quotes, or punctuation components or characters
- NO prefixes like "Output:" or "Search:"

EXAMPLES:
Input: "The image shows a young girl flying through clouds on a broomstick with a black cat sitting behind her."
Output: witch girl flying through soft clouds with black cat

Input: "A close up portrait of a young man is presented in the image with a thoughtful expression."
Output: dreaming young man portrait

Input: "A serene forest scene with ancient trees covered in moss and small white spirits standing among the roots."
Output: misty forest with gentle tree spirits

Input: "A red airplane flying over green rolling hills with white clouds in a bright blue sky."
Output: red airplane soaring over green hills

Input: "The image depicts a large castle floating in the sky surrounded by clouds at sunset."
Output: floating castle in golden sunset clouds

Input: "A young woman with long blonde hair sitting alone by a window looking out at the rain falling outside."
Output: lonely girl watching rain by window

Input: "A close-up of a person's face with soft lighting and a melancholic expression."
Output: melancholic portrait with soft lighting

Input: "The screenshot shows a yellow-themed user interface with various buttons."
Output: yellow themed interface design"""


async def rewrite_query(
    backend: WorkersAIClient,
    description: str,
    model: str = REWRITE_MODEL_NAME,
    max_tokens: int = REWRITE_MAX_TOKENS,
) -> str:
    """Ask the text-generation model for a search phrase and sanitize it.

    An empty model response falls back to the description itself.

    Raises:
        ValidationError: ``description`` is missing or not a string.
        BackendError: The model call failed.
    """
    if not description or not isinstance(description, str):
        raise ValidationError("Description is required")

    result = await backend.run(
        model,
        {
            "messages": [
                {"role": "system", "content": QUERY_REWRITE_PROMPT},
                {"role": "user", "content": description},
            ],
            "max_tokens": max_tokens,
        },
    )
    response = result.get("response")
    if not isinstance(response, str) or not response.strip():
        response = description
    search_query = sanitize_query(response, fallback_source=description)
    logger.info("Rewrote description into %r", search_query)
    return search_query
