"""
Token estimation backed by tiktoken.
"""

import logging
from functools import lru_cache

import tiktoken

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _encoding():
    try:
        return tiktoken.encoding_for_model("gpt-4")
    except Exception as e:
        # encoding_for_model needs a network fetch on first use
        logger.debug(f"encoding_for_model failed ({e}), trying cl100k_base")
        try:
            return tiktoken.get_encoding("cl100k_base")
        except Exception as e2:
            logger.warning(f"tiktoken encoding unavailable, using character estimate: {e2}")
            return None


def estimate_tokens(text: str) -> int:
    """Count tokens in text; roughly four characters per token when no encoding is available."""
    if not text:
        return 0
    encoding = _encoding()
    if encoding is None:
        return max(1, len(text) // 4)
    return len(encoding.encode(text, disallowed_special=()))
