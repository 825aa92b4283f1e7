"""Reference implementation of the slugify_title contract.

Run ``llmcc test slugify.contract.yaml --impl slug_reference:slugify_title
--examples slugify.examples.jsonl`` from this directory to check it.
"""

import re
import unicodedata

MAX_SLUG_LENGTH = 80


class SlugError(ValueError):
    """Raised when no slug can be produced. ``code`` names the contract error."""

    def __init__(self, message: str, code: str) -> None:
        self.code = code
        super().__init__(f"{code}: {message}")


def slugify_title(title: str) -> str:
    if not title or not title.strip():
        raise SlugError("empty input", code="SLUG_EMPTY")

    ascii_text = re.sub(r"[^\x00-\x7f]", "-", unicodedata.normalize("NFKD", title))
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_text.lower()).strip("-")
    if not slug:
        raise SlugError("no valid characters", code="SLUG_EMPTY")

    if len(slug) > MAX_SLUG_LENGTH:
        slug = slug[:MAX_SLUG_LENGTH].rstrip("-")

    if not re.fullmatch(r"[a-z0-9-]+", slug):
        raise SlugError("invalid characters remain", code="SLUG_INVALID_CHAR")
    return slug
