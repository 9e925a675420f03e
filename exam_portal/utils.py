"""Utility functions for sanitization."""

import bleach

ALLOWED_TAGS = ["b", "i", "u", "em", "strong", "p", "br", "code", "pre", "ul", "ol", "li"]


def sanitize_text(text: str) -> str:
    """Sanitize exam titles and question prompts to prevent XSS attacks.

    Allows basic formatting tags but removes script/dangerous content.
    """
    sanitized = bleach.clean(text, tags=ALLOWED_TAGS, attributes={}, strip=True)
    return sanitized.strip()
