"""
HTML to plain text for the AI extraction fallback.

The cleaner parses the page once with BeautifulSoup and applies an ordered
list of removal rules to the tree: executable blocks and comments first,
then noise blocks matched by id/class, then page chrome. The remaining text
is joined with spaces, whitespace is collapsed and the result is truncated.
"""

import re
from typing import Callable, Optional

from bs4 import BeautifulSoup, Comment, Tag

from mealplanner.config import get_settings

settings = get_settings()

NOISE_PATTERN = re.compile(
    r"comment|review|respond|sidebar|related|recommended|"
    r"\bads?\b|\badvert\w*|sponsor|promo|share|social",
    re.IGNORECASE,
)

WHITESPACE_PATTERN = re.compile(r"\s+")


def _decompose_all(tags) -> None:
    for tag in tags:
        # A nested match may already be gone with its parent
        if not tag.decomposed:
            tag.decompose()


def _strip_executable(soup: BeautifulSoup) -> None:
    _decompose_all(soup.find_all(["script", "style", "noscript"]))


def _strip_comments(soup: BeautifulSoup) -> None:
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()


def _is_noise(tag: Tag) -> bool:
    for attr in ("id", "class"):
        value = tag.get(attr)
        if not value:
            continue
        if isinstance(value, list):
            value = " ".join(value)
        if NOISE_PATTERN.search(value):
            return True
    return False


def _strip_noise_blocks(soup: BeautifulSoup) -> None:
    _decompose_all(soup.find_all(_is_noise))


def _strip_page_chrome(soup: BeautifulSoup) -> None:
    _decompose_all(soup.find_all(["header", "footer", "nav"]))


CLEANING_RULES: list[Callable[[BeautifulSoup], None]] = [
    _strip_executable,
    _strip_comments,
    _strip_noise_blocks,
    _strip_page_chrome,
]


def clean_html_text(html: str, max_chars: Optional[int] = None) -> str:
    """
    Reduce raw page markup to plain text, truncated to max_chars.

    max_chars defaults to the configured LLM content limit.
    """
    if max_chars is None:
        max_chars = settings.llm_content_char_limit

    if not html:
        return ""

    soup = BeautifulSoup(html, "lxml")
    for rule in CLEANING_RULES:
        rule(soup)

    text = WHITESPACE_PATTERN.sub(" ", soup.get_text(" ")).strip()
    return text[:max_chars]
