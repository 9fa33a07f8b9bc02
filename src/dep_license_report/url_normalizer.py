"""
URL rewriting and classification rules.

Every rule is one row in a pattern table so it can be audited and tested on
its own. Rows are applied top to bottom; a row that does not match passes the
URL through unchanged.
"""

import re
from dataclasses import dataclass
from typing import Any, List, Pattern
from urllib.parse import urlparse


@dataclass(frozen=True)
class UrlRewriteRule:
    """A single regex-based URL rewrite."""

    name: str
    pattern: Pattern[str]
    replacement: str

    def apply(self, url: str) -> str:
        return self.pattern.sub(self.replacement, url)


REPOSITORY_URL_RULES: List[UrlRewriteRule] = [
    # git+https://x, and the crawler's https://git+https://x
    UrlRewriteRule(
        "git_http_prefix",
        re.compile(r"^(?:https?://)?git\+(https?://.*)$"),
        r"\1",
    ),
    # git+ssh://git@host/path
    UrlRewriteRule(
        "git_ssh_prefix",
        re.compile(r"^(?:https?://)?git\+ssh://(?:[^@/]+@)?(.*)$"),
        r"https://\1",
    ),
    UrlRewriteRule(
        "github_typo",
        re.compile(r"^https://wwwhub\.com/(.*)$"),
        r"https://github.com/\1",
    ),
]

GITHUB_BLOB_RULE = UrlRewriteRule(
    "github_blob_to_raw",
    re.compile(r"^https?://github\.com/([^/]+)/([^/]+)/blob/(.*)$"),
    r"https://raw.githubusercontent.com/\1/\2/\3",
)

DIRECT_LICENSE_PATTERN = re.compile(r"licen[cs]e[^/]*$", re.IGNORECASE)

HTML_DOCUMENT_PATTERN = re.compile(r"<html[\s>]", re.IGNORECASE)

BLOCK_COMMENT_MARKER = "/*"

# A line break with non-blank characters on both sides
_SINGLE_LINE_BREAK = re.compile(r"(?<=[^\r\n])\r?\n(?=[^\r\n])")


def normalize_repository_url(url: Any) -> Any:
    """
    Rewrite known anomalies in a repository or license URL.

    Non-string values (missing crawler fields) are returned as-is.
    """
    if not isinstance(url, str):
        return url

    for rule in REPOSITORY_URL_RULES:
        url = rule.apply(url)
    return url


def to_raw_github_url(url: str) -> str:
    """Point a GitHub ``blob`` page at the raw file content instead."""
    return GITHUB_BLOB_RULE.apply(url)


def is_direct_license_url(url: Any) -> bool:
    """True when the last path segment of ``url`` ends in a license file name."""
    if not isinstance(url, str) or not url:
        return False

    try:
        path = urlparse(url).path.rstrip("/")
    except ValueError:
        return False
    if not path:
        return False
    return bool(DIRECT_LICENSE_PATTERN.search(path.rsplit("/", 1)[-1]))


def looks_like_html(text: str) -> bool:
    return bool(HTML_DOCUMENT_PATTERN.search(text))


def reflow_license_text(text: str) -> str:
    """
    Join hard-wrapped lines into paragraphs.

    Text containing a block comment is source code with an embedded license
    and keeps its line breaks.
    """
    if BLOCK_COMMENT_MARKER in text:
        return text
    return _SINGLE_LINE_BREAK.sub(" ", text)


def guess_base_url(repository: str, guess_path: str = "raw/master") -> str:
    """Base URL that candidate license filenames are appended to."""
    return f"{repository.rstrip('/')}/{guess_path.strip('/')}/"
