############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# slugify.py: URL slug and storage filename normalization
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""URL slug generation."""

import re
import unicodedata
from pathlib import PurePosixPath

_DISALLOWED = re.compile(r"[^a-z0-9\s_-]")
_SEPARATORS = re.compile(r"[\s_-]+")


def _strip_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def slugify(text: str) -> str:
    """Generate a URL slug from arbitrary text.

    "Fé e Recomeço" -> "fe-e-recomeco". Returns an empty string when the
    input has no ASCII letters or digits; callers treat that as invalid.
    """
    if not text:
        return ""
    slug = _strip_diacritics(text).lower()
    slug = _DISALLOWED.sub("", slug)
    slug = _SEPARATORS.sub("-", slug)
    return slug.strip("-")


def clean_filename_base(filename: str) -> str:
    """Normalize an uploaded file's base name (extension dropped) for storage keys."""
    name = PurePosixPath(filename.replace("\\", "/")).name
    base = name.rsplit(".", 1)[0] if "." in name else name
    return slugify(base) or "image"


def file_extension(filename: str) -> str:
    """Return the lower-cased extension with its dot, or '' when there is none."""
    name = PurePosixPath(filename.replace("\\", "/")).name
    if "." not in name:
        return ""
    ext = name.rsplit(".", 1)[1].lower()
    return f".{ext}" if ext else ""
