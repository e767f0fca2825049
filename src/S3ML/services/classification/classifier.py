"""
Content classification from byte patterns.

Maps the raw bytes of a file to one storage category and derives the object
key ``{category}/{filename}`` used by every backend. Classification never
looks at the file extension and never fails.

Module Input:
    - Raw file bytes
    - Original file path (for key derivation only)

Module Output:
    - Category enum values
    - Storage keys
"""

from enum import Enum
from pathlib import Path, PurePath
from typing import Optional, Tuple, Union

from S3ML.core.logging_config import get_logger

logger = get_logger(__name__)


class Category(str, Enum):
    """
    Storage categories, one folder per value.

    Values:
        IMAGES: JPEG, PNG and GIF content
        DOCUMENTS: PDF content
        TEXT: Mostly printable ASCII
        ARCHIVES: ZIP containers
        MISC: Everything else, including empty files
    """
    IMAGES = "images"
    DOCUMENTS = "documents"
    TEXT = "text"
    ARCHIVES = "archives"
    MISC = "misc"


# Checked in order; the first matching prefix wins. No prefix is a prefix of
# another.
MAGIC_SIGNATURES: Tuple[Tuple[bytes, Category], ...] = (
    (b"%PDF", Category.DOCUMENTS),
    (b"\xff\xd8\xff", Category.IMAGES),        # JPEG
    (b"\x89PNG", Category.IMAGES),             # PNG
    (b"GIF8", Category.IMAGES),                # GIF87a / GIF89a
    (b"PK\x03\x04", Category.ARCHIVES),        # ZIP local file header
)

TEXT_SAMPLE_SIZE = 1024
TEXT_THRESHOLD = 0.80

_PRINTABLE = frozenset(range(0x20, 0x7F)) | {0x09, 0x0A, 0x0D}


def match_signature(data: bytes) -> Optional[Category]:
    """Return the category of the first magic prefix ``data`` starts with."""
    for signature, category in MAGIC_SIGNATURES:
        if data.startswith(signature):
            return category
    return None


def printable_ratio(data: bytes) -> float:
    """
    Fraction of printable bytes in the first ``TEXT_SAMPLE_SIZE`` bytes.

    An empty sample has ratio 0.0, so empty input never counts as text.
    """
    sample = data[:TEXT_SAMPLE_SIZE]
    if not sample:
        return 0.0
    printable = sum(1 for byte in sample if byte in _PRINTABLE)
    return printable / len(sample)


def classify(data: bytes) -> Category:
    """
    Classify raw bytes into a storage category.

    Args:
        data (bytes): File content

    Returns:
        Category: Always exactly one category

    Example:
        >>> classify(b"%PDF-1.7 ...")
        <Category.DOCUMENTS: 'documents'>
        >>> classify(b"")
        <Category.MISC: 'misc'>
    """
    category = match_signature(data)
    if category is not None:
        return category
    # Exclusive threshold: exactly 80% printable is not text
    if printable_ratio(data) > TEXT_THRESHOLD:
        return Category.TEXT
    return Category.MISC


def build_storage_key(category: Category, file_path: Union[str, PurePath]) -> str:
    """
    Derive the object key for a classified file.

    Example:
        >>> build_storage_key(Category.TEXT, Path("/tmp/file1.txt"))
        'text/file1.txt'
    """
    return f"{Category(category).value}/{PurePath(file_path).name}"


class FileClassifier:
    """
    Stateless classifier used by the orchestrator.

    Wraps :func:`classify` and :func:`build_storage_key` so callers can inject
    a different routing policy in tests.
    """

    def classify(self, data: bytes) -> Category:
        return classify(data)

    def route(self, file_path: Path, data: bytes) -> Tuple[Category, str]:
        """Classify ``data`` and return ``(category, key)`` for ``file_path``."""
        category = self.classify(data)
        key = build_storage_key(category, file_path)
        logger.info(f"Classified {file_path.name} as {category.value} -> {key}")
        return category, key
