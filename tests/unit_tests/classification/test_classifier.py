from pathlib import Path

import pytest

from S3ML.services.classification import Category, FileClassifier, build_storage_key, classify
from S3ML.services.classification.classifier import printable_ratio
from tests.consts import PNG_HEADER


@pytest.mark.parametrize(
    "trailer",
    [b"", b"-1.7\n", bytes(range(256)), b"\x00" * 4096, b"PK\x03\x04"],
)
def test_pdf_prefix_is_document_regardless_of_trailer(trailer):
    assert classify(b"%PDF" + trailer) is Category.DOCUMENTS


@pytest.mark.parametrize(
    "data, expected",
    [
        (b"\xff\xd8\xff\xe0" + b"\x00" * 16, Category.IMAGES),
        (PNG_HEADER + b"\x00" * 16, Category.IMAGES),
        (b"GIF89a" + b"\x00" * 16, Category.IMAGES),
        (b"GIF87a", Category.IMAGES),
        (b"PK\x03\x04" + b"\x14\x00" * 8, Category.ARCHIVES),
    ],
)
def test_magic_prefixes(data, expected):
    assert classify(data) is expected


def test_mostly_printable_is_text():
    assert classify(b"This is a sample text file for testing S3 uploads.\n") is Category.TEXT


def test_tabs_and_line_breaks_count_as_printable():
    assert classify(b"a\tb\r\nc\n" * 50) is Category.TEXT


def test_exactly_eighty_percent_is_not_text():
    data = b"abcdefgh" + b"\x00\x01"
    assert printable_ratio(data) == pytest.approx(0.8)
    assert classify(data) is Category.MISC


def test_just_above_eighty_percent_is_text():
    data = b"a" * 81 + b"\x00" * 19
    assert classify(data) is Category.TEXT


def test_empty_input_is_misc():
    assert printable_ratio(b"") == 0.0
    assert classify(b"") is Category.MISC


def test_only_first_kilobyte_is_sampled():
    assert classify(b"a" * 1024 + b"\x00" * 8192) is Category.TEXT
    assert classify(b"\x00" * 1024 + b"a" * 8192) is Category.MISC


def test_binary_noise_is_misc():
    assert classify(bytes(range(256)) * 4) is Category.MISC


def test_short_prefix_fragments_do_not_match():
    # Too short to hold any full signature, and not printable enough for text
    assert classify(b"\xff\xd8") is Category.MISC


def test_build_storage_key_uses_file_name_only():
    assert build_storage_key(Category.TEXT, Path("/tmp/nested/file1.txt")) == "text/file1.txt"
    assert build_storage_key(Category.MISC, "empty.bin") == "misc/empty.bin"


def test_classifier_route():
    category, key = FileClassifier().route(Path("/data/scan.pdf"), b"%PDF-1.4")
    assert category is Category.DOCUMENTS
    assert key == "documents/scan.pdf"


def test_category_values_are_folder_names():
    assert {c.value for c in Category} == {"images", "documents", "text", "archives", "misc"}
