"""S3ML: classify local files by content and upload them through three S3 delivery paths."""

__version__ = "0.1.0"
