from .classifier import Category, FileClassifier, build_storage_key, classify

__all__ = ["Category", "FileClassifier", "build_storage_key", "classify"]
