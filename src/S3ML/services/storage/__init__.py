"""
Input discovery and storage backends.

Modules:
    file_processor: File discovery and input validation
    backends: Managed SDK, S3-compatible and raw SigV4 HTTP backends
"""
