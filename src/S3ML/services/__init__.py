"""
Core services for the S3ML uploader.

Packages:
    classification: Byte-signature content classifier and storage key routing
    signing: AWS Signature Version 4 request signing
    storage: Input discovery and the three storage backends
    upload: Concurrent fan-out orchestrator and run report
"""
