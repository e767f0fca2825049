"""
Command line interface for the S3ML uploader.

Usage:
    $ s3ml upload file1.txt photos/ --json
    $ s3ml classify file1.txt
    $ s3ml download text/file1.txt --backend s3-compatible --output copy.txt
    $ s3ml show-config

Exit status of ``upload``: 0 when every (file, backend) pair succeeded, 1 when
any failed, 2 when configuration or input discovery failed before uploading.
"""

import json
import sys
from pathlib import Path
from typing import Optional, Sequence, Tuple

import click

from S3ML.core.exceptions import ConfigError, FileDiscoveryError, S3MLError
from S3ML.core.logging_config import configure_logging
from S3ML.core.settings import BackendKind, Settings, get_settings
from S3ML.services.classification import FileClassifier
from S3ML.services.storage.backends import create_backends
from S3ML.services.storage.file_processor import FileProcessor
from S3ML.services.upload import UploadOrchestrator, UploadReport

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_CONFIG = 2

BACKEND_CHOICES = [kind.value for kind in BackendKind]


def _load_settings() -> Settings:
    settings = get_settings()
    configure_logging(
        settings.log_level,
        log_dir=settings.log_dir,
        log_file=settings.log_file,
        log_to_file=settings.log_to_file,
    )
    return settings


def _fail(error: S3MLError, code: int = EXIT_CONFIG) -> None:
    click.echo(f"Error: {error.message}", err=True)
    for name, value in error.details.items():
        click.echo(f"  {name}: {value}", err=True)
    sys.exit(code)


def _collect(paths: Sequence[str], recursive: bool) -> list:
    try:
        return FileProcessor().collect([Path(p) for p in paths], recursive=recursive)
    except FileDiscoveryError as e:
        _fail(e)


def render_report(report: UploadReport) -> str:
    """Plain-text rendering of a report, failures last."""
    lines = ["Files:"]
    for summary in report.files:
        lines.append(f"  {summary.key:<40} {summary.size:>10} bytes  ({summary.path})")

    lines.append("Backends:")
    for name, tally in report.by_backend().items():
        lines.append(f"  {name:<15} {tally.succeeded} succeeded, {tally.failed} failed")

    if report.failures:
        lines.append("Failures:")
        for outcome in report.failures:
            lines.append(
                f"  [{outcome.backend}] {outcome.file_path} -> {outcome.key}: "
                f"{outcome.error_type}: {outcome.error}"
            )

    lines.append(
        f"Total: {report.total} outcomes, {report.succeeded} succeeded, {report.failed} failed"
    )
    return "\n".join(lines)


@click.group()
@click.version_option(package_name="s3ml")
def cli():
    """Classify local files and upload them through three S3 delivery paths."""
    pass


@cli.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path())
@click.option("--recursive/--no-recursive", default=True, show_default=True,
              help="Descend into subdirectories of directory arguments.")
@click.option("--backend", "backends", multiple=True, type=click.Choice(BACKEND_CHOICES),
              help="Restrict the run to these backends (repeatable). Default: all.")
@click.option("--timeout", type=float, default=None,
              help="Per-attempt timeout in seconds (overrides UPLOAD_TIMEOUT_SECONDS).")
@click.option("--json", "json_output", is_flag=True, help="Print the report as JSON.")
def upload(paths: Tuple[str, ...], recursive: bool, backends: Tuple[str, ...],
           timeout: Optional[float], json_output: bool):
    """Upload PATHS (files or directories) to every selected backend."""
    settings = _load_settings()
    if timeout is not None:
        settings = settings.model_copy(update={"upload_timeout_seconds": timeout})

    kinds = [BackendKind(name) for name in backends] or list(BackendKind)
    try:
        storage_backends = create_backends(settings, kinds)
        orchestrator = UploadOrchestrator.from_settings(settings, storage_backends)
    except ConfigError as e:
        _fail(e)

    files = _collect(paths, recursive)
    if not files:
        click.echo("No files to upload.")
        sys.exit(EXIT_OK)

    report = orchestrator.run(files)

    if json_output:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        click.echo(render_report(report))

    sys.exit(EXIT_FAILURES if report.has_failures else EXIT_OK)


@cli.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path())
@click.option("--recursive/--no-recursive", default=True, show_default=True)
def classify(paths: Tuple[str, ...], recursive: bool):
    """Print the storage key each file would be uploaded under."""
    _load_settings()
    classifier = FileClassifier()
    unreadable = 0
    for path in _collect(paths, recursive):
        try:
            data = path.read_bytes()
        except OSError as e:
            unreadable += 1
            click.echo(f"Error: Cannot read {path}: {e}", err=True)
            continue
        category, key = classifier.route(path, data)
        click.echo(f"{key}\t{category.value}\t{path}")

    sys.exit(EXIT_FAILURES if unreadable else EXIT_OK)


@cli.command()
@click.argument("key")
@click.option("--backend", type=click.Choice(BACKEND_CHOICES), required=True,
              help="Backend to download from.")
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None,
              help="Destination file (default: the key's file name).")
def download(key: str, backend: str, output: Optional[str]):
    """Download KEY from one backend."""
    settings = _load_settings()
    try:
        (storage_backend,) = create_backends(settings, [BackendKind(backend)])
    except ConfigError as e:
        _fail(e)

    destination = Path(output) if output else Path(Path(key).name)
    try:
        data = storage_backend.fetch(key)
    except S3MLError as e:
        _fail(e, EXIT_FAILURES)

    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_bytes(data)
    click.echo(f"Downloaded from {storage_backend.name}: {key} -> {destination} ({len(data)} bytes)")


@cli.command("show-config")
def show_config():
    """Show current settings without secrets."""
    settings = get_settings()
    for name, value in settings.public_view().items():
        click.echo(f"{name} = {value}")
    click.echo(f"http credentials configured = {bool(settings.aws_access_key and settings.aws_secret_key)}")


def main():
    """Console script entry point."""
    cli()


if __name__ == "__main__":
    main()
