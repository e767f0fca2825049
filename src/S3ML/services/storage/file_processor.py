"""
Input discovery for upload batches.

Turns the paths given on the command line, plain files and directories mixed,
into the ordered file list handed to the orchestrator.

Module Input:
    - File and directory paths
    - Filters: symlink policy, size ceiling, glob exclusions

Module Output:
    - De-duplicated list of file paths (directory contents sorted)
"""

from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from S3ML.core.exceptions import FileDiscoveryError
from S3ML.core.logging_config import get_logger

logger = get_logger(__name__)

BYTES_PER_MB = 1024 * 1024


class FileProcessor:
    """
    Expands upload arguments into concrete files.

    Attributes:
        follow_symlinks (bool): Keep symbolic links found while scanning
        max_file_size_mb (int): Files above this size are skipped with a warning
    """

    def __init__(self, follow_symlinks: bool = False, max_file_size_mb: int = 100):
        self.follow_symlinks = follow_symlinks
        self.max_file_size_mb = max_file_size_mb

    def discover_files(
        self,
        root_path: Path,
        recursive: bool = True,
        exclude_patterns: Optional[Sequence[str]] = None
    ) -> List[Path]:
        """
        Scan a directory for uploadable files.

        Args:
            root_path (Path): Directory to scan
            recursive (bool): Descend into subdirectories (default: True)
            exclude_patterns (Optional[Sequence[str]]): Glob patterns matched
                against each candidate, e.g. ``["**/.git/**", "*.tmp"]``

        Returns:
            List[Path]: Matching files in sorted order

        Raises:
            FileDiscoveryError: If root_path is missing, not a directory or unreadable
        """
        if not root_path.is_dir():
            reason = "is not a directory" if root_path.exists() else "does not exist"
            raise FileDiscoveryError(
                f"Root path {reason}: {root_path}",
                details={"root_path": str(root_path)}
            )

        patterns = tuple(exclude_patterns or ())
        candidates = root_path.rglob("*") if recursive else root_path.iterdir()

        try:
            found = sorted(item for item in candidates if self._accept(item, patterns))
        except PermissionError as e:
            raise FileDiscoveryError(
                f"Permission denied scanning {root_path}",
                details={"root_path": str(root_path), "error": str(e)}
            ) from e

        logger.info(f"Discovered {len(found)} files under {root_path}")
        return found

    def collect(
        self,
        paths: Iterable[Path],
        recursive: bool = True,
        exclude_patterns: Optional[Sequence[str]] = None
    ) -> List[Path]:
        """
        Expand a mix of files and directories into one file list.

        Plain files keep the order they were given in; directories are expanded
        with :meth:`discover_files`. Plain files are held to the same size
        limit as scanned ones. A file reached twice is listed once.

        Raises:
            FileDiscoveryError: If any given path does not exist
        """
        collected: List[Path] = []
        seen = set()

        for path in paths:
            path = Path(path).expanduser()
            if path.is_dir():
                candidates = self.discover_files(path, recursive, exclude_patterns)
            elif path.is_file():
                candidates = [path] if self._within_size_limit(path) else []
            else:
                raise FileDiscoveryError(
                    f"Path does not exist: {path}",
                    details={"path": str(path)}
                )

            for candidate in candidates:
                resolved = candidate.resolve()
                if resolved not in seen:
                    seen.add(resolved)
                    collected.append(candidate)

        return collected

    def _accept(self, item: Path, exclude_patterns: Sequence[str]) -> bool:
        if not item.is_file():
            return False
        if item.is_symlink() and not self.follow_symlinks:
            logger.debug(f"Skipping symlink: {item}")
            return False
        if any(item.match(pattern) for pattern in exclude_patterns):
            logger.debug(f"Excluded by pattern: {item}")
            return False

        return self._within_size_limit(item)

    def _within_size_limit(self, file_path: Path) -> bool:
        try:
            size = file_path.stat().st_size
        except OSError as e:
            logger.warning(f"Cannot stat {file_path}: {e}")
            return False
        if size > self.max_file_size_mb * BYTES_PER_MB:
            logger.warning(f"Skipping oversized file ({size / BYTES_PER_MB:.1f}MB): {file_path}")
            return False
        return True
