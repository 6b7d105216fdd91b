"""
Suite file discovery.

Expands glob patterns into suite files and executes each file as a fresh,
uniquely named module so that every run sees newly built suite trees.
"""

import glob
import importlib.util
import itertools
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from ..core.exceptions import DiscoveryError
from .models import SuiteNode


_module_counter = itertools.count()


class FileDiscovery:
    """Loads root suites from Python files matched by glob patterns."""

    def __init__(self, base_dir: Optional[Path] = None, logger: Optional[logging.Logger] = None):
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()
        self.logger = logger or logging.getLogger(__name__)

    def expand(self, patterns: Sequence[str]) -> List[Path]:
        """
        Expand glob patterns into an ordered, de-duplicated list of files.

        Raises:
            DiscoveryError: If a pattern matches no file.
        """
        files: List[Path] = []
        seen = set()

        for pattern in patterns:
            resolved = pattern if Path(pattern).is_absolute() else str(self.base_dir / pattern)
            matches = sorted(
                Path(match) for match in glob.glob(resolved, recursive=True)
                if Path(match).is_file()
            )

            if not matches:
                raise DiscoveryError(
                    f"No suite files match pattern: {pattern}",
                    pattern=pattern,
                )

            for match in matches:
                key = match.resolve()
                if key not in seen:
                    seen.add(key)
                    files.append(match)

        self.logger.debug(f"Expanded {len(patterns)} patterns into {len(files)} files")
        return files

    def load(self, file_path: Path) -> List[SuiteNode]:
        """Execute a suite file and collect the root suites it defines."""
        module_name = f"conductor_suite_{next(_module_counter)}_{file_path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, file_path)
        if spec is None or spec.loader is None:
            raise DiscoveryError(f"Cannot load suite file: {file_path}", file_path=str(file_path))

        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            raise DiscoveryError(
                f"Failed to import suite file {file_path}: {e}",
                file_path=str(file_path),
            ) from e

        roots = []
        for value in vars(module).values():
            if isinstance(value, SuiteNode) and value.parent is None and value not in roots:
                roots.append(value)

        if not roots:
            self.logger.warning(f"Suite file defines no root suites: {file_path}")

        return roots

    def discover(self, patterns: Sequence[str]) -> List[SuiteNode]:
        """Expand patterns and load every matched file, preserving order."""
        roots: List[SuiteNode] = []
        for file_path in self.expand(patterns):
            roots.extend(self.load(file_path))

        self.logger.info(
            f"Discovered {len(roots)} root suites",
            extra={"metadata": {"patterns": list(patterns), "suites": len(roots)}},
        )
        return roots
