"""
Failure artifact capture.

On every failure event of an armed run, pulls a screenshot, the page source
and both log transcripts from the active automation session and writes them
as one bundle named after the failing test or hook. Bundles are written
all-or-nothing and capture errors never escape into the run.
"""

import base64
import binascii
import json
import re
import time
from pathlib import Path
from typing import Any, Callable, List, Optional, Set, Tuple

from ..core.exceptions import ArtifactCaptureError
from ..core.logging_config import get_logger
from .models import ArtifactBundle, ArtifactCaptureConfig, FailureEvent
from .session import AutomationSession


MAX_STEM_LENGTH = 200

_WHITESPACE = re.compile(r"\s+")
_UNSAFE = re.compile(r'[\\/:*?"<>|\x00-\x1f\x7f]')


def sanitize_stem(identifier: str) -> str:
    """
    Turn a test or hook identifier into a readable, path-safe file stem.

    >>> sanitize_stem("checkout pays with card: visa/mastercard")
    'checkout pays with card_ visa_mastercard'
    """
    stem = _WHITESPACE.sub(" ", identifier)
    stem = _UNSAFE.sub("_", stem).strip(" .")
    stem = stem[:MAX_STEM_LENGTH].rstrip(" .")
    return stem or "unnamed"


def format_log_entries(entries: Any) -> str:
    """One entry per line; mappings and sequences become JSON lines."""
    if entries is None:
        return ""
    if isinstance(entries, (str, bytes)):
        entries = [entries]

    lines = []
    for entry in entries:
        if isinstance(entry, bytes):
            lines.append(entry.decode("utf-8", errors="replace"))
        elif isinstance(entry, (dict, list, tuple)):
            lines.append(json.dumps(entry, ensure_ascii=False, default=str))
        else:
            lines.append(str(entry))

    return "\n".join(lines) + ("\n" if lines else "")


def _screenshot_bytes(data: Any) -> bytes:
    """Accept raw PNG bytes or the base64 text some drivers return."""
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    if isinstance(data, str):
        try:
            return base64.b64decode(data, validate=True)
        except binascii.Error as e:
            raise ArtifactCaptureError(f"Screenshot is not valid base64: {e}", artifact="screenshot")
    raise ArtifactCaptureError(
        f"Unsupported screenshot payload: {type(data).__name__}",
        artifact="screenshot",
    )


SessionProvider = Callable[[], Optional[AutomationSession]]


class FailureArtifactCapturer:
    """
    Run listener that writes an ArtifactBundle for each failure event.

    The capturer is armed by an explicit ArtifactCaptureConfig; when unarmed
    it never touches the file system.
    """

    def __init__(
        self,
        config: ArtifactCaptureConfig,
        session_provider: SessionProvider,
        run_id: str = "run",
    ):
        """
        Initialize the capturer.

        Args:
            config: Arming switch and output directory
            session_provider: Returns the active automation session, or None
            run_id: Run identifier for log correlation
        """
        self.config = config
        self.session_provider = session_provider
        self.run_id = run_id
        self.logger = get_logger(__name__, run_id=run_id)

        self.bundles: List[ArtifactBundle] = []
        self._used_stems: Set[str] = set()

    @property
    def armed(self) -> bool:
        return self.config.armed

    @property
    def output_dir(self) -> Optional[Path]:
        return self.config.output_dir

    async def on_failure(self, event: FailureEvent) -> None:
        bundle = await self.capture(event)
        if bundle is not None:
            event.bundle = bundle
            if event.test is not None:
                event.test.artifacts.append(bundle)

    async def capture(self, event: FailureEvent) -> Optional[ArtifactBundle]:
        """
        Capture diagnostics for one failure.

        Returns:
            The written bundle, or None when unarmed, without a session, or on error
        """
        if not self.armed:
            return None

        try:
            session = self.session_provider()
        except Exception as e:
            self.logger.warning(
                f"Could not obtain automation session for '{event.identifier}': {e}",
                extra={"metadata": {"error_type": type(e).__name__}},
            )
            return None
        if session is None:
            self.logger.debug(f"No active automation session, skipping capture: {event.identifier}")
            return None

        bundle = ArtifactBundle(
            identifier=event.identifier,
            stem=self._unique_stem(sanitize_stem(event.identifier)),
            directory=self.output_dir,
        )

        start_time = time.time()
        written: List[Path] = []
        try:
            payloads = await self._collect(session, bundle)
            self._write(bundle, payloads, written)
        except Exception as e:
            self._discard(written)
            self.logger.warning(
                f"Failed to capture failure artifacts for '{event.identifier}': {e}",
                extra={
                    "metadata": {
                        "stem": bundle.stem,
                        "error_type": type(e).__name__,
                    }
                },
            )
            return None

        self._used_stems.add(bundle.stem)
        self.bundles.append(bundle)

        self.logger.info(
            f"Captured failure artifacts: {bundle.stem}",
            extra={
                "metadata": {
                    "stem": bundle.stem,
                    "directory": str(bundle.directory),
                    "files": [path.name for path in bundle.files],
                    "duration": time.time() - start_time,
                }
            },
        )
        return bundle

    def _unique_stem(self, stem: str) -> str:
        candidate = stem
        counter = 2
        while candidate in self._used_stems:
            candidate = f"{stem} ({counter})"
            counter += 1
        return candidate

    async def _collect(
        self, session: AutomationSession, bundle: ArtifactBundle
    ) -> List[Tuple[Path, bytes]]:
        """Gather every payload before anything is written."""
        screenshot = _screenshot_bytes(await session.screenshot())
        page_source = await session.page_source()
        browser_logs = await session.browser_logs()
        driver_logs = await session.driver_logs()

        return [
            (bundle.screenshot, screenshot),
            (bundle.page_source, (page_source or "").encode("utf-8")),
            (bundle.browser_log, format_log_entries(browser_logs).encode("utf-8")),
            (bundle.driver_log, format_log_entries(driver_logs).encode("utf-8")),
        ]

    def _write(
        self,
        bundle: ArtifactBundle,
        payloads: List[Tuple[Path, bytes]],
        written: List[Path],
    ) -> None:
        """Write every payload, appending each finished path to `written`."""
        try:
            bundle.directory.mkdir(parents=True, exist_ok=True)
            for path, content in payloads:
                path.write_bytes(content)
                written.append(path)
        except OSError as e:
            raise ArtifactCaptureError(
                f"Failed to write artifact: {e}",
                stem=bundle.stem,
                artifact=getattr(e, "filename", None),
            ) from e

    def _discard(self, written: List[Path]) -> None:
        """Remove the files this capture wrote before it failed."""
        for path in written:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                self.logger.warning(f"Failed to remove partial artifact {path}: {e}")
