"""
Multi-page editing session.

A session keeps two independently downscaled copies of each page: a small
preview used for interactive filter changes and a large export copy that is
only filtered once, at save time.

State machine::

    Empty -> Loading -> Ready -> Saving -> Closed
"""

import logging
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Union

from . import filters
from .config import ScannerConfig
from .filters import FilterKind
from .io import PageInput, PageSource, describe_source, load_source
from .pixels import PixelBuffer, DecodeFailure, SessionStateError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, Optional[int]], None]


# ============================================================================
# Data Classes
# ============================================================================

class SessionState(Enum):
    EMPTY = "empty"
    LOADING = "loading"
    READY = "ready"
    SAVING = "saving"
    CLOSED = "closed"


@dataclass
class PageAsset:
    """Preview and export copies of one page, derived from the same source."""
    preview_original: PixelBuffer
    export_original: PixelBuffer
    label: str = ""


@dataclass
class PageFailure:
    """A page that could not be decoded during load."""
    index: int
    label: str
    error: str


@dataclass
class LoadReport:
    """Outcome of loading pages into a session."""
    loaded: int = 0
    failures: List[PageFailure] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failures


@dataclass
class SaveResult:
    """Filtered full-resolution pages plus whatever the exporter returned."""
    pages: List[PixelBuffer]
    filter: FilterKind
    artifact: Any = None
    elapsed_seconds: float = 0.0


# ============================================================================
# Resampling
# ============================================================================

def downscale(image: PixelBuffer, max_dimension: int) -> PixelBuffer:
    """
    Copy of ``image`` whose longer side is at most ``max_dimension``.

    Images already within bounds are copied unchanged; never upscales.
    """
    import cv2

    longest = max(image.width, image.height)
    if longest <= max_dimension or longest == 0:
        return image.copy()

    scale = max_dimension / longest
    width = max(1, round(image.width * scale))
    height = max(1, round(image.height * scale))
    resized = cv2.resize(image.pixels, (width, height), interpolation=cv2.INTER_AREA)
    return PixelBuffer(width, height, resized)


# ============================================================================
# Page Session
# ============================================================================

class PageSession:
    """
    Editing session over one document.

    Operations are expected to be issued one at a time; the session is not
    safe for concurrent mutation.
    """

    def __init__(self, config: Optional[ScannerConfig] = None):
        self.config = config or ScannerConfig()
        self.state = SessionState.EMPTY
        self.current_page_index = 0
        self.active_filter = FilterKind.ORIGINAL
        self.last_load: Optional[LoadReport] = None
        self._pages: List[PageAsset] = []
        self._preview: Optional[PixelBuffer] = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def page_count(self) -> int:
        return len(self._pages)

    @property
    def pages(self) -> List[PageAsset]:
        return list(self._pages)

    @property
    def current_page(self) -> PageAsset:
        self._require(SessionState.READY)
        return self._pages[self.current_page_index]

    @property
    def preview(self) -> PixelBuffer:
        """The current page's preview with the active filter applied."""
        self._require(SessionState.READY)
        return self._preview

    def _require(self, *states: SessionState):
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise SessionStateError(
                f"Operation requires session state {allowed}, but it is {self.state.value}"
            )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(
        self,
        sources: Union[PageInput, Iterable[PageInput]],
        progress: Optional[ProgressCallback] = None
    ) -> LoadReport:
        """
        Load one or more source images into the session.

        Pages that fail to decode are skipped and reported; the rest load.

        Args:
            sources: A single source or a (possibly lazy) sequence of sources
            progress: Called with (pages_done, total or None) after each page

        Returns:
            LoadReport listing loaded and failed pages

        Raises:
            DecodeFailure: If no page at all could be decoded
            SessionStateError: If the session is not empty
        """
        self._require(SessionState.EMPTY)

        if isinstance(sources, (PixelBuffer, PageSource, bytes, bytearray, str, Path)):
            sources = [sources]
        total = len(sources) if hasattr(sources, "__len__") else None

        self.state = SessionState.LOADING
        report = LoadReport()
        session_cfg = self.config.session

        try:
            for index, source in enumerate(sources):
                label = describe_source(source, index)
                try:
                    full = load_source(source)
                except (DecodeFailure, FileNotFoundError) as e:
                    logger.warning(f"Skipping {label}: {e}")
                    report.failures.append(PageFailure(index, label, str(e)))
                else:
                    self._pages.append(PageAsset(
                        preview_original=downscale(full, session_cfg.preview_max_dimension),
                        export_original=downscale(full, session_cfg.export_max_dimension),
                        label=label
                    ))
                    report.loaded += 1
                    logger.debug(f"Loaded {label} ({full.width}x{full.height})")

                if progress:
                    progress(index + 1, total)
        except Exception:
            self._release()
            self.state = SessionState.EMPTY
            raise

        self.last_load = report
        if not self._pages:
            self.state = SessionState.EMPTY
            raise DecodeFailure(f"None of the {len(report.failures)} page(s) could be decoded")

        self.state = SessionState.READY
        self.current_page_index = 0
        self._render_preview()

        logger.info(
            f"Session ready with {self.page_count} page(s)"
            + (f", {len(report.failures)} failed" if report.failures else "")
        )
        return report

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def _render_preview(self):
        page = self._pages[self.current_page_index]
        self._preview = filters.apply(page.preview_original, self.active_filter, self.config.filters)

    def set_page(self, index: int) -> bool:
        """
        Show another page.

        Out-of-range indices are ignored.

        Returns:
            True if the page changed
        """
        self._require(SessionState.READY)
        if not 0 <= index < self.page_count:
            logger.warning(f"Page index {index} out of range [0, {self.page_count})")
            return False

        self.current_page_index = index
        self._render_preview()
        return True

    def next_page(self) -> bool:
        return self.set_page(self.current_page_index + 1)

    def prev_page(self) -> bool:
        return self.set_page(self.current_page_index - 1)

    def set_filter(self, kind: Union[FilterKind, str]) -> PixelBuffer:
        """
        Choose the filter for the whole document.

        Only the current page's preview is re-rendered now; every page gets
        the filter at save time.

        Returns:
            The re-rendered preview
        """
        self._require(SessionState.READY)
        self.active_filter = FilterKind.from_name(kind)
        self._render_preview()
        return self._preview

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def save(self, exporter: Any = None, progress: Optional[ProgressCallback] = None) -> SaveResult:
        """
        Filter every page at export resolution and hand them to the exporter.

        Save cannot be cancelled once started. If the exporter raises, the
        session goes back to Ready with its buffers intact and the error
        propagates.

        Args:
            exporter: Object with ``export(pages)``; its return value is kept
                as ``SaveResult.artifact``
            progress: Called with (pages_done, total) after each page

        Returns:
            SaveResult with one filtered page per session page
        """
        self._begin_save()
        return self._run_save(exporter, progress)

    def save_in_background(
        self,
        exporter: Any = None,
        progress: Optional[ProgressCallback] = None,
        executor: Optional[Executor] = None
    ) -> "Future[SaveResult]":
        """
        Run ``save`` on an executor.

        The session enters Saving before this returns, so a second save is
        rejected immediately.
        """
        self._begin_save()
        own_executor = executor is None
        if own_executor:
            executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="docscan-save")
        try:
            return executor.submit(self._run_save, exporter, progress)
        except Exception:
            self.state = SessionState.READY
            raise
        finally:
            if own_executor:
                executor.shutdown(wait=False)

    def _begin_save(self):
        self._require(SessionState.READY)
        self.state = SessionState.SAVING

    def _run_save(self, exporter: Any, progress: Optional[ProgressCallback]) -> SaveResult:
        start_time = time.time()
        kind = self.active_filter
        total = self.page_count
        logger.info(f"Saving {total} page(s) with {kind.value} filter")

        try:
            outputs = []
            for i, page in enumerate(self._pages):
                outputs.append(filters.apply(page.export_original, kind, self.config.filters))
                if progress:
                    progress(i + 1, total)

            artifact = exporter.export(outputs) if exporter is not None else None
        except Exception:
            logger.error("Save failed, session returned to ready")
            self.state = SessionState.READY
            raise

        self._release()
        self.state = SessionState.CLOSED

        elapsed = time.time() - start_time
        logger.info(f"Saved {len(outputs)} page(s) in {elapsed:.2f}s")
        return SaveResult(pages=outputs, filter=kind, artifact=artifact, elapsed_seconds=elapsed)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def discard(self):
        """
        End the session without saving, releasing all buffers.

        Raises:
            SessionStateError: While a save is running
        """
        if self.state == SessionState.SAVING:
            raise SessionStateError("Cannot discard a session while it is saving")
        self._release()
        self.state = SessionState.CLOSED

    def _release(self):
        self._pages = []
        self._preview = None
