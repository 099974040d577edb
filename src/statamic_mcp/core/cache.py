"""
Cache invalidation for content writes.

The host keeps several cache segments (the stache content index, the static
page cache, compiled views, ...). Write handlers name the segments they
affect and ``CacheInvalidator.clear_caches`` clears them. Clearing is
idempotent: clearing an already-clear segment is a no-op success.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

logger = logging.getLogger(__name__)

CACHE_SEGMENTS = ("stache", "static", "views", "app", "config", "route", "images")

RECOMMENDED_SEGMENTS: Dict[str, List[str]] = {
    "blueprint": ["stache", "static", "views"],
    "content": ["stache", "static"],
    "fieldset": ["stache", "static", "views"],
    "collection": ["stache", "static"],
    "taxonomy": ["stache", "static"],
    "global": ["stache", "static"],
    "structure": ["stache", "static", "views"],
    "template": ["static", "views"],
    "asset": ["images", "static"],
    "user": ["stache"],
}


def recommended_segments(change_type: str) -> List[str]:
    """Segments to clear after a change of ``change_type`` (default: stache)."""
    return list(RECOMMENDED_SEGMENTS.get(change_type, ["stache"]))


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SegmentState:
    """Bookkeeping for one cache segment."""

    clear_count: int = 0
    last_cleared: Optional[str] = None
    warmed_at: Optional[str] = None
    dirty: bool = True

    def to_dict(self, segment: str) -> Dict[str, Any]:
        return {
            "type": segment,
            "status": "warm" if not self.dirty and self.warmed_at else (
                "cleared" if not self.dirty else "active"
            ),
            "clear_count": self.clear_count,
            "last_cleared": self.last_cleared,
            "warmed_at": self.warmed_at,
        }


class CacheInvalidator:
    """
    Process-wide cache invalidation collaborator.

    Optional hooks run when a segment is cleared or warmed; a failing hook
    marks only its own segment as failed.
    """

    def __init__(
        self,
        clear_hooks: Optional[Dict[str, Callable[[], None]]] = None,
        warm_hooks: Optional[Dict[str, Callable[[], None]]] = None,
    ):
        self._clear_hooks: Dict[str, Callable[[], None]] = dict(clear_hooks or {})
        self._warm_hooks: Dict[str, Callable[[], None]] = dict(warm_hooks or {})
        self._segments: Dict[str, SegmentState] = {s: SegmentState() for s in CACHE_SEGMENTS}
        self._lock = threading.Lock()

    @staticmethod
    def expand(segments: Iterable[str]) -> List[str]:
        """Expand ``all`` and drop duplicates, preserving order."""
        expanded: List[str] = []
        for segment in segments:
            names = CACHE_SEGMENTS if segment == "all" else (segment,)
            for name in names:
                if name not in expanded:
                    expanded.append(name)
        return expanded

    def clear_caches(self, segments: Sequence[str]) -> Dict[str, Any]:
        """Clear ``segments`` and report per-segment outcomes.

        Returns:
            ``{"cache_cleared": bool, "cleared_types": [...], "details": {...}}``
            where ``cache_cleared`` is True only if every segment succeeded.
        """
        details: Dict[str, Dict[str, Any]] = {}
        cleared: List[str] = []

        for segment in self.expand(segments):
            if segment not in self._segments:
                details[segment] = {
                    "type": segment,
                    "success": False,
                    "message": f"Unknown cache type: {segment}",
                }
                continue

            hook = self._clear_hooks.get(segment)
            try:
                if hook is not None:
                    hook()
            except Exception as exc:
                logger.warning("Clearing %s cache failed: %s", segment, exc)
                details[segment] = {"type": segment, "success": False, "message": str(exc)}
                continue

            with self._lock:
                state = self._segments[segment]
                state.clear_count += 1
                state.last_cleared = _now()
                state.dirty = False
                state.warmed_at = None

            cleared.append(segment)
            details[segment] = {
                "type": segment,
                "success": True,
                "message": f"{segment.capitalize()} cache cleared",
            }

        logger.debug("Cleared cache segments: %s", ", ".join(cleared) or "none")
        return {
            "cache_cleared": bool(details) and all(d["success"] for d in details.values()),
            "cleared_types": cleared,
            "details": details,
        }

    def warm(self, segments: Sequence[str]) -> Dict[str, Dict[str, Any]]:
        """Warm segments that have a warm hook; others are reported as skipped."""
        warmed: Dict[str, Dict[str, Any]] = {}
        for segment in self.expand(segments):
            if segment not in self._segments:
                warmed[segment] = {"status": "failed", "reason": f"Unknown cache type: {segment}"}
                continue
            hook = self._warm_hooks.get(segment)
            if hook is None:
                warmed[segment] = {"status": "skipped", "reason": "No warming available"}
                continue
            try:
                hook()
            except Exception as exc:
                logger.warning("Warming %s cache failed: %s", segment, exc)
                warmed[segment] = {"status": "failed", "reason": str(exc)}
                continue
            with self._lock:
                self._segments[segment].warmed_at = _now()
                self._segments[segment].dirty = False
            warmed[segment] = {"status": "warmed"}
        return warmed

    def mark_dirty(self, segments: Iterable[str]) -> None:
        """Record that content behind ``segments`` changed since the last clear."""
        with self._lock:
            for segment in self.expand(segments):
                if segment in self._segments:
                    self._segments[segment].dirty = True

    def status(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return {name: state.to_dict(name) for name, state in self._segments.items()}
