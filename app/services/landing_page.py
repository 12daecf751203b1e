"""Landing page content service.

The authoritative document is a JSON file on disk. Public reads go through
``ContentCache``; administrative writes update the file and invalidate
the cache before returning, so an admin's next read sees the edit.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, TypeVar

from app.core.errors import ContentStoreAppError, ValidationAppError
from app.services.content_cache import ContentCache, ContentDocument

logger = logging.getLogger(__name__)

T = TypeVar("T")

DOCUMENT_VERSION = "2.0"

# Lists filtered by isActive and sorted by displayOrder for public reads
_ACTIVE_COLLECTIONS = (
    ("content", "hero", "banners"),
    ("content", "seasonal", "plants"),
    ("content", "seasonal", "tips"),
)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def default_document() -> ContentDocument:
    """Empty but well-formed document served when the file is unavailable."""

    empty_palette = {"primary": "", "secondary": "", "accent": "", "background": "", "paper": ""}
    return {
        "metadata": {"version": DOCUMENT_VERSION, "lastUpdated": _utc_now_iso()},
        "content": {
            "hero": {
                "banners": [],
                "settings": {
                    "autoPlay": False,
                    "autoPlayDelay": 5000,
                    "showDots": True,
                    "showArrows": True,
                    "fadeTransition": False,
                },
                "text": {
                    "title": "",
                    "subtitle": "",
                    "description": "",
                    "businessHours": "",
                    "trustBadges": [],
                    "buttons": [],
                },
            },
            "services": {"title": "", "subtitle": "", "items": []},
            "seasonal": {"plants": [], "tips": []},
            "newsletter": {"title": "", "description": "", "disclaimer": "", "isActive": False},
            "company": {"foundedYear": datetime.now(timezone.utc).year, "description": ""},
        },
        "contact": {
            "name": "",
            "address": {"street": "", "city": "", "state": "", "zip": "", "full": "", "googleMapsUrl": ""},
            "phone": {"display": "", "link": ""},
            "email": {"address": "", "link": ""},
            "socialMedia": {},
            "hours": {
                day: ""
                for day in ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
            },
        },
        "theme": {
            "colors": {"light": dict(empty_palette), "dark": dict(empty_palette)},
            "features": {
                "showSeasonalContent": True,
                "showNewsletter": True,
                "showSocialProof": True,
                "enableAnimations": True,
            },
        },
        "layout": {"sections": []},
        "experiments": {"tests": []},
    }


SECTIONS = frozenset(default_document())


def _display_order(item: Any) -> float:
    if isinstance(item, dict):
        order = item.get("displayOrder")
        if isinstance(order, (int, float)):
            return order
    return float("inf")


def filter_active(document: ContentDocument) -> ContentDocument:
    """Copy of ``document`` keeping only active banners, plants and tips, in display order."""

    result = copy.deepcopy(document)
    for path in _ACTIVE_COLLECTIONS:
        parent: Any = result
        for part in path[:-1]:
            parent = parent.get(part) if isinstance(parent, dict) else None
        if not isinstance(parent, dict) or not isinstance(parent.get(path[-1]), list):
            continue
        items = [i for i in parent[path[-1]] if isinstance(i, dict) and i.get("isActive")]
        parent[path[-1]] = sorted(items, key=_display_order)
    return result


class LandingPageService:
    """Reads, aggregates and writes the landing page document."""

    def __init__(self, content_path: Path, cache: ContentCache) -> None:
        self._path = Path(content_path)
        self._cache = cache

    def read_content(self) -> ContentDocument:
        """Load the document from disk, falling back to the default document."""

        try:
            with self._path.open("r", encoding="utf-8") as fh:
                document = json.load(fh)
        except FileNotFoundError:
            logger.warning("landing_page.file_missing", extra={"path": str(self._path)})
            return default_document()
        except (OSError, ValueError) as exc:
            logger.error(
                "landing_page.read_failed",
                extra={"path": str(self._path), "error_reason": str(exc)},
            )
            return default_document()

        if not isinstance(document, dict):
            logger.error(
                "landing_page.read_failed",
                extra={"path": str(self._path), "error_reason": "document is not an object"},
            )
            return default_document()
        return document

    def write_content(self, document: ContentDocument) -> ContentDocument:
        """Persist the document, stamping ``metadata.lastUpdated``.

        The file is replaced atomically so readers never see a partial write.

        Raises:
            ContentStoreAppError: The file could not be written.
        """

        to_write = dict(document)
        to_write["metadata"] = {
            **(document.get("metadata") or {}),
            "lastUpdated": _utc_now_iso(),
        }

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(to_write, fh, indent=2)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as exc:
            logger.error(
                "landing_page.write_failed",
                extra={"path": str(self._path), "error_reason": str(exc)},
            )
            raise ContentStoreAppError(
                code="content_write_failed",
                message="Failed to save landing page content",
            ) from exc

        logger.info("landing_page.updated", extra={"path": str(self._path)})
        return to_write

    def aggregate(self, only_active: bool = True) -> ContentDocument:
        document = self.read_content()
        return filter_active(document) if only_active else copy.deepcopy(document)

    async def _off_loop(self, func: Callable[..., T], *args: Any) -> T:
        """Run blocking file I/O in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    async def get_content(self) -> tuple[ContentDocument, bool]:
        """Public read-through: cached document, else aggregate and cache it.

        Returns:
            Tuple of (document, cache_hit).
        """

        cached = await self._cache.get()
        if cached is not None:
            return cached, True

        # Token first: an admin write landing during aggregation voids the fill
        token = await self._cache.fill_token()
        document = await self._off_loop(self.aggregate, True)
        await self._cache.fill(document, token)
        return document, False

    async def update_content(self, document: ContentDocument) -> ContentDocument:
        """Replace the whole document and invalidate the cache."""

        written = await self._off_loop(self.write_content, document)
        await self._cache.invalidate()
        return written

    async def update_section(self, section: str, value: Any) -> ContentDocument:
        """Replace one top-level section and invalidate the cache.

        Raises:
            ValidationAppError: ``section`` is not a known top-level section.
        """

        if section not in SECTIONS or section == "metadata":
            raise ValidationAppError(
                code="unknown_section",
                message=f"Unknown landing page section: {section}",
                details={"section": section, "hint": ", ".join(sorted(SECTIONS - {"metadata"}))},
            )
        document = await self._off_loop(self.read_content)
        document[section] = value
        return await self.update_content(document)

    async def invalidate_cache(self) -> None:
        await self._cache.invalidate()
