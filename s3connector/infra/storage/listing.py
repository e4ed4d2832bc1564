"""Bucket listing pages and the paginator that merges them."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Union
from xml.etree import ElementTree as ET

from s3connector.infra.storage.client import CommonPrefix, ListingPage, ObjectMetadata
from s3connector.infra.storage.errors import ListObjectsError

logger = logging.getLogger("s3connector.listing")

ListingEntry = Union[ObjectMetadata, CommonPrefix]
PageFetcher = Callable[[str | None, bool], ListingPage]


def parse_timestamp(value: str | None) -> int | None:
    """Convert an ISO 8601 timestamp from S3 to epoch seconds."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def _text(element: ET.Element, tag: str) -> str:
    return (element.findtext(tag) or "").strip()


def parse_listing_page(root: ET.Element | None) -> ListingPage:
    """Build a ``ListingPage`` from a ``ListBucketResult`` document.

    The next marker is the last key on the page unless the server names
    one explicitly through ``NextMarker``.

    Raises:
        ListObjectsError: If an entry carries a non-numeric ``Size``.
    """
    if root is None:
        return ListingPage()

    objects = []
    next_marker = None
    for content in root.findall("Contents"):
        key = _text(content, "Key")
        size = _text(content, "Size") or "0"
        try:
            size_bytes = int(size)
        except ValueError as exc:
            raise ListObjectsError(
                f"Malformed listing entry {key!r}: Size={size!r}"
            ) from exc
        objects.append(
            ObjectMetadata(
                name=key,
                last_modified=parse_timestamp(content.findtext("LastModified")),
                size_bytes=size_bytes,
                content_hash=_text(content, "ETag").strip('"'),
            )
        )
        next_marker = key

    prefixes = tuple(
        CommonPrefix(prefix=_text(entry, "Prefix"))
        for entry in root.findall("CommonPrefixes")
    )

    explicit_marker = root.findtext("NextMarker")
    if explicit_marker:
        next_marker = explicit_marker.strip()

    return ListingPage(
        objects=tuple(objects),
        common_prefixes=prefixes,
        truncated=_text(root, "IsTruncated").lower() == "true",
        next_marker=next_marker,
    )


class ListingPaginator:
    """Merge successive listing pages into one result set.

    ``fetch(marker, first)`` returns one page. Errors on the first page
    propagate; a ``ListObjectsError`` on a later page ends pagination and
    keeps what was collected so far.
    """

    def __init__(
        self,
        fetch: PageFetcher,
        *,
        include_common_prefixes: bool = False,
        follow_truncation: bool = True,
    ) -> None:
        self._fetch = fetch
        self._include_common_prefixes = include_common_prefixes
        self._follow_truncation = follow_truncation

    def _merge(self, results: dict[str, ListingEntry], page: ListingPage) -> None:
        for entry in page.objects:
            results[entry.name] = entry
        if self._include_common_prefixes:
            for prefix in page.common_prefixes:
                results[prefix.prefix] = prefix

    def collect(self, marker: str | None = None) -> dict[str, ListingEntry]:
        results: dict[str, ListingEntry] = {}
        page = self._fetch(marker, True)
        self._merge(results, page)

        if not self._follow_truncation:
            return results

        pages = 1
        while page.truncated and page.next_marker:
            if page.next_marker == marker:
                logger.warning(
                    "listing_marker_stalled marker=%s pages=%s", marker, pages
                )
                break
            marker = page.next_marker
            try:
                page = self._fetch(marker, False)
            except ListObjectsError as exc:
                logger.warning(
                    "listing_continuation_failed marker=%s pages=%s error=%s",
                    marker,
                    pages,
                    exc,
                )
                break
            pages += 1
            self._merge(results, page)

        return results
