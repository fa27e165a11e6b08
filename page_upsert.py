"""Create-or-update for wiki pages.

The flow is always: read the page (GET with content), skip the write when
nothing changed, otherwise PUT with ``If-Match`` set to the ETag just read. The
server enforces the precondition; a page edited by someone else between our
GET and PUT comes back as :class:`errors.WikiConcurrencyError`.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from azure_devops_wiki_tool import (
    AzureDevOpsWikiTool,
    is_success,
    wiki_error_from_response,
)
from errors import InvalidParams, WikiError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WikiPageRef:
    wiki_identifier: str
    path: str
    project_name: Optional[str] = None


@dataclass(frozen=True)
class PageSnapshot:
    exists: bool
    concurrency_token: Optional[str] = None
    content: Optional[str] = None


@dataclass(frozen=True)
class UpsertOutcome:
    created: bool
    unchanged: bool
    path: str
    new_concurrency_token: Optional[str] = None
    page: Optional[Dict[str, Any]] = None


def normalize_page_path(path: str) -> str:
    """Turn ``Home``, ``/Home.md`` or ``Home.MD`` into ``/Home``."""
    if not path.startswith("/"):
        path = "/" + path
    if path.lower().endswith(".md"):
        path = path[:-3]
    return path


def process_escape_sequences(content: str) -> str:
    # Only the literal backslash-n pair is translated.
    return content.replace("\\n", "\n")


class PageUpsertCoordinator:
    def __init__(self, gateway: AzureDevOpsWikiTool) -> None:
        self.gateway = gateway

    def fetch_snapshot(self, ref: WikiPageRef) -> PageSnapshot:
        """Read the current state of ``ref``.

        A 404 means the page does not exist yet. Every other failure is raised,
        never read as "missing".
        """
        response = self.gateway.get_page(
            ref.wiki_identifier, ref.path, project=ref.project_name, include_content=True
        )
        if response.status_code == 404:
            logger.info("Page %s not found in wiki %s", ref.path, ref.wiki_identifier)
            return PageSnapshot(exists=False)
        if not is_success(response):
            raise wiki_error_from_response(
                response, "get wiki page", ref.wiki_identifier, ref.path
            )
        data = self.gateway.parse_json(
            response, self.gateway.pages_url(ref.wiki_identifier, ref.project_name)
        )
        etag = response.headers.get("ETag") or None
        logger.info("Found existing page %s with ETag %s", ref.path, etag)
        return PageSnapshot(exists=True, concurrency_token=etag, content=data.get("content"))

    def _written_page(self, response, ref: WikiPageRef) -> Optional[Dict[str, Any]]:
        # The write is committed once the PUT succeeds, whatever the body holds.
        if not (response.text or "").strip():
            return None
        try:
            return self.gateway.parse_json(
                response, self.gateway.pages_url(ref.wiki_identifier, ref.project_name)
            )
        except WikiError as exc:
            logger.warning("Page %s written but response was unreadable: %s", ref.path, exc)
            return None

    def upsert(
        self, ref: WikiPageRef, content: str, comment: Optional[str] = None
    ) -> UpsertOutcome:
        if not ref.wiki_identifier or not ref.path or not content:
            raise InvalidParams("Wiki identifier, page path, and content are required")

        content = process_escape_sequences(content)
        ref = WikiPageRef(
            wiki_identifier=ref.wiki_identifier,
            path=normalize_page_path(ref.path),
            project_name=ref.project_name or self.gateway.project,
        )

        snapshot = self.fetch_snapshot(ref)
        if snapshot.exists and snapshot.content == content:
            logger.info("Page %s unchanged, skipping write", ref.path)
            return UpsertOutcome(
                created=False,
                unchanged=True,
                path=ref.path,
                new_concurrency_token=snapshot.concurrency_token,
            )

        if comment is None:
            verb = "Updated" if snapshot.exists else "Created"
            comment = f"{verb} page {ref.path}"

        response = self.gateway.put_page(
            ref.wiki_identifier,
            ref.path,
            content,
            comment=comment,
            etag=snapshot.concurrency_token if snapshot.exists else None,
            project=ref.project_name,
        )
        if not is_success(response):
            raise wiki_error_from_response(
                response, "update wiki page", ref.wiki_identifier, ref.path
            )

        page = self._written_page(response, ref)
        outcome = UpsertOutcome(
            created=not snapshot.exists,
            unchanged=False,
            path=ref.path,
            new_concurrency_token=response.headers.get("ETag") or None,
            page=page,
        )
        logger.info(
            "%s page %s in wiki %s",
            "Created" if outcome.created else "Updated",
            ref.path,
            ref.wiki_identifier,
        )
        return outcome


def upsert_page(
    gateway: AzureDevOpsWikiTool,
    wiki_identifier: str,
    path: str,
    content: str,
    comment: Optional[str] = None,
    project_name: Optional[str] = None,
) -> UpsertOutcome:
    ref = WikiPageRef(wiki_identifier=wiki_identifier, path=path, project_name=project_name)
    return PageUpsertCoordinator(gateway).upsert(ref, content, comment=comment)
