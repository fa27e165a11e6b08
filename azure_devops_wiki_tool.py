import base64
import logging
from typing import List, Dict, Optional, Any, Type

import requests
from urllib.parse import quote

from config import AzureDevOpsConfig, DEFAULT_API_VERSION, DEFAULT_TIMEOUT
from errors import (
    AzureDevOpsHttpError,
    ConfigurationError,
    WikiConcurrencyError,
    WikiError,
    WikiNotFoundError,
    WikiPageNotFoundError,
    WorkItemError,
    WorkItemNotFoundError,
)

logger = logging.getLogger(__name__)

# The work item comments endpoints only exist as a preview API.
COMMENTS_API_VERSION = "7.1-preview.4"
JSON_PATCH_CONTENT_TYPE = "application/json-patch+json"
# Upper bound of the workitems batch GET
MAX_BATCH_IDS = 200

# Azure DevOps puts this phrase in the reason or the body when the wiki
# container itself is missing, as opposed to a page inside it.
WIKI_NOT_FOUND_MARKER = "wiki not found"


def is_success(response: requests.Response) -> bool:
    return 200 <= response.status_code < 300


def mentions_missing_wiki(response: requests.Response) -> bool:
    reason = response.reason or ""
    body = response.text or ""
    return WIKI_NOT_FOUND_MARKER in f"{reason} {body}".lower()


def wiki_error_from_response(
    response: requests.Response,
    action: str,
    wiki_identifier: Optional[str] = None,
    path: Optional[str] = None,
) -> WikiError:
    """Map a failed wiki response onto the error taxonomy."""
    status = response.status_code
    body = response.text
    if status == 404:
        if path is None or mentions_missing_wiki(response):
            return WikiNotFoundError(wiki_identifier or "", response_body=body)
        return WikiPageNotFoundError(wiki_identifier or "", path, response_body=body)
    message = f"Failed to {action}: {status} {response.reason or ''}".rstrip()
    if path:
        message += f" (path {path})"
    if status in (409, 412):
        return WikiConcurrencyError(
            message + "; the page was modified concurrently",
            status_code=status,
            wiki_identifier=wiki_identifier,
            path=path,
            response_body=body,
        )
    return WikiError(
        message,
        status_code=status,
        wiki_identifier=wiki_identifier,
        path=path,
        response_body=body,
    )


def work_item_error_from_response(
    response: requests.Response, action: str, work_item_id: Optional[int] = None
) -> WorkItemError:
    if response.status_code == 404:
        return WorkItemNotFoundError(work_item_id, response_body=response.text)
    message = f"Failed to {action}: {response.status_code} {response.reason or ''}".rstrip()
    return WorkItemError(
        message,
        status_code=response.status_code,
        work_item_id=work_item_id,
        response_body=response.text,
    )


def flatten_page_tree(page: Dict[str, Any]) -> List[Dict[str, Any]]:
    pages = [{"path": page.get("path"), "id": page.get("id")}]
    for sub_page in page.get("subPages") or []:
        pages.extend(flatten_page_tree(sub_page))
    return pages


class AzureDevOpsWikiTool:
    """Thin client over the Azure DevOps Wiki and Work Item REST APIs.

    One instance is owned by whoever builds it (the CLI, the Flask app, the
    MCP server) and passed down explicitly; nothing here is module-global.
    """

    def __init__(
        self,
        org_url: str,
        project: str,
        pat: str,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not org_url or not project or not pat:
            raise ConfigurationError(
                "Organization, project, and PAT must all be provided"
            )

        self.org_url = org_url.rstrip("/")
        self.project = project
        self.api_version = api_version
        self.timeout = timeout

        pat_bytes = f":{pat}".encode()
        self._headers = {
            "Authorization": "Basic " + base64.b64encode(pat_bytes).decode(),
            "Accept": "application/json",
        }
        self._session = session or requests.Session()

    @classmethod
    def from_config(
        cls, config: AzureDevOpsConfig, session: Optional[requests.Session] = None
    ) -> "AzureDevOpsWikiTool":
        return cls(
            org_url=config.org_url,
            project=config.project,
            pat=config.pat,
            api_version=config.api_version,
            timeout=config.timeout,
            session=session,
        )

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "AzureDevOpsWikiTool":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _wikis_url(self, project: Optional[str] = None) -> str:
        return f"{self.org_url}/{project or self.project}/_apis/wiki/wikis"

    def pages_url(self, wiki_identifier: str, project: Optional[str] = None) -> str:
        wiki_identifier = wiki_identifier.strip("/")
        return f"{self._wikis_url(project)}/{wiki_identifier}/pages"

    @property
    def org_name(self) -> str:
        return self.org_url.split("/")[-1]

    def _search_url(self, results_kind: str, project: Optional[str] = None) -> str:
        return (
            f"https://almsearch.dev.azure.com/{self.org_name}/{project or self.project}"
            f"/_apis/search/{results_kind}"
        )

    def _work_items_url(self, project: Optional[str] = None) -> str:
        return f"{self.org_url}/{project or self.project}/_apis/wit/workitems"

    def _send(
        self,
        method: str,
        url: str,
        error_cls: Type[AzureDevOpsHttpError] = WikiError,
        **kwargs: Any,
    ) -> requests.Response:
        headers = kwargs.pop("headers", {})
        merged_headers = {**self._headers, **headers}
        params = dict(kwargs.pop("params", None) or {})
        params.setdefault("api-version", self.api_version)
        logger.info("%s %s params=%s", method, url, params)
        try:
            response = self._session.request(
                method,
                url,
                headers=merged_headers,
                params=params,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise error_cls(f"{method} {url} failed: {exc}") from exc
        logger.info("Response [%s]: %s", response.status_code, (response.text or "")[:300])
        return response

    @staticmethod
    def parse_json(
        response: requests.Response,
        url: str,
        error_cls: Type[AzureDevOpsHttpError] = WikiError,
    ) -> Dict[str, Any]:
        try:
            return response.json()
        except ValueError as exc:
            raise error_cls(
                f"Expected JSON from {url}, but got: {(response.text or '')[:500]}",
                status_code=response.status_code,
                response_body=response.text,
            ) from exc

    def _request(
        self,
        method: str,
        url: str,
        action: str,
        wiki_identifier: Optional[str] = None,
        path: Optional[str] = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        response = self._send(method, url, **kwargs)
        if not is_success(response):
            raise wiki_error_from_response(response, action, wiki_identifier, path)
        return self.parse_json(response, url)

    def list_wikis(self, project: Optional[str] = None) -> List[Dict[str, Any]]:
        data = self._request("GET", self._wikis_url(project), "list wikis")
        return data.get("value", [])

    def get_wiki(self, wiki_identifier: str, project: Optional[str] = None) -> Dict[str, Any]:
        url = f"{self._wikis_url(project)}/{wiki_identifier.strip('/')}"
        return self._request("GET", url, "get wiki", wiki_identifier=wiki_identifier)

    def create_wiki(
        self,
        name: str,
        project_id: Optional[str] = None,
        mapped_path: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload = {
            "name": name,
            "projectId": project_id or self.project,
            "type": "projectWiki",
            "mappedPath": mapped_path or "/",
        }
        return self._request(
            "POST", self._wikis_url(), "create wiki", wiki_identifier=name, json=payload
        )

    def list_pages(
        self, wiki_identifier: str, project: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        params = {"path": "/", "recursionLevel": "full"}
        data = self._request(
            "GET",
            self.pages_url(wiki_identifier, project),
            "list wiki pages",
            wiki_identifier=wiki_identifier,
            params=params,
        )
        pages = flatten_page_tree(data)
        logger.info("Pages returned for %s: %d", wiki_identifier, len(pages))
        return pages

    def get_page(
        self,
        wiki_identifier: str,
        path: str,
        project: Optional[str] = None,
        include_content: bool = True,
    ) -> requests.Response:
        """Fetch a page and hand back the raw response.

        The caller decides what a 404 means, and needs the ETag header.
        """
        params = {"path": path, "includeContent": "true" if include_content else "false"}
        return self._send("GET", self.pages_url(wiki_identifier, project), params=params)

    def get_page_content(
        self, wiki_identifier: str, path: str, project: Optional[str] = None
    ) -> Dict[str, Any]:
        url = self.pages_url(wiki_identifier, project)
        response = self.get_page(wiki_identifier, path, project=project)
        if not is_success(response):
            raise wiki_error_from_response(response, "get wiki page", wiki_identifier, path)
        data = self.parse_json(response, url)
        data["etag"] = response.headers.get("ETag")
        return data

    def put_page(
        self,
        wiki_identifier: str,
        path: str,
        content: str,
        comment: Optional[str] = None,
        etag: Optional[str] = None,
        project: Optional[str] = None,
    ) -> requests.Response:
        headers = {"Content-Type": "application/json"}
        if etag:
            headers["If-Match"] = etag
        payload = {"content": content, "comment": comment or f"Updated page {path}"}
        return self._send(
            "PUT",
            self.pages_url(wiki_identifier, project),
            headers=headers,
            params={"path": path},
            json=payload,
        )

    def search_pages(
        self,
        wiki_identifier: str,
        search_text: str,
        project: Optional[str] = None,
        top: int = 20,
    ) -> List[Dict[str, Any]]:
        url = self._search_url("wikisearchresults", project)
        payload = {
            "searchText": search_text,
            "$top": top,
            "filters": {"Wiki": [wiki_identifier]},
        }
        data = self._request(
            "POST",
            url,
            "search wiki pages",
            wiki_identifier=wiki_identifier,
            headers={"Content-Type": "application/json"},
            json=payload,
        )
        results = []
        for res in data.get("results", []):
            hits = res.get("hits") or []
            highlights = hits[0].get("highlights") if hits else None
            results.append({
                "path": res.get("path"),
                "fileName": res.get("fileName"),
                "wikiName": (res.get("wiki") or {}).get("name"),
                "snippet": (highlights or [""])[0],
            })
        return results

    def _wit_request(
        self,
        method: str,
        url: str,
        action: str,
        work_item_id: Optional[int] = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        response = self._send(method, url, error_cls=WorkItemError, **kwargs)
        if not is_success(response):
            raise work_item_error_from_response(response, action, work_item_id)
        return self.parse_json(response, url, error_cls=WorkItemError)

    def get_work_items(
        self,
        ids: List[int],
        fields: Optional[List[str]] = None,
        as_of: Optional[str] = None,
        expand: Optional[str] = None,
        error_policy: Optional[str] = None,
        project: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        params = {"ids": ",".join(str(work_item_id) for work_item_id in ids)}
        # the API rejects fields and $expand together
        if fields:
            params["fields"] = ",".join(fields)
        else:
            params["$expand"] = expand or "all"
        if as_of:
            params["asOf"] = as_of
        if error_policy:
            params["errorPolicy"] = error_policy
        data = self._wit_request(
            "GET",
            self._work_items_url(project),
            "get work items",
            work_item_id=ids[0] if len(ids) == 1 else None,
            params=params,
        )
        # errorPolicy=omit leaves nulls where an id did not resolve
        return [item for item in data.get("value", []) if item]

    def create_work_item(
        self,
        work_item_type: str,
        document: List[Dict[str, Any]],
        project: Optional[str] = None,
    ) -> Dict[str, Any]:
        url = f"{self._work_items_url(project)}/${quote(work_item_type)}"
        return self._wit_request(
            "POST",
            url,
            f"create {work_item_type} work item",
            headers={"Content-Type": JSON_PATCH_CONTENT_TYPE},
            json=document,
        )

    def update_work_item(
        self,
        work_item_id: int,
        document: List[Dict[str, Any]],
        project: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self._wit_request(
            "PATCH",
            f"{self._work_items_url(project)}/{work_item_id}",
            "update work item",
            work_item_id=work_item_id,
            headers={"Content-Type": JSON_PATCH_CONTENT_TYPE},
            json=document,
        )

    def query_work_items(
        self, query: str, project: Optional[str] = None, top: int = MAX_BATCH_IDS
    ) -> List[int]:
        """Run a WIQL query and return the matching work item ids."""
        url = f"{self.org_url}/{project or self.project}/_apis/wit/wiql"
        data = self._wit_request(
            "POST",
            url,
            "query work items",
            headers={"Content-Type": "application/json"},
            params={"$top": top},
            json={"query": query},
        )
        return [
            item["id"] for item in data.get("workItems", []) if item.get("id") is not None
        ]

    def search_work_items(
        self, search_text: str, project: Optional[str] = None, top: int = 10
    ) -> Dict[str, Any]:
        payload = {"searchText": search_text, "$skip": 0, "$top": top}
        url = self._search_url("workitemsearchresults", project)
        return self._wit_request(
            "POST",
            url,
            "search work items",
            headers={"Content-Type": "application/json"},
            json=payload,
        )

    def _comments_url(self, work_item_id: int, project: Optional[str] = None) -> str:
        return f"{self._work_items_url(project)}/{work_item_id}/comments"

    def add_work_item_comment(
        self, work_item_id: int, text: str, project: Optional[str] = None
    ) -> Dict[str, Any]:
        return self._wit_request(
            "POST",
            self._comments_url(work_item_id, project),
            "add work item comment",
            work_item_id=work_item_id,
            headers={"Content-Type": "application/json"},
            params={"api-version": COMMENTS_API_VERSION},
            json={"text": text},
        )

    def get_work_item_comments(
        self, work_item_id: int, project: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        data = self._wit_request(
            "GET",
            self._comments_url(work_item_id, project),
            "get work item comments",
            work_item_id=work_item_id,
            params={"api-version": COMMENTS_API_VERSION},
        )
        return data.get("comments", [])
