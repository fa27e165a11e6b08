"""Wiki operations in the shape agent tools and the CLI hand back to users."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from azure_devops_wiki_tool import AzureDevOpsWikiTool
from errors import InvalidParams
from page_upsert import normalize_page_path, upsert_page

PREVIEW_LENGTH = 100


def content_preview(content: str) -> str:
    if len(content) > PREVIEW_LENGTH:
        return content[:PREVIEW_LENGTH] + "..."
    return content


def get_wikis(tool: AzureDevOpsWikiTool, project_name: Optional[str] = None) -> List[Dict[str, Any]]:
    return tool.list_wikis(project=project_name)


def list_wiki_pages(
    tool: AzureDevOpsWikiTool, wiki_identifier: str, project_name: Optional[str] = None
) -> List[Dict[str, Any]]:
    if not wiki_identifier:
        raise InvalidParams("Wiki identifier is required")
    project_name = project_name or tool.project
    return [
        {**page, "wikiIdentifier": wiki_identifier, "projectName": project_name}
        for page in tool.list_pages(wiki_identifier, project=project_name)
    ]


def get_wiki_page(
    tool: AzureDevOpsWikiTool,
    wiki_identifier: str,
    path: str,
    project_name: Optional[str] = None,
) -> Dict[str, Any]:
    if not wiki_identifier or not path:
        raise InvalidParams("Wiki identifier and page path are required")
    project_name = project_name or tool.project
    path = normalize_page_path(path)
    page = tool.get_page_content(wiki_identifier, path, project=project_name)
    return {
        "id": page.get("id"),
        "path": page.get("path", path),
        "wikiIdentifier": wiki_identifier,
        "projectName": project_name,
        "content": page.get("content", ""),
        "etag": page.get("etag"),
    }


def create_wiki(
    tool: AzureDevOpsWikiTool,
    name: str,
    project_id: Optional[str] = None,
    mapped_path: Optional[str] = None,
) -> Dict[str, Any]:
    if not name:
        raise InvalidParams("Wiki name is required")
    return tool.create_wiki(name, project_id=project_id, mapped_path=mapped_path)


def update_wiki_page(
    tool: AzureDevOpsWikiTool,
    wiki_identifier: str,
    path: str,
    content: str,
    comment: Optional[str] = None,
    project_name: Optional[str] = None,
) -> Dict[str, Any]:
    """Create or update a page and summarize what happened."""
    outcome = upsert_page(
        tool,
        wiki_identifier,
        path,
        content,
        comment=comment,
        project_name=project_name,
    )
    page = outcome.page or {}
    if outcome.unchanged:
        message = "Wiki page content unchanged, no update needed"
    elif outcome.created:
        message = "Wiki page created successfully"
    else:
        message = "Wiki page updated successfully"
    last_updated_by = (page.get("lastUpdatedBy") or {}).get("displayName")
    return {
        "wikiIdentifier": wiki_identifier,
        "path": outcome.path,
        "created": outcome.created,
        "unchanged": outcome.unchanged,
        "etag": outcome.new_concurrency_token,
        "contentPreview": content_preview(content),
        "message": message,
        "lastUpdatedBy": last_updated_by or "Unknown",
        "lastUpdatedDate": page.get("lastUpdatedDate")
        or datetime.now(timezone.utc).isoformat(),
    }


# Creating a page is the same upsert; PUT creates when nothing is there.
create_wiki_page = update_wiki_page


def search_wiki_page(
    tool: AzureDevOpsWikiTool,
    wiki_identifier: str,
    search_text: str,
    project_name: Optional[str] = None,
    top: int = 20,
) -> Dict[str, Any]:
    if not wiki_identifier or not search_text:
        raise InvalidParams("Wiki identifier and search text are required")
    results = tool.search_pages(wiki_identifier, search_text, project=project_name, top=top)
    return {"count": len(results), "results": results}
