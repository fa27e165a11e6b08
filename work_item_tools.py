"""Work item operations in the shape agent tools and the CLI hand back to users."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from azure_devops_wiki_tool import AzureDevOpsWikiTool, MAX_BATCH_IDS
from errors import InvalidParams

EXPAND_OPTIONS = ("none", "relations", "fields", "links", "all")
LIST_FIELDS = ["System.Id", "System.State", "System.Title"]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _filter_person(person: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not person:
        return None
    return {
        "displayName": person.get("displayName"),
        "id": person.get("id"),
        "url": person.get("url"),
        "uniqueName": person.get("uniqueName"),
        "descriptor": person.get("descriptor"),
    }


def _summarize_change(item: Dict[str, Any]) -> Dict[str, Any]:
    fields = item.get("fields") or {}
    return {
        "id": item.get("id"),
        "rev": item.get("rev"),
        "TeamProject": fields.get("System.TeamProject"),
        "Area": fields.get("System.AreaPath"),
        "Iteration": fields.get("System.IterationPath"),
        "Title": fields.get("System.Title"),
        "Description": fields.get("System.Description"),
        "State": fields.get("System.State"),
        "Url": item.get("url"),
        "CreatedBy": _filter_person(fields.get("System.CreatedBy")),
        "CreatedDate": fields.get("System.CreatedDate"),
        "AssignedTo": _filter_person(fields.get("System.AssignedTo")),
    }


def _edit_url(tool: AzureDevOpsWikiTool, project: str, work_item_id: Any) -> str:
    return f"{tool.org_url}/{project}/_workitems/edit/{work_item_id}"


def _summarize_comment(comment: Dict[str, Any], work_item_id: int) -> Dict[str, Any]:
    created_by = comment.get("createdBy")
    return {
        "id": comment.get("id"),
        "text": comment.get("text"),
        "workItemId": work_item_id,
        "createdBy": {
            "displayName": created_by.get("displayName"),
            "id": created_by.get("id"),
            "uniqueName": created_by.get("uniqueName"),
        } if created_by else None,
        "createdDate": comment.get("createdDate"),
        "url": comment.get("url"),
    }


def _check_document(document: Any) -> None:
    if not isinstance(document, list) or not document:
        raise InvalidParams("A non-empty JSON patch document is required")


def get_work_items(
    tool: AzureDevOpsWikiTool,
    ids: List[int],
    fields: Optional[List[str]] = None,
    as_of: Optional[str] = None,
    expand: Optional[str] = None,
    error_policy: Optional[str] = None,
    project_name: Optional[str] = None,
) -> List[Dict[str, Any]]:
    if not ids:
        raise InvalidParams("At least one work item ID is required")
    if len(ids) > MAX_BATCH_IDS:
        raise InvalidParams(f"At most {MAX_BATCH_IDS} work item IDs can be fetched at once")
    if expand and expand.lower() not in EXPAND_OPTIONS:
        raise InvalidParams(f"expand must be one of {', '.join(EXPAND_OPTIONS)}")
    items = tool.get_work_items(
        ids,
        fields=fields,
        as_of=as_of,
        expand=expand,
        error_policy=error_policy,
        project=project_name,
    )
    results = []
    for item in items:
        item_fields = item.get("fields") or {}
        html_link = ((item.get("_links") or {}).get("html") or {}).get("href")
        results.append({
            "id": item.get("id"),
            "state": item_fields.get("System.State", "Unknown"),
            "title": item_fields.get("System.Title", "Untitled"),
            "description": item_fields.get("System.Description", ""),
            "url": item.get("url") or html_link or "",
        })
    return results


def list_work_items(
    tool: AzureDevOpsWikiTool,
    query: str,
    project_name: Optional[str] = None,
    top: int = 50,
) -> Dict[str, Any]:
    """Run a WIQL query and return the first ``top`` matches."""
    if not query:
        raise InvalidParams("A WIQL query is required")
    project_name = project_name or tool.project
    top = min(top, MAX_BATCH_IDS)
    ids = tool.query_work_items(query, project=project_name, top=top)[:top]
    items = []
    if ids:
        items = tool.get_work_items(ids, fields=LIST_FIELDS, project=project_name)
    return {
        "asof": _now(),
        "count": len(items),
        "workItems": [
            {
                "id": item.get("id"),
                "state": (item.get("fields") or {}).get("System.State", "Unknown"),
                "title": (item.get("fields") or {}).get("System.Title", "Untitled"),
                "url": _edit_url(tool, project_name, item.get("id")),
            }
            for item in items
        ],
    }


def create_work_item(
    tool: AzureDevOpsWikiTool,
    work_item_type: str,
    document: List[Dict[str, Any]],
    project_name: Optional[str] = None,
) -> Dict[str, Any]:
    if not work_item_type:
        raise InvalidParams("Work item type is required")
    _check_document(document)
    return _summarize_change(
        tool.create_work_item(work_item_type, document, project=project_name)
    )


def update_work_item(
    tool: AzureDevOpsWikiTool,
    work_item_id: int,
    document: List[Dict[str, Any]],
    project_name: Optional[str] = None,
) -> Dict[str, Any]:
    if not work_item_id:
        raise InvalidParams("Work item ID is required")
    _check_document(document)
    return _summarize_change(
        tool.update_work_item(work_item_id, document, project=project_name)
    )


def search_work_items(
    tool: AzureDevOpsWikiTool,
    search_text: str,
    project_name: Optional[str] = None,
    top: int = 10,
) -> Dict[str, Any]:
    if not search_text:
        raise InvalidParams("Search text is required")
    data = tool.search_work_items(search_text, project=project_name, top=top)
    work_items = []
    for result in data.get("results") or []:
        fields = result.get("fields") or {}
        work_item_id = fields.get("system.id")
        project = (result.get("project") or {}).get("name") or project_name or tool.project
        work_items.append({
            "id": work_item_id,
            "state": fields.get("system.state", "Unknown"),
            "title": fields.get("system.title", "Untitled"),
            "url": _edit_url(tool, project, work_item_id),
        })
    return {"asof": _now(), "count": data.get("count", len(work_items)), "workItems": work_items}


def add_work_item_comment(
    tool: AzureDevOpsWikiTool,
    work_item_id: int,
    text: str,
    project_name: Optional[str] = None,
) -> Dict[str, Any]:
    if not work_item_id:
        raise InvalidParams("Work item ID is required")
    if not text or not text.strip():
        raise InvalidParams("Comment text is required")
    comment = tool.add_work_item_comment(work_item_id, text, project=project_name)
    return _summarize_comment(comment, work_item_id)


def get_work_item_comments(
    tool: AzureDevOpsWikiTool,
    work_item_id: int,
    project_name: Optional[str] = None,
) -> Dict[str, Any]:
    if not work_item_id:
        raise InvalidParams("Work item ID is required")
    comments = [
        _summarize_comment(comment, work_item_id)
        for comment in tool.get_work_item_comments(work_item_id, project=project_name)
    ]
    return {"count": len(comments), "comments": comments}
