"""Azure DevOps MCP server: exposes the wiki and work item operations as agent tools."""

import logging
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from azure_devops_wiki_tool import AzureDevOpsWikiTool
from config import load_config
import wiki_tools
import work_item_tools


def build_server(tool: AzureDevOpsWikiTool) -> FastMCP:
    server = FastMCP(
        "Azure DevOps Wiki",
        instructions=(
            "Tools for reading, searching and editing Azure DevOps wiki pages and work items. "
            f"Project defaults to {tool.project}."
        ),
    )

    @server.tool()
    def get_wikis() -> List[Dict[str, Any]]:
        """List all wikis in the project."""
        return wiki_tools.get_wikis(tool)

    @server.tool()
    def list_wiki_pages(
        wikiIdentifier: str, projectName: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """List pages in a wiki in the project."""
        return wiki_tools.list_wiki_pages(tool, wikiIdentifier, projectName)

    @server.tool()
    def get_wiki_page(
        wikiIdentifier: str, path: str, projectName: Optional[str] = None
    ) -> Dict[str, Any]:
        """Get a wiki page, with its content and ETag, by path."""
        return wiki_tools.get_wiki_page(tool, wikiIdentifier, path, projectName)

    @server.tool()
    def create_wiki(
        name: str, projectId: Optional[str] = None, mappedPath: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create a new project wiki."""
        return wiki_tools.create_wiki(tool, name, projectId, mappedPath)

    @server.tool()
    def update_wiki_page(
        wikiIdentifier: str,
        path: str,
        content: str,
        comment: Optional[str] = None,
        projectName: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create or update a wiki page.

        Args:
            wikiIdentifier: Wiki name or ID
            path: Page path, e.g. "/Docs/Home"
            content: Page content in markdown format
            comment: Comment for the update (optional)
            projectName: Project name (optional, defaults to the configured one)
        """
        return wiki_tools.update_wiki_page(
            tool, wikiIdentifier, path, content, comment, projectName
        )

    @server.tool()
    def create_wiki_page(
        wikiIdentifier: str,
        path: str,
        content: str,
        comment: Optional[str] = None,
        projectName: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a new wiki page (updates it if it already exists)."""
        return wiki_tools.create_wiki_page(
            tool, wikiIdentifier, path, content, comment, projectName
        )

    @server.tool()
    def search_wiki_page(
        wikiIdentifier: str,
        searchText: str,
        projectName: Optional[str] = None,
        top: int = 20,
    ) -> Dict[str, Any]:
        """Search for pages in a wiki by text."""
        return wiki_tools.search_wiki_page(tool, wikiIdentifier, searchText, projectName, top)

    @server.tool()
    def get_work_items(
        ids: List[int],
        fields: Optional[List[str]] = None,
        asOf: Optional[str] = None,
        expand: Optional[str] = None,
        errorPolicy: Optional[str] = None,
        projectName: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Get work items by their IDs.

        Args:
            ids: Work item IDs (at most 200)
            fields: Fields to include; cannot be combined with expand
            asOf: Read the work items as of this ISO 8601 date
            expand: One of none, relations, fields, links, all
            errorPolicy: "fail" or "omit" for IDs that do not resolve
            projectName: Project name (optional, defaults to the configured one)
        """
        return work_item_tools.get_work_items(
            tool, ids, fields, asOf, expand, errorPolicy, projectName
        )

    @server.tool()
    def list_work_items(
        query: str, projectName: Optional[str] = None, top: int = 50
    ) -> Dict[str, Any]:
        """List work items matching a WIQL query."""
        return work_item_tools.list_work_items(tool, query, projectName, top)

    @server.tool()
    def create_work_item(
        workItemType: str,
        document: List[Dict[str, Any]],
        projectName: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a work item from a JSON Patch document.

        Each operation looks like {"op": "add", "path": "/fields/System.Title", "value": "..."}.
        """
        return work_item_tools.create_work_item(tool, workItemType, document, projectName)

    @server.tool()
    def update_work_item(
        workItemId: int,
        document: List[Dict[str, Any]],
        projectName: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Update a work item with a JSON Patch document."""
        return work_item_tools.update_work_item(tool, workItemId, document, projectName)

    @server.tool()
    def search_work_items(
        searchText: str, projectName: Optional[str] = None, top: int = 10
    ) -> Dict[str, Any]:
        """Search work items by text."""
        return work_item_tools.search_work_items(tool, searchText, projectName, top)

    @server.tool()
    def add_work_item_comment(
        workItemId: int, text: str, projectName: Optional[str] = None
    ) -> Dict[str, Any]:
        """Add a comment to a work item."""
        return work_item_tools.add_work_item_comment(tool, workItemId, text, projectName)

    @server.tool()
    def get_work_item_comments(
        workItemId: int, projectName: Optional[str] = None
    ) -> Dict[str, Any]:
        """Get the comments on a work item."""
        return work_item_tools.get_work_item_comments(tool, workItemId, projectName)

    return server


def main() -> None:
    # stdout is the protocol channel
    logging.basicConfig(level=logging.WARNING, format='%(asctime)s %(levelname)s %(message)s')
    tool = AzureDevOpsWikiTool.from_config(load_config())
    build_server(tool).run()


if __name__ == "__main__":
    main()
