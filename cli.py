"""Command-line access to Azure DevOps wikis and work items.

Usage:
    azure-devops-wiki wiki list
    azure-devops-wiki wiki pages -w MyProject.wiki
    azure-devops-wiki wiki page -w MyProject.wiki -p /Docs/Home
    azure-devops-wiki wiki create -n "Team Wiki"
    azure-devops-wiki wiki update -w MyProject.wiki -p /Docs/Home -c "# Home\\nHello"
    azure-devops-wiki wiki create-page -w MyProject.wiki -p /Docs/New -c "New page"
    azure-devops-wiki wiki search -w MyProject.wiki -s "deployment"
    azure-devops-wiki work-item get -i 12,13
    azure-devops-wiki work-item list -q "SELECT [System.Id] FROM WorkItems WHERE [System.State] = 'Active'"
    azure-devops-wiki work-item update -i 12 -d '[{"op": "add", "path": "/fields/System.State", "value": "Closed"}]'
    azure-devops-wiki work-item add-comment -i 12 -t "Deployed"

Environment:
    AZURE_DEVOPS_ORG, AZURE_DEVOPS_PROJECT, AZURE_DEVOPS_PAT (a .env file works too)
"""

import argparse
import json
import logging
import sys
from typing import Callable, List, Optional

from azure_devops_wiki_tool import AzureDevOpsWikiTool
from config import load_config
from errors import AzureDevOpsError, InvalidParams
import wiki_tools
import work_item_tools


def _cmd_list(tool, args):
    return wiki_tools.get_wikis(tool, args.project)


def _cmd_pages(tool, args):
    return wiki_tools.list_wiki_pages(tool, args.wiki, args.project)


def _cmd_page(tool, args):
    return wiki_tools.get_wiki_page(tool, args.wiki, args.path, args.project)


def _cmd_create(tool, args):
    return wiki_tools.create_wiki(tool, args.name, args.project, args.mapped_path)


def _cmd_update(tool, args):
    return wiki_tools.update_wiki_page(
        tool, args.wiki, args.path, args.content, args.comment, args.project
    )


def _cmd_create_page(tool, args):
    return wiki_tools.create_wiki_page(
        tool, args.wiki, args.path, args.content, args.comment, args.project
    )


def _cmd_search(tool, args):
    return wiki_tools.search_wiki_page(tool, args.wiki, args.search, args.project, args.top)


def _parse_ids(raw: str) -> List[int]:
    try:
        return [int(part.strip()) for part in raw.split(",") if part.strip()]
    except ValueError as exc:
        raise InvalidParams(f"Work item IDs must be comma-separated integers, got {raw!r}") from exc


def _parse_document(raw: str):
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise InvalidParams(f"Patch document is not valid JSON: {exc}") from exc


def _cmd_wi_get(tool, args):
    fields = [field.strip() for field in args.fields.split(",")] if args.fields else None
    return work_item_tools.get_work_items(
        tool,
        _parse_ids(args.ids),
        fields=fields,
        as_of=args.as_of,
        expand=args.expand,
        error_policy=args.error_policy,
        project_name=args.project,
    )


def _cmd_wi_list(tool, args):
    return work_item_tools.list_work_items(tool, args.query, args.project, args.top)


def _cmd_wi_create(tool, args):
    return work_item_tools.create_work_item(
        tool, args.type, _parse_document(args.document), args.project
    )


def _cmd_wi_update(tool, args):
    return work_item_tools.update_work_item(
        tool, args.id, _parse_document(args.document), args.project
    )


def _cmd_wi_search(tool, args):
    return work_item_tools.search_work_items(tool, args.search_text, args.project, args.top)


def _cmd_wi_add_comment(tool, args):
    return work_item_tools.add_work_item_comment(tool, args.id, args.text, args.project)


def _cmd_wi_comments(tool, args):
    return work_item_tools.get_work_item_comments(tool, args.id, args.project)


def _add_page_write_args(parser: argparse.ArgumentParser, content_help: str) -> None:
    parser.add_argument("-w", "--wiki", required=True, help="Wiki identifier")
    parser.add_argument("-p", "--path", required=True, help="Page path")
    parser.add_argument("-c", "--content", required=True, help=content_help)
    parser.add_argument("--comment", help="Comment for the change")
    parser.add_argument("--project", help="Project name (defaults to the one in config)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="azure-devops-wiki", description="Azure DevOps CLI tools"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log HTTP traffic")
    commands = parser.add_subparsers(dest="command")

    wiki = commands.add_parser("wiki", help="Wiki management commands")
    sub = wiki.add_subparsers(dest="wiki_command", required=True)

    p = sub.add_parser("list", help="List all wikis in the project")
    p.add_argument("-p", "--project", help="Project name (defaults to the one in config)")
    p.set_defaults(handler=_cmd_list)

    p = sub.add_parser("pages", help="List pages in a wiki")
    p.add_argument("-w", "--wiki", required=True, help="Wiki identifier")
    p.add_argument("-p", "--project", help="Project name (defaults to the one in config)")
    p.set_defaults(handler=_cmd_pages)

    p = sub.add_parser("page", help="Get a wiki page by path")
    p.add_argument("-w", "--wiki", required=True, help="Wiki identifier")
    p.add_argument("-p", "--path", required=True, help="Page path")
    p.add_argument("--project", help="Project name (defaults to the one in config)")
    p.set_defaults(handler=_cmd_page)

    p = sub.add_parser("create", help="Create a new wiki")
    p.add_argument("-n", "--name", required=True, help="Wiki name")
    p.add_argument("-p", "--project", help="Project ID")
    p.add_argument("-m", "--mapped-path", help="Mapped path")
    p.set_defaults(handler=_cmd_create)

    p = sub.add_parser("update", help="Create or update a wiki page")
    _add_page_write_args(p, "Page content")
    p.set_defaults(handler=_cmd_update)

    p = sub.add_parser("create-page", help="Create a new wiki page")
    _add_page_write_args(p, "Page content in markdown format")
    p.set_defaults(handler=_cmd_create_page)

    p = sub.add_parser("search", help="Search for pages in a wiki by text")
    p.add_argument("-w", "--wiki", required=True, help="Wiki identifier")
    p.add_argument("-s", "--search", required=True, help="Text to search for in wiki pages")
    p.add_argument("-p", "--project", help="Project name (defaults to the one in config)")
    p.add_argument("-t", "--top", type=int, default=20, help="Maximum number of results")
    p.set_defaults(handler=_cmd_search)

    work_item = commands.add_parser("work-item", help="Work item management commands")
    sub = work_item.add_subparsers(dest="work_item_command", required=True)
    project_help = "Project name (defaults to the one in config)"

    p = sub.add_parser("get", help="Get work items by IDs")
    p.add_argument("-i", "--ids", required=True, help="Work item IDs (comma-separated)")
    p.add_argument("-f", "--fields", help="Fields to include (comma-separated)")
    p.add_argument("-a", "--as-of", help="As of a specific date (ISO 8601)")
    p.add_argument("-e", "--expand", choices=work_item_tools.EXPAND_OPTIONS, help="Expand option")
    p.add_argument("--error-policy", choices=("fail", "omit"), help="Error policy")
    p.add_argument("-p", "--project", help=project_help)
    p.set_defaults(handler=_cmd_wi_get)

    p = sub.add_parser("list", help="List work items using a WIQL query")
    p.add_argument("-q", "--query", required=True, help="WIQL query to filter work items")
    p.add_argument("-t", "--top", type=int, default=50, help="Maximum number of work items")
    p.add_argument("-p", "--project", help=project_help)
    p.set_defaults(handler=_cmd_wi_list)

    p = sub.add_parser("create", help="Create a new work item")
    p.add_argument("-t", "--type", required=True, help='Work item type (e.g. "Bug", "Task")')
    p.add_argument("-d", "--document", required=True, help="JSON patch operations document")
    p.add_argument("-p", "--project", help=project_help)
    p.set_defaults(handler=_cmd_wi_create)

    p = sub.add_parser("update", help="Update an existing work item")
    p.add_argument("-i", "--id", type=int, required=True, help="ID of the work item to update")
    p.add_argument("-d", "--document", required=True, help="JSON patch operations document")
    p.add_argument("-p", "--project", help=project_help)
    p.set_defaults(handler=_cmd_wi_update)

    p = sub.add_parser("search", help="Search for work items using text search")
    p.add_argument("-s", "--search-text", required=True, help="Text to search for in work items")
    p.add_argument("-t", "--top", type=int, default=10, help="Maximum number of results")
    p.add_argument("-p", "--project", help=project_help)
    p.set_defaults(handler=_cmd_wi_search)

    p = sub.add_parser("add-comment", help="Add a comment to a work item")
    p.add_argument("-i", "--id", type=int, required=True, help="Work item ID")
    p.add_argument("-t", "--text", required=True, help="Comment text")
    p.add_argument("-p", "--project", help=project_help)
    p.set_defaults(handler=_cmd_wi_add_comment)

    p = sub.add_parser("comments", help="Get the comments on a work item")
    p.add_argument("-i", "--id", type=int, required=True, help="Work item ID")
    p.add_argument("-p", "--project", help=project_help)
    p.set_defaults(handler=_cmd_wi_comments)

    return parser


def main(
    argv: Optional[List[str]] = None,
    tool_factory: Optional[Callable[[], AzureDevOpsWikiTool]] = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(message)s',
    )

    try:
        if tool_factory is None:
            tool = AzureDevOpsWikiTool.from_config(load_config())
        else:
            tool = tool_factory()
        with tool:
            result = args.handler(tool, args)
    except AzureDevOpsError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
