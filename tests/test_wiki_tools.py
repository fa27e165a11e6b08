# tests/test_wiki_tools.py
# Tests for the tool-facing wiki operations

import pytest

import wiki_tools
from errors import InvalidParams


class TestUpdateWikiPage:

    def test_created_summary(self, wiki_tool, session, make_response, page_missing):
        session.request.side_effect = [
            page_missing,
            make_response(201, {
                "content": "hello",
                "lastUpdatedBy": {"displayName": "Ada"},
                "lastUpdatedDate": "2024-05-01T10:00:00Z",
            }, headers={"ETag": '"1"'}),
        ]

        result = wiki_tools.update_wiki_page(wiki_tool, "W", "New", "hello")

        assert result["path"] == "/New"
        assert result["created"] is True
        assert result["message"] == "Wiki page created successfully"
        assert result["lastUpdatedBy"] == "Ada"
        assert result["lastUpdatedDate"] == "2024-05-01T10:00:00Z"
        assert result["etag"] == '"1"'

    def test_unchanged_summary(self, wiki_tool, session, make_response):
        session.request.side_effect = [make_response(200, {"content": "same"}, headers={"ETag": '"4"'})]

        result = wiki_tools.create_wiki_page(wiki_tool, "W", "/Home", "same")

        assert result["unchanged"] is True
        assert result["lastUpdatedBy"] == "Unknown"
        assert "unchanged" in result["message"]

    def test_preview_is_truncated(self):
        assert wiki_tools.content_preview("x" * 150) == "x" * 100 + "..."
        assert wiki_tools.content_preview("short") == "short"


class TestReadOperations:

    def test_list_wiki_pages_adds_context(self, wiki_tool, session, make_response):
        session.request.return_value = make_response(200, {"path": "/", "id": 1})

        pages = wiki_tools.list_wiki_pages(wiki_tool, "W")

        assert pages == [{"path": "/", "id": 1, "wikiIdentifier": "W", "projectName": "Fabrikam"}]

    def test_get_wiki_page_normalizes_path(self, wiki_tool, session, make_response):
        session.request.return_value = make_response(200, {"id": 5, "path": "/Home", "content": "hi"}, headers={"ETag": '"2"'})

        page = wiki_tools.get_wiki_page(wiki_tool, "W", "Home.md")

        assert session.request.call_args.kwargs["params"]["path"] == "/Home"
        assert page["content"] == "hi"
        assert page["etag"] == '"2"'

    def test_search_wraps_results(self, wiki_tool, session, make_response):
        session.request.return_value = make_response(200, {"results": [{"path": "/A"}]})

        result = wiki_tools.search_wiki_page(wiki_tool, "W", "a")

        assert result["count"] == 1

    @pytest.mark.parametrize("call", [
        lambda tool: wiki_tools.list_wiki_pages(tool, ""),
        lambda tool: wiki_tools.get_wiki_page(tool, "W", ""),
        lambda tool: wiki_tools.create_wiki(tool, ""),
        lambda tool: wiki_tools.search_wiki_page(tool, "W", ""),
    ])
    def test_required_params(self, wiki_tool, session, call):
        with pytest.raises(InvalidParams):
            call(wiki_tool)
        session.request.assert_not_called()
