# tests/test_work_item_tools.py
# Tests for the work item client calls and their tool-facing summaries

import pytest
import requests

import work_item_tools
from azure_devops_wiki_tool import COMMENTS_API_VERSION, JSON_PATCH_CONTENT_TYPE
from errors import InvalidParams, WorkItemError, WorkItemNotFoundError

WORK_ITEMS_URL = "https://dev.azure.com/contoso/Fabrikam/_apis/wit/workitems"

TITLE_PATCH = [{"op": "add", "path": "/fields/System.Title", "value": "Broken build"}]


def _work_item(work_item_id, state="Active", title="Broken build", **extra_fields):
    fields = {"System.State": state, "System.Title": title, **extra_fields}
    return {
        "id": work_item_id,
        "rev": 1,
        "fields": fields,
        "url": f"{WORK_ITEMS_URL}/{work_item_id}",
    }


class TestGetWorkItems:

    def test_defaults_to_expand_all(self, wiki_tool, session, make_response):
        session.request.return_value = make_response(200, {
            "count": 2,
            "value": [_work_item(1), _work_item(2, state="Closed", title="Docs")],
        })

        result = work_item_tools.get_work_items(wiki_tool, [1, 2])

        assert [item["id"] for item in result] == [1, 2]
        assert result[1] == {
            "id": 2,
            "state": "Closed",
            "title": "Docs",
            "description": "",
            "url": f"{WORK_ITEMS_URL}/2",
        }
        call = session.request.call_args
        assert call.args == ("GET", WORK_ITEMS_URL)
        assert call.kwargs["params"]["ids"] == "1,2"
        assert call.kwargs["params"]["$expand"] == "all"
        assert call.kwargs["params"]["api-version"] == "7.1"

    def test_fields_replace_expand(self, wiki_tool, session, make_response):
        session.request.return_value = make_response(200, {"value": [_work_item(5)]})

        work_item_tools.get_work_items(
            wiki_tool, [5], fields=["System.Title"], as_of="2024-01-01", error_policy="omit"
        )

        params = session.request.call_args.kwargs["params"]
        assert params["fields"] == "System.Title"
        assert "$expand" not in params
        assert params["asOf"] == "2024-01-01"
        assert params["errorPolicy"] == "omit"

    def test_omitted_ids_are_dropped(self, wiki_tool, session, make_response):
        session.request.return_value = make_response(200, {"value": [_work_item(1), None]})

        assert len(work_item_tools.get_work_items(wiki_tool, [1, 99], error_policy="omit")) == 1

    def test_missing_item_raises_not_found(self, wiki_tool, session, make_response):
        session.request.return_value = make_response(404, text="TF401232: Work item 42 does not exist")

        with pytest.raises(WorkItemNotFoundError) as exc_info:
            work_item_tools.get_work_items(wiki_tool, [42])

        assert exc_info.value.work_item_id == 42
        assert exc_info.value.status_code == 404

    @pytest.mark.parametrize("ids,expand", [([], None), (list(range(201)), None), ([1], "everything")])
    def test_rejects_bad_input(self, wiki_tool, session, ids, expand):
        with pytest.raises(InvalidParams):
            work_item_tools.get_work_items(wiki_tool, ids, expand=expand)
        session.request.assert_not_called()


class TestListWorkItems:

    def test_runs_wiql_then_fetches_fields(self, wiki_tool, session, make_response):
        session.request.side_effect = [
            make_response(200, {"workItems": [{"id": 3}, {"id": 4}]}),
            make_response(200, {"value": [_work_item(3), _work_item(4, state="New")]}),
        ]

        result = work_item_tools.list_work_items(
            wiki_tool, "SELECT [System.Id] FROM WorkItems", top=2
        )

        assert result["count"] == 2
        assert result["workItems"][1] == {
            "id": 4,
            "state": "New",
            "title": "Broken build",
            "url": "https://dev.azure.com/contoso/Fabrikam/_workitems/edit/4",
        }
        assert "asof" in result
        wiql = session.request.call_args_list[0]
        assert wiql.args == ("POST", "https://dev.azure.com/contoso/Fabrikam/_apis/wit/wiql")
        assert wiql.kwargs["json"] == {"query": "SELECT [System.Id] FROM WorkItems"}
        assert wiql.kwargs["params"]["$top"] == 2
        fetch = session.request.call_args_list[1]
        assert fetch.kwargs["params"]["fields"] == "System.Id,System.State,System.Title"

    def test_no_matches_skips_fetch(self, wiki_tool, session, make_response):
        session.request.return_value = make_response(200, {"workItems": []})

        result = work_item_tools.list_work_items(wiki_tool, "SELECT [System.Id] FROM WorkItems")

        assert result["count"] == 0
        assert result["workItems"] == []
        assert session.request.call_count == 1

    def test_top_is_capped(self, wiki_tool, session, make_response):
        session.request.return_value = make_response(200, {"workItems": []})

        work_item_tools.list_work_items(wiki_tool, "SELECT [System.Id] FROM WorkItems", top=5000)

        assert session.request.call_args.kwargs["params"]["$top"] == 200

    def test_query_required(self, wiki_tool):
        with pytest.raises(InvalidParams):
            work_item_tools.list_work_items(wiki_tool, "")


class TestChangeWorkItems:

    def test_create_posts_json_patch(self, wiki_tool, session, make_response):
        session.request.return_value = make_response(200, _work_item(
            10,
            state="New",
            **{
                "System.TeamProject": "Fabrikam",
                "System.CreatedBy": {"displayName": "Ada", "id": "u1", "imageUrl": "x"},
            },
        ))

        result = work_item_tools.create_work_item(wiki_tool, "User Story", TITLE_PATCH)

        assert result["id"] == 10
        assert result["State"] == "New"
        assert result["TeamProject"] == "Fabrikam"
        assert result["CreatedBy"]["displayName"] == "Ada"
        assert "imageUrl" not in result["CreatedBy"]
        assert result["AssignedTo"] is None
        call = session.request.call_args
        assert call.args == ("POST", f"{WORK_ITEMS_URL}/$User%20Story")
        assert call.kwargs["headers"]["Content-Type"] == JSON_PATCH_CONTENT_TYPE
        assert call.kwargs["json"] == TITLE_PATCH

    def test_update_patches_work_item(self, wiki_tool, session, make_response):
        session.request.return_value = make_response(200, _work_item(7, state="Closed"))

        result = work_item_tools.update_work_item(wiki_tool, 7, TITLE_PATCH, project_name="Other")

        assert result["State"] == "Closed"
        call = session.request.call_args
        assert call.args == (
            "PATCH", "https://dev.azure.com/contoso/Other/_apis/wit/workitems/7"
        )
        assert call.kwargs["headers"]["Content-Type"] == JSON_PATCH_CONTENT_TYPE

    def test_update_missing_item(self, wiki_tool, session, make_response):
        session.request.return_value = make_response(404, text="not found")

        with pytest.raises(WorkItemNotFoundError) as exc_info:
            work_item_tools.update_work_item(wiki_tool, 7, TITLE_PATCH)

        assert str(exc_info.value) == "Work item 7 not found"

    def test_rejected_patch_carries_body(self, wiki_tool, session, make_response):
        session.request.return_value = make_response(400, reason="Bad Request", text="TF401320")

        with pytest.raises(WorkItemError) as exc_info:
            work_item_tools.create_work_item(wiki_tool, "Bug", TITLE_PATCH)

        assert exc_info.value.status_code == 400
        assert exc_info.value.response_body == "TF401320"

    @pytest.mark.parametrize("document", [None, [], {"op": "add"}])
    def test_document_must_be_operation_list(self, wiki_tool, session, document):
        with pytest.raises(InvalidParams):
            work_item_tools.update_work_item(wiki_tool, 7, document)
        session.request.assert_not_called()

    def test_transport_error_is_a_work_item_error(self, wiki_tool, session):
        session.request.side_effect = requests.Timeout("slow")

        with pytest.raises(WorkItemError):
            work_item_tools.create_work_item(wiki_tool, "Bug", TITLE_PATCH)


class TestSearchWorkItems:

    def test_search_uses_search_service(self, wiki_tool, session, make_response):
        session.request.return_value = make_response(200, {
            "count": 1,
            "results": [{
                "project": {"name": "Fabrikam"},
                "fields": {"system.id": "12", "system.state": "Active", "system.title": "Login fails"},
            }],
        })

        result = work_item_tools.search_work_items(wiki_tool, "login", top=3)

        assert result["count"] == 1
        assert result["workItems"] == [{
            "id": "12",
            "state": "Active",
            "title": "Login fails",
            "url": "https://dev.azure.com/contoso/Fabrikam/_workitems/edit/12",
        }]
        call = session.request.call_args
        assert call.args == (
            "POST",
            "https://almsearch.dev.azure.com/contoso/Fabrikam/_apis/search/workitemsearchresults",
        )
        assert call.kwargs["json"] == {"searchText": "login", "$skip": 0, "$top": 3}

    def test_search_text_required(self, wiki_tool):
        with pytest.raises(InvalidParams):
            work_item_tools.search_work_items(wiki_tool, "")


class TestComments:

    def test_add_comment(self, wiki_tool, session, make_response):
        session.request.return_value = make_response(200, {
            "id": 501,
            "text": "Deployed",
            "createdBy": {"displayName": "Ada", "id": "u1", "uniqueName": "ada@contoso.com"},
            "createdDate": "2024-05-01T10:00:00Z",
            "url": f"{WORK_ITEMS_URL}/12/comments/501",
        })

        result = work_item_tools.add_work_item_comment(wiki_tool, 12, "Deployed")

        assert result["id"] == 501
        assert result["workItemId"] == 12
        assert result["createdBy"]["uniqueName"] == "ada@contoso.com"
        call = session.request.call_args
        assert call.args == ("POST", f"{WORK_ITEMS_URL}/12/comments")
        assert call.kwargs["params"]["api-version"] == COMMENTS_API_VERSION
        assert call.kwargs["json"] == {"text": "Deployed"}

    def test_blank_comment_rejected(self, wiki_tool, session):
        with pytest.raises(InvalidParams):
            work_item_tools.add_work_item_comment(wiki_tool, 12, "   ")
        session.request.assert_not_called()

    def test_get_comments(self, wiki_tool, session, make_response):
        session.request.return_value = make_response(200, {
            "totalCount": 2,
            "comments": [{"id": 1, "text": "a"}, {"id": 2, "text": "b", "createdBy": None}],
        })

        result = work_item_tools.get_work_item_comments(wiki_tool, 12)

        assert result["count"] == 2
        assert [c["text"] for c in result["comments"]] == ["a", "b"]
        assert result["comments"][1]["createdBy"] is None
        call = session.request.call_args
        assert call.args == ("GET", f"{WORK_ITEMS_URL}/12/comments")
        assert call.kwargs["params"]["api-version"] == COMMENTS_API_VERSION

    def test_comments_on_missing_item(self, wiki_tool, session, make_response):
        session.request.return_value = make_response(404, text="missing")

        with pytest.raises(WorkItemNotFoundError):
            work_item_tools.get_work_item_comments(wiki_tool, 99)
