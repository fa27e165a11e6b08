# tests/conftest.py
# Shared pytest fixtures: a wiki client wired to a mocked requests session

import json
from unittest.mock import Mock

import pytest

from azure_devops_wiki_tool import AzureDevOpsWikiTool


def _make_response(status_code=200, json_data=None, headers=None, reason="", text=None):
    response = Mock()
    response.status_code = status_code
    response.headers = headers or {}
    response.reason = reason
    if text is None:
        text = json.dumps(json_data) if json_data is not None else ""
    response.text = text
    if json_data is None:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = json_data
    return response


@pytest.fixture
def make_response():
    return _make_response


@pytest.fixture
def session():
    return Mock()


@pytest.fixture
def wiki_tool(session):
    return AzureDevOpsWikiTool(
        org_url="https://dev.azure.com/contoso",
        project="Fabrikam",
        pat="secret-pat",
        session=session,
    )


@pytest.fixture
def page_missing(make_response):
    return make_response(404, text='{"message": "The page \'/New\' specified is not found in the wiki."}')
