from typing import Optional


class AzureDevOpsError(Exception):
    """Base class for everything this package raises."""


class InvalidParams(AzureDevOpsError, ValueError):
    pass


class ConfigurationError(AzureDevOpsError):
    pass


class AzureDevOpsHttpError(AzureDevOpsError):
    """An Azure DevOps REST call failed or returned something unusable."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class WikiError(AzureDevOpsHttpError):
    """Upstream wiki call failed.

    Carries whatever diagnostics the failing response gave us: the HTTP status,
    which wiki and page were targeted, and the raw response body.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        wiki_identifier: Optional[str] = None,
        path: Optional[str] = None,
        response_body: Optional[str] = None,
    ) -> None:
        super().__init__(message, status_code=status_code, response_body=response_body)
        self.wiki_identifier = wiki_identifier
        self.path = path


class WikiNotFoundError(WikiError):
    def __init__(self, wiki_identifier: str, response_body: Optional[str] = None) -> None:
        super().__init__(
            f"Wiki {wiki_identifier} not found",
            status_code=404,
            wiki_identifier=wiki_identifier,
            response_body=response_body,
        )


class WikiPageNotFoundError(WikiError):
    def __init__(
        self, wiki_identifier: str, path: str, response_body: Optional[str] = None
    ) -> None:
        super().__init__(
            f"Wiki page {path} not found in wiki {wiki_identifier}",
            status_code=404,
            wiki_identifier=wiki_identifier,
            path=path,
            response_body=response_body,
        )


class WikiConcurrencyError(WikiError):
    """The page changed between our read and our conditional write.

    Re-running the upsert fetches a fresh ETag and is safe.
    """


class WorkItemError(AzureDevOpsHttpError):
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        work_item_id: Optional[int] = None,
        response_body: Optional[str] = None,
    ) -> None:
        super().__init__(message, status_code=status_code, response_body=response_body)
        self.work_item_id = work_item_id


class WorkItemNotFoundError(WorkItemError):
    def __init__(self, work_item_id: Optional[int], response_body: Optional[str] = None) -> None:
        super().__init__(
            f"Work item {work_item_id} not found",
            status_code=404,
            work_item_id=work_item_id,
            response_body=response_body,
        )
