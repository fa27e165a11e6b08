import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from errors import ConfigurationError

DEFAULT_API_VERSION = "7.1"
DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class AzureDevOpsConfig:
    org: str
    project: str
    pat: str
    api_version: str = DEFAULT_API_VERSION
    timeout: float = DEFAULT_TIMEOUT

    @property
    def org_url(self) -> str:
        # AZURE_DEVOPS_ORG may be a bare name or the full organization URL
        if self.org.startswith("http"):
            return self.org.rstrip("/")
        return f"https://dev.azure.com/{self.org}"


def load_config(environ: Optional[Mapping[str, str]] = None) -> AzureDevOpsConfig:
    """Build the config from the environment, reading a local .env first."""
    if environ is None:
        load_dotenv()
        environ = os.environ

    org = environ.get("AZURE_DEVOPS_ORG")
    project = environ.get("AZURE_DEVOPS_PROJECT")
    pat = environ.get("AZURE_DEVOPS_PAT")
    missing = [
        name
        for name, value in (
            ("AZURE_DEVOPS_ORG", org),
            ("AZURE_DEVOPS_PROJECT", project),
            ("AZURE_DEVOPS_PAT", pat),
        )
        if not value
    ]
    if missing:
        raise ConfigurationError(
            f"Missing environment variables: {', '.join(missing)}"
        )

    timeout_raw = environ.get("AZURE_DEVOPS_TIMEOUT")
    try:
        timeout = float(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT
    except ValueError as exc:
        raise ConfigurationError(
            f"AZURE_DEVOPS_TIMEOUT must be a number, got {timeout_raw!r}"
        ) from exc

    return AzureDevOpsConfig(
        org=org,
        project=project,
        pat=pat,
        api_version=environ.get("AZURE_DEVOPS_API_VERSION") or DEFAULT_API_VERSION,
        timeout=timeout,
    )
