from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlsplit

from .exceptions import ConfigurationError

GITLAB_HOST = "gitlab.com"


@dataclass
class GitLabIntegrationConfig:
    """
    Connection details for one GitLab instance.

    base_url and api_base_url default to the public https locations of host
    when not given explicitly.
    """

    host: str
    base_url: str = ""
    api_base_url: str = ""
    token: str | None = None

    def __post_init__(self) -> None:
        if not self.host:
            raise ConfigurationError("GitLab integration config is missing a 'host'")
        if not self.base_url:
            self.base_url = f"https://{self.host}"
        if not self.api_base_url:
            self.api_base_url = f"https://{self.host}/api/v4"
        self.base_url = self.base_url.rstrip("/")
        self.api_base_url = self.api_base_url.rstrip("/")

    @property
    def is_saas(self) -> bool:
        """True for the hosted gitlab.com service, False for self-managed instances."""
        return self.host == GITLAB_HOST

    @classmethod
    def read_from_config(cls, data: Mapping[str, Any]) -> "GitLabIntegrationConfig":
        """
        Builds a config from a plain mapping, e.g. one entry of integrations.gitlab.

        Raises:
            ConfigurationError: If 'host' is missing
        """
        return cls(
            host=data.get("host") or "",
            base_url=data.get("baseUrl") or data.get("base_url") or "",
            api_base_url=data.get("apiBaseUrl") or data.get("api_base_url") or "",
            token=data.get("token"),
        )


@dataclass
class IntegrationRegistry:
    """
    Lookup of GitLab integrations by host.

    Holds no process-wide state; several registries can be used side by side.
    """

    gitlab: list[GitLabIntegrationConfig] = field(default_factory=list)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "IntegrationRegistry":
        """
        Reads integrations from a mapping shaped like::

            {"integrations": {"gitlab": [{"host": "gitlab.example.com", "token": "..."}]}}

        A default gitlab.com entry is added unless one is configured.
        """
        entries = config.get("integrations", {}).get("gitlab", []) or []
        configs = [GitLabIntegrationConfig.read_from_config(entry) for entry in entries]
        if not any(c.host == GITLAB_HOST for c in configs):
            configs.append(GitLabIntegrationConfig(host=GITLAB_HOST))
        return cls(gitlab=configs)

    def by_host(self, host: str) -> GitLabIntegrationConfig | None:
        """
        Get the integration for a host name.

        Returns:
            GitLabIntegrationConfig if found, None otherwise
        """
        for integration in self.gitlab:
            if integration.host == host:
                return integration
        return None

    def by_url(self, url: str) -> GitLabIntegrationConfig | None:
        """Get the integration whose host serves the given URL."""
        try:
            host = urlsplit(url).netloc
        except ValueError:
            return None
        if not host:
            return None
        return self.by_host(host.rsplit("@", 1)[-1])


def get_gitlab_request_options(config: GitLabIntegrationConfig) -> dict[str, Any]:
    """Returns the request options (auth headers) for calls against an integration."""
    headers: dict[str, str] = {}
    if config.token:
        headers["PRIVATE-TOKEN"] = config.token
    return {"headers": headers}
