"""
Response models for the GitLab REST API.

Only the fields used for cataloging are declared; everything else the API
returns is kept as extra attributes so no data is lost.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class GitLabModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class GitLabProject(GitLabModel):
    id: int
    name: str
    path: str | None = None
    path_with_namespace: str | None = None
    description: str | None = None
    default_branch: str | None = None
    web_url: str | None = None
    archived: bool = False
    last_activity_at: datetime | None = None


class GitLabGroup(GitLabModel):
    id: int
    name: str
    path: str | None = None
    full_path: str | None = None
    description: str | None = None
    parent_id: int | None = None


class GitLabUser(GitLabModel):
    id: int
    username: str
    name: str | None = None
    state: str | None = None
    email: str | None = None
    web_url: str | None = None
    avatar_url: str | None = None
