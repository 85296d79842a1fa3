"""
GitLab Listing Example

Lists the projects, subgroups and members of a group, one page at a time.
Set GITLAB_TOKEN to read private groups.
"""

import asyncio
import logging
import os
from datetime import datetime, timedelta, timezone

from catalogfeed import GitLabClient, IntegrationRegistry

GROUP_URL = os.getenv("GITLAB_GROUP_URL", "https://gitlab.com/groups/gitlab-org")

logging.basicConfig(level=logging.INFO)
logging.getLogger("catalogfeed").setLevel(logging.DEBUG)

registry = IntegrationRegistry.from_config(
    {"integrations": {"gitlab": [{"host": "gitlab.com", "token": os.getenv("GITLAB_TOKEN")}]}}
)


async def main() -> None:
    async with GitLabClient(registry, max_pages=50) as client:
        # Only projects touched during the last week
        since = datetime.now(timezone.utc) - timedelta(days=7)
        async for project in client.list_projects(GROUP_URL, last_activity_after=since):
            print(f"  - {project.path_with_namespace} (last activity {project.last_activity_at})")

        subgroups = await client.list_groups(GROUP_URL).to_list()
        print(f"\nSubgroups: {len(subgroups)}")

        # Stop after the first ten members; no further pages are requested
        async with client.list_users(GROUP_URL) as members:
            count = 0
            async for user in members:
                print(f"  - @{user.username}")
                count += 1
                if count == 10:
                    break


if __name__ == "__main__":
    asyncio.run(main())
