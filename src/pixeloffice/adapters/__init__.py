"""活动数据源适配器。"""

from .atlassian import AtlassianClient
from .base import (
    ContentProvider,
    ContentSnapshot,
    IssueProvider,
    IssueSnapshot,
    zero_content,
    zero_issues,
)
from .static import StaticContentProvider, StaticIssueProvider

__all__ = [
    "AtlassianClient",
    "ContentProvider",
    "ContentSnapshot",
    "IssueProvider",
    "IssueSnapshot",
    "StaticContentProvider",
    "StaticIssueProvider",
    "zero_content",
    "zero_issues",
]
