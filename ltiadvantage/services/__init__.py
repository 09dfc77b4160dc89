"""Service layer exports."""

from .assessment_control import AssessmentControlService
from .groups import GroupsService
from .line_items import LineItemService
from .link_content import LinkContentService
from .membership import Membership, MembershipSyncResult, MembershipSynchronizer
from .pagination import CollectionPage, PaginatedCollectionFetcher
from .results import ResultService
from .scores import ScoreService
from .service import AccessTokenError, Service, ServiceRequestError
from .tool_settings import ToolSettingsMode, ToolSettingsService

__all__ = [
    "AccessTokenError",
    "AssessmentControlService",
    "CollectionPage",
    "GroupsService",
    "LineItemService",
    "LinkContentService",
    "Membership",
    "MembershipSyncResult",
    "MembershipSynchronizer",
    "PaginatedCollectionFetcher",
    "ResultService",
    "ScoreService",
    "Service",
    "ServiceRequestError",
    "ToolSettingsMode",
    "ToolSettingsService",
]
