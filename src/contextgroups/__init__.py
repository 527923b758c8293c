from .config import AccessConfig, AccessStrategyName, LogLevel, ParentInheritance, load_access_config_from_env
from .core import GroupAccess
from .models import CascadeReport, ContentItem, Group, GroupFields, GroupQuery, ItemQuery
from .events import AccessChangeListener, AccessEvents, ChangeEvent, EventDispatcher
from .audit import AuditEntry, AuditLogListener
from .capabilities import Capabilities, RoleCapabilityChecker
from .exceptions import (
    CascadeFailure,
    ConfigurationError,
    ContextGroupsError,
    GroupNotFoundError,
    HierarchyDepthError,
    InvalidInputError,
    ItemNotFoundError,
    NotFoundError,
    UnsupportedStrategyError,
)
from .logging import (
    safe_preview,
    AccessLogFormatter,
    AccessLoggerAdapter,
    setup_logging,
    get_access_logger,
)

__all__ = [
    'GroupAccess',
    'AccessConfig',
    'AccessStrategyName',
    'LogLevel',
    'ParentInheritance',
    'load_access_config_from_env',
    'CascadeReport',
    'ContentItem',
    'Group',
    'GroupFields',
    'GroupQuery',
    'ItemQuery',
    'AccessChangeListener',
    'AccessEvents',
    'ChangeEvent',
    'EventDispatcher',
    'AuditEntry',
    'AuditLogListener',
    'Capabilities',
    'RoleCapabilityChecker',
    'ContextGroupsError',
    'NotFoundError',
    'GroupNotFoundError',
    'ItemNotFoundError',
    'InvalidInputError',
    'ConfigurationError',
    'HierarchyDepthError',
    'UnsupportedStrategyError',
    'CascadeFailure',
    'safe_preview',
    'AccessLogFormatter',
    'AccessLoggerAdapter',
    'setup_logging',
    'get_access_logger',
]
