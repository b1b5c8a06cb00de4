"""Interactive shell and async wrappers for managing remote document stores."""

from threads_shell._client import Client, ReadTransaction, WriteTransaction
from threads_shell._config import ClientConfig, ShellConfig, load_config
from threads_shell._database import Collection, Database
from threads_shell._errors import (
    AlreadyExists,
    ClientUnavailable,
    InvalidConfig,
    NotFound,
    OperationTimeout,
    PermissionDenied,
    SchemaViolation,
    ThreadsError,
)
from threads_shell._factory import create_client, get_cloud_client, get_local_client, register_client
from threads_shell._models import Action, StoreHandle, StoreLink, Subscription, Update
from threads_shell._query import Query, Where
from threads_shell._registry import Registry
from threads_shell._shell import PLAYGROUND, Session

__version__ = "0.1.0"

__all__ = [
    # Core
    "Registry",
    "Database",
    "Collection",
    "Client",
    "ReadTransaction",
    "WriteTransaction",
    "register_client",
    "create_client",
    "get_local_client",
    "get_cloud_client",
    # Models & Queries
    "StoreHandle",
    "StoreLink",
    "Update",
    "Action",
    "Subscription",
    "Query",
    "Where",
    # Shell
    "Session",
    "PLAYGROUND",
    # Config
    "ClientConfig",
    "ShellConfig",
    "load_config",
    # Errors
    "ThreadsError",
    "NotFound",
    "AlreadyExists",
    "SchemaViolation",
    "PermissionDenied",
    "ClientUnavailable",
    "OperationTimeout",
    "InvalidConfig",
    # Version
    "__version__",
]
