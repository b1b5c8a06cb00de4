"""Client implementations."""

from threads_shell.clients._base import DocumentClient
from threads_shell.clients._local import LocalClient
from threads_shell.clients._memory import MemoryClient
from threads_shell.clients._s3 import S3Client

__all__ = ["DocumentClient", "LocalClient", "MemoryClient", "S3Client"]
