"""
Base Plugin for Weaver

Plugins run alongside a scan as asyncio tasks: they are started when the
Framework prepares and awaited during cleanup. Whatever run() returns is
stored in the AuditStore under the plugin's name.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import logging


class BasePlugin(ABC):
    """
    Abstract base class for plugins.

    Each plugin must define:
    - name: Registry name
    - description: One-line description
    - run(): Coroutine returning the plugin's results
    """

    name: str = "base"
    description: str = "Base plugin"

    def __init__(self, framework, options: Optional[Dict[str, Any]] = None):
        self.framework = framework
        self.options = options or {}
        self.logger = logging.getLogger(f"weaver.plugin.{self.name}")

    @abstractmethod
    async def run(self) -> Any:
        pass

    async def wait_while_framework_running(self):
        """Block until the Framework has finished auditing."""
        await self.framework.wait_for_audit()

    @classmethod
    def info(cls) -> Dict[str, Any]:
        return {'name': cls.name, 'description': cls.description}
