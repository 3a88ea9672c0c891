"""
Component registry.

Modules, plugins and reports are registered explicitly here; nothing is
discovered on disk. A ComponentManager per kind loads components by name
for one Framework.
"""

import re
from typing import Any, Dict, Iterable, List, Optional, Type, Union
import logging

from weaver.errors import ConfigurationError
from weaver.scanner.modules.comments import CommentsModule
from weaver.scanner.modules.password_autocomplete import PasswordAutocompleteModule
from weaver.scanner.modules.security_headers import SecurityHeadersModule
from weaver.scanner.plugins.healthmap import HealthmapPlugin
from weaver.scanner.reports.json import JSONReport
from weaver.scanner.reports.stdout import StdoutReport

logger = logging.getLogger(__name__)


MODULES: Dict[str, Type] = {
    cls.name: cls for cls in (SecurityHeadersModule, PasswordAutocompleteModule, CommentsModule)
}

PLUGINS: Dict[str, Type] = {
    cls.name: cls for cls in (HealthmapPlugin,)
}

REPORTS: Dict[str, Type] = {
    cls.name: cls for cls in (JSONReport, StdoutReport)
}


class ComponentManager:
    """
    Registry of one component kind plus the subset loaded for a scan.

    Args:
        kind: 'module', 'plugin' or 'report' (used in messages)
        registry: Name to class mapping; copied, so registering a
            component on one manager doesn't leak into others
    """

    def __init__(self, kind: str, registry: Dict[str, Type]):
        self.kind = kind
        self.registry: Dict[str, Type] = dict(registry)
        self.loaded: Dict[str, Type] = {}

    def register(self, component_cls: Type) -> Type:
        """Add a component class; usable as a class decorator."""
        self.registry[component_cls.name] = component_cls
        return component_cls

    def available(self) -> List[str]:
        return sorted(self.registry)

    def load(self, names: Union[str, Iterable[str]]) -> List[str]:
        """
        Load components by name; '*' loads everything registered.

        Raises:
            ConfigurationError: A name is not registered
        """
        if isinstance(names, str):
            names = [names]

        loaded = []
        for name in names:
            if name == '*':
                loaded.extend(self.load_all())
                continue
            if name not in self.registry:
                raise ConfigurationError(
                    f"Unknown {self.kind} '{name}', available: {', '.join(self.available())}"
                )
            self.loaded[name] = self.registry[name]
            loaded.append(name)
            logger.debug(f"Loaded {self.kind} {name}")
        return loaded

    def load_all(self) -> List[str]:
        return self.load(self.available())

    def __getitem__(self, name: str) -> Type:
        if name not in self.registry:
            raise ConfigurationError(f"Unknown {self.kind} '{name}'")
        return self.registry[name]

    def __contains__(self, name: str) -> bool:
        return name in self.registry

    def __len__(self) -> int:
        return len(self.loaded)

    def clear(self):
        self.loaded.clear()

    def info(self, name: str) -> Dict[str, Any]:
        return self[name].info()

    def list(self, pattern: Optional[str] = None) -> List[Dict[str, Any]]:
        """Info of every registered component whose name or description matches pattern."""
        regex = re.compile(pattern, re.IGNORECASE) if pattern else None

        infos = []
        for name in self.available():
            info = self.info(name)
            if regex and not (regex.search(name) or regex.search(info.get('description', ''))):
                continue
            infos.append(info)
        return infos
