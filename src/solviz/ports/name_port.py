from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Iterable


class NameResolverPort(ABC):

    @abstractmethod
    def get_names(self, addresses: Iterable[str]) -> Dict[str, str]:
        raise NotImplementedError
