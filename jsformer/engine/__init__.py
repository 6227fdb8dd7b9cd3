"""JavaScript engines that execute produced code."""

from .base import JsEngine
from .node import NodeEngine

__all__ = ["JsEngine", "NodeEngine"]
