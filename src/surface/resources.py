"""
Resource tree for the REST API.

Each node is one path segment. Nodes are created by exactly one parent and
never re-parented, so every node is reachable by exactly one path. Adding a
segment that already exists under a parent returns the existing node.
"""

import logging
import re
import weakref
from typing import Dict, Iterator, List, Optional, Tuple

from src.surface.errors import SurfaceBuildError


logger = logging.getLogger(__name__)

SEGMENT_PATTERN = re.compile(r"^(\{[A-Za-z_][A-Za-z0-9_]*\+?\}|[A-Za-z0-9._~:@!$&'()*+,;=-]+)$")


class ResourceNode:
    """A path segment under the API root."""

    def __init__(self, segment: str, parent: Optional["ResourceNode"] = None):
        self.segment = segment
        self._parent_ref = weakref.ref(parent) if parent is not None else None
        self.path = "/" if parent is None else parent.path.rstrip("/") + "/" + segment
        self._children: Dict[str, "ResourceNode"] = {}
        self._frozen = False

    @property
    def parent(self) -> Optional["ResourceNode"]:
        if self._parent_ref is None:
            return None
        return self._parent_ref()

    @property
    def children(self) -> Tuple["ResourceNode", ...]:
        return tuple(self._children.values())

    @property
    def is_root(self) -> bool:
        return self._parent_ref is None

    @property
    def is_path_parameter(self) -> bool:
        return self.segment.startswith("{") and self.segment.endswith("}")

    @property
    def parameter_name(self) -> Optional[str]:
        if not self.is_path_parameter:
            return None
        return self.segment[1:-1].rstrip("+")

    def child(self, segment: str) -> Optional["ResourceNode"]:
        return self._children.get(segment)

    def add_resource(self, segment: str) -> "ResourceNode":
        """
        Add a child segment, reusing the existing node for a repeated segment.

        Raises:
            SurfaceBuildError: If the segment is malformed, would create a
                second path-parameter sibling, or the tree is frozen.
        """
        if self._frozen:
            raise SurfaceBuildError(f"Resource tree is frozen; cannot add '{segment}' under {self.path}")
        if not segment or not SEGMENT_PATTERN.match(segment):
            raise SurfaceBuildError(f"Invalid path segment '{segment}' under {self.path}", segment=segment)

        existing = self._children.get(segment)
        if existing is not None:
            logger.debug("Reusing resource %s", existing.path)
            return existing

        node = ResourceNode(segment, parent=self)
        if node.is_path_parameter and any(c.is_path_parameter for c in self._children.values()):
            raise SurfaceBuildError(
                f"Resource {self.path} already has a path parameter child",
                segment=segment,
            )
        self._children[segment] = node
        logger.debug("Added resource %s", node.path)
        return node

    def walk(self) -> Iterator["ResourceNode"]:
        """Depth-first traversal including this node."""
        yield self
        for child in self._children.values():
            yield from child.walk()

    def freeze(self) -> None:
        for node in self.walk():
            node._frozen = True

    def __repr__(self) -> str:
        return f"ResourceNode({self.path!r})"


class ResourceTree:
    """Owns the API root; every other node is held by its parent."""

    def __init__(self):
        self.root = ResourceNode("")

    def add_resource(self, parent: ResourceNode, segment: str) -> ResourceNode:
        return parent.add_resource(segment)

    @property
    def paths(self) -> List[str]:
        return sorted(node.path for node in self.root.walk())

    def match(self, request_path: str) -> Optional[Tuple[ResourceNode, Dict[str, str]]]:
        """
        Resolve a concrete request path to a node and its path parameters.

        Literal segments win over a sibling path parameter.
        """
        parts = [p for p in request_path.split("?", 1)[0].split("/") if p]
        node = self.root
        params: Dict[str, str] = {}
        for part in parts:
            literal = node.child(part)
            if literal is not None and not literal.is_path_parameter:
                node = literal
                continue
            variable = next((c for c in node.children if c.is_path_parameter), None)
            if variable is None:
                return None
            params[variable.parameter_name] = part
            node = variable
        return node, params

    def freeze(self) -> None:
        self.root.freeze()
