"""
Path Rewriter.

Maps a gateway path (``/api/<service>/...``) onto the path the backend
expects. The gateway nests its own ``/api/<service>`` scheme on top of each
backend's versioned ``/api/v1/...`` scheme, so only the outer prefix is ever
stripped.

Rules are evaluated longest-prefix first:
- NATIVE: prefix + backend versioned path, strip the outer prefix
- PREFIX: bare prefix or any other sub-path, strip the outer prefix
- PASSTHROUGH: bare ``/auth`` routes, forwarded unmodified

An empty or ``/`` result becomes the backend health path.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from gateway.core.registry import AUTH_PASSTHROUGH_PREFIX, AUTH_SERVICE, ProxyTarget


DEFAULT_PATH = "/health"


class RuleKind(str, Enum):
    """Which rewrite rule resolved a path."""
    NATIVE = "native"
    PREFIX = "prefix"
    PASSTHROUGH = "passthrough"


@dataclass(frozen=True)
class RewriteRule:
    """A (matcher, rewrite) pair bound to one backend."""
    kind: RuleKind
    match_prefix: str
    strip_prefix: str
    target: ProxyTarget

    def matches(self, path: str) -> bool:
        # Segment-aware: /api/habits must not match /api/habitsx
        return path == self.match_prefix or path.startswith(self.match_prefix + "/")

    def apply(self, path: str) -> str:
        rewritten = path[len(self.strip_prefix):]
        if rewritten in ("", "/"):
            return DEFAULT_PATH
        return rewritten


@dataclass(frozen=True)
class RouteMatch:
    """Result of rewriting one inbound path."""
    target: ProxyTarget
    rule: RuleKind
    path: str
    query: str = ""

    @property
    def backend_path(self) -> str:
        if self.query:
            return f"{self.path}?{self.query}"
        return self.path

    @property
    def url(self) -> str:
        return f"{self.target.base_url}{self.backend_path}"


class PathRewriter:
    """Ordered rewrite table built from the service registry."""

    def __init__(self, registry: Dict[str, ProxyTarget]):
        rules: List[RewriteRule] = []

        for target in registry.values():
            for prefix in target.prefixes:
                for native in target.native_paths:
                    rules.append(RewriteRule(
                        kind=RuleKind.NATIVE,
                        match_prefix=prefix + native,
                        strip_prefix=prefix,
                        target=target,
                    ))
                rules.append(RewriteRule(
                    kind=RuleKind.PREFIX,
                    match_prefix=prefix,
                    strip_prefix=prefix,
                    target=target,
                ))

        if AUTH_SERVICE in registry:
            rules.append(RewriteRule(
                kind=RuleKind.PASSTHROUGH,
                match_prefix=AUTH_PASSTHROUGH_PREFIX,
                strip_prefix="",
                target=registry[AUTH_SERVICE],
            ))

        # Longest prefix wins; sort is stable so registry order breaks ties
        self.rules = sorted(rules, key=lambda rule: len(rule.match_prefix), reverse=True)

    def rewrite(self, path: str, query: str = "") -> Optional[RouteMatch]:
        """
        Resolve an inbound path to its backend and backend path.

        Args:
            path: Inbound request path (e.g. "/api/habits/api/v1/habits")
            query: Raw query string, appended unchanged

        Returns:
            RouteMatch, or None when no registered prefix matches
        """
        for rule in self.rules:
            if rule.matches(path):
                return RouteMatch(
                    target=rule.target,
                    rule=rule.kind,
                    path=rule.apply(path),
                    query=query,
                )
        return None

    def route_map(self) -> List[dict]:
        """Routing table for operational debugging."""
        return [
            {
                "pattern": f"{rule.match_prefix}/*",
                "rule": rule.kind.value,
                "service": rule.target.name,
                "target": rule.target.base_url,
            }
            for rule in self.rules
        ]
