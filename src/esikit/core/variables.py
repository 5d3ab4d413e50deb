"""ESI variable expansion and test-expression evaluation.

References take the form ``$(NAME)``, ``$(NAME{key})``, ``$(NAME|default)`` or
``$(NAME{key}|default)``. Names resolve in order against the request's
assigned variables, the standard request variables and, when the dialect
allows it, the geo/client variables. The default is returned verbatim, quotes
included, when the resolved value is empty.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
import re
from urllib.parse import parse_qs

from .config import CapabilitySet
from .context import RequestContext
from .diagnostics import DiagnosticEmitter, NullEmitter


VARIABLE_PATTERN = re.compile(r"\$\(([A-Za-z_]+)(?:\{([^}]+)\})?(?:\|([^)]+))?\)")

_QUOTES = "'\""
_FALSY = frozenset({"", "false", "0"})

# Fixed answers in place of a GeoIP backend.
GEO_STUB: dict[str, str] = {
    "country_code": "US",
    "country_name": "United States",
    "region": "California",
    "city": "San Francisco",
}


class Variable(str, Enum):
    """Variable names understood by the resolver."""

    HTTP_HOST = "HTTP_HOST"
    HTTP_USER_AGENT = "HTTP_USER_AGENT"
    HTTP_COOKIE = "HTTP_COOKIE"
    HTTP_REFERER = "HTTP_REFERER"
    HTTP_ACCEPT_LANGUAGE = "HTTP_ACCEPT_LANGUAGE"
    QUERY_STRING = "QUERY_STRING"
    REQUEST_METHOD = "REQUEST_METHOD"
    REQUEST_URI = "REQUEST_URI"
    GEO_COUNTRY_CODE = "GEO_COUNTRY_CODE"
    GEO_COUNTRY_NAME = "GEO_COUNTRY_NAME"
    GEO_REGION = "GEO_REGION"
    GEO_CITY = "GEO_CITY"
    CLIENT_IP = "CLIENT_IP"

    @classmethod
    def lookup(cls, name: str) -> Variable | None:
        try:
            return cls(name)
        except ValueError:
            return None


def user_agent_component(user_agent: str, component: str) -> str:
    """Bucket a User-Agent string by substring sniffing."""
    if not user_agent:
        return ""

    if component == "browser":
        if "Chrome" in user_agent:
            return "CHROME"
        if "Firefox" in user_agent:
            return "FIREFOX"
        if "Safari" in user_agent:
            return "SAFARI"
        if "Edge" in user_agent:
            return "EDGE"
        if "MSIE" in user_agent or "Trident" in user_agent:
            return "MSIE"
        if "Mozilla" in user_agent:
            return "MOZILLA"
        return "OTHER"

    if component == "os":
        if "Windows" in user_agent:
            return "WIN"
        if "Mac" in user_agent:
            return "MAC"
        if "Linux" in user_agent or "Unix" in user_agent:
            return "UNIX"
        return "OTHER"

    if component == "version":
        for marker in ("Chrome/", "Firefox/", "Version/"):
            if marker == "Version/" and "Chrome" in user_agent:
                break
            _, found, tail = user_agent.partition(marker)
            if found:
                major = tail.split(" ", 1)[0].split(".", 1)[0]
                if major:
                    return major
        return "1.0"

    return ""


def accepts_language(accept_language: str, language: str) -> str:
    """Return ``"true"`` when the Accept-Language list names ``language``."""
    wanted = language.lower()
    for entry in accept_language.split(","):
        candidate = entry.split(";", 1)[0].strip().lower()
        if candidate and candidate.startswith(wanted):
            return "true"
    return "false"


def query_parameter(query_string: str, key: str) -> str:
    """Return the first URL-decoded value of a query parameter."""
    if not query_string:
        return ""
    values = parse_qs(query_string.lstrip("?"), keep_blank_values=True).get(key)
    return values[0] if values else ""


def client_ip(context: RequestContext) -> str:
    forwarded = context.header("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",", 1)[0].strip()
    return context.header("X-Real-IP")


def is_truthy(value: str) -> bool:
    """Interpret an evaluated expression as a boolean."""
    return value.strip().lower() not in _FALSY


def _split_operands(expression: str, operator: str) -> tuple[str, str]:
    left, _, right = expression.partition(operator)
    return left.strip().strip(_QUOTES), right.strip().strip(_QUOTES)


class VariableResolver:
    """Pure string-to-string engine resolving ``$(...)`` references."""

    def __init__(
        self,
        capabilities: CapabilitySet,
        *,
        emitter: DiagnosticEmitter | None = None,
    ) -> None:
        self.capabilities = capabilities
        self.emitter = emitter or NullEmitter()
        self._standard: dict[Variable, Callable[[str, RequestContext], str]] = {
            Variable.HTTP_HOST: lambda _key, ctx: ctx.header("Host"),
            Variable.HTTP_USER_AGENT: self._user_agent,
            Variable.HTTP_COOKIE: self._cookie,
            Variable.HTTP_REFERER: lambda _key, ctx: ctx.header("Referer"),
            Variable.HTTP_ACCEPT_LANGUAGE: self._accept_language,
            Variable.QUERY_STRING: self._query_string,
            Variable.REQUEST_METHOD: lambda _key, ctx: ctx.header("Method") or "GET",
            Variable.REQUEST_URI: lambda _key, ctx: ctx.header("Request-URI"),
        }
        self._extended: dict[Variable, tuple[str, Callable[[str, RequestContext], str]]] = {
            Variable.GEO_COUNTRY_CODE: ("geo_variables", lambda *_: GEO_STUB["country_code"]),
            Variable.GEO_COUNTRY_NAME: ("geo_variables", lambda *_: GEO_STUB["country_name"]),
            Variable.GEO_REGION: ("geo_variables", lambda *_: GEO_STUB["region"]),
            Variable.GEO_CITY: ("geo_variables", lambda *_: GEO_STUB["city"]),
            Variable.CLIENT_IP: ("extended_variables", lambda _key, ctx: client_ip(ctx)),
        }

    def resolve(self, name: str, key: str | None, context: RequestContext) -> str:
        """Return the value of one variable, or an empty string."""
        if name in context.variables:
            return context.variables[name]

        variable = Variable.lookup(name)
        if variable is not None:
            getter = self._standard.get(variable)
            if getter is not None:
                return getter(key or "", context)
            capability, extended_getter = self._extended[variable]
            if self.capabilities.allows(capability):
                return extended_getter(key or "", context)

        if self.emitter.debug_enabled:
            self.emitter.debug("Unknown ESI variable: %s", name)
        return ""

    def expand(self, text: str, context: RequestContext) -> str:
        """Replace every ``$(...)`` reference in ``text``."""
        if "$(" not in text:
            return text

        def _substitute(match: re.Match[str]) -> str:
            name, key, default = match.group(1), match.group(2), match.group(3)
            value = self.resolve(name, key, context)
            if not value and default:
                return default
            return value

        return VARIABLE_PATTERN.sub(_substitute, text)

    def evaluate(self, expression: str, context: RequestContext) -> str:
        """Evaluate an equality/inequality test, or return the expanded text.

        Dialects without expression support only expand the test.
        """
        expanded = self.expand(expression, context)
        if not self.capabilities.expressions:
            return expanded
        if "==" in expanded:
            left, right = _split_operands(expanded, "==")
            return "true" if left == right else "false"
        if "!=" in expanded:
            left, right = _split_operands(expanded, "!=")
            return "true" if left != right else "false"
        return expanded

    def _user_agent(self, key: str, context: RequestContext) -> str:
        user_agent = context.header("User-Agent")
        if key:
            return user_agent_component(user_agent, key)
        return user_agent

    def _cookie(self, key: str, context: RequestContext) -> str:
        if key:
            return context.cookies.get(key, "")
        return context.header("Cookie")

    def _accept_language(self, key: str, context: RequestContext) -> str:
        header = context.header("Accept-Language")
        if key:
            return accepts_language(header, key)
        return header

    def _query_string(self, key: str, context: RequestContext) -> str:
        query = context.header("Query-String")
        if key:
            return query_parameter(query, key)
        return query


__all__ = [
    "GEO_STUB",
    "VARIABLE_PATTERN",
    "Variable",
    "VariableResolver",
    "accepts_language",
    "client_ip",
    "is_truthy",
    "query_parameter",
    "user_agent_component",
]
