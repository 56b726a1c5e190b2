"""
Route Resolver for the sitemap engine.

This module answers two questions for the sources without coupling them to
Django's URL machinery: which URL pattern serves a kind of content, and does
a route require authentication. Every lookup is exception-safe and degrades
to ``None`` / ``False`` / ``[]`` when the URLconf cannot be introspected.

Router resolution order (first success wins):

1. ``SITEMAP_ENGINE['ROUTER']`` - explicit urlconf module
2. ``settings.ROOT_URLCONF`` - the project's own urlconf
3. ``SITEMAP_ENGINE['ROUTER_AUTODISCOVER_APPS']`` - an explicit allow-list of
   apps probed for ``<app>.urls``, ``<app>_web.urls`` and ``<app>.web.urls``
"""
import logging
import re
from dataclasses import dataclass, field
from importlib import import_module
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple, Union

from django.conf import settings
from django.urls import URLPattern, URLResolver, get_resolver
from django.urls.resolvers import RegexPattern, RoutePattern

from ..conf import engine_settings
from ..exceptions import RouterUnavailable

logger = logging.getLogger(__name__)

# Apps that never carry the site's public router
INFRASTRUCTURE_APPS = frozenset([
    'django', 'rest_framework', 'drf_yasg', 'celery', 'django_celery_beat',
    'django_celery_results', 'debug_toolbar', 'corsheaders', 'unfold',
    'ckeditor', 'ckeditor_uploader', 'sitemap_engine',
])

ROUTER_MODULE_PATTERNS = ('{app}.urls', '{app}_web.urls', '{app}.web.urls')

LOGIN_REQUIRED_MIDDLEWARE = 'django.contrib.auth.middleware.LoginRequiredMiddleware'

CATCHALL_CONTENT_PATTERNS = [
    re.compile(r'^/:entity_name/:slug/?$'),
    re.compile(r'^/:entity/:slug/?$'),
    re.compile(r'^/:name/:slug/?$'),
    re.compile(r'^/:type/:slug/?$'),
    re.compile(r'^/:[a-z_]+/:slug/?$'),
]

CATCHALL_INDEX_PATTERNS = [
    re.compile(r'^/:entity_name/?$'),
    re.compile(r'^/:entity/?$'),
    re.compile(r'^/:name/?$'),
    re.compile(r'^/:type/?$'),
    re.compile(r'^/:[a-z_]+/?$'),
]

ROUTE_PARAM_RE = re.compile(r'<(?:(?P<converter>[^>:]+):)?(?P<name>[^>]+)>')
REGEX_METACHARS = set('[](){}|?+*')


@dataclass
class Route:
    """
    A route of the host URLconf.

    ``path`` uses ``:param`` for parameters and ``*name`` for wildcards,
    e.g. ``/blog/:slug/``. ``pipelines`` holds URL namespaces, view decorator
    names and permission classes; ``mount_hooks`` holds the dotted class names
    of a class-based view's hierarchy.
    """
    verb: str
    path: str
    handler: str
    name: Optional[str] = None
    pipelines: Tuple[str, ...] = ()
    mount_hooks: Tuple[str, ...] = ()
    requires_auth: bool = False
    callback: Any = field(default=None, repr=False, compare=False)

    @property
    def metadata(self) -> dict:
        return {'pipelines': self.pipelines, 'mount_hooks': self.mount_hooks}

    @property
    def is_get(self) -> bool:
        return self.verb == 'GET'

    @property
    def has_params(self) -> bool:
        return ':' in self.path or '*' in self.path


def extract_prefix(pattern: Optional[str]) -> Optional[str]:
    """
    Extract the static prefix of a route pattern.

    ``/pages/:slug`` -> ``/pages``, ``/content/*path`` -> ``/content``,
    ``/:slug`` -> ``/``.
    """
    if pattern is None:
        return None
    prefix = pattern.split('/:')[0].split('/*')[0]
    return prefix or '/'


def _dotted_name(obj) -> str:
    module = getattr(obj, '__module__', None) or ''
    qualname = getattr(obj, '__qualname__', None) or getattr(obj, '__name__', None) or repr(obj)
    return f'{module}.{qualname}' if module else qualname


def _code_qualname(func) -> str:
    """
    Qualified name of the code a function runs.

    ``functools.wraps`` copies ``__qualname__`` from the wrapped view, so the
    decorator that produced a wrapper is only visible on its code object.
    """
    code = getattr(func, '__code__', None)
    if code is None:
        return ''
    return getattr(code, 'co_qualname', code.co_name)


def _decorator_root(decorator) -> str:
    """``user_passes_test.<locals>.decorator`` -> ``user_passes_test``."""
    qualname = _code_qualname(decorator) or getattr(decorator, '__qualname__', '') or type(decorator).__name__
    return qualname.split('.<locals>')[0]


def _closure_value(func, name: str) -> Any:
    """Value of the free variable ``name`` captured by ``func``, or None."""
    code = getattr(func, '__code__', None)
    closure = getattr(func, '__closure__', None)
    if code is None or not closure or name not in code.co_freevars:
        return None
    try:
        return closure[code.co_freevars.index(name)].cell_contents
    except ValueError:
        return None


def _route_pattern_to_path(route: str) -> str:
    def replace(match):
        if match.group('converter') == 'path':
            return '*' + match.group('name')
        return ':' + match.group('name')

    return ROUTE_PARAM_RE.sub(replace, route)


def _regex_to_path(regex: str) -> str:
    """
    Convert a regex URL pattern to the ``:param`` form.

    Named groups become ``:name``, unnamed groups ``*``; path segments that
    still contain regex syntax become ``*``.
    """
    out = []
    i = 0
    while i < len(regex):
        char = regex[i]
        if char == '\\' and i + 1 < len(regex):
            out.append(regex[i:i + 2])
            i += 2
            continue
        if char == '(':
            depth = 1
            j = i + 1
            while j < len(regex) and depth:
                if regex[j] == '\\':
                    j += 2
                    continue
                if regex[j] == '(':
                    depth += 1
                elif regex[j] == ')':
                    depth -= 1
                j += 1
            group = regex[i:j]
            named = re.match(r'\(\?P<([^>]+)>', group)
            if named:
                out.append('\x00:' + named.group(1) + '\x00')
            elif group.startswith('(?:') or group.startswith('(?='):
                out.append('\x00*\x00')
            else:
                out.append('\x00*\x00')
            i = j
            continue
        if char in '^$':
            i += 1
            continue
        out.append(char)
        i += 1

    segments = []
    for segment in ''.join(out).split('/'):
        plain = re.sub(r'\x00[^\x00]*\x00', '', segment)
        if any(c in REGEX_METACHARS for c in plain.replace('\\', '')):
            segments.append('*')
            continue
        segment = re.sub(r'\\(.)', r'\1', segment)
        segments.append(segment.replace('\x00', ''))
    return '/'.join(segments)


def _pattern_to_path(pattern) -> str:
    if isinstance(pattern, RoutePattern):
        return _route_pattern_to_path(str(pattern))
    if isinstance(pattern, RegexPattern):
        return _regex_to_path(pattern.regex.pattern)
    return _regex_to_path(str(pattern))


class RouteResolver:
    """
    Resolves routes from the host application's URLconf.
    """

    def __init__(self, extra_protected_pipelines: Sequence[str] = (), router: Any = None):
        """
        Initialize the resolver.

        Args:
            extra_protected_pipelines: Pipeline names added to the configured deny-list
            router: URLconf module path, module or resolver to use instead of discovery
        """
        self.protected_pipelines = set(engine_settings.PROTECTED_PIPELINES) | set(extra_protected_pipelines)
        self.protected_mount_hooks = set(engine_settings.PROTECTED_MOUNT_HOOKS)
        self.router = router
        self._route_table: Optional[List[Route]] = None

    # Router discovery

    def get_router(self) -> Optional[URLResolver]:
        """Return the URL resolver to introspect, or None."""
        for step in (self._explicit_router, self._endpoint_router, self._autodiscover_router):
            try:
                resolver = step()
            except Exception as e:
                logger.debug(f"Router lookup step {step.__name__} failed: {e}")
                continue
            if resolver is not None:
                return resolver
        return None

    def _explicit_router(self) -> Optional[URLResolver]:
        router = self.router or engine_settings.ROUTER
        if not router:
            return None
        return self._load_router(router)

    def _endpoint_router(self) -> Optional[URLResolver]:
        if not getattr(settings, 'ROOT_URLCONF', None):
            return None
        return self._load_router(settings.ROOT_URLCONF)

    def _autodiscover_router(self) -> Optional[URLResolver]:
        for app in engine_settings.ROUTER_AUTODISCOVER_APPS:
            if app in INFRASTRUCTURE_APPS or app.split('.')[0] == 'django':
                continue
            for template in ROUTER_MODULE_PATTERNS:
                module_name = template.format(app=app)
                try:
                    resolver = self._load_router(module_name)
                except (ImportError, RouterUnavailable):
                    continue
                if resolver is not None:
                    logger.debug(f"Auto-discovered router {module_name}")
                    return resolver
        return None

    def _load_router(self, router: Union[str, Any]) -> Optional[URLResolver]:
        if isinstance(router, URLResolver):
            return router
        if isinstance(router, str):
            module = import_module(router)
        else:
            module = router
        if not hasattr(module, 'urlpatterns'):
            raise RouterUnavailable(f"{router!r} has no urlpatterns")
        resolver = get_resolver(module if not isinstance(router, str) else router)
        # Force pattern loading so a broken urlconf fails here
        resolver.url_patterns
        return resolver

    # Route table

    def get_routes(self) -> List[Route]:
        """
        Return every route of the URLconf.

        The URLconf is walked once per resolver instance. Returns an empty list
        when no router is available or introspection fails.
        """
        if self._route_table is None:
            self._route_table = self._load_routes()
        return list(self._route_table)

    def _load_routes(self) -> List[Route]:
        resolver = self.get_router()
        if resolver is None:
            return []
        try:
            return self._extract_routes(resolver)
        except Exception as e:
            logger.debug(f"Failed to get routes: {e}")
            return []

    def _extract_routes(self, resolver, prefix: str = '', namespaces: Tuple[str, ...] = ()) -> List[Route]:
        """
        Recursively extract routes from a URL resolver.

        Args:
            resolver: The URL resolver
            prefix: The URL prefix for nested patterns
            namespaces: Namespaces of the enclosing includes
        """
        routes = []

        for pattern in resolver.url_patterns:
            if isinstance(pattern, URLResolver):
                nested_namespaces = namespaces
                for label in (pattern.namespace, pattern.app_name):
                    if label and label not in nested_namespaces:
                        nested_namespaces = nested_namespaces + (label,)
                routes.extend(self._extract_routes(
                    pattern,
                    prefix + _pattern_to_path(pattern.pattern),
                    nested_namespaces,
                ))
            elif isinstance(pattern, URLPattern):
                try:
                    routes.append(self._build_route(pattern, prefix, namespaces))
                except Exception as e:
                    logger.debug(f"Could not introspect URL pattern {pattern!r}: {e}")

        return routes

    def _build_route(self, pattern: URLPattern, prefix: str, namespaces: Tuple[str, ...]) -> Route:
        path = '/' + (prefix + _pattern_to_path(pattern.pattern)).lstrip('/')
        callback = pattern.callback
        view_class = getattr(callback, 'view_class', None)
        pipelines = (namespaces + self._decorator_names(callback) + self._method_decorator_names(view_class)
                     + self._permission_names(view_class))
        if self._login_required_by_middleware(callback):
            pipelines = pipelines + ('login_required_middleware',)
        mount_hooks = self._class_hierarchy(view_class)

        route = Route(
            verb=self._detect_verb(callback, view_class),
            path=path,
            handler=_dotted_name(view_class or callback),
            name=pattern.name,
            pipelines=pipelines,
            mount_hooks=mount_hooks,
            callback=callback,
        )
        route.requires_auth = self._evaluate_protection(route)
        return route

    @staticmethod
    def _decorator_names(callback: Callable) -> Tuple[str, ...]:
        """Names of the decorators wrapping a view, outermost first."""
        names = []
        func = callback
        seen = set()
        while func is not None and hasattr(func, '__wrapped__') and id(func) not in seen:
            seen.add(id(func))
            qualname = _code_qualname(func)
            root = qualname.split('.<locals>')[0]
            # as_view() copies dispatch's __wrapped__ onto the view function
            if root and root not in names and '<locals>' in qualname and not root.endswith('.as_view'):
                names.append(root)
            func = func.__wrapped__
        return tuple(names)

    @staticmethod
    def _method_decorator_names(view_class) -> Tuple[str, ...]:
        """
        Decorators applied with ``method_decorator`` to ``dispatch`` or a verb handler.

        The wrapper ``method_decorator`` installs keeps its decorator list in a
        ``decorators`` closure variable.
        """
        if view_class is None:
            return ()
        names = []
        for attr in ('dispatch',) + tuple(getattr(view_class, 'http_method_names', ())):
            func = getattr(view_class, attr, None)
            seen = set()
            while callable(func) and id(func) not in seen:
                seen.add(id(func))
                decorators = _closure_value(func, 'decorators')
                if isinstance(decorators, (list, tuple)):
                    for decorator in decorators:
                        root = _decorator_root(decorator)
                        if root and root not in names:
                            names.append(root)
                func = getattr(func, '__wrapped__', None)
        return tuple(names)

    @staticmethod
    def _permission_names(view_class) -> Tuple[str, ...]:
        permission_classes = getattr(view_class, 'permission_classes', None) or ()
        return tuple(getattr(cls, '__name__', str(cls)) for cls in permission_classes)

    @staticmethod
    def _class_hierarchy(view_class) -> Tuple[str, ...]:
        if view_class is None:
            return ()
        return tuple(_dotted_name(cls) for cls in view_class.__mro__ if cls is not object)

    @staticmethod
    def _login_required_by_middleware(callback) -> bool:
        if LOGIN_REQUIRED_MIDDLEWARE not in getattr(settings, 'MIDDLEWARE', []):
            return False
        return getattr(callback, 'login_required', True)

    @staticmethod
    def _detect_verb(callback, view_class) -> str:
        """Return 'GET' when the view answers GET, otherwise its first allowed method."""
        if view_class is not None:
            methods = [m for m in getattr(view_class, 'http_method_names', []) if m not in ('head', 'options')]
            implemented = [m for m in methods if hasattr(view_class, m)]
            if not implemented or 'get' in implemented:
                return 'GET'
            return implemented[0].upper()

        # Function views restricted with require_http_methods keep the list in a closure
        func = callback
        while func is not None:
            qualname = _code_qualname(func)
            if qualname.startswith('require_http_methods'):
                for cell in getattr(func, '__closure__', None) or ():
                    contents = cell.cell_contents
                    if isinstance(contents, (list, tuple)) and contents and all(isinstance(m, str) for m in contents):
                        allowed = [m.upper() for m in contents]
                        return 'GET' if 'GET' in allowed else allowed[0]
            func = getattr(func, '__wrapped__', None)
        return 'GET'

    def _evaluate_protection(self, route: Route) -> bool:
        if any(name in self.protected_pipelines for name in route.pipelines):
            return True
        return any(hook in self.protected_mount_hooks for hook in route.mount_hooks)

    def route_requires_auth(self, route: Optional[Route]) -> bool:
        """True when the route's pipelines or view hierarchy require a session."""
        if route is None:
            return False
        return bool(route.requires_auth)

    # Lookups

    def _routes(self, routes: Optional[Iterable[Route]]) -> List[Route]:
        return list(routes) if routes is not None else self.get_routes()

    def find_route(self, handler: Union[str, Callable, type], verb: str = 'GET',
                   routes: Optional[Iterable[Route]] = None) -> Optional[str]:
        """
        Find the path served by a view.

        ``handler`` may be a URL name, a dotted view path, a view function or a
        view class.
        """
        try:
            verb = verb.upper()
            for route in self._routes(routes):
                if route.verb != verb:
                    continue
                if self._handler_matches(route, handler):
                    return route.path
        except Exception as e:
            logger.debug(f"find_route({handler!r}) failed: {e}")
        return None

    @staticmethod
    def _handler_matches(route: Route, handler) -> bool:
        if isinstance(handler, str):
            return handler in (route.name, route.handler)
        callback = route.callback
        if callback is handler:
            return True
        return getattr(callback, 'view_class', None) is handler

    def find_content_route(self, content_type: str, name: Optional[str] = None,
                           routes: Optional[Iterable[Route]] = None) -> Optional[str]:
        """
        Find the detail route pattern for a kind of content.

        Types:
        - ``pages``: slug or wildcard routes whose view name mentions page/content
        - ``posts``: slug/id routes under ``/posts/`` or served by a post view
        - ``entity``: slug/id routes matching ``name`` (singular or plural), then
          catch-all routes like ``/:name/:slug`` with ``name`` substituted
        """
        try:
            route = self.find_content_route_descriptor(content_type, name, routes)
        except Exception as e:
            logger.debug(f"find_content_route({content_type!r}, {name!r}) failed: {e}")
            return None
        if route is None:
            return None
        if content_type == 'entity' and self._is_catchall(route.path, CATCHALL_CONTENT_PATTERNS):
            return re.sub(r'^/:[a-z_]+/', f'/{name}/', route.path)
        return route.path

    def find_content_route_descriptor(self, content_type: str, name: Optional[str] = None,
                                      routes: Optional[Iterable[Route]] = None) -> Optional[Route]:
        """Same lookup as ``find_content_route`` but returns the Route (unsubstituted)."""
        routes = self._routes(routes)

        if content_type == 'pages':
            candidates = [r for r in routes if r.is_get and (':slug' in r.path or '*path' in r.path)]
            for route in candidates:
                handler = route.handler.lower()
                if 'page' in handler or 'content' in handler:
                    return route
            return None

        detail_routes = [r for r in routes if r.is_get and (':slug' in r.path or ':id' in r.path)]

        if content_type == 'posts':
            for route in detail_routes:
                path_lower = route.path.lower()
                handler = route.handler.lower()
                if '/posts/' in path_lower or ('post' in handler and 'page' not in handler):
                    return route
            return None

        if content_type == 'entity' and name:
            for route in detail_routes:
                if self._path_mentions(route.path, name):
                    return route
            for route in detail_routes:
                if self._is_catchall(route.path, CATCHALL_CONTENT_PATTERNS):
                    return route
        return None

    def find_index_route(self, content_type: str, name: str,
                         routes: Optional[Iterable[Route]] = None) -> Optional[str]:
        """
        Find the list page for an entity (a GET route without parameters).

        ``/products/`` for ``product``; falls back to a catch-all ``/:name/``
        route with the entity name substituted.
        """
        if content_type != 'entity' or not name:
            return None
        try:
            routes = self._routes(routes)
            entity = name.lower()
            static_routes = [r for r in routes if r.is_get and not r.has_params]
            for route in static_routes:
                path_lower = route.path.lower().rstrip('/')
                if path_lower in (f'/{entity}', f'/{entity}s') or \
                        path_lower.endswith(f'/{entity}') or path_lower.endswith(f'/{entity}s'):
                    return route.path

            param_routes = [r for r in routes if r.is_get and ':' in r.path and '*' not in r.path]
            for route in param_routes:
                if self._is_catchall(route.path, CATCHALL_INDEX_PATTERNS):
                    trailing = '/' if route.path.endswith('/') else ''
                    return f'/{name}{trailing}'
        except Exception as e:
            logger.debug(f"find_index_route({name!r}) failed: {e}")
        return None

    @staticmethod
    def _path_mentions(path: str, name: str) -> bool:
        path_lower = path.lower()
        entity = name.lower()
        return (
            f'/{entity}/' in path_lower
            or f'/{entity}s/' in path_lower
            or path_lower.startswith(f'/{entity}/')
            or path_lower.startswith(f'/{entity}s/')
        )

    @staticmethod
    def _is_catchall(path: str, patterns) -> bool:
        return any(pattern.match(path) for pattern in patterns)
