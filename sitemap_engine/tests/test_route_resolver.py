"""
Tests for the Route Resolver.
"""
from unittest import mock
from django.test import SimpleTestCase, override_settings

from sitemap_engine.services.route_resolver import Route, RouteResolver, extract_prefix
from sitemap_engine.tests import urls as test_urls


@override_settings(ROOT_URLCONF='sitemap_engine.tests.urls', SITEMAP_ENGINE={})
class RouteTableTests(SimpleTestCase):
    """Introspection of the test URLconf."""

    def setUp(self):
        self.resolver = RouteResolver()
        self.routes = {route.path: route for route in self.resolver.get_routes()}

    def test_paths_use_param_syntax(self):
        self.assertIn('/posts/:slug/', self.routes)
        self.assertIn('/:name/:slug/', self.routes)
        self.assertIn('/sitemaps/:filename.xml', self.routes)

    def test_function_and_class_views(self):
        self.assertEqual(self.routes['/contact/'].handler, 'sitemap_engine.tests.urls.contact')
        self.assertEqual(self.routes['/about/'].handler, 'sitemap_engine.tests.urls.AboutView')
        self.assertEqual(self.routes['/about/'].name, 'about')

    def test_public_routes_do_not_require_auth(self):
        self.assertFalse(self.routes['/about/'].requires_auth)
        self.assertFalse(self.resolver.route_requires_auth(self.routes['/contact/']))

    def test_decorated_view_requires_auth(self):
        route = self.routes['/account/']
        self.assertIn('user_passes_test', route.pipelines)
        self.assertTrue(self.resolver.route_requires_auth(route))

    def test_mixin_view_requires_auth(self):
        route = self.routes['/members/']
        self.assertIn('django.contrib.auth.mixins.LoginRequiredMixin', route.mount_hooks)
        self.assertTrue(route.requires_auth)

    def test_decorated_dispatch_requires_auth(self):
        route = self.routes['/dashboard/']
        self.assertIn('login_required', route.pipelines)
        self.assertTrue(route.requires_auth)

    def test_decorated_handler_requires_auth(self):
        route = self.routes['/reports/']
        self.assertTrue({'permission_required', 'user_passes_test'} & set(route.pipelines))
        self.assertTrue(route.requires_auth)

    def test_as_view_is_not_a_pipeline(self):
        self.assertEqual(self.routes['/about/'].pipelines, ())
        self.assertNotIn('View.as_view', self.routes['/dashboard/'].pipelines)

    def test_post_only_view_verb(self):
        self.assertEqual(self.routes['/submit/'].verb, 'POST')
        self.assertEqual(self.routes['/about/'].verb, 'GET')

    def test_namespaces_are_pipelines(self):
        self.assertIn('sitemap_engine', self.routes['/sitemap.xml'].pipelines)

    def test_extra_protected_pipelines(self):
        resolver = RouteResolver(extra_protected_pipelines=['sitemap_engine'])
        routes = {route.path: route for route in resolver.get_routes()}
        self.assertTrue(routes['/sitemap.xml'].requires_auth)

    def test_route_table_is_walked_once(self):
        with mock.patch.object(self.resolver, 'get_router') as mock_get_router:
            routes = self.resolver.get_routes()
        mock_get_router.assert_not_called()
        self.assertEqual({route.path for route in routes}, set(self.routes))

    def test_route_requires_auth_of_none(self):
        self.assertFalse(self.resolver.route_requires_auth(None))


@override_settings(ROOT_URLCONF='sitemap_engine.tests.urls', SITEMAP_ENGINE={})
class RouteLookupTests(SimpleTestCase):

    def setUp(self):
        self.resolver = RouteResolver()

    def test_find_route_by_name_path_and_callable(self):
        self.assertEqual(self.resolver.find_route('register'), '/register/')
        self.assertEqual(self.resolver.find_route('sitemap_engine.tests.urls.contact'), '/contact/')
        self.assertEqual(self.resolver.find_route(test_urls.AboutView), '/about/')
        self.assertEqual(self.resolver.find_route(test_urls.submit, verb='post'), '/submit/')

    def test_find_route_with_wrong_verb(self):
        self.assertIsNone(self.resolver.find_route(test_urls.submit, verb='GET'))
        self.assertIsNone(self.resolver.find_route('does-not-exist'))

    def test_find_posts_route(self):
        self.assertEqual(self.resolver.find_content_route('posts'), '/posts/:slug/')

    def test_find_entity_route_by_plural(self):
        self.assertEqual(self.resolver.find_content_route('entity', 'product'), '/products/:slug/')

    def test_find_entity_route_through_catchall(self):
        self.assertEqual(self.resolver.find_content_route('entity', 'event'), '/event/:slug/')
        descriptor = self.resolver.find_content_route_descriptor('entity', 'event')
        self.assertEqual(descriptor.path, '/:name/:slug/')

    def test_find_index_route(self):
        self.assertEqual(self.resolver.find_index_route('entity', 'product'), '/products/')
        self.assertEqual(self.resolver.find_index_route('entity', 'event'), '/event/')
        self.assertIsNone(self.resolver.find_index_route('pages', 'event'))

    def test_explicit_lists_of_routes(self):
        routes = [
            Route(verb='GET', path='/pages/*path', handler='app.views.PageView'),
            Route(verb='GET', path='/blog/:slug', handler='app.views.post_detail'),
        ]
        self.assertEqual(self.resolver.find_content_route('pages', routes=routes), '/pages/*path')
        self.assertEqual(self.resolver.find_content_route('posts', routes=routes), '/blog/:slug')


class RouterFallbackTests(SimpleTestCase):
    """Lookups degrade to None when no router can be introspected."""

    @override_settings(ROOT_URLCONF='sitemap_engine.tests.empty_urls',
                       SITEMAP_ENGINE={'ROUTER': 'sitemap_engine.tests.urls'})
    def test_explicit_router_wins(self):
        self.assertEqual(RouteResolver().find_route('contact'), '/contact/')

    @override_settings(ROOT_URLCONF='sitemap_engine.tests.missing_urls',
                       SITEMAP_ENGINE={'ROUTER_AUTODISCOVER_APPS': ['sitemap_engine.tests']})
    def test_autodiscover_allow_list(self):
        self.assertEqual(RouteResolver().find_route('contact'), '/contact/')

    @override_settings(ROOT_URLCONF='sitemap_engine.tests.missing_urls',
                       SITEMAP_ENGINE={'ROUTER_AUTODISCOVER_APPS': ['sitemap_engine']})
    def test_infrastructure_apps_are_never_autodiscovered(self):
        self.assertIsNone(RouteResolver().get_router())

    @override_settings(ROOT_URLCONF='sitemap_engine.tests.missing_urls', SITEMAP_ENGINE={})
    def test_no_router(self):
        resolver = RouteResolver()
        self.assertIsNone(resolver.get_router())
        self.assertEqual(resolver.get_routes(), [])
        self.assertIsNone(resolver.find_route('contact'))
        self.assertIsNone(resolver.find_content_route('posts'))
        self.assertIsNone(resolver.find_content_route('entity', 'product'))
        self.assertIsNone(resolver.find_index_route('entity', 'product'))

    @override_settings(ROOT_URLCONF='sitemap_engine.tests.urls', SITEMAP_ENGINE={})
    def test_introspection_errors_are_swallowed(self):
        resolver = RouteResolver()
        with mock.patch.object(resolver, '_extract_routes', side_effect=RuntimeError('boom')):
            self.assertEqual(resolver.get_routes(), [])
            self.assertIsNone(resolver.find_content_route('posts'))


class ExtractPrefixTests(SimpleTestCase):

    def test_extract_prefix(self):
        self.assertEqual(extract_prefix('/pages/:slug'), '/pages')
        self.assertEqual(extract_prefix('/content/*path'), '/content')
        self.assertEqual(extract_prefix('/:slug'), '/')
        self.assertIsNone(extract_prefix(None))
