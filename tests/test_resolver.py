import unittest

from fpm.manifest import Catalog, Component
from fpm.resolver import find_components, resolve


def _catalog(*components: Component) -> Catalog:
    catalog = Catalog(repo_url="https://repo.example/")
    for c in components:
        catalog.add(c)
    return catalog


def _c(cid: str, *depends: str, installed: bool = False) -> Component:
    return Component(id=cid, hash=cid.upper(), install_size=1, depends=tuple(depends), installed=installed)


def _not_installed(c: Component) -> bool:
    return not c.installed


class TestResolve(unittest.TestCase):
    def test_category_token_expands_to_every_component_below_it(self) -> None:
        catalog = _catalog(_c("core-server"), _c("core-server-gamezip"), _c("core-serverX"), _c("extra"))

        result = resolve(catalog, ["core-server"], _not_installed)

        self.assertEqual(result.ids, ["core-server", "core-server-gamezip"])
        self.assertEqual(result.missing, ())

    def test_shared_dependency_is_queued_once_at_first_discovery(self) -> None:
        catalog = _catalog(
            _c("app-one", "lib-shared"),
            _c("app-two", "lib-shared", "lib-other"),
            _c("lib-shared"),
            _c("lib-other"),
        )

        result = resolve(catalog, ["app-one", "app-two"], _not_installed)

        self.assertEqual(result.ids, ["app-one", "lib-shared", "app-two", "lib-other"])

    def test_resolution_is_idempotent(self) -> None:
        catalog = _catalog(_c("a", "b"), _c("b", "c", "a"), _c("c"))

        first = resolve(catalog, ["a", "c"], _not_installed)
        second = resolve(catalog, ["a", "c"], _not_installed)

        self.assertEqual(first, second)
        self.assertEqual(first.ids, ["a", "b", "c"])

    def test_dependencies_must_satisfy_include_on_their_own(self) -> None:
        catalog = _catalog(_c("app", "lib-a", "lib-b"), _c("lib-a", installed=True), _c("lib-b"))

        result = resolve(catalog, ["app"], _not_installed)

        self.assertEqual(result.ids, ["app", "lib-b"])

    def test_excluded_component_is_not_expanded(self) -> None:
        catalog = _catalog(_c("app", "lib", installed=True), _c("lib"))

        result = resolve(catalog, ["app"], _not_installed)

        self.assertEqual(result.ids, [])

    def test_dependency_may_name_a_category(self) -> None:
        catalog = _catalog(_c("app", "core"), _c("core"), _c("core-a"), _c("core-b"))

        result = resolve(catalog, ["app"], _not_installed)

        self.assertEqual(result.ids, ["app", "core", "core-a", "core-b"])

    def test_unmatched_tokens_are_reported_not_fatal(self) -> None:
        catalog = _catalog(_c("app", "ghost"), _c("lib"))

        result = resolve(catalog, ["nope", "app", "nope"], _not_installed)

        self.assertEqual(result.ids, ["app"])
        self.assertEqual(result.missing, ("nope", "ghost"))

    def test_no_tokens_requests_everything(self) -> None:
        catalog = _catalog(_c("a", "c"), _c("b", installed=True), _c("c"))

        result = resolve(catalog, [], _not_installed)

        self.assertEqual(result.ids, ["a", "c"])

    def test_dependency_cycles_terminate(self) -> None:
        catalog = _catalog(_c("a", "b"), _c("b", "a"))

        self.assertEqual(resolve(catalog, ["b"], _not_installed).ids, ["b", "a"])

    def test_find_components_keeps_manifest_order(self) -> None:
        catalog = _catalog(_c("x-b"), _c("x"), _c("x-a"))

        self.assertEqual([c.id for c in find_components(catalog, "x")], ["x-b", "x", "x-a"])
