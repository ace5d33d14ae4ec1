import unittest
from datetime import datetime, timezone

from fpm.manifest import Catalog, Component, ManifestError, matches_token, parse_manifest

MANIFEST = b"""<?xml version="1.0" encoding="UTF-8"?>
<list url="https://repo.example/components">
  <category id="core" title="Core">
    <component title="Core" hash="00000000" install-size="0" />
    <category id="server">
      <component id="gamezip" title="Game ZIP" description="Serves zipped games" path="Server"
                 hash="AAAA1111" download-size="1000" install-size="2000"
                 date-modified="1700000000" depends="core-database" />
    </category>
    <component id="database" path="Data" hash="BBBB2222" download-size="50" install-size="100" />
  </category>
  <category id="extra">
    <component id="music" path="Extras/Music" hash="CCCC3333" download-size="oops"
               install-size="300" date-modified="yesterday" depends="core-server  core" />
  </category>
  <metadata><component id="hidden" /></metadata>
</list>
"""


class TestParseManifest(unittest.TestCase):
    def test_ids_follow_nesting_in_document_order(self) -> None:
        catalog = parse_manifest(MANIFEST)

        self.assertEqual(catalog.ids(), ["core", "core-server-gamezip", "core-database", "extra-music"])

    def test_component_attributes(self) -> None:
        catalog = parse_manifest(MANIFEST)
        c = catalog.get("core-server-gamezip")

        self.assertIsNotNone(c)
        assert c is not None
        self.assertEqual(c.title, "Game ZIP")
        self.assertEqual(c.description, "Serves zipped games")
        self.assertEqual(c.directory, "Server")
        self.assertEqual(c.hash, "AAAA1111")
        self.assertEqual(c.download_size, 1000)
        self.assertEqual(c.install_size, 2000)
        self.assertEqual(c.depends, ("core-database",))
        self.assertEqual(c.last_updated, datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc))
        self.assertEqual(c.url, "https://repo.example/components/core-server-gamezip.zip")
        self.assertFalse(c.installed)
        self.assertFalse(c.stale)

    def test_malformed_numbers_fall_back(self) -> None:
        c = parse_manifest(MANIFEST).get("extra-music")

        assert c is not None
        self.assertEqual(c.download_size, 0)
        self.assertEqual(c.install_size, 300)
        self.assertIsNone(c.last_updated)
        self.assertEqual(c.depends, ("core-server", "core"))

    def test_repo_url_without_trailing_slash_is_normalized(self) -> None:
        catalog = parse_manifest(b'<list url="https://repo.example/base"><component id="a" /></list>')

        self.assertEqual(catalog.repo_url, "https://repo.example/base/")
        self.assertEqual(catalog.get("a").url, "https://repo.example/base/a.zip")  # type: ignore[union-attr]

    def test_nested_components_extend_the_component_id(self) -> None:
        catalog = parse_manifest(
            b'<list url="u/"><component id="tools"><component id="editor" /></component></list>'
        )

        self.assertEqual(catalog.ids(), ["tools", "tools-editor"])

    def test_duplicate_ids_keep_first_occurrence(self) -> None:
        data = b"""<list url="u/">
          <category id="a"><component id="b" title="first" /></category>
          <component id="a-b" title="second" />
        </list>"""

        with self.assertLogs("fpm.manifest", level="WARNING"):
            catalog = parse_manifest(data)

        self.assertEqual(len(catalog), 1)
        self.assertEqual(catalog.get("a-b").title, "first")  # type: ignore[union-attr]

    def test_malformed_document_raises(self) -> None:
        with self.assertRaises(ManifestError):
            parse_manifest(b"<list url='u/'><category id='core'>")

    def test_required_components(self) -> None:
        catalog = parse_manifest(MANIFEST)

        self.assertTrue(catalog.get("core").required)  # type: ignore[union-attr]
        self.assertTrue(catalog.get("core-database").required)  # type: ignore[union-attr]
        self.assertFalse(catalog.get("extra-music").required)  # type: ignore[union-attr]


class TestCatalogMatching(unittest.TestCase):
    def test_category_token_matches_only_whole_segments(self) -> None:
        catalog = Catalog()
        for cid in ("core-server", "core-server-gamezip", "core-serverX", "core"):
            catalog.add(Component(id=cid))

        self.assertEqual([c.id for c in catalog.find("core-server")], ["core-server", "core-server-gamezip"])
        self.assertTrue(matches_token("core-server-gamezip", "core"))
        self.assertFalse(matches_token("core-serverX", "core-server"))

    def test_add_rejects_duplicates(self) -> None:
        catalog = Catalog()

        self.assertTrue(catalog.add(Component(id="a")))
        self.assertFalse(catalog.add(Component(id="a", title="again")))
        self.assertIn("a", catalog)
        self.assertEqual(catalog.get("a").title, "")  # type: ignore[union-attr]
