"""Regression tests for importing the data layer without the web stack."""

from __future__ import annotations

import importlib
import sys
import types
import unittest
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class DataLayerImportTests(unittest.TestCase):
    def setUp(self) -> None:
        self._loaded = {m: mod for m, mod in sys.modules.items() if m == "blogapi" or m.startswith("blogapi.")}

    def tearDown(self) -> None:
        self._clear_blogapi_modules()
        sys.modules.update(self._loaded)

    @staticmethod
    def _clear_blogapi_modules() -> None:
        for name in [m for m in list(sys.modules.keys()) if m == "blogapi" or m.startswith("blogapi.")]:
            sys.modules.pop(name, None)

    def test_import_database_without_web_packages(self) -> None:
        """Scripts using blogapi.database must not pull in fastapi or httpx."""

        self._clear_blogapi_modules()

        saved: dict[str, types.ModuleType | None] = {}
        for blocked in ("fastapi", "httpx"):
            saved[blocked] = sys.modules.pop(blocked, None)
            sys.modules[blocked] = None
        try:
            database_module = importlib.import_module("blogapi.database")
            self.assertTrue(hasattr(database_module, "Database"))

            package = sys.modules.get("blogapi")
            self.assertIsNotNone(package)
            self.assertTrue(hasattr(package, "Database"))
            self.assertEqual(package.__version__, "1.0.0")
        finally:
            for blocked, module in saved.items():
                sys.modules.pop(blocked, None)
                if module is not None:
                    sys.modules[blocked] = module


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
