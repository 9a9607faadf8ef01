import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import importlib.util
import textwrap

import pytest

from pii_shield import accessor_cache, default_registry, stop
from pii_shield.directives import clear_cache


@pytest.fixture(autouse=True)
def fresh_engine():
    """Every test starts with empty caches and no activation state."""
    accessor_cache.clear()
    default_registry.clear()
    clear_cache()
    stop()
    yield
    stop()


@pytest.fixture
def load_module(tmp_path, monkeypatch):
    """Import source text as a real module living outside the test files.

    The module is registered in ``sys.modules`` for the duration of the test
    only, so names that shadow stdlib modules are safe to use.
    """
    def load(name, source, *, package=False):
        if package:
            path = tmp_path / name / "__init__.py"
            path.parent.mkdir()
            locations = [str(path.parent)]
        else:
            path = tmp_path / f"{name}.py"
            locations = None
        path.write_text(textwrap.dedent(source))
        spec = importlib.util.spec_from_file_location(
            name, path, submodule_search_locations=locations,
        )
        module = importlib.util.module_from_spec(spec)
        monkeypatch.setitem(sys.modules, name, module)
        spec.loader.exec_module(module)
        return module

    return load
