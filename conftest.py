# conftest.py
import pytest


@pytest.fixture(autouse=True)
def shape_function_cache_dir(tmp_path_factory, monkeypatch):
    """Keep the persisted shape-function tables out of the user's home."""
    cache_dir = tmp_path_factory.getbasetemp() / "pyfemlib-cache"
    monkeypatch.setenv("PYFEMLIB_CACHE_DIR", str(cache_dir))
    monkeypatch.delenv("PYFEMLIB_NO_DISK_CACHE", raising=False)
    monkeypatch.delenv("PYFEMLIB_SCALE_GRADIENT_BY_DETJ", raising=False)
    return cache_dir
