import sys
from pathlib import Path

import pytest
import pytest_asyncio

from repo_root import REPO_ROOT

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture
def library_root(tmp_path: Path) -> Path:
    # Cover URLs are derived from the "/library/" path segment.
    root = tmp_path / "library"
    root.mkdir()
    return root


@pytest_asyncio.fixture
async def services(tmp_path, library_root):
    from mvault_backend.deps import build_services, dispose_services

    db_path = str(tmp_path / "test_services.db")
    svc_res = await build_services(db_path, library_root=library_root, cache_dir=tmp_path / "thumbs")
    assert svc_res.ok, svc_res.error
    svc = svc_res.data
    try:
        yield svc
    finally:
        await dispose_services(svc)
