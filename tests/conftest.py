import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import pytest

from catalog_service import CatalogService
from catalog_store import CatalogStore
from records import CatalogRecord

ADMIN_USER = "admin"
ADMIN_PASSWORD = "s3cret-pass"


@pytest.fixture
def store():
    """Fresh in-memory SQLite catalog per test."""
    s = CatalogStore.from_url("sqlite://")
    s.create_schema()
    return s


@pytest.fixture
def service(store):
    return CatalogService(
        store,
        index_ttl_seconds=3600,
        admin_username=ADMIN_USER,
        admin_password=ADMIN_PASSWORD,
    )


@pytest.fixture
def caller(service):
    return service.authenticate(ADMIN_USER, ADMIN_PASSWORD)


@pytest.fixture
def write_csv(tmp_path):
    """Write CSV text to a temp file and return its path."""
    def _write(text: str, name: str = "catalog.csv") -> str:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return str(path)
    return _write


def make_record(model_name, compatible=None, vip=False, content=None) -> CatalogRecord:
    compatible = [] if vip else list(compatible or [])
    return CatalogRecord(
        model_name=model_name,
        compatible_models=compatible,
        is_vip=vip,
        is_compatible=(not vip and bool(compatible)),
        presentation_content=content,
    )
