import os
import tempfile

# Settings are read at import time, so the environment must be in place first
os.environ["ENV"] = "dev"
os.environ["DB_URL"] = "sqlite://"
os.environ["AUTO_CREATE_SCHEMA"] = "true"
os.environ["JWT_SECRET"] = "test-secret-0123456789abcdef"
os.environ["RATE_LIMIT_BACKEND"] = "memory"
os.environ["RATE_LIMIT_PER_MINUTE"] = "100000"
os.environ["STORAGE_BACKEND"] = "local"
os.environ.setdefault("STORAGE_LOCAL_DIR", tempfile.mkdtemp(prefix="staybook-uploads-"))
os.environ.pop("JWT_JWKS_URL", None)
os.environ.pop("JWT_AUDIENCE", None)
os.environ.pop("JWT_ISSUER", None)

import pytest  # noqa: E402

from staybook.main import app  # noqa: E402
from staybook.storage import MemoryBlobStore, get_blob_store  # noqa: E402


MEMORY_STORE = MemoryBlobStore()
app.dependency_overrides[get_blob_store] = lambda: MEMORY_STORE


@pytest.fixture
def blob_store():
    return MEMORY_STORE
