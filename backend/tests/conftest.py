from pathlib import Path
import os
import tempfile

import pytest

# Settings are read at import time, so the environment must be in place
# before any test module imports `lnconnext.main`.
_DB_DIR = Path(tempfile.mkdtemp(prefix="lnconnext-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'test.db'}"
os.environ["AUTH_MODE"] = "local"
os.environ["ENV"] = "dev"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["BASE_URL"] = "https://lnconnext.test"

from lnconnext.auth import create_local_token  # noqa: E402
from lnconnext.database import create_db_and_tables, drop_db_and_tables  # noqa: E402


@pytest.fixture(autouse=True)
def reset_db():
    """Give every test empty tables and a fresh write throttle."""
    drop_db_and_tables()
    create_db_and_tables()
    from lnconnext.main import write_throttle
    write_throttle.reset()
    yield


@pytest.fixture
def auth_headers():
    token = create_local_token("editor-1", email="editor@example.com", email_verified=True)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_headers():
    def _make(uid: str, email: str = "", email_verified: bool = False, expires_in_hours: int = 24):
        token = create_local_token(uid, email=email, email_verified=email_verified, expires_in_hours=expires_in_hours)
        return {"Authorization": f"Bearer {token}"}
    return _make
