import os

# Settings are read at import time
os.environ.setdefault("AUTH_SECRET_KEY", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.pop("PDF_FONT_PATH", None)

import pytest

from factories import make_invoice


@pytest.fixture
def invoice_factory():
    return make_invoice
