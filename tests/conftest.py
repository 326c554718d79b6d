"""
Pytest configuration for the sign-in and profile sync tests.
"""

import importlib
import io
import os
import struct
import sys
import zlib
from types import SimpleNamespace
from typing import Dict, List

import pytest
from dotenv import load_dotenv
from PIL import Image
from supabase import StorageException

# Ensure project root is importable
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

# Load .env ONCE (safe no-op)
load_dotenv()

os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_ANON_KEY", "anon-key-for-tests")

CALLBACK_URL = "io.supabase.user-management://login-callback"
USER_ID = "8d0fd2b3-9ca7-4d9e-a95f-9e13dded323e"

# Minimal contract mapping: modules -> expected attributes
DEFAULT_EXPECTED_EXPORTS: Dict[str, List[str]] = {
    "auth.session_gateway": ["SessionGateway", "parse_callback_params"],
    "services.profile_store": ["ProfileStore"],
    "services.asset_transfer": ["AssetTransfer", "new_object_key"],
    "controllers": ["AppFlow", "AuthFlowController", "ProfileFlowController"],
    "db": ["init_supabase", "set_supabase_client", "setup_logging"],
}


@pytest.fixture(autouse=True, scope="session")
def validate_module_contracts():
    for module_name, keys in DEFAULT_EXPECTED_EXPORTS.items():
        mod = importlib.import_module(module_name)
        missing = [k for k in keys if not hasattr(mod, k)]
        if missing:
            raise AssertionError(f"Module {module_name} missing exports: {missing}")
    yield


# ==============================================================
# In-memory Supabase stand-in
# ==============================================================


class FakeQuery:
    def __init__(self, table: "FakeTable"):
        self.table = table
        self.filters = []
        self.max_rows = None
        self.op = "select"
        self.payload = None
        self.on_conflict = None

    def select(self, *columns):
        self.op = "select"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def limit(self, n):
        self.max_rows = n
        return self

    def upsert(self, payload, on_conflict=None):
        self.op = "upsert"
        self.payload = dict(payload)
        self.on_conflict = on_conflict
        return self

    def execute(self):
        self.table.calls.append((self.op, self.filters, self.payload))
        if self.table.fail is not None:
            raise self.table.fail

        if self.op == "upsert":
            key = self.on_conflict or "id"
            for i, row in enumerate(self.table.rows):
                if row.get(key) == self.payload.get(key):
                    self.table.rows[i] = dict(self.payload)
                    break
            else:
                self.table.rows.append(dict(self.payload))
            return SimpleNamespace(data=[dict(self.payload)])

        rows = [
            dict(row)
            for row in self.table.rows
            if all(row.get(col) == val for col, val in self.filters)
        ]
        if self.max_rows is not None:
            rows = rows[: self.max_rows]
        return SimpleNamespace(data=rows)


class FakeTable:
    def __init__(self):
        self.rows = []
        self.calls = []
        self.fail = None


class FakeBucket:
    def __init__(self):
        self.objects = {}
        self.uploads = []
        self.upload_fail = None
        self.download_fail = None

    def upload(self, path, file, file_options=None):
        self.uploads.append((path, file_options))
        if self.upload_fail is not None:
            raise self.upload_fail
        if path in self.objects:
            raise StorageException(
                {"statusCode": 409, "error": "Duplicate", "message": "The resource already exists"}
            )
        self.objects[path] = bytes(file)
        return SimpleNamespace(path=path, full_path=f"bucket/{path}")

    def download(self, path):
        if self.download_fail is not None:
            raise self.download_fail
        if path not in self.objects:
            raise StorageException(
                {"statusCode": 400, "error": "not_found", "message": "Object not found"}
            )
        return self.objects[path]


class FakeStorage:
    def __init__(self):
        self.buckets = {}

    def from_(self, name):
        return self.buckets.setdefault(name, FakeBucket())


def make_auth_response(user_id=USER_ID, email="a@b.com"):
    return SimpleNamespace(
        session=SimpleNamespace(
            access_token="access-token",
            refresh_token="refresh-token",
            expires_at=1_900_000_000,
            user=SimpleNamespace(id=user_id, email=email),
        ),
        user=SimpleNamespace(id=user_id, email=email),
    )


class FakeAuth:
    def __init__(self):
        self.otp_requests = []
        self.valid_codes = {"good-code": make_auth_response()}
        self.sign_in_fail = None
        self.exchange_fail = None
        self.sign_out_fail = None
        self.sign_out_calls = 0
        self.set_session_calls = []

    def sign_in_with_otp(self, credentials):
        self.otp_requests.append(credentials)
        if self.sign_in_fail is not None:
            raise self.sign_in_fail
        return SimpleNamespace(user=None, session=None)

    def exchange_code_for_session(self, params):
        if self.exchange_fail is not None:
            raise self.exchange_fail
        return self.valid_codes.get(params["auth_code"], SimpleNamespace(session=None))

    def set_session(self, access_token, refresh_token):
        self.set_session_calls.append((access_token, refresh_token))
        if self.exchange_fail is not None:
            raise self.exchange_fail
        return make_auth_response()

    def sign_out(self):
        self.sign_out_calls += 1
        if self.sign_out_fail is not None:
            raise self.sign_out_fail


class FakeSupabase:
    def __init__(self):
        self.auth = FakeAuth()
        self.storage = FakeStorage()
        self.tables = {}

    def table(self, name):
        return FakeQuery(self.tables.setdefault(name, FakeTable()))


# ==============================================================
# Fixtures
# ==============================================================


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


@pytest.fixture
def session():
    from services.models import Session

    return Session(user_id=USER_ID, email="a@b.com", access_token="access-token")


def make_image_bytes(fmt="PNG", size=(16, 16), color="red"):
    image = Image.new("RGB", size, color=color)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def make_oversized_png(width=20000, height=20000):
    """Header-only PNG claiming a pixel count above Pillow's bomb limit."""

    def chunk(kind, payload):
        body = kind + payload
        return struct.pack(">I", len(payload)) + body + struct.pack(">I", zlib.crc32(body))

    ihdr = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", ihdr) + chunk(b"IEND", b"")


@pytest.fixture
def png_bytes():
    return make_image_bytes("PNG")


@pytest.fixture
def jpeg_bytes():
    return make_image_bytes("JPEG", color="blue")
