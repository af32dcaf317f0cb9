import base64

import pytest
from azure.core.exceptions import ResourceExistsError

from app.models.domain.proxy_domain import CallResult, CredentialSet
from app.services.table_storage import TableStorageClient
from app.services.token_cache import reset_token_caches

TOKEN_URL = "https://login.microsoftonline.com/tenant-1/oauth2/v2.0/token"
STORAGE_KEY = base64.b64encode(b"storage-account-key").decode()


@pytest.fixture
def credentials():
    return CredentialSet(tenant_id="tenant-1", client_id="client-1", client_secret="secret-1")


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def add_token_response(httpx_mock):
    def _add(token: str = "tok-1", expires_in: int = 3600):
        httpx_mock.add_response(
            method="POST",
            url=TOKEN_URL,
            json={"token_type": "Bearer", "access_token": token, "expires_in": expires_in},
        )

    return _add


class FakeCaller:
    """Records outbound calls and answers them from a queue of canned results."""

    def __init__(self, *results: CallResult):
        self.results = list(results)
        self.calls: list[dict] = []

    def queue(self, status_code: int = 200, json_body: str = "{}", headers: dict | None = None):
        self.results.append(
            CallResult(status_code=status_code, body=json_body.encode(), headers=headers or {})
        )

    def fail(self, error: Exception):
        """Make the next call raise ``error`` instead of answering."""
        self.results.append(error)

    async def do(self, base_url, method, path, *, headers=None, body=None, timeout=30.0):
        self.calls.append(
            {
                "base_url": base_url,
                "method": method,
                "path": path,
                "headers": headers or {},
                "body": body,
                "timeout": timeout,
            }
        )
        if not self.results:
            return CallResult(status_code=200, body=b"{}")
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def fake_caller():
    return FakeCaller()


class StaticAuth:
    async def headers(self) -> dict[str, str]:
        return {"Authorization": "Bearer test-token"}


@pytest.fixture
def static_auth():
    return StaticAuth()


@pytest.fixture(autouse=True)
def _fresh_token_caches():
    reset_token_caches()
    yield
    reset_token_caches()


class FakeTableClient:
    """In-memory stand-in for an azure.data.tables.aio.TableClient."""

    def __init__(self, name: str, service: "FakeTableService"):
        self.name = name
        self.service = service
        self.entities: dict[tuple[str, str], dict] = {}

    async def create_table(self):
        self.service.record("create_table", self.name)
        if self.name in self.service.existing:
            raise ResourceExistsError(message="TableAlreadyExists")
        self.service.existing.add(self.name)

    def list_entities(self):
        self.service.record("list_entities", self.name)
        return self._iterate()

    async def _iterate(self):
        for entity in list(self.entities.values()):
            yield entity

    async def upsert_entity(self, entity, mode=None):
        self.service.record("upsert_entity", self.name, entity=entity, mode=mode)
        self.entities[(entity["PartitionKey"], entity["RowKey"])] = dict(entity)

    async def delete_entity(self, partition_key, row_key):
        self.service.record("delete_entity", self.name, key=(partition_key, row_key))
        self.entities.pop((partition_key, row_key), None)


class FakeTableService:
    """Hands out FakeTableClients and records every operation made on them."""

    def __init__(self):
        self.tables: dict[str, FakeTableClient] = {}
        self.existing: set[str] = set()
        self.calls: list[dict] = []
        self.errors: list[Exception] = []
        self.closed = False

    def record(self, operation: str, table: str, **extra):
        self.calls.append({"operation": operation, "table": table, **extra})
        if self.errors:
            raise self.errors.pop(0)

    def get_table_client(self, table_name: str) -> FakeTableClient:
        return self.tables.setdefault(table_name, FakeTableClient(table_name, self))

    async def close(self):
        self.closed = True


@pytest.fixture
def table_service():
    return FakeTableService()


@pytest.fixture
def storage(table_service):
    return TableStorageClient("opsacct", STORAGE_KEY, service=table_service)
