"""
Shared test fixtures.

Provides stores on temporary files, a fake device-control API served through
httpx.MockTransport, and an async HTTP client wrapping the FastAPI app.
"""

import json
import os

# No file logging while importing the app under test
os.environ["LOG_FILE"] = ""
os.environ["API_KEY"] = ""

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport  # noqa: E402

from weephub.core.credentials import CredentialStore  # noqa: E402
from weephub.core.database import ActivityLogger, Database  # noqa: E402
from weephub.core.models import SourceUpsert  # noqa: E402
from weephub.core.routines import RoutineStore  # noqa: E402
from weephub.core.settings_store import RuntimeSettingsStore  # noqa: E402
from weephub.core.vault import SecretVault, generate_key  # noqa: E402
from weephub.devices import CommandDispatcher, DeviceControlClient  # noqa: E402
from weephub.scheduler import RoutineScheduler  # noqa: E402

API_BASE = "https://api.test/v1"


class FakeDeviceAPI:
    """In-memory stand-in for the remote device-control REST API"""

    def __init__(self):
        self.requests = []
        self.switch = {}
        self.offline = set()
        self.fail_commands = {}
        self.fail_inventory = set()
        self.inventory = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        body = json.loads(request.content) if request.content else None
        path = request.url.path.removeprefix("/v1")
        self.requests.append((request.method, path, token, body))

        parts = path.strip("/").split("/")

        if parts == ["devices"]:
            if token in self.fail_inventory:
                return httpx.Response(401, json={"error": "unauthorized"})
            return httpx.Response(200, json={"items": self.inventory.get(token, [])})

        device_id, endpoint = parts[1], parts[2]

        if endpoint == "commands":
            if device_id in self.fail_commands:
                return httpx.Response(self.fail_commands[device_id], json={"error": "device refused"})
            for cmd in body["commands"]:
                if cmd["capability"] == "switch":
                    self.switch[device_id] = cmd["command"]
            return httpx.Response(200, json={"results": [{"id": "r1", "status": "ACCEPTED"}]})

        if endpoint == "status":
            value = self.switch.get(device_id, "off")
            return httpx.Response(
                200, json={"components": {"main": {"switch": {"switch": {"value": value}}}}}
            )

        if endpoint == "health":
            state = "OFFLINE" if device_id in self.offline else "ONLINE"
            return httpx.Response(200, json={"state": state})

        return httpx.Response(404, json={"error": "not found"})

    def commands_for(self, device_id):
        return [
            r for r in self.requests
            if r[0] == "POST" and r[1] == f"/devices/{device_id}/commands"
        ]


class RecordingActivity:
    """Activity sink that keeps entries in memory"""

    def __init__(self):
        self.entries = []

    async def record(self, device, action):
        self.entries.append((device, action))


@pytest.fixture
def vault():
    return SecretVault(generate_key())


@pytest.fixture
def fake_api():
    return FakeDeviceAPI()


@pytest_asyncio.fixture
async def remote_client(fake_api):
    client = DeviceControlClient(
        base_url=API_BASE,
        timeout=2.0,
        transport=httpx.MockTransport(fake_api.handler)
    )
    yield client
    await client.close()


@pytest.fixture
def credentials(tmp_path, vault):
    return CredentialStore(tmp_path / "sources.json", vault)


@pytest.fixture
def home_source(credentials):
    """One enabled source whose token is 'home-token'"""
    return credentials.upsert(SourceUpsert(label="Home", token="home-token", enabled=True))


@pytest.fixture
def routine_store(tmp_path):
    return RoutineStore(tmp_path / "routines.json")


@pytest.fixture
def dispatcher(credentials, remote_client):
    return CommandDispatcher(credentials, remote_client)


@pytest.fixture
def activity():
    return RecordingActivity()


@pytest.fixture
def scheduler(routine_store, dispatcher, activity):
    return RoutineScheduler(routine_store, dispatcher, activity)


@pytest_asyncio.fixture
async def db(tmp_path):
    database = Database(str(tmp_path / "activity.db"))
    await database.connect()
    yield database
    await database.close()


@pytest_asyncio.fixture
async def test_client(tmp_path, db, credentials, routine_store, dispatcher):
    """Async HTTP client wrapping the app with stores on temporary files"""
    from weephub.main import app

    activity_logger = ActivityLogger(db)
    app.state.db = db
    app.state.activity = activity_logger
    app.state.credentials = credentials
    app.state.routines = routine_store
    app.state.runtime_settings = RuntimeSettingsStore(tmp_path / "settings.json")
    app.state.dispatcher = dispatcher
    app.state.scheduler = RoutineScheduler(routine_store, dispatcher, activity_logger)

    transport = ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    await app.state.scheduler.stop()
