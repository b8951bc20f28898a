"""
Pytest configuration and fixtures for the posture coach backend.

Provides fake realtime connections, a fake job runner and an app wired
without the production lifespan so no network or API key is needed.
"""

import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest
from fastapi.testclient import TestClient

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dal.analysis_event_dal import AnalysisEventDAL  # noqa: E402
from main import create_app  # noqa: E402
from models.live_models import LiveCallbacks, SpeechConfig  # noqa: E402
from realtime_doubles import FakeClient  # noqa: E402
from services.live.dispatcher import LiveSessionDispatcher  # noqa: E402
from services.live.openai_live import openai_connection_factory  # noqa: E402
from services.live.relay import LiveRelay  # noqa: E402
from services.storage.upload_urls import StorageSettings  # noqa: E402
from utils.database_init import AsyncDatabaseInitializer  # noqa: E402

BUCKET_URL = "https://media.example.com"


class FakeLiveConnection:
    """In-memory stand-in for a realtime AI connection."""

    def __init__(self, callbacks: LiveCallbacks, fail_connect=False, fail_send=False, fail_close=False):
        self.callbacks = callbacks
        self.fail_connect = fail_connect
        self.fail_send = fail_send
        self.fail_close = fail_close
        self.connected = False
        self.closed = False
        self.speech_config = None
        self.sent: List[Any] = []

    async def connect(self, speech_config: SpeechConfig) -> None:
        self.speech_config = speech_config
        await asyncio.sleep(0)
        if self.fail_connect:
            raise RuntimeError("handshake refused")
        self.connected = True
        self.callbacks.on_open()

    async def _record(self, kind: str, value: Any) -> None:
        if self.fail_send:
            raise RuntimeError("socket gone")
        self.sent.append((kind, value))

    async def send_text(self, text: str) -> None:
        await self._record("text", text)

    async def send_audio(self, audio: bytes) -> None:
        await self._record("audio", audio)

    async def send_video(self, frame: Dict[str, Any]) -> None:
        await self._record("video", frame)

    async def close(self) -> None:
        self.closed = True
        self.connected = False
        if self.fail_close:
            raise RuntimeError("close failed")

    def is_connected(self) -> bool:
        return self.connected


class FakeConnectionFactory:
    """Builds FakeLiveConnections and remembers each one."""

    def __init__(self):
        self.created: List[FakeLiveConnection] = []
        self.options: Dict[str, bool] = {}

    def __call__(self, callbacks: LiveCallbacks) -> FakeLiveConnection:
        connection = FakeLiveConnection(callbacks, **self.options)
        self.created.append(connection)
        return connection


class FakeJobRunner:
    """Records scheduled jobs instead of running them."""

    def __init__(self):
        self.video_jobs: List[tuple] = []
        self.image_jobs: List[tuple] = []

    async def run_video_job(self, event_id, video_url, original_filename):
        self.video_jobs.append((event_id, video_url, original_filename))

    async def run_image_job(self, event_id, image_urls):
        self.image_jobs.append((event_id, list(image_urls)))


@pytest.fixture
def speech_config():
    return SpeechConfig(language_code="en-US", voice_name="alloy")


@pytest.fixture
def relay():
    return LiveRelay()


@pytest.fixture
def connection_factory():
    return FakeConnectionFactory()


@pytest.fixture
def dispatcher(relay, connection_factory, speech_config):
    return LiveSessionDispatcher(relay, connection_factory, speech_config)


@pytest.fixture
def realtime_client():
    return FakeClient()


@pytest.fixture
def realtime_dispatcher(relay, realtime_client, speech_config):
    """Dispatcher wired to real OpenAILiveConnections over in-memory sockets."""
    factory = openai_connection_factory(realtime_client, model="gpt-realtime", connect_timeout=1)
    return LiveSessionDispatcher(relay, factory, speech_config)


@pytest.fixture
def storage_settings():
    return StorageSettings(account_id="acct123", public_url=BUCKET_URL)


@pytest.fixture
def db_initializer(tmp_path):
    return AsyncDatabaseInitializer(tmp_path / "db")


@pytest.fixture
def analysis_dal(db_initializer):
    return AnalysisEventDAL(db_initializer)


@pytest.fixture
def job_runner():
    return FakeJobRunner()


@pytest.fixture
def app(relay, dispatcher, analysis_dal, job_runner, storage_settings):
    application = create_app(use_lifespan=False)
    application.state.live_relay = relay
    application.state.live_dispatcher = dispatcher
    application.state.analysis_dal = analysis_dal
    application.state.job_runner = job_runner
    application.state.storage_settings = storage_settings
    application.state.max_analysis_images = 3
    application.state.upload_url_generator = None
    return application


@pytest.fixture
def client(app):
    return TestClient(app)
