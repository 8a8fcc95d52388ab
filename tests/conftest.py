import httpx
import pytest

from chronos.config import ServerConfig
from chronos.storage import MemoryKeyValueStore

from .helpers import API_KEY, UpstreamRecorder, gemini_reply


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def config(tmp_path):
    return ServerConfig(gemini_api_key=API_KEY, data_dir=tmp_path)


@pytest.fixture
def upstream():
    return UpstreamRecorder(lambda request: httpx.Response(200, json=gemini_reply()))
