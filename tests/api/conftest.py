"""
Pytest configuration for API integration tests
"""

import base64

import pytest
from fastapi.testclient import TestClient

from config import ExtractionConfig


def set_app_state(app, completion_provider=None, cloud_analyzer=None, settings=None):
    app.state.completion_provider = completion_provider
    app.state.cloud_analyzer = cloud_analyzer
    app.state.extraction_settings = settings or ExtractionConfig()
    app.state.config = {"extraction": app.state.extraction_settings.model_dump(mode="json")}
    app.state.debug = False


@pytest.fixture(scope="function")
def app():
    """
    The FastAPI app with a fresh state and no external providers.
    The lifespan is not run, so the state is set here directly.
    """
    from main import app

    set_app_state(app)
    return app


@pytest.fixture(scope="function")
def client(app):
    """Test client; each test gets a fresh client to avoid state contamination."""
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def oracle_client(app, mock_completion_provider, mock_cloud_analyzer):
    """Test client with mocked oracle and cloud analyzer."""
    set_app_state(app, mock_completion_provider, mock_cloud_analyzer)
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def red_rect_b64(red_rect_png):
    return base64.b64encode(red_rect_png).decode()
