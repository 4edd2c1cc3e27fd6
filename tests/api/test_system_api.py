"""
API Integration Tests for System Endpoints
"""

import logging


class TestSystemAPI:
    """Integration tests for system endpoints"""

    def test_status(self, client):
        """Test system status endpoint"""
        response = client.get("/api/system/status")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["providers"] == {"completion_provider": False, "cloud_analyzer": False}
        assert "hybrid" in data["modes"]
        assert data["memory_usage"]["process_mb"] > 0

    def test_status_with_providers(self, oracle_client):
        """Test provider flags in system status"""
        data = oracle_client.get("/api/system/status").json()
        assert data["providers"] == {"completion_provider": True, "cloud_analyzer": True}

    def test_config(self, client):
        """Test configuration endpoint"""
        response = client.get("/api/system/config")

        assert response.status_code == 200
        assert response.json()["extraction"]["crop_padding"] == 2

    def test_debug_toggle(self, app, client):
        """Test enabling debug logging"""
        root = logging.getLogger()
        previous = root.level
        try:
            response = client.post("/api/system/debug/true")
            assert response.json() == {"debug": True}
            assert root.level == logging.DEBUG
            assert app.state.debug is True
        finally:
            root.setLevel(previous)

    def test_health(self, client):
        """Test system health endpoint"""
        assert client.get("/api/system/health").json()["status"] == "healthy"

    def test_root(self, client):
        """Test root endpoint"""
        data = client.get("/").json()
        assert data["status"] == "running"
        assert data["endpoints"]["extraction"] == "/api/extraction"

    def test_app_health(self, oracle_client):
        """Test application health endpoint"""
        data = oracle_client.get("/health").json()
        assert data["services"] == {"completion_provider": True, "cloud_analyzer": True}

    def test_missing_state(self, app, client):
        """Routes fail cleanly when the lifespan never populated app state"""
        del app.state.completion_provider
        response = client.get("/api/extraction/modes")
        assert response.status_code == 500
