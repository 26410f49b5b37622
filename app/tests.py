"""
Tests de la aplicación: endpoints de estado y middleware
"""

import inspect

from fastapi.routing import APIRoute

from app.main import app


class TestApplication:

    def test_root(self, api_client):
        response = api_client.get("/")
        assert response.status_code == 200
        assert response.json()["environment"] == "test"

    def test_health(self, api_client):
        assert api_client.get("/health").json() == {"status": "healthy", "environment": "test"}

    def test_request_id_header(self, api_client):
        generated = api_client.get("/health")
        assert len(generated.headers["X-Request-ID"]) == 32
        assert generated.headers["X-Content-Type-Options"] == "nosniff"

        echoed = api_client.get("/health", headers={"X-Request-ID": "abc-123"})
        assert echoed.headers["X-Request-ID"] == "abc-123"

    def test_database_endpoints_run_in_threadpool(self):
        # Solo / y /health pueden correr en el event loop
        async_paths = {
            route.path for route in app.routes
            if isinstance(route, APIRoute) and inspect.iscoroutinefunction(route.endpoint)
        }
        assert async_paths == {"/", "/health"}
