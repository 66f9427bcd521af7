"""Tests for the workflow-proxy Lambda handler."""
import importlib.util
import json
from pathlib import Path
from unittest.mock import Mock

import httpx
import pytest

HANDLER_PATH = Path(__file__).resolve().parents[1] / "lambda-functions" / "workflow-proxy" / "handler.py"


@pytest.fixture
def handler(monkeypatch):
    spec = importlib.util.spec_from_file_location("workflow_proxy_handler", HANDLER_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    monkeypatch.setattr(module, "N8N_BASE_URL", "https://n8n.example.com/api/v1")
    monkeypatch.setattr(module, "_api_key", "upstream-key")
    return module


def post(body):
    return {"httpMethod": "POST", "body": json.dumps(body)}


class TestWorkflowProxyHandler:

    def test_options_preflight(self, handler):
        response = handler.lambda_handler({"httpMethod": "OPTIONS"}, None)
        assert response["statusCode"] == 200
        assert response["headers"]["Access-Control-Allow-Origin"] == "*"

    def test_forwards_request_with_upstream_key(self, handler, monkeypatch):
        upstream = Mock(return_value=httpx.Response(200, json={"data": [{"id": "1"}]}))
        monkeypatch.setattr(handler.httpx, "request", upstream)

        response = handler.lambda_handler(post({"path": "/executions?workflowId=wf&limit=1", "method": "get"}), None)

        assert response["statusCode"] == 200
        assert json.loads(response["body"]) == {"data": [{"id": "1"}]}
        args, kwargs = upstream.call_args
        assert args == ("GET", "https://n8n.example.com/api/v1/executions?workflowId=wf&limit=1")
        assert kwargs["headers"]["X-N8N-API-KEY"] == "upstream-key"

    def test_upstream_error_is_relayed(self, handler, monkeypatch):
        monkeypatch.setattr(handler.httpx, "request", Mock(return_value=httpx.Response(404, text="not found")))
        response = handler.lambda_handler(post({"path": "/workflows/x"}), None)
        assert response["statusCode"] == 404
        body = json.loads(response["body"])
        assert body["details"] == "not found"

    @pytest.mark.parametrize("body", [
        {"path": "executions"},
        {"method": "GET"},
        {"path": "/workflows", "method": "TRACE"},
    ])
    def test_bad_requests(self, handler, body):
        assert handler.lambda_handler(post(body), None)["statusCode"] == 400

    def test_invalid_json(self, handler):
        response = handler.lambda_handler({"httpMethod": "POST", "body": "{"}, None)
        assert response["statusCode"] == 400

    def test_missing_base_url(self, handler, monkeypatch):
        monkeypatch.setattr(handler, "N8N_BASE_URL", "")
        assert handler.lambda_handler(post({"path": "/workflows"}), None)["statusCode"] == 500

    def test_transport_failure(self, handler, monkeypatch):
        monkeypatch.setattr(handler.httpx, "request", Mock(side_effect=httpx.ConnectError("refused")))
        response = handler.lambda_handler(post({"path": "/workflows"}), None)
        assert response["statusCode"] == 500

    def test_api_key_from_environment(self, handler, monkeypatch):
        monkeypatch.setattr(handler, "_api_key", None)
        monkeypatch.setenv("N8N_API_KEY", "env-key")
        assert handler.get_api_key() == "env-key"

    def test_empty_upstream_body_is_passed_through(self, handler, monkeypatch):
        monkeypatch.setattr(handler.httpx, "request", Mock(return_value=httpx.Response(204)))
        response = handler.lambda_handler(post({"path": "/executions/9", "method": "DELETE"}), None)
        assert response["statusCode"] == 204
        assert json.loads(response["body"]) is None
