"""
Lambda function relaying dashboard requests to the workflow-automation API.
Keeps the upstream API key on the server side.
"""

import json
import os
import logging
from typing import Dict, Any, Optional
import boto3
import httpx
from botocore.exceptions import ClientError

# Configure logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)

# Configuration
N8N_BASE_URL = os.environ.get('N8N_BASE_URL', '').rstrip('/')
N8N_API_KEY_SECRET_ARN = os.environ.get('N8N_API_KEY_SECRET_ARN', '')
ALLOWED_METHODS = {'GET', 'POST', 'PUT', 'PATCH', 'DELETE'}

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'authorization, x-client-info, apikey, content-type',
    'Access-Control-Allow-Methods': 'POST,OPTIONS'
}

# Created on first use so the module imports without AWS credentials
secrets_manager = None
_api_key: Optional[str] = None


def get_api_key() -> str:
    """Upstream API key from the environment, or from Secrets Manager (cached)."""
    global secrets_manager, _api_key
    if _api_key:
        return _api_key

    key = os.environ.get('N8N_API_KEY', '')
    if not key and N8N_API_KEY_SECRET_ARN:
        if secrets_manager is None:
            secrets_manager = boto3.client('secretsmanager')
        try:
            response = secrets_manager.get_secret_value(SecretId=N8N_API_KEY_SECRET_ARN)
            key = response['SecretString']
        except ClientError as e:
            logger.error(f"Error retrieving secret: {e}")
            raise

    if not key:
        raise RuntimeError('Workflow API key is not configured')
    _api_key = key
    return key


def _response(status_code: int, body: Any) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {**CORS_HEADERS, 'Content-Type': 'application/json'},
        'body': json.dumps(body)
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Forward a {path, method} request to the workflow API.

    Routes:
    - OPTIONS - CORS preflight
    - POST    - body {"path": "/executions?...", "method": "GET"}
    """
    try:
        http_method = event.get('httpMethod', 'POST')

        # Handle OPTIONS request
        if http_method == 'OPTIONS':
            return {
                'statusCode': 200,
                'headers': CORS_HEADERS,
                'body': 'ok'
            }

        try:
            body = json.loads(event.get('body') or '{}')
        except json.JSONDecodeError:
            return _response(400, {'error': 'Invalid JSON body'})

        path = body.get('path')
        method = str(body.get('method') or 'GET').upper()

        if not isinstance(path, str) or not path.startswith('/'):
            return _response(400, {'error': "'path' must be a string starting with '/'"})
        if method not in ALLOWED_METHODS:
            return _response(400, {'error': f"Unsupported method: {method}"})
        if not N8N_BASE_URL:
            return _response(500, {'error': 'Workflow API base URL is not configured'})

        url = f"{N8N_BASE_URL}{path}"
        logger.info(f"Making request to workflow API: {method} {url}")

        response = httpx.request(
            method,
            url,
            headers={
                'X-N8N-API-KEY': get_api_key(),
                'Content-Type': 'application/json',
                'Accept': 'application/json'
            },
            timeout=30.0
        )

        if response.status_code >= 400:
            logger.error(f"Workflow API error: {response.status_code} - {response.text}")
            return _response(response.status_code, {
                'error': f"Workflow API error: {response.status_code}",
                'details': response.text
            })

        if not response.content:
            return _response(response.status_code, None)
        return _response(200, response.json())

    except Exception as e:
        logger.error(f"Error in workflow-proxy: {str(e)}", exc_info=True)
        return _response(500, {'error': 'Internal server error', 'details': str(e)})
