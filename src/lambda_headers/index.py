import base64
import json
import logging

from . import config
from .errors import ScanError
from .scanner import scan_headers

logger = logging.getLogger()
logger.setLevel(config.LOG_LEVEL)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "OPTIONS,POST",
    "Access-Control-Allow-Headers": (
        "Content-Type,X-Amz-Date,Authorization,X-Api-Key,"
        "X-Amz-Security-Token,Sec-Ch-Ua,Sec-Ch-Ua-Mobile,Sec-Ch-Ua-Platform,Dnt"
    ),
    "Access-Control-Max-Age": "3600",
    "Content-Type": "application/json",
    "Cache-Control": "no-store",
}


def respond(status_code, body):
    return {
        "statusCode": status_code,
        "headers": CORS_HEADERS,
        "body": json.dumps(body),
    }


def _request_method(event):
    # REST API (v1) events carry httpMethod, HTTP API (v2) events nest it
    method = event.get("httpMethod") or (
        (event.get("requestContext") or {}).get("http", {}).get("method")
    )
    return (method or "POST").upper()


def _parse_body(event) -> dict:
    raw = event.get("body") or "{}"
    if event.get("isBase64Encoded"):
        raw = base64.b64decode(raw, validate=True).decode("utf-8")
    body = json.loads(raw)
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")
    return body


def lambda_handler(event, context):
    method = _request_method(event)
    if method == "OPTIONS":
        return respond(200, {"message": "CORS preflight OK"})
    if method != "POST":
        return respond(
            405, {"error": "Method not allowed", "details": "Use POST"}
        )

    try:
        body = _parse_body(event)
    except ValueError as e:
        logger.warning(f"Rejected request body: {e}")
        return respond(
            400,
            {"error": "Invalid request body", "details": "Body must be a JSON object"},
        )

    try:
        report = scan_headers(body.get("url"))
    except ScanError as e:
        logger.warning(f"Headers scan rejected: {e.error}: {e.details}")
        return respond(e.status_code, e.to_body())
    except Exception as e:
        logger.exception("Headers scan error")
        return respond(
            500,
            {
                "error": "Headers scan failed",
                "details": f"Unexpected error: {e.__class__.__name__}",
            },
        )

    return respond(200, report.to_dict())
