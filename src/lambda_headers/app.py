import json
import logging
from datetime import datetime, timezone

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from . import config
from .errors import ScanError
from .scanner import scan_headers

# Configure logging
logger = logging.getLogger()
logger.setLevel(config.LOG_LEVEL)

_s3_client = None


def get_s3_client():
    # Created on first use so importing the module needs no AWS region
    global _s3_client
    if _s3_client is None:
        _s3_client = boto3.client("s3")
    return _s3_client


def load_targets(raw=None):
    """
    Parses the SWEEP_TARGETS JSON list of {"name", "url"} objects. Entries
    without a url are skipped.
    """
    raw = config.SWEEP_TARGETS if raw is None else raw
    try:
        targets = json.loads(raw or "[]")
    except ValueError:
        logger.error("SWEEP_TARGETS is not valid JSON. Nothing to scan.")
        return []

    if not isinstance(targets, list):
        logger.error("SWEEP_TARGETS must be a JSON list. Nothing to scan.")
        return []

    valid = []
    for target in targets:
        if isinstance(target, dict) and target.get("url"):
            valid.append({"name": target.get("name") or target["url"], "url": target["url"]})
        else:
            logger.warning(f"Skipping malformed sweep target: {target!r}")
    return valid


def perform_check(target):
    """
    Scans one target. A failed scan is recorded on the result; it never
    stops the sweep.
    """
    result = {
        "target_name": target["name"],
        "url": target["url"],
        "scan_status": "FAILED",
        "final_url": None,
        "redirects": None,
        "status_code": None,
        "missing_headers": [],
        "error": None,
        "details": None,
        "check_time": datetime.now(timezone.utc).isoformat(),
    }

    try:
        report = scan_headers(target["url"])
    except ScanError as e:
        result["error"] = e.error
        result["details"] = e.details
    except Exception as e:
        logger.exception(f"Unexpected error scanning {target['url']}")
        result["error"] = f"Unexpected error: {e.__class__.__name__}"
    else:
        final_hop = report.chain[-1]
        result.update(
            {
                "scan_status": "PASSED",
                "final_url": report.final_url,
                "redirects": report.redirects,
                "status_code": final_hop.hop.status,
                "missing_headers": list(final_hop.security_headers.missing),
            }
        )

    logger.info(f"Check result for {target['name']}: {result['scan_status']}")
    return result


def generate_report(results):
    return {
        "scan_timestamp": datetime.now(timezone.utc).isoformat(),
        "total_targets": len(results),
        "results": results,
    }


def upload_to_s3(report_content, bucket=None):
    """
    Uploads the JSON report to the report bucket. Returns False (after
    logging) when the bucket is not configured or S3 rejects the upload.
    """
    bucket = bucket or config.REPORT_BUCKET_NAME
    if not bucket:
        logger.error(
            "REPORT_BUCKET_NAME environment variable is not set. Cannot upload report."
        )
        return False

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    s3_key = f"scan-reports/report-{timestamp}.json"

    try:
        get_s3_client().put_object(
            Bucket=bucket,
            Key=s3_key,
            Body=json.dumps(report_content, indent=2),
            ContentType="application/json",
        )
    except (BotoCoreError, ClientError) as e:
        logger.error(f"Failed to upload report to S3: {e}")
        return False

    logger.info(f"Successfully uploaded report to s3://{bucket}/{s3_key}")
    return True


# --- Lambda Handler Function ---


def lambda_handler(event, context):
    """
    Entry point for the scheduled (EventBridge) headers sweep.
    """
    logger.info("Starting scheduled security headers sweep.")

    targets = load_targets()
    all_results = [perform_check(target) for target in targets]
    final_report = generate_report(all_results)
    upload_success = upload_to_s3(final_report)

    return {
        "statusCode": 200,
        "body": {
            "message": "Security headers sweep completed.",
            "total_checks": len(all_results),
            "failed_checks": sum(1 for r in all_results if r["scan_status"] == "FAILED"),
            "s3_upload_status": "Success" if upload_success else "Failure",
            "bucket": config.REPORT_BUCKET_NAME,
        },
    }
