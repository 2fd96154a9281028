"""FastAPI frontend for the service-case intake pipeline."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from fastapi import FastAPI, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response

from caseintake.intake import IntakeService
from caseintake.utils.config import Config
from caseintake.utils.errors import (
    DeliveryError,
    ImageNotFoundError,
    IntakeError,
    MalformedPayloadError,
    ValidationError,
    status_code_for,
)
from caseintake.utils.logging import setup_logging

APP_TITLE = "Service Case Intake"

logger = logging.getLogger(__name__)

# Form field names accepted by /api/intake, snake_case and camelCase alike
CASE_FIELDS = (
    "first_name", "last_name", "phone", "email", "address", "city", "state",
    "zip_code", "service_type", "description", "insurance_company",
    "policy_number", "claim_number",
    "firstName", "lastName", "zipCode", "serviceType", "insuranceCompany",
    "policyNumber", "claimNumber",
)

ERROR_TITLES = {
    ValidationError: "Missing required data",
    ImageNotFoundError: "Image not found",
    MalformedPayloadError: "Failed to download image",
    DeliveryError: "Failed to send notification email",
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error_title(exc: IntakeError) -> str:
    if isinstance(exc, ValidationError) and "missing_fields" not in exc.details:
        return "Invalid request data"
    for error_cls, title in ERROR_TITLES.items():
        if isinstance(exc, error_cls):
            return title
    return "Internal server error"


def _service(request: Request) -> IntakeService:
    return request.app.state.service


def _config(request: Request) -> Config:
    return request.app.state.service.config


def _download_url(request: Request, key: str) -> str:
    base = _config(request).server.public_base_url or str(request.base_url)
    return f"{base.rstrip('/')}/api/download-image/{key}"


async def _read_json(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be JSON.")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object.")
    return body


async def _read_photo(file: UploadFile, max_bytes: int) -> Tuple[str, bytes, Optional[str]]:
    data = await file.read()
    filename = file.filename or "upload"
    if len(data) > max_bytes:
        raise HTTPException(
            status_code=400,
            detail=f"{filename} exceeds the per-file limit of {max_bytes // (1024 * 1024)} MB.",
        )
    return filename, data, file.content_type


def _link_payload(request: Request, links: List[Any]) -> List[Dict[str, Any]]:
    return [
        {"downloadUrl": _download_url(request, link.key), "name": link.name, "size": link.size}
        for link in links
    ]


def create_app(
    config: Optional[Config] = None,
    service: Optional[IntakeService] = None,
    configure_logging: bool = False
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Loaded configuration; read from config.yaml when omitted
        service: Pre-built IntakeService (tests inject one with an
            in-memory store and a fake delivery channel)
        configure_logging: Install the root logging handlers

    Returns:
        FastAPI application with the service on ``app.state.service``
    """
    if service is None:
        config = config or Config.load()
        service = IntakeService(config)
    config = service.config

    if configure_logging:
        setup_logging(
            level=config.logging.level,
            log_format=config.logging.format,
            log_file=config.logging.file or None,
        )

    app = FastAPI(title=APP_TITLE)
    app.state.service = service

    @app.exception_handler(IntakeError)
    async def intake_error_handler(request: Request, exc: IntakeError) -> JSONResponse:
        status_code = status_code_for(exc)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.to_dict()}")
        else:
            logger.warning(f"{request.method} {request.url.path} rejected: {exc}")
        content: Dict[str, Any] = {"error": _error_title(exc)}
        if not isinstance(exc, ImageNotFoundError):
            content["details"] = exc.message
            content["timestamp"] = _now_iso()
        if isinstance(exc, ValidationError):
            content["missingFields"] = exc.details.get("missing_fields", [])
        if isinstance(exc, (ValidationError, DeliveryError)):
            content["message"] = "Your request was not recorded. Please try again."
        return JSONResponse(content, status_code=status_code)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        error = IntakeError.unexpected(exc)
        logger.error(f"{request.method} {request.url.path} crashed: {error.to_dict()}", exc_info=exc)
        return JSONResponse(
            {"error": "Internal server error", "timestamp": _now_iso()},
            status_code=status_code_for(error),
        )

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/case-id")
    async def new_case_id(request: Request) -> JSONResponse:
        return JSONResponse({"caseId": _service(request).new_case_id()})

    @app.post("/api/store-images")
    async def store_images(request: Request) -> JSONResponse:
        body = await _read_json(request)
        images = body.get("images")
        case_id = body.get("caseId")
        if not images or not case_id:
            return JSONResponse({"error": "Missing required data"}, status_code=400)
        links = _service(request).store_images(str(case_id), images)
        return JSONResponse({
            "success": True,
            "imageUrls": _link_payload(request, links),
            "message": f"{len(links)} images stored successfully",
        })

    @app.get("/api/download-image/{image_id}")
    async def download_image(image_id: str, request: Request) -> Response:
        download = _service(request).fetch_image(image_id)
        return Response(content=download.content, headers=download.headers)

    @app.post("/api/send-notification")
    async def send_notification(request: Request, test: bool = False) -> JSONResponse:
        service = _service(request)
        if test:
            logger.info("Test mode: sending canned notification")
            receipt = await run_in_threadpool(service.send_test)
            return JSONResponse({"success": True, "messageId": receipt.message_id, "test": True})

        body = await _read_json(request)
        customer_data = body.get("customerData")
        case_id = body.get("caseId")
        if not customer_data or not case_id:
            return JSONResponse({"error": "Missing required data"}, status_code=400)
        if not isinstance(customer_data, dict):
            return JSONResponse({"error": "customerData must be an object"}, status_code=400)

        images = body.get("images")
        if images is None:
            images = []
        elif not isinstance(images, list):
            raise ValidationError.invalid_image(None, "expected a list of objects")
        declared = body.get("imageCount")
        if declared is not None and declared != len(images):
            logger.warning(f"Case {case_id}: imageCount={declared} but {len(images)} image(s) sent")

        receipt = await run_in_threadpool(service.notify, customer_data, str(case_id), images)
        return JSONResponse({
            "success": True,
            "messageId": receipt.message_id,
            "timestamp": receipt.sent_at.isoformat(),
            "recipient": ", ".join(receipt.recipients),
        })

    @app.post("/api/intake")
    async def submit_case(request: Request) -> JSONResponse:
        service = _service(request)
        form = await request.form()
        record = {key: form.get(key) for key in CASE_FIELDS if form.get(key) is not None}
        case_id = form.get("case_id") or form.get("caseId")

        max_bytes = service.config.storage.max_file_size_mb * 1024 * 1024
        files = []
        for item in form.getlist("photos"):
            if isinstance(item, str):
                continue
            files.append(await _read_photo(item, max_bytes))

        result = await run_in_threadpool(service.submit, record, files, case_id)
        return JSONResponse({
            "success": True,
            "caseId": result.case_id,
            "messageId": result.receipt.message_id,
            "imageCount": result.image_count,
            "skipped": result.skipped,
            "imageUrls": _link_payload(request, result.links),
        })

    return app


app = create_app(configure_logging=True)
