"""
HTTP routes for the site backend API.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from kitchen_backend.db import Storage, StorageError
from kitchen_backend.dependencies import get_storage
from kitchen_backend.schemas import (
    ContactListResponse,
    ContactPayload,
    ContactResponse,
    ContactSubmissionData,
    ErrorResponse,
    NewsletterData,
    SubscribePayload,
    SubscribeResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

INTERNAL_ERROR_MESSAGE = "Internal server error"


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message).model_dump(),
    )


@router.post("/contact", response_model=ContactResponse, status_code=201)
async def submit_contact(
    payload: ContactPayload, storage: Storage = Depends(get_storage)
):
    try:
        submission = await storage.create_contact_submission(payload)
    except StorageError:
        logger.warning("Contact submission could not be stored")
        return error_response(500, INTERNAL_ERROR_MESSAGE)
    return ContactResponse(
        success=True,
        message="Contact form submitted successfully",
        data=ContactSubmissionData(**submission.as_dict()),
    )


@router.post(
    "/subscribe",
    response_model=SubscribeResponse,
    response_model_exclude_unset=True,
    status_code=201,
)
async def subscribe(
    payload: SubscribePayload,
    response: Response,
    storage: Storage = Depends(get_storage),
):
    """
    Subscribe an email to the newsletter.

    The duplicate check and the insert are separate operations, so two
    concurrent requests for the same new email can both reach the insert.
    """
    if not payload.email:
        return error_response(400, "Email is required")

    if await storage.is_email_subscribed(payload.email):
        response.status_code = 200
        return SubscribeResponse(success=True, message="Email is already subscribed")

    try:
        subscription = await storage.subscribe_to_newsletter(payload)
    except StorageError:
        logger.warning("Newsletter subscription could not be stored")
        return error_response(500, INTERNAL_ERROR_MESSAGE)
    return SubscribeResponse(
        success=True,
        message="Subscribed to newsletter successfully",
        data=NewsletterData(**subscription.as_dict()),
    )


@router.get("/admin/contacts", response_model=ContactListResponse)
async def list_contacts(storage: Storage = Depends(get_storage)):
    submissions = await storage.get_all_contact_submissions()
    return ContactListResponse(
        success=True,
        data=[ContactSubmissionData(**s.as_dict()) for s in submissions],
    )

