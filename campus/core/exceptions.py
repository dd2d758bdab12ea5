"""API error types and the project-wide DRF exception handler"""
import logging

from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger('campus.core')


class CampusAPIException(APIException):
    """Base class for errors that carry a message meant for the API client"""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'An error occurred.'
    default_code = 'error'

    def __init__(self, detail=None, code=None, status_code=None):
        super().__init__(detail=detail, code=code)
        if status_code is not None:
            self.status_code = status_code


class BusinessRuleViolation(CampusAPIException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = 'The operation is not allowed in the current state.'
    default_code = 'business_rule'


class OrganizationRequired(CampusAPIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'User is not attached to an organization.'
    default_code = 'organization_required'


class OcrError(CampusAPIException):
    """OCR failures. Codes: OCR_001 empty text, OCR_002 PDF conversion,
    OCR_003 invalid upload, OCR_004 unsupported engine, OCR_005 retries exhausted."""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = 'OCR processing failed.'
    default_code = 'OCR_005'


class MatchingError(CampusAPIException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = 'Unable to match or create the record.'
    default_code = 'CLIENT_001'


def api_exception_handler(exc, context):
    """
    Wrap DRF's handler so every error body has the same shape.

    - validation errors: field errors, status 422
    - known API errors: {'error': message, 'code': code}
    - anything else: {'error': str(exc)}, status 500
    """
    response = exception_handler(exc, context)

    if response is not None:
        if isinstance(exc, ValidationError):
            response.status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
            return response
        if isinstance(exc, CampusAPIException):
            response.data = {
                'error': str(exc.detail),
                'code': getattr(exc.detail, 'code', exc.default_code),
            }
        elif isinstance(response.data, dict) and 'detail' in response.data:
            response.data = {'error': str(response.data['detail'])}
        return response

    request = context.get('request')
    path = request.path if request is not None else '?'
    logger.exception(f"Unhandled error on {path}: {exc}")
    return Response({'error': str(exc)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
