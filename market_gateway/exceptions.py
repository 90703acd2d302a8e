"""
Custom exceptions and error handlers
"""

from fastapi import HTTPException, status


class BadRequestError(HTTPException):
    """Required request parameter missing or invalid.

    Raised before any provider is contacted; kept apart from the upstream
    error taxonomy.
    """

    code = "BAD_REQUEST"

    def __init__(self, detail: str = "Missing required parameters"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
