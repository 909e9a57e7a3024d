from fastapi import APIRouter, status

from database import check_database
from responses import api_response

router = APIRouter()


@router.get("/")
def root():
    return {"message": "UniConnect API is running"}


@router.get("/health")
def health_check():
    return {"status": "healthy"}


@router.get("/health/db")
def database_health():
    if not check_database():
        return api_response(status.HTTP_503_SERVICE_UNAVAILABLE, {"database": "unreachable"}, "Database is unreachable")
    return api_response(status.HTTP_200_OK, {"database": "connected"}, "Database is reachable")
