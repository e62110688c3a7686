import uvicorn

from schoollib.core.config import settings


if __name__ == "__main__":
    uvicorn.run(
        "schoollib.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=not settings.is_production,
    )
