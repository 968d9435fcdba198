import uvicorn

from retail_ledger.core.config import settings

if __name__ == '__main__':
    print(f"Server running at: http://{settings.HOST}:{settings.PORT}")
    uvicorn.run(
        "retail_ledger.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.APP_ENV == "local",
    )
