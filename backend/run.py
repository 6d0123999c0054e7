"""Development entry point: serve the API with uvicorn.

Usage: python run.py  (from the `backend/` directory)
"""

import os

from coursemanager.config import settings

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "coursemanager.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=settings.ENV == "dev",
        log_level=settings.LOG_LEVEL.lower(),
    )
