"""
FastAPI task backend package.

The application instance lives in task_api.main (``uvicorn task_api.main:app``).
"""
