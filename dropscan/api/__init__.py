"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from dropscan.api import app

    uvicorn dropscan.api:app --reload
"""

from dropscan.api.app import app
