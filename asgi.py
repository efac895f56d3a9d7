"""
asgi.py -- Application assembly for imagegate.

Joins the JSON API with the static route that serves stored image blobs.
api/main.py knows nothing about where blob bytes are served from; only this
file ties LocalBlobStore's root directory to its public base URL.

Run with:  uvicorn asgi:app --reload
"""

from fastapi.staticfiles import StaticFiles

from api.main import app
from core.config import get_settings

_settings = get_settings()

# check_dir=False: the lifespan creates the directory on first startup.
app.mount(_settings.blob_base_url, StaticFiles(directory=_settings.blob_root, check_dir=False), name="blobs")
