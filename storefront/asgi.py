"""
ASGI entrypoint: expose `app` pour les process managers / déploiements
(ex: gunicorn -k uvicorn.workers.UvicornWorker storefront.asgi:app).
"""

from storefront.app import app

__all__ = ["app"]
