"""FastAPI router modules."""

from . import admin, auth, dashboard, documents, tenders, uploads

ROUTERS = [
    auth.router,
    tenders.router,
    documents.router,
    uploads.router,
    dashboard.router,
    admin.router,
]
