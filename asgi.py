"""
asgi.py -- Entry point that serves the JSON API and the HTML pages together.

api/main.py builds the FastAPI app (lifespan, error envelope, /subscriptions,
/newsletters, /health_check). web/routes.py owns the pages (/ and /login).
Neither package imports the other; they meet here and share app.state, so the
login form checks passwords against the same UserStore and signs errors with
the same RedirectSigner the lifespan created.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app
from web.routes import router as web_router

app.include_router(web_router, tags=["Pages"])
