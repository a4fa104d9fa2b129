from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from dotenv import load_dotenv

# Load Environment Variables
load_dotenv()

from app.core.config import Settings, get_settings
from app.core.errors import DarbarError, darbar_error_handler
from app.core.logging_config import setup_logging

# Import Routers
from app.api.v1.endpoints import admin, admin_requests, auth, bookings, events

setup_logging(get_settings().log_level)

app = FastAPI(
    title="Darbar Platform",
    description="Events, service bookings and admin access for the Gurudwara website"
)

# --- 1. SECURITY & MIDDLEWARE ---

# CORS: Allow frontend access (Adjust origins for production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Responses are JSON only; nothing here should ever be framed or sniffed
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        return response

app.add_middleware(SecurityHeadersMiddleware)

app.add_exception_handler(DarbarError, darbar_error_handler)

# --- 2. API ROUTES ---
app.include_router(auth.router, prefix="/api/v1/auth", tags=["Auth"])
app.include_router(admin_requests.router, prefix="/api/v1/admin-requests", tags=["Admin Requests"])
app.include_router(events.router, prefix="/api/v1/events", tags=["Events"])
app.include_router(bookings.router, prefix="/api/v1/bookings", tags=["Bookings"])
app.include_router(admin.router, prefix="/api/v1/admin", tags=["Admin"])

# Serve Frontend Config Dynamically
@app.get("/api/v1/config")
async def get_frontend_config(settings: Settings = Depends(get_settings)):
    """Returns public Firebase config from environment variables."""
    return settings.public_client_config()

@app.get("/health")
async def health():
    return {"status": "online"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
