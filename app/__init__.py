"""Top-level package for the movie catalog FastAPI application."""

__all__ = [
    "APP_ENV",
    "SUPABASE_URL",
    "SUPABASE_KEY",
    "VERSION",
]

from dotenv import load_dotenv
import os
load_dotenv()

VERSION = "1.0.0"

# Environment variables
SUPABASE_URL = os.environ.get("SUPABASE_URL")
SUPABASE_KEY = os.environ.get("SUPABASE_KEY")

if not SUPABASE_URL or not SUPABASE_KEY:
    raise RuntimeError("Supabase env vars not configured")

APP_ENV = os.getenv("APP_ENV", "development")
