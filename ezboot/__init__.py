"""Top-level package for the ezboot storefront bootstrap service."""

__all__ = [
    "APP_ENV",
    "__version__",
]

from dotenv import load_dotenv
import os
load_dotenv()

__version__ = "0.1.0"

APP_ENV = os.getenv("APP_ENV", "production")
