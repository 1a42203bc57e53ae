"""
storefront/config.py - Application configuration and Firebase initialization.

This module defines a Pydantic BaseSettings class to load configuration from environment,
and lazily initializes the Firebase Admin SDK (Firestore DB) using the provided credentials.
All other modules can import from config to access `settings` and `get_db()` (Firestore client).
"""
import logging
from functools import lru_cache
from typing import Optional

import firebase_admin
from firebase_admin import credentials, firestore
from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger("storefront.config")


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""
    firebase_cred_file: str = Field('firebase_service_account.json', env='FIREBASE_CRED_FILE')
    firebase_project_id: Optional[str] = Field(None, env='FIREBASE_PROJECT_ID')

    # Firebase credentials from environment variables (for Cloud Run)
    firebase_private_key_id: Optional[str] = Field(None, env='FIREBASE_PRIVATE_KEY_ID')
    firebase_private_key: Optional[str] = Field(None, env='FIREBASE_PRIVATE_KEY')
    firebase_client_email: Optional[str] = Field(None, env='FIREBASE_CLIENT_EMAIL')
    firebase_client_id: Optional[str] = Field(None, env='FIREBASE_CLIENT_ID')
    firebase_auth_uri: Optional[str] = Field(None, env='FIREBASE_AUTH_URI')
    firebase_token_uri: Optional[str] = Field(None, env='FIREBASE_TOKEN_URI')
    firebase_auth_provider_x509_cert_url: Optional[str] = Field(None, env='FIREBASE_AUTH_PROVIDER_X509_CERT_URL')
    firebase_client_x509_cert_url: Optional[str] = Field(None, env='FIREBASE_CLIENT_X509_CERT_URL')

    # Prepended to every collection name (e.g. "staging_")
    firebase_collection_prefix: str = Field('', env='FIREBASE_COLLECTION_PREFIX')
    carts_collection: str = Field('carts', env='CARTS_COLLECTION')
    products_collection: str = Field('products', env='PRODUCTS_COLLECTION')

    debug: bool = Field(False, env='DEBUG')
    log_level: str = Field('INFO', env='LOG_LEVEL')
    allowed_origins: str = Field('*', env='ALLOWED_ORIGINS')  # Comma-separated list or '*' for all
    # Accept "mock_jwt_token_<uid>" bearer tokens (local development only)
    allow_mock_tokens: bool = Field(False, env='ALLOW_MOCK_TOKENS')

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"

    def collection_name(self, name: str) -> str:
        prefix = (self.firebase_collection_prefix or "").strip()
        return f"{prefix}{name}" if prefix else name


# Load settings from environment (.env file, etc.)
settings = Settings()


def _credential():
    # Check if we have environment variables for Firebase credentials (Cloud Run)
    if all([
        settings.firebase_private_key_id,
        settings.firebase_private_key,
        settings.firebase_client_email,
        settings.firebase_client_id,
        settings.firebase_auth_uri,
        settings.firebase_token_uri,
        settings.firebase_auth_provider_x509_cert_url,
        settings.firebase_client_x509_cert_url
    ]):
        cred_dict = {
            "type": "service_account",
            "project_id": settings.firebase_project_id,
            "private_key_id": settings.firebase_private_key_id,
            "private_key": settings.firebase_private_key,
            "client_email": settings.firebase_client_email,
            "client_id": settings.firebase_client_id,
            "auth_uri": settings.firebase_auth_uri,
            "token_uri": settings.firebase_token_uri,
            "auth_provider_x509_cert_url": settings.firebase_auth_provider_x509_cert_url,
            "client_x509_cert_url": settings.firebase_client_x509_cert_url
        }
        return credentials.Certificate(cred_dict)
    # Use service account file (local development)
    return credentials.Certificate(settings.firebase_cred_file)


def init_firebase() -> firebase_admin.App:
    """Initialize the default Firebase app once; later calls return the existing app."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass
    options = {'projectId': settings.firebase_project_id} if settings.firebase_project_id else None
    try:
        app = firebase_admin.initialize_app(_credential(), options)
    except ValueError as e:
        if "already exists" in str(e):
            # Initialized concurrently by another thread
            return firebase_admin.get_app()
        raise
    logger.info("Firebase app initialized (project=%s)", settings.firebase_project_id or "<from credentials>")
    return app


@lru_cache
def get_db():
    """Firestore database client, created on first use."""
    init_firebase()
    return firestore.client()
