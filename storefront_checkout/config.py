"""
Configuration management for the checkout client.
Loads settings from environment variables and AWS Secrets Manager.
"""
import os
import json
import logging
from decimal import Decimal
from typing import Optional

import boto3

logger = logging.getLogger(__name__)


class Config:
    """Application configuration"""

    # Application settings
    APP_PORT: int = int(os.getenv("APP_PORT", "8000"))
    REGION: str = os.getenv("REGION", "ap-southeast-2")

    # Backend settings
    API_BASE_URL: str = os.getenv("API_BASE_URL", "http://localhost:8080").rstrip("/")
    FRONTEND_KEY: Optional[str] = (os.getenv("FRONTEND_KEY") or "").strip() or None
    FRONTEND_KEY_SECRET_NAME: Optional[str] = os.getenv("FRONTEND_KEY_SECRET_NAME")

    SHOW_CART_PATH: str = os.getenv("SHOW_CART_PATH", "/api/show-cart/")
    ADD_CART_PATH: str = os.getenv("ADD_CART_PATH", "/api/save-cart/")
    DELETE_CART_ITEM_PATH: str = os.getenv("DELETE_CART_ITEM_PATH", "/api/delete-cart-item/")
    SAVE_ORDER_PATH: str = os.getenv("SAVE_ORDER_PATH", "/api/save-order/")

    # HTTP settings
    HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))
    FETCH_MAX_RETRIES: int = int(os.getenv("FETCH_MAX_RETRIES", "3"))
    FETCH_INITIAL_BACKOFF: float = 0.1
    FETCH_MAX_BACKOFF: float = 2.0

    # Checkout settings (fixed amounts, not computed)
    TAX_AMOUNT: Decimal = Decimal(os.getenv("TAX_AMOUNT", "50"))
    SHIPPING_AMOUNT: Decimal = Decimal(os.getenv("SHIPPING_AMOUNT", "100"))
    ORDER_NOTES: str = os.getenv("ORDER_NOTES", "Order from checkout page")
    DEFAULT_PRODUCT_IMAGE: str = os.getenv("DEFAULT_PRODUCT_IMAGE", "/images/default.jpg")
    REMOVAL_POLICY: str = os.getenv("REMOVAL_POLICY", "no-rollback")
    MAX_SESSIONS: int = int(os.getenv("MAX_SESSIONS", "1000"))

    # Device identity settings
    DEVICE_ID_KEY: str = os.getenv("DEVICE_ID_KEY", "cart_user_id")
    DEVICE_STORE: str = os.getenv("DEVICE_STORE", "file")
    DEVICE_PROFILE_PATH: str = os.getenv(
        "DEVICE_PROFILE_PATH",
        os.path.join(os.path.expanduser("~"), ".storefront", "profile.json")
    )

    # Redis settings (device store)
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_AUTH_TOKEN: Optional[str] = os.getenv("REDIS_AUTH_TOKEN")
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    REDIS_SSL: bool = os.getenv("REDIS_SSL", "false").lower() == "true"

    # Redis connection settings
    REDIS_SOCKET_CONNECT_TIMEOUT: int = 5
    REDIS_SOCKET_TIMEOUT: int = 5
    REDIS_RETRY_ON_TIMEOUT: bool = True
    REDIS_MAX_CONNECTIONS: int = 10

    @classmethod
    def load_frontend_key(cls) -> None:
        """Load the frontend API key from AWS Secrets Manager"""
        if cls.FRONTEND_KEY:
            return  # Already loaded from environment

        if not cls.FRONTEND_KEY_SECRET_NAME:
            return  # No secret name provided, requests go out without a key

        try:
            client = boto3.client("secretsmanager", region_name=cls.REGION)
            response = client.get_secret_value(SecretId=cls.FRONTEND_KEY_SECRET_NAME)
            secret_data = json.loads(response["SecretString"])

            cls.FRONTEND_KEY = (secret_data.get("frontend_key") or "").strip() or None
            if "api_base_url" in secret_data:
                cls.API_BASE_URL = secret_data["api_base_url"].rstrip("/")
        except Exception as e:
            logger.warning(f"Could not load frontend key from Secrets Manager: {e}")
            # Continue without a key (backend will answer 401)

# Load secrets at module import
Config.load_frontend_key()
