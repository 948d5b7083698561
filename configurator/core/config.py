import os
from dotenv import load_dotenv

# Carrega o .env da raiz do projeto
load_dotenv()

ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_PROD = ENV_NORMALIZED in {"prod", "production"}
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./configurator.db")

# Catálogo remoto (produtos / grupos / opções)
CATALOG_BACKEND = os.getenv("CATALOG_BACKEND", "http").strip().lower()
if CATALOG_BACKEND not in {"http", "sql"}:
    CATALOG_BACKEND = "http"
CATALOG_BASE_URL = os.getenv("CATALOG_BASE_URL", "http://localhost:8080/api").strip().rstrip("/")
CATALOG_TIMEOUT_SECONDS = float(os.getenv("CATALOG_TIMEOUT_SECONDS", "10"))
CATALOG_RETRIES = int(os.getenv("CATALOG_RETRIES", "3"))

# Serviço de itens de pedido
ORDER_SERVICE_BASE_URL = os.getenv("ORDER_SERVICE_BASE_URL", CATALOG_BASE_URL).strip().rstrip("/")

MAX_ITEM_QUANTITY = int(os.getenv("MAX_ITEM_QUANTITY", "50"))

# Sessões sem acesso por mais que isso são descartadas do registro
SESSION_TTL_SECONDS = float(os.getenv("SESSION_TTL_SECONDS", "1800"))

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:4200",
        "http://127.0.0.1:4200",
    ]
