"""
Lancement local de l'API boutique: python -m storefront

- PORT: port d'écoute (8000 par défaut)
- UVICORN_RELOAD=1: rechargement automatique en développement
Le niveau de logs suit LOG_LEVEL (storefront.config).
"""
import os

import uvicorn

from storefront.config import LOG_LEVEL


def main() -> None:
    uvicorn.run(
        "storefront.asgi:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", 8000)),
        reload=os.environ.get("UVICORN_RELOAD", "").lower() in ("1", "true", "yes"),
        log_level=LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
