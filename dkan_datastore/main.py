"""
main.py
---------

Point d'entrée pour l'API REST du projet ``dkan_datastore``.
Ce module instancie une application FastAPI, configure la journalisation
et les métadonnées de documentation, puis branche les routes définies dans
``router.py``.

À l'exécution, vous pouvez démarrer l'API avec ``uvicorn`` ou tout
autre serveur ASGI :

    uvicorn dkan_datastore.main:app --reload

Le module ne contient volontairement aucune logique métier : il se
contente de déclarer l'application et de brancher les composants.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI

from . import __version__
from .config import Settings, get_settings
from .errors import ConfigurationError
from .router import api_router

LOG_FORMAT = "[%(asctime)s] %(levelname)s in %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Installe un handler console sur le logger du paquet, une seule fois."""
    package_logger = logging.getLogger("dkan_datastore")
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))
        package_logger.addHandler(handler)
    try:
        package_logger.setLevel(level)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"unknown logging level {level!r}") from exc
    return package_logger


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Crée et configure l'application FastAPI.

    Cette fonction est isolée afin de faciliter les tests unitaires.

    :param settings: configuration à utiliser ; lue depuis l'environnement
                     si absente.
    :returns: une instance de :class:`~fastapi.FastAPI` prête à être
              servie.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="DKAN Datastore API",
        description=(
            "API REST pour interroger le datastore d'un portail de données "
            "ouvertes DKAN (filtres, sélection de colonnes, recherche plein "
            "texte, tri) et récupérer l'ensemble des enregistrements paginés."
        ),
        version=__version__,
    )

    app.include_router(api_router)

    @app.get("/", summary="Racine de l'API", tags=["root"])
    def root() -> dict[str, str]:
        """Route racine très simple, utilisable comme test de disponibilité.

        :returns: un dictionnaire avec un message de bienvenue.
        """

        return {
            "message": (
                "Bienvenue sur l'API DKAN Datastore. Utilisez la route POST "
                "/datastore/search pour interroger une ressource."
            ),
            "base_url": settings.base_url,
        }

    return app


# Instance globale de l'application, importée par les serveurs ASGI
app = create_app()


if __name__ == "__main__":  # pragma: no cover
    # Permet de lancer l'application avec ``python -m dkan_datastore.main``
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
