"""
router.py
---------

Définition des routes HTTP exposées par l'API ``dkan_datastore``. Ce module
contient la validation des requêtes entrantes, l'appel au client du
datastore DKAN et la normalisation des réponses.

La route principale ``/datastore/search`` reçoit les paramètres de
recherche (ressource, filtres, champs, recherche plein texte, tri et nombre
maximal d'enregistrements) via une requête POST, exécute la recherche
paginée et renvoie les enregistrements sous forme JSON.

Les exceptions du client sont traduites en erreurs HTTP cohérentes :
``ConfigurationError`` devient une 400, ``FetchError`` et ``SchemaError``
une 502 puisque c'est le portail en amont qui est en cause.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional

import pandas as pd
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from .datastore_api import DkanDatastoreAPI
from .errors import ConfigurationError, FetchError, SchemaError
from .query_builder import DatastoreQuery

logger = logging.getLogger(__name__)


class SearchRequest(BaseModel):
    """Schéma Pydantic représentant une recherche dans le datastore.

    Attributes
    ----------
    resource_id : str
        Identifiant de la ressource sur le portail. Obligatoire.
    base_url : Optional[str]
        URL de base du portail ; la configuration (``DKAN_BASE_URL``) est
        utilisée si absent.
    filter_fields, filter_values
        Champs de filtre et, pour chacun, la liste des valeurs acceptées.
        Les deux doivent être fournis ensemble.
    fields : Optional[List[str]]
        Colonnes à renvoyer (toutes par défaut).
    query : Optional[List[str]]
        Termes de recherche plein texte.
    sort_field, sort_direction
        Tri optionnel (``asc`` ou ``desc``).
    max_records : Optional[int]
        Nombre maximal d'enregistrements.
    encoding : str
        ``spaces`` (par défaut) ou ``full``.
    """

    resource_id: str = Field(..., min_length=1, description="Identifiant de la ressource")
    base_url: Optional[str] = None
    filter_fields: Optional[List[str]] = None
    filter_values: Optional[List[List[str]]] = None
    fields: Optional[List[str]] = None
    query: Optional[List[str]] = None
    sort_field: Optional[str] = None
    sort_direction: Optional[str] = None
    max_records: Optional[int] = Field(None, ge=0)
    encoding: str = "spaces"


class SearchResponse(BaseModel):
    """Schéma Pydantic décrivant le résultat d'une recherche.

    Attributes
    ----------
    resource_id : str
        La ressource interrogée.
    count : int
        Nombre d'enregistrements renvoyés.
    columns : List[str]
        Colonnes de la table, dans l'ordre de la première page.
    records : List[Dict[str, Any]]
        Les enregistrements ; les valeurs manquantes valent ``null``.
    """

    resource_id: str
    count: int
    columns: List[str]
    records: List[Dict[str, Any]]


def get_client() -> Iterator[DkanDatastoreAPI]:
    """Dépendance FastAPI fournissant un client pour la durée d'une requête."""
    with DkanDatastoreAPI() as client:
        yield client


def _frame_to_records(frame: pd.DataFrame) -> List[Dict[str, Any]]:
    """Convertit une DataFrame en liste de dictionnaires sérialisables en JSON."""
    cleaned = frame.astype(object).where(pd.notna(frame), None)
    return cleaned.to_dict(orient="records")


api_router = APIRouter(prefix="/datastore", tags=["datastore"])


@api_router.post(
    "/search",
    response_model=SearchResponse,
    summary="Rechercher des enregistrements dans une ressource DKAN",
    response_description="Enregistrements correspondant à la recherche",
)
def search_endpoint(
    payload: SearchRequest,
    client: DkanDatastoreAPI = Depends(get_client),
) -> SearchResponse:
    """Point d'entrée HTTP pour une recherche paginée dans le datastore.

    :param payload: paramètres de la recherche
    :param client: client du datastore injecté par FastAPI
    :returns: une instance de :class:`SearchResponse`
    :raises HTTPException: 400 si les paramètres sont incohérents, 502 si le
                          portail est injoignable ou répond de façon inattendue
    """

    try:
        query = DatastoreQuery(
            resource_id=payload.resource_id,
            base_url=payload.base_url or client.base_url,
            filter_fields=payload.filter_fields,
            filter_values=payload.filter_values,
            fields=payload.fields,
            query=payload.query,
            sort_field=payload.sort_field,
            sort_direction=payload.sort_direction,
            max_records=payload.max_records,
        )
        frame = client.search(query, encoding=payload.encoding)
    except ConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except (FetchError, SchemaError) as exc:
        logger.warning("Échec de la recherche sur %s : %s", payload.resource_id, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    return SearchResponse(
        resource_id=payload.resource_id,
        count=len(frame),
        columns=[str(column) for column in frame.columns],
        records=_frame_to_records(frame),
    )
