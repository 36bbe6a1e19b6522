import json
from typing import Literal, TypeAlias

from pydantic import field_validator
from pydantic_settings import BaseSettings

from fhir_viewer import __version__

# Listes acceptées sous forme JSON, CSV ou liste Python
ConfigurableList: TypeAlias = str | list[str]
ConfigurableIntList: TypeAlias = str | list[int]


def parse_list_from_env(value: ConfigurableList | list[int], field_name: str = "field") -> list:
    """
    Convertit une valeur d'environnement en liste.

    ``'[408, 503]'`` est lu comme du JSON, ``"408, 503"`` est découpé sur les
    virgules (éléments vides ignorés) et une liste est renvoyée telle quelle.

    Raises:
        ValueError: JSON mal formé ou type non supporté
    """
    if isinstance(value, list | tuple | set | frozenset):
        return list(value)
    if not isinstance(value, str):
        raise ValueError(f"Valeur invalide pour {field_name}: {value!r}")

    text = value.strip()
    if text.startswith("["):
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"JSON invalide pour {field_name}: {text}") from e
        if not isinstance(parsed, list):
            raise ValueError(f"{field_name} doit être une liste JSON")
        return parsed
    return [item.strip() for item in text.split(",") if item.strip()]


class Settings(BaseSettings):
    PROJECT_NAME: str = "fhir-viewer"
    VERSION: str = __version__
    DESCRIPTION: str = "SMART on FHIR clinical data viewer"

    # Environnement
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = "development"
    DEBUG: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(levelname)s - %(message)s"

    # Requêtes de recherche FHIR
    DEFAULT_SORT_ORDER: str = "-date"
    DEFAULT_MAX_RESULTS: int = 1000
    # Les serveurs FHIR limitent généralement à 100 résultats par page
    MAX_PAGE_SIZE: int = 100
    DEFAULT_MAX_PAGES: int = 10

    # Retry avec backoff exponentiel (récupération des ressources)
    RETRY_MAX_RETRIES: int = 3
    RETRY_BASE_DELAY_MS: int = 1000
    RETRY_BACKOFF_MULTIPLIER: float = 2.0
    # Définir dans .env, ex: RETRYABLE_STATUS_CODES='[408,429,500,502,503,504]'
    RETRYABLE_STATUS_CODES: ConfigurableIntList = [408, 429, 500, 502, 503, 504]

    @field_validator("RETRYABLE_STATUS_CODES", mode="before")
    @classmethod
    def assemble_retryable_status_codes(cls, v: ConfigurableIntList) -> list[int]:
        """
        Permet de définir RETRYABLE_STATUS_CODES de plusieurs façons:
        - Chaîne séparée par des virgules: "408,429,503"
        - Format JSON: '[408, 429, 503]'
        - Liste Python directe (si déjà parsée)
        """
        try:
            return [int(code) for code in parse_list_from_env(v, "RETRYABLE_STATUS_CODES")]
        except (TypeError, ValueError) as e:
            raise ValueError(f"Codes HTTP invalides pour RETRYABLE_STATUS_CODES: {v}") from e

    model_config = {
        "case_sensitive": True,
        "env_file": ".env",
        "extra": "ignore",  # Ignorer les variables d'environnement non définies
    }


# Instance unique des paramètres chargée depuis .env
settings = Settings()
