"""Options de requête pour la récupération des ressources FHIR."""

from pydantic import BaseModel, ConfigDict, Field

from fhir_viewer.core.config import settings


class FetchOptions(BaseModel):
    """
    Paramètres d'une recherche FHIR par patient.

    ``include_references`` à None applique les références par défaut du type
    de ressource; un tuple vide désactive la résolution.
    """

    model_config = ConfigDict(frozen=True)

    include_references: tuple[str, ...] | None = None
    max_results: int = Field(default_factory=lambda: settings.DEFAULT_MAX_RESULTS, gt=0)
    sort_order: str = Field(default_factory=lambda: settings.DEFAULT_SORT_ORDER)
    status: str | None = None
    max_pages: int = Field(default_factory=lambda: settings.DEFAULT_MAX_PAGES, gt=0)

    @property
    def page_size(self) -> int:
        """Taille de page demandée (``_count``), plafonnée par le serveur."""
        return min(self.max_results, settings.MAX_PAGE_SIZE)
