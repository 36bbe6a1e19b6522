"""Ligne de commande du viewer FHIR.

Lit le patient en contexte puis affiche un type de ressource sous forme de
cartes (ou en JSON brut).

Usage:
    # Allergies du patient configuré (FHIR_PATIENT_ID)
    fhir-viewer allergies

    # Prescriptions d'un patient donné, toutes les pages
    fhir-viewer medication-requests --patient smart-1288992 --paginate

    # Serveur protégé, sortie JSON
    fhir-viewer immunizations --base-url https://fhir.example.org/r4 --token <token> --json

Variables d'environnement: FHIR_BASE_URL, FHIR_ACCESS_TOKEN, FHIR_PATIENT_ID,
FHIR_TIMEOUT, LOG_LEVEL.
"""

import argparse
import asyncio
import logging
import sys

from fhir_viewer import __version__
from fhir_viewer.core.config import settings
from fhir_viewer.core.exceptions import ClassifiedError
from fhir_viewer.core.retry import RetryEvent, RetryEventChannel
from fhir_viewer.infrastructure.fhir.auth import SMARTSession
from fhir_viewer.infrastructure.fhir.client import FHIRClient
from fhir_viewer.infrastructure.fhir.config import fhir_settings
from fhir_viewer.presentation import (
    render_collection,
    render_error,
    render_json,
    render_patient_banner,
)
from fhir_viewer.schemas.options import FetchOptions
from fhir_viewer.services.patient_context import format_patient_display, get_patient_context
from fhir_viewer.services.resource_service import ResourceType
from fhir_viewer.services.viewer_session import ViewerSession

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fhir-viewer",
        description="Affiche les données cliniques d'un patient depuis un serveur FHIR R4",
    )
    parser.add_argument(
        "resource_type",
        choices=[resource_type.value for resource_type in ResourceType],
        help="Type de ressource à afficher",
    )
    parser.add_argument(
        "--patient",
        default=None,
        help="Identifiant du patient (défaut: FHIR_PATIENT_ID)",
    )
    parser.add_argument(
        "--base-url",
        default=None,
        help="URL de base du serveur FHIR (défaut: FHIR_BASE_URL)",
    )
    parser.add_argument(
        "--token",
        default=None,
        help="Jeton d'accès SMART (défaut: FHIR_ACCESS_TOKEN, aucun = serveur ouvert)",
    )
    parser.add_argument(
        "--status",
        default=None,
        help="Filtre sur le statut des ressources (ex: active)",
    )
    parser.add_argument(
        "--paginate",
        action="store_true",
        help="Suit les liens 'next' des Bundles",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Affiche la collection en JSON brut",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def build_client(args: argparse.Namespace) -> FHIRClient:
    """Crée le client FHIR, authentifié si un jeton est disponible."""
    base_url = args.base_url or str(fhir_settings.FHIR_BASE_URL)
    token = args.token or fhir_settings.FHIR_ACCESS_TOKEN
    session = None
    if token:
        session = SMARTSession(
            access_token=token,
            scope=fhir_settings.FHIR_SCOPE,
            patient_id=args.patient or fhir_settings.FHIR_PATIENT_ID,
            server_url=base_url,
        )
    return FHIRClient(base_url=base_url, session=session, timeout=fhir_settings.FHIR_TIMEOUT)


def _print_retry(event: RetryEvent) -> None:
    print(event.message, file=sys.stderr)


async def run(args: argparse.Namespace) -> int:
    """Exécute une consultation et retourne le code de sortie."""
    events = RetryEventChannel()
    events.subscribe(_print_retry)
    options = FetchOptions(status=args.status)

    async with build_client(args) as client:
        try:
            patient = await get_patient_context(
                client, args.patient or fhir_settings.FHIR_PATIENT_ID
            )
            banner = format_patient_display(patient.resource)
            session = ViewerSession(
                client, patient, options=options, events=events, paginate=args.paginate
            )
            result = await session.select(args.resource_type)
        except ClassifiedError as e:
            print(render_json(e) if args.json else render_error(e), file=sys.stderr)
            return 1

    if args.json:
        print(render_json(result.collection))
        return 0

    if banner is not None:
        print(render_patient_banner(banner))
        print()
    print(render_collection(result.collection))
    if result.collection.dropped:
        print(f"\n{result.collection.dropped} invalid record(s) not shown", file=sys.stderr)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Point d'entrée de la commande ``fhir-viewer``."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=settings.LOG_LEVEL, format=settings.LOG_FORMAT)
    logger.debug(f"FHIR server: {args.base_url or fhir_settings.FHIR_BASE_URL}")
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
