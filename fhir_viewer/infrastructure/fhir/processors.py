"""Unwrap FHIR search responses into flat lists of resources.

A response may be a searchset Bundle, a bare list of resources, a single resource,
or empty. Anything unexpected degrades to an empty list: a patient without
resources of a given type is not an error.
"""

import logging
from typing import Any

logger = logging.getLogger(__name__)


def process_response(raw_response: Any, expected_type: str) -> list[dict[str, Any]]:
    """Extract the resources of ``expected_type`` from a FHIR response.

    Args:
        raw_response: Decoded JSON returned by the transport
        expected_type: FHIR resource type to keep (e.g. "AllergyIntolerance")

    Returns:
        Resources of the expected type, in server order

    Example:
        ```python
        process_response({"resourceType": "Bundle", "entry": []}, "Immunization")  # []
        ```
    """
    if not raw_response:
        return []

    if isinstance(raw_response, list):
        candidates = raw_response
    elif isinstance(raw_response, dict):
        resource_type = raw_response.get("resourceType")
        if resource_type == "Bundle":
            entries = raw_response.get("entry")
            if not isinstance(entries, list):
                return []
            candidates = [entry.get("resource") for entry in entries if isinstance(entry, dict)]
        elif resource_type == expected_type:
            candidates = [raw_response]
        else:
            if resource_type == "OperationOutcome":
                logger.warning(f"OperationOutcome received while searching {expected_type}")
            return []
    else:
        logger.warning(
            f"Unexpected {type(raw_response).__name__} response while searching {expected_type}"
        )
        return []

    resources = [
        candidate
        for candidate in candidates
        if isinstance(candidate, dict) and candidate.get("resourceType") == expected_type
    ]
    skipped = len(candidates) - len(resources)
    if skipped:
        logger.debug(f"Skipped {skipped} entries that are not {expected_type}")
    return resources


def next_page_url(bundle: Any) -> str | None:
    """Return the URL of the ``next`` link of a Bundle, if any."""
    if not isinstance(bundle, dict) or bundle.get("resourceType") != "Bundle":
        return None
    for link in bundle.get("link") or []:
        if isinstance(link, dict) and link.get("relation") == "next" and link.get("url"):
            return link["url"]
    return None
