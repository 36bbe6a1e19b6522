"""Dosage extraction shared by the medication and medication request normalizers."""

from typing import Any

from fhir_viewer.infrastructure.fhir.normalizers._common import first, text_or_display


def dose_quantity(dosage: dict[str, Any]) -> str:
    """Format ``doseQuantity`` (top level or first ``doseAndRate``) as "value unit"."""
    quantity = dosage.get("doseQuantity")
    if not isinstance(quantity, dict):
        dose_and_rate = first(dosage.get("doseAndRate"))
        quantity = dose_and_rate.get("doseQuantity") if isinstance(dose_and_rate, dict) else None
    if not isinstance(quantity, dict):
        return ""
    value = quantity.get("value")
    unit = quantity.get("unit") or quantity.get("code") or ""
    if value is None or value == "":
        return ""
    return f"{value} {unit}".strip()


def timing(raw_timing: Any) -> str:
    """Format a Timing: its code text, else "N time(s) per P unit" plus ``when`` codes."""
    if not isinstance(raw_timing, dict):
        return ""
    code = raw_timing.get("code")
    if isinstance(code, dict) and code.get("text"):
        return code["text"]

    repeat = raw_timing.get("repeat")
    if not isinstance(repeat, dict):
        return text_or_display(code)

    parts = []
    if repeat.get("frequency") and repeat.get("period"):
        parts.append(
            f"{repeat['frequency']} time(s) per {repeat['period']} {repeat.get('periodUnit') or ''}".strip()
        )
    when = repeat.get("when")
    if isinstance(when, list) and when:
        parts.append(", ".join(str(w) for w in when))
    return ", ".join(parts)


def as_needed(dosage: dict[str, Any]) -> str:
    if dosage.get("asNeededBoolean") is True or dosage.get("asNeeded") is True:
        return "As needed"
    concept = dosage.get("asNeededCodeableConcept")
    if isinstance(concept, dict):
        return concept.get("text") or text_or_display(concept)
    return ""
