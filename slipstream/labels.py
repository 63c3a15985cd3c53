"""Visible labels of the translation surface's controls, keyed by locale."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class ControlLabels:
    """Acceptable button labels for one interface language."""

    trigger: Tuple[str, ...]
    download: Tuple[str, ...]


CONTROL_LABELS: Dict[str, ControlLabels] = {
    "es": ControlLabels(
        trigger=("Traducir",),
        download=("Descargar traducción",),
    ),
    "en": ControlLabels(
        trigger=("Translate",),
        download=("Download translation",),
    ),
    "fr": ControlLabels(
        trigger=("Traduire",),
        download=("Télécharger la traduction",),
    ),
    "de": ControlLabels(
        trigger=("Übersetzen",),
        download=("Übersetzung herunterladen",),
    ),
    "it": ControlLabels(
        trigger=("Traduci",),
        download=("Scarica traduzione",),
    ),
    "pt": ControlLabels(
        trigger=("Traduzir",),
        download=("Baixar tradução", "Transferir tradução"),
    ),
}

# Locales tried when the interface language has no entry of its own.
FALLBACK_ORDER = ("es", "en", "fr", "de", "it", "pt")


def _normalise_locale(locale: str | None) -> str:
    if not locale:
        return ""
    return locale.strip().lower().replace("_", "-").split("-")[0]


def _ordered(locale: str | None, kind: str) -> Tuple[str, ...]:
    primary = _normalise_locale(locale)
    order = [primary] if primary in CONTROL_LABELS else []
    order.extend(code for code in FALLBACK_ORDER if code != primary)
    order.extend(code for code in CONTROL_LABELS if code not in order)

    labels: list[str] = []
    for code in order:
        for label in getattr(CONTROL_LABELS[code], kind):
            if label not in labels:
                labels.append(label)
    return tuple(labels)


def trigger_labels(locale: str | None) -> Tuple[str, ...]:
    """Labels of the start-translation control, the locale's own first."""

    return _ordered(locale, "trigger")


def download_labels(locale: str | None) -> Tuple[str, ...]:
    """Labels of the download-result control, the locale's own first."""

    return _ordered(locale, "download")
