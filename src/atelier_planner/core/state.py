# src/atelier_planner/core/state.py

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..agenda.agenda_models import AppointmentLocation, AppointmentType
from .ports import EntityStore

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    """
    Everything a UI-layer call needs: the settings and the entity store.

    Settings are typed as object so tests can pass a SimpleNamespace.
    """

    settings: object
    store: EntityStore

    @property
    def appointment_location(self) -> AppointmentLocation:
        raw = str(getattr(self.settings, "appointment_location", "") or "")
        try:
            return AppointmentLocation(raw)
        except ValueError:
            logger.warning("Unknown appointment location %r; using Showroom", raw)
            return AppointmentLocation.SHOWROOM

    @property
    def appointment_type(self) -> AppointmentType:
        raw = str(getattr(self.settings, "appointment_type", "") or "")
        try:
            return AppointmentType(raw)
        except ValueError:
            logger.warning("Unknown appointment type %r; using Autre", raw)
            return AppointmentType.OTHER

    @property
    def late_grace_days(self) -> int:
        return int(getattr(self.settings, "late_grace_days", 0) or 0)
