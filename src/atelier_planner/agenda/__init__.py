"""
Agenda subsystem.

- agenda_models.py: Appointment, TimeSlot and their enums
- conflicts.py: overlap detection for a collaborator's day
- agenda_api.py: calendar-side create/edit/delete
"""
