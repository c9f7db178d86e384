"""
Unit tests for clinician booking conflicts, run against both stores.
"""

from datetime import datetime, timedelta

import pytest

from clinic.core.exceptions import ConflictError
from clinic.domain.entities import Appointment, AppointmentStatus
from clinic.services import conflict_detector
from tests.factories.appointment_factories import SATURDAY


def _book(store, start_at, minutes=60, clinician_id=1, **overrides):
    with store.transaction() as tx:
        return tx.appointments.create(
            Appointment(
                patient_id=overrides.pop("patient_id", 1),
                clinician_id=clinician_id,
                start_at=start_at,
                end_at=start_at + timedelta(minutes=minutes),
                **overrides,
            )
        )


def _conflicts(store, start_at, minutes=60, clinician_id=1, exclude_id=None):
    with store.transaction() as tx:
        return conflict_detector.has_conflict(
            tx.appointments,
            clinician_id,
            start_at,
            start_at + timedelta(minutes=minutes),
            exclude_id,
        )


def test_intervals_overlap_is_half_open():
    nine, ten, eleven = (datetime(2025, 1, 4, h) for h in (9, 10, 11))
    assert conflict_detector.intervals_overlap(nine, eleven, ten, eleven)
    assert not conflict_detector.intervals_overlap(nine, ten, ten, eleven)


class TestHasConflict:
    def test_overlapping_slot(self, store):
        _book(store, SATURDAY)
        assert _conflicts(store, SATURDAY + timedelta(minutes=30))

    def test_contained_slot(self, store):
        _book(store, SATURDAY, minutes=120)
        assert _conflicts(store, SATURDAY + timedelta(minutes=30), minutes=15)

    def test_back_to_back_slots_do_not_conflict(self, store):
        _book(store, SATURDAY)
        assert not _conflicts(store, SATURDAY + timedelta(minutes=60))
        assert not _conflicts(store, SATURDAY - timedelta(minutes=60))

    def test_other_clinician_is_free(self, store):
        _book(store, SATURDAY, clinician_id=1)
        assert not _conflicts(store, SATURDAY, clinician_id=2)

    def test_cancelled_appointment_frees_the_slot(self, store):
        _book(store, SATURDAY, status=AppointmentStatus.CANCELLED)
        assert not _conflicts(store, SATURDAY)

    def test_excluded_appointment_is_ignored(self, store):
        booked = _book(store, SATURDAY)
        assert not _conflicts(store, SATURDAY, exclude_id=booked.id)


def test_ensure_no_conflict_raises(store):
    _book(store, SATURDAY)
    with store.transaction() as tx:
        with pytest.raises(ConflictError, match="overlaps") as exc_info:
            conflict_detector.ensure_no_conflict(
                tx.appointments, 1, SATURDAY, SATURDAY + timedelta(minutes=15)
            )
    assert exc_info.value.status_code == 409
    assert exc_info.value.details["clinician_id"] == 1
