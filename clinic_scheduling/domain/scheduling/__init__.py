"""
Scheduling Domain

Appointment scheduling and doctor availability for a clinic.

Structure:
```
domain/scheduling/
├── __init__.py
├── schemas.py              # Availability, slot and appointment schemas
├── exceptions.py           # Domain errors with HTTP status and code
├── repository.py           # Doctor, service and appointment queries, schedule lock
├── time_calculator.py      # Time parsing, interval and clinic-timezone helpers
├── availability.py         # Working hours, working days, lunch break
├── slot_generator.py       # Pure slot arithmetic for one day
├── conflict_checker.py     # Booked intervals, overlap and duplicate-day guard
├── calendar_aggregator.py  # Month roll-up of day classifications
├── availability_service.py # Day and month availability reads
├── booking_service.py      # Booking transaction, status changes, reschedule
└── router.py               # /scheduling endpoints
```

Reads take no locks and may be slightly stale; every write re-checks
conflicts inside one transaction holding the doctor's schedule lock.
"""
