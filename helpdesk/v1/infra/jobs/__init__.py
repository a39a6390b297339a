"""
Background-work subsystem.

This package provides a store-backed job system with:
- A polling queue over the jobs table with bounded batch execution
- Registry-based handlers dispatched by job type, with a per-job timeout
- Self-rescheduling recurring jobs (hourly, daily, weekly)
- Event fan-out from business events to independently enqueued jobs
"""
