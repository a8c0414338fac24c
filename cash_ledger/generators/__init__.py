"""Generators for installment schedules and demo data."""

from cash_ledger.generators.base import BaseGenerator
from cash_ledger.generators.schedule import ScheduleGenerator, split_evenly, split_weighted

__all__ = ["BaseGenerator", "ScheduleGenerator", "split_evenly", "split_weighted"]
