from simbooking.store.base import SchedulingStore

__all__ = ["SchedulingStore"]
