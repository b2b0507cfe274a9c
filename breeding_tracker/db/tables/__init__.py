from breeding_tracker.db.tables.records import RecordRow

__all__ = ["RecordRow"]
