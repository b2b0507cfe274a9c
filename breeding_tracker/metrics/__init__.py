from breeding_tracker.metrics.validation_summary import ValidationSummary, summarize_validations

__all__ = ["ValidationSummary", "summarize_validations"]
