"""Aggregate statistics over validated predictions."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

import numpy as np

from breeding_tracker.entities.record import QualityLabel, Record


@dataclass(frozen=True)
class ValidationSummary:
    count: int
    mean_accuracy: float | None = None
    median_accuracy: float | None = None
    min_accuracy: float | None = None
    max_accuracy: float | None = None
    by_label: dict[QualityLabel, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "mean_accuracy": self.mean_accuracy,
            "median_accuracy": self.median_accuracy,
            "min_accuracy": self.min_accuracy,
            "max_accuracy": self.max_accuracy,
            "by_label": {label.value: n for label, n in self.by_label.items()},
        }


def summarize_validations(records: Iterable[Record], min_accuracy: float = 0.0) -> ValidationSummary:
    """Summarize validated records whose accuracy is at least ``min_accuracy``."""
    selected = [
        r for r in records
        if r.is_validated and r.accuracy_percent is not None and r.accuracy_percent >= min_accuracy
    ]

    by_label = {label: 0 for label in QualityLabel}
    for record in selected:
        if record.quality_label is not None:
            by_label[record.quality_label] += 1

    if not selected:
        return ValidationSummary(count=0, by_label=by_label)

    accuracies = np.asarray([r.accuracy_percent for r in selected], dtype=float)
    return ValidationSummary(
        count=len(selected),
        mean_accuracy=float(np.mean(accuracies)),
        median_accuracy=float(np.median(accuracies)),
        min_accuracy=float(np.min(accuracies)),
        max_accuracy=float(np.max(accuracies)),
        by_label=by_label,
    )
