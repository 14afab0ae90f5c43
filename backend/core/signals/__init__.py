"""Signal classification and weighted aggregation."""

from core.signals.aggregator import SignalAggregator
from core.signals.classifier import SignalClassifier, register_rule

__all__ = ["SignalAggregator", "SignalClassifier", "register_rule"]
