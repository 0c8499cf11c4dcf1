"""Analysis package — spam, backlink, topic and metrics engines plus risk scoring."""

from dropscan.analysis.backlinks import BacklinkHistory, BacklinkSummary, analyze_backlinks, summarize_backlink_history
from dropscan.analysis.metrics import DomainMetrics, MetricsAggregator
from dropscan.analysis.risk import RiskAssessment, aggregate_risk
from dropscan.analysis.spam import SpamResult, SpamSummary, analyze_capture_spam, score_text, summarize_spam
from dropscan.analysis.stopwords import DEFAULT_STOP_WORDS, combine_stop_words, parse_stop_words
from dropscan.analysis.topics import RedFlag, TopicResult, analyze_topics

__all__ = [
    "BacklinkHistory",
    "BacklinkSummary",
    "analyze_backlinks",
    "summarize_backlink_history",
    "DomainMetrics",
    "MetricsAggregator",
    "RiskAssessment",
    "aggregate_risk",
    "SpamResult",
    "SpamSummary",
    "analyze_capture_spam",
    "score_text",
    "summarize_spam",
    "DEFAULT_STOP_WORDS",
    "combine_stop_words",
    "parse_stop_words",
    "RedFlag",
    "TopicResult",
    "analyze_topics",
]
