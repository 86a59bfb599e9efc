from mates_prefs.observer.enrichment import TimelineEnrichment
from mates_prefs.observer.timeline import TimelineObserver

__all__ = ["TimelineEnrichment", "TimelineObserver"]
