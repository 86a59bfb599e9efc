from mates_prefs.preferences.store import PreferenceStore

__all__ = ["PreferenceStore"]
