"""
Arvil: spaced-repetition core for policing recall drills.

Drills (plates, scenes, phonetic transcription) feed missed facts into an
SM-2 scheduler, which decides when each fact is re-presented. Everything is
stored locally; nothing leaves the device.
"""

__version__ = "1.0.0"
