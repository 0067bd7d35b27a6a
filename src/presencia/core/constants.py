"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

ATTENDANCE_THRESHOLD = 0.75
CORRECTION_VISIBILITY_DAYS = 3
MAX_LECTURE_NUMBER = 3
DEFAULT_LECTURE_NUMBER = 1
MAX_LECTURES_PER_SUBMISSION = 3
DEFAULT_CONFLICT_RETRIES = 3
DEFAULT_STREAM_POLL_SECONDS = 2.0
DEFAULT_SUMMARY_CACHE_TTL_SECONDS = 30.0
SUBJECT_NOT_FOUND = "Subject Not Found"
UNKNOWN_SUBJECT = "Unknown Subject"
