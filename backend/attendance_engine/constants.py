"""System-wide constants for attendance verification."""

# Geofence
GEOFENCE_RADIUS_METERS = 300
EARTH_RADIUS_METERS = 6371000
LOCATION_TIMEOUT_SECONDS = 15

# Face similarity (0-255 luminance scale, lower = stricter)
FACE_MATCH_THRESHOLD = 115
FACE_SAMPLE_SIZE = 64

# QR tokens
QR_PREFIX = 'SECURE'
QR_ROTATION_INTERVAL_MS = 10000
QR_FRESHNESS_WINDOW_MS = 20000
QR_TOKEN_BYTES = 6
SCAN_TIMEOUT_SECONDS = 45

# Sessions
SESSION_STALENESS_MINUTES = 90

# Alerts (percent)
ALERT_WARNING_THRESHOLD = 75
ALERT_CRITICAL_THRESHOLD = 60

# Store collections
USERS = 'users'
SESSIONS = 'sessions'
TIMETABLE = 'timetable'
ATTENDANCE = 'attendance'

DAYS_OF_WEEK = [
    'Monday', 'Tuesday', 'Wednesday', 'Thursday',
    'Friday', 'Saturday', 'Sunday'
]

DEPARTMENTS = [
    "Computer Science and Engineering",
    "CSE-DS",
    "CSE-AIML",
    "Civil Engineering",
    "Electronics and Communications Engineering",
    "Mechanical Engineering"
]

SUBJECTS_BY_DEPT = {
    "Computer Science and Engineering": [
        "Data Structures", "Algorithms", "Database Systems",
        "Operating Systems", "Computer Networks"
    ],
    "CSE-DS": ["ATCD", "PA", "WSMA", "NLP", "WSMA-LAB", "PA-LAB", "I&EE"],
    "CSE-AIML": [
        "Artificial Intelligence", "Deep Learning", "Neural Networks",
        "Natural Language Processing", "Computer Vision"
    ],
    "Civil Engineering": [
        "Structural Analysis", "Geotechnical Engineering",
        "Surveying", "Construction Mgmt"
    ],
    "Electronics and Communications Engineering": [
        "Digital Electronics", "Signals & Systems", "Microprocessors",
        "VLSI Design", "Communication Systems"
    ],
    "Mechanical Engineering": [
        "Thermodynamics", "Fluid Mechanics",
        "Strength of Materials", "Machine Design"
    ]
}
