"""Default values shared across visual-perfect."""

VERSION = "0.1.0"
API_BASE_PATH = "/__visual_perfect_api__"

DEFAULT_BASELINES_DIR = ".visual-perfect-baselines"
DEFAULT_STORYBOOK_URL = "http://localhost:6006"

BASELINE_SUFFIX = ".png"
DIFF_SUFFIX = ".diff.png"
PNG_DATA_URI_PREFIX = "data:image/png;base64,"

# Capture
DEFAULT_VIEWPORT_WIDTH = 1280
DEFAULT_VIEWPORT_HEIGHT = 720
DEFAULT_SETTLE_DELAY_MS = 500
DEFAULT_NAVIGATION_TIMEOUT_MS = 30_000
DEFAULT_RETRY_BACKOFF_MS = 2_000
CAPTURE_MAX_ATTEMPTS = 2

# Diff
DEFAULT_DIFF_TOLERANCE = 0.1

# Subjects
MAX_SUBJECT_LENGTH = 200
